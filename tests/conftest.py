"""Shared fixtures for clip DSP engine tests."""

import numpy as np
import pytest

from clipdsp.core.context import EngineContext
from clipdsp.core.models import SampleBuffer


# ---------------------------------------------------------------------------
# Signal factories
# ---------------------------------------------------------------------------


def sine(
    frequency: float = 440.0,
    duration: float = 1.0,
    sample_rate: int = 44100,
    amplitude: float = 0.5,
    num_channels: int = 1,
) -> SampleBuffer:
    """Build a (multi-channel) sine buffer."""
    t = np.arange(int(round(duration * sample_rate))) / sample_rate
    data = amplitude * np.sin(2 * np.pi * frequency * t)
    return SampleBuffer(tuple(data for _ in range(num_channels)), sample_rate)


def constant(value: float, length: int, sample_rate: int = 44100, num_channels: int = 1) -> SampleBuffer:
    """Build a buffer holding one value everywhere."""
    return SampleBuffer(
        tuple(np.full(length, value) for _ in range(num_channels)),
        sample_rate,
    )


def clicks(period: int, duration: float = 4.0, sample_rate: int = 44100, click_length: int = 441) -> SampleBuffer:
    """Mono click track: a 0.8 burst of click_length samples every period samples."""
    data = np.zeros(int(round(duration * sample_rate)))
    for start in range(0, len(data), period):
        data[start:start + click_length] = 0.8
    return SampleBuffer((data,), sample_rate)


@pytest.fixture
def make_sine():
    """Factory fixture for sine buffers."""
    return sine


@pytest.fixture
def make_constant():
    """Factory fixture for constant buffers."""
    return constant


@pytest.fixture
def make_clicks():
    """Factory fixture for click tracks."""
    return clicks


@pytest.fixture
def sine_440():
    """1 s, 44.1 kHz, mono 440 Hz sine at half scale."""
    return sine(440.0)


@pytest.fixture
def silence():
    """1 s of mono silence at 44.1 kHz."""
    return SampleBuffer.silence(44100, 44100)


# ---------------------------------------------------------------------------
# Engine context
# ---------------------------------------------------------------------------


@pytest.fixture
def context():
    """Default engine context."""
    return EngineContext()


@pytest.fixture
def direct_context():
    """Engine context forced onto the direct DFT estimator."""
    return EngineContext.from_config({"spectral": {"estimator": "direct"}})
