"""Tests for SpectrogramBuilder."""

import numpy as np
import pytest

from clipdsp.analyzers.spectrogram import SpectrogramBuilder, db_to_intensity, frame_count
from clipdsp.core.context import CancelToken
from clipdsp.core.models import SampleBuffer
from clipdsp.utils.errors import AnalysisCancelledError


class TestIntensityMapping:
    def test_range_endpoints(self):
        mapped = db_to_intensity(np.array([-np.inf, -150.0, -100.0, -50.0, 0.0]))
        assert mapped.dtype == np.uint8
        assert list(mapped) == [0, 0, 0, 128, 255]

    def test_frame_count(self):
        assert frame_count(511, 512, 128) == 0
        assert frame_count(512, 512, 128) == 1
        assert frame_count(44100, 512, 128) == (44100 - 512) // 128 + 1


class TestSpectrogramBuilder:
    def test_shape_and_metadata(self, sine_440, context):
        spectrogram = SpectrogramBuilder(context).build(sine_440)

        expected_width = (44100 - 512) // 128 + 1
        assert spectrogram.width == expected_width
        assert spectrogram.height == 256
        assert spectrogram.data.shape == (expected_width, 256)
        assert spectrogram.data.dtype == np.uint8
        assert spectrogram.time_step == pytest.approx(128 / 44100)
        assert spectrogram.frequency_range == (0.0, 22050.0)

    def test_energy_at_tone_bin(self, sine_440, context):
        spectrogram = SpectrogramBuilder(context).build(sine_440)

        # 440 Hz / (22050 / 256) Hz per bin ~ bin 5
        peak_bins = spectrogram.data.argmax(axis=1)
        assert np.all(np.abs(peak_bins - 5) <= 1)

    def test_direct_estimator_agrees(self, make_sine, context, direct_context):
        buffer = make_sine(1000.0, duration=0.05)
        fast = SpectrogramBuilder(context).build(buffer)
        slow = SpectrogramBuilder(direct_context).build(buffer)

        assert fast.data.shape == slow.data.shape
        assert np.max(np.abs(fast.data.astype(int) - slow.data.astype(int))) <= 1

    def test_short_clip_is_empty(self, context):
        buffer = SampleBuffer((np.ones(100),), 44100)
        spectrogram = SpectrogramBuilder(context).build(buffer)

        assert spectrogram.is_empty
        assert spectrogram.height == 0
        assert spectrogram.frequency_range == (0.0, 22050.0)

    def test_silence_is_all_zero(self, silence, context):
        spectrogram = SpectrogramBuilder(context).build(silence)
        assert spectrogram.width > 0
        assert not spectrogram.data.any()

    def test_cancelled(self, sine_440, context):
        token = CancelToken()
        token.cancel()
        with pytest.raises(AnalysisCancelledError):
            SpectrogramBuilder(context).analyze(sine_440, cancel_token=token)
