"""
Pitch shifting by overlap-add time-stretch followed by resampling.

The stretch changes duration without touching pitch; resampling the
stretched signal back to the original length then moves the pitch.
"""

import logging
import math

import numpy as np

from clipdsp.core.models import SampleBuffer
from clipdsp.transforms.basic import trim_silence

OLA_WINDOW: int = 2048
# Empirical loudness compensation for the overlap-add energy gain
OLA_GAIN: float = 0.6
TRIM_THRESHOLD: float = 0.005

logger = logging.getLogger(__name__)


def time_stretch_ola(
    samples: np.ndarray,
    ratio: float,
    window_size: int = OLA_WINDOW,
    ola_gain: float = OLA_GAIN,
) -> np.ndarray:
    """
    Overlap-add time stretch of one channel to round(len * ratio) samples.

    Hann frames are read every window/4 samples and written every
    round(window/4 * ratio) samples, then scaled by (hop_out / hop_in) * ola_gain.

    Args:
        samples: Mono samples
        ratio: Duration factor (> 1 lengthens)
        window_size: Frame length
        ola_gain: Post-scale tuning factor

    Returns:
        np.ndarray: Stretched samples
    """
    length = len(samples)
    out_length = int(round(length * ratio))
    if length == 0 or out_length == 0:
        return np.zeros(out_length)

    hop_in = window_size // 4
    hop_out = max(1, int(round(hop_in * ratio)))
    window = np.hanning(window_size)

    num_frames = max(1, (length - window_size) // hop_in + 1)
    # Keep reading until the input tail is covered
    while (num_frames - 1) * hop_in + window_size < length:
        num_frames += 1

    output = np.zeros(max(out_length, (num_frames - 1) * hop_out + window_size))
    for frame in range(num_frames):
        read = frame * hop_in
        chunk = samples[read:read + window_size]
        write = frame * hop_out
        output[write:write + len(chunk)] += chunk * window[: len(chunk)]

    return output[:out_length] * (hop_out / hop_in) * ola_gain


def resample_linear(samples: np.ndarray, ratio: float, out_length: int) -> np.ndarray:
    """Read *samples* at positions i * ratio with linear interpolation."""
    if len(samples) == 0:
        return np.zeros(out_length)
    positions = np.arange(out_length) * ratio
    return np.interp(positions, np.arange(len(samples)), samples, right=0.0)


def change_pitch(
    buffer: SampleBuffer,
    semitones: float,
    window_size: int = OLA_WINDOW,
    ola_gain: float = OLA_GAIN,
    trim_threshold: float = TRIM_THRESHOLD,
) -> SampleBuffer:
    """
    Shift pitch by *semitones* keeping (roughly) the original duration.

    Frames are overlap-added without phase alignment, so the result only
    lands on the requested pitch when successive frames stay in phase.
    Small shifts of low partials tend to come back at the input frequency.

    Args:
        buffer: Source buffer
        semitones: Shift amount; 0 returns the input unchanged
        window_size: OLA frame length
        ola_gain: OLA post-scale tuning factor
        trim_threshold: Silence threshold for the final trim

    Returns:
        SampleBuffer: Pitch-shifted buffer, boundary silence trimmed
    """
    if semitones == 0:
        return buffer

    ratio = 2.0 ** (semitones / 12.0)
    logger.debug(f"Pitch shift {semitones:+} semitones (ratio {ratio:.4f})")

    length = buffer.length
    channels = []
    for data in buffer.channels:
        stretched = time_stretch_ola(data, ratio, window_size, ola_gain)
        channels.append(resample_linear(stretched, ratio, length))

    return trim_silence(buffer.with_channels(channels), trim_threshold)
