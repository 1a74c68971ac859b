"""
Buffer transforms for the clip DSP engine.

Pure functions: every operation returns a new SampleBuffer and leaves its
input untouched.
"""

import math

import numpy as np
from scipy.signal import lfilter

from clipdsp.core.models import ClippingReport, SampleBuffer
from clipdsp.utils.errors import ProcessingError

CLIPPING_MODES = ("none", "limiter", "softclip", "normalize")


def _map_channels(buffer: SampleBuffer, fn) -> SampleBuffer:
    """Apply *fn* to every channel."""
    return buffer.with_channels([fn(data) for data in buffer.channels])


def crop(buffer: SampleBuffer, start: float, end: float) -> SampleBuffer:
    """
    Keep samples [floor(start * sr), floor(end * sr)) of every channel.

    Args:
        buffer: Source buffer
        start: Start time in seconds (clamped to [0, duration])
        end: End time in seconds (clamped to [0, duration])

    Returns:
        SampleBuffer: Cropped buffer

    Raises:
        ProcessingError: If end is not after start
    """
    start = min(max(start, 0.0), buffer.duration)
    end = min(max(end, 0.0), buffer.duration)
    if end <= start:
        raise ProcessingError(
            f"Crop end ({end:.3f}s) must be after start ({start:.3f}s)",
            operation="crop",
            value=(start, end),
        )

    sr = buffer.sample_rate
    first = int(math.floor(start * sr))
    last = int(math.floor(end * sr))
    return _map_channels(buffer, lambda data: data[first:last])


def gain(buffer: SampleBuffer, multiplier: float) -> SampleBuffer:
    """Scale every sample by *multiplier*."""
    if not math.isfinite(multiplier):
        raise ProcessingError(
            f"Gain must be finite, got {multiplier}",
            operation="gain",
            value=multiplier,
        )
    return _map_channels(buffer, lambda data: data * multiplier)


def detect_clipping(buffer: SampleBuffer, multiplier: float = 1.0) -> ClippingReport:
    """
    Would applying *multiplier* push the buffer past full scale?

    Returns:
        ClippingReport: peak_level = peak * multiplier, clipped when > 1.0
    """
    peak_level = buffer.peak() * abs(multiplier)
    return ClippingReport(clipped=peak_level > 1.0, peak_level=peak_level)


def fade_in(buffer: SampleBuffer, duration: float) -> SampleBuffer:
    """Linear ramp from silence over the first floor(duration * sr) samples."""
    n = int(math.floor(duration * buffer.sample_rate))
    if n <= 0:
        return buffer

    i = np.arange(buffer.length)
    ramp = np.where(i < n, i / n, 1.0)
    return _map_channels(buffer, lambda data: data * ramp)


def fade_out(buffer: SampleBuffer, duration: float) -> SampleBuffer:
    """Linear ramp to silence over the last floor(duration * sr) samples."""
    n = int(math.floor(duration * buffer.sample_rate))
    if n <= 0:
        return buffer

    length = buffer.length
    i = np.arange(length)
    ramp = np.where(i > length - n, (length - i) / n, 1.0)
    return _map_channels(buffer, lambda data: data * ramp)


def change_playback_rate(buffer: SampleBuffer, rate: float) -> SampleBuffer:
    """
    Nearest-neighbour speed change; pitch and duration move together.

    Output sample i is input sample floor(i * rate); output length is
    floor(length / rate).

    Raises:
        ProcessingError: If rate is not positive
    """
    if not rate > 0 or not math.isfinite(rate):
        raise ProcessingError(
            f"Playback rate must be positive, got {rate}",
            operation="change_playback_rate",
            value=rate,
        )

    new_length = int(math.floor(buffer.length / rate))
    indices = np.floor(np.arange(new_length) * rate).astype(np.int64)
    valid = indices < buffer.length
    safe = np.where(valid, indices, 0)

    def step(data: np.ndarray) -> np.ndarray:
        if len(data) == 0:
            return np.zeros(new_length)
        return np.where(valid, data[safe], 0.0)

    return _map_channels(buffer, step)


def trim_silence(buffer: SampleBuffer, threshold: float = 0.005) -> SampleBuffer:
    """
    Drop leading and trailing samples at or below *threshold* in every channel.

    A buffer with no sample above the threshold is returned unchanged.
    """
    if buffer.length == 0:
        return buffer

    loud = np.zeros(buffer.length, dtype=bool)
    for data in buffer.channels:
        loud |= np.abs(data) > threshold

    positions = np.flatnonzero(loud)
    if positions.size == 0:
        return buffer

    first, last = int(positions[0]), int(positions[-1]) + 1
    if first == 0 and last == buffer.length:
        return buffer
    return _map_channels(buffer, lambda data: data[first:last])


def apply_limiter(buffer: SampleBuffer, ceiling: float = 0.99) -> SampleBuffer:
    """Hard-limit every sample to [-ceiling, ceiling]."""
    return _map_channels(buffer, lambda data: np.clip(data, -ceiling, ceiling))


def apply_soft_clip(buffer: SampleBuffer) -> SampleBuffer:
    """tanh saturation; output stays inside (-1, 1)."""
    return _map_channels(buffer, np.tanh)


def normalize(buffer: SampleBuffer, target: float = 0.99) -> SampleBuffer:
    """Scale so the peak sits at *target*; silent buffers are returned as-is."""
    peak = buffer.peak()
    if peak == 0.0:
        return buffer
    return gain(buffer, target / peak)


def protect_clipping(buffer: SampleBuffer, mode: str = "none") -> SampleBuffer:
    """
    Apply a clipping-protection strategy.

    Args:
        buffer: Buffer that may exceed full scale
        mode: "none", "limiter", "softclip" or "normalize"

    Raises:
        ProcessingError: Unknown mode
    """
    if mode == "none":
        return buffer
    if mode == "limiter":
        return apply_limiter(buffer)
    if mode == "softclip":
        return apply_soft_clip(buffer)
    if mode == "normalize":
        return normalize(buffer)
    raise ProcessingError(
        f"Unknown clipping mode: {mode!r} (expected one of {', '.join(CLIPPING_MODES)})",
        operation="protect_clipping",
        value=mode,
    )


def soften(
    buffer: SampleBuffer,
    cutoff_frequency: float = 8000.0,
    intensity: float = 50.0,
) -> SampleBuffer:
    """
    One-pole RC low-pass blended with the dry signal.

    y[n] = a * x[n] + (1 - a) * y[n - 1], a = dt / (RC + dt),
    RC = 1 / (2 * pi * cutoff). The filter starts settled on x[0].

    Args:
        buffer: Source buffer
        cutoff_frequency: Low-pass cutoff in Hz
        intensity: Wet share in percent (0 returns the input)

    Raises:
        ProcessingError: Non-positive cutoff or intensity outside [0, 100]
    """
    if cutoff_frequency <= 0:
        raise ProcessingError(
            f"Cutoff frequency must be positive, got {cutoff_frequency}",
            operation="soften",
            value=cutoff_frequency,
        )
    if not 0 <= intensity <= 100:
        raise ProcessingError(
            f"Intensity must be in [0, 100], got {intensity}",
            operation="soften",
            value=intensity,
        )
    if intensity == 0 or buffer.length == 0:
        return buffer

    dt = 1.0 / buffer.sample_rate
    rc = 1.0 / (2.0 * math.pi * cutoff_frequency)
    alpha = dt / (rc + dt)
    wet = intensity / 100.0

    def filter_channel(data: np.ndarray) -> np.ndarray:
        filtered, _ = lfilter(
            [alpha], [1.0, alpha - 1.0], data, zi=[(1.0 - alpha) * data[0]]
        )
        return data * (1.0 - wet) + filtered * wet

    return _map_channels(buffer, filter_channel)
