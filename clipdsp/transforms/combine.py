"""
Two-buffer combination: sample-rate conversion, concatenation and mixing.
"""

import logging
from typing import List, Tuple

import numpy as np

from clipdsp.core.models import MixResult, SampleBuffer
from clipdsp.utils.errors import ProcessingError

MIX_HEADROOM: float = 0.99

logger = logging.getLogger(__name__)


def resample_buffer(buffer: SampleBuffer, target_rate: int) -> SampleBuffer:
    """
    Convert *buffer* to *target_rate* by linear interpolation.

    Duration and pitch are preserved; output length is
    round(length * target_rate / sample_rate).

    Raises:
        ProcessingError: If target_rate is not a positive integer
    """
    if int(target_rate) != target_rate or target_rate <= 0:
        raise ProcessingError(
            f"Target sample rate must be a positive integer, got {target_rate}",
            operation="resample_buffer",
            value=target_rate,
        )
    target_rate = int(target_rate)
    if target_rate == buffer.sample_rate:
        return buffer

    step = buffer.sample_rate / target_rate
    out_length = int(round(buffer.length * target_rate / buffer.sample_rate))
    positions = np.arange(out_length) * step
    source_index = np.arange(buffer.length)

    channels = []
    for data in buffer.channels:
        if len(data) == 0:
            channels.append(np.zeros(out_length))
        else:
            channels.append(np.interp(positions, source_index, data))

    logger.debug(f"Resampled {buffer.sample_rate} Hz -> {target_rate} Hz")
    return SampleBuffer(tuple(channels), target_rate)


def harmonize(a: SampleBuffer, b: SampleBuffer) -> Tuple[SampleBuffer, SampleBuffer]:
    """Bring both buffers to the higher of their two sample rates."""
    rate = max(a.sample_rate, b.sample_rate)
    return resample_buffer(a, rate), resample_buffer(b, rate)


def _broadcast(buffer: SampleBuffer, num_channels: int) -> List[np.ndarray]:
    """Channels 0..num_channels-1, reusing the last channel past the end."""
    last = buffer.num_channels - 1
    return [buffer.channel(min(c, last)) for c in range(num_channels)]


def join(a: SampleBuffer, b: SampleBuffer) -> SampleBuffer:
    """
    Concatenate *b* after *a*.

    Rates are harmonized to the higher one; the narrower buffer repeats
    its last channel to fill the wider channel layout.
    """
    a, b = harmonize(a, b)
    num_channels = max(a.num_channels, b.num_channels)
    channels = [
        np.concatenate((first, second))
        for first, second in zip(_broadcast(a, num_channels), _broadcast(b, num_channels))
    ]
    return SampleBuffer(tuple(channels), a.sample_rate)


def mix(
    a: SampleBuffer,
    b: SampleBuffer,
    balance1: float = 0.5,
    balance2: float = 0.5,
    auto_normalize: bool = True,
    headroom: float = MIX_HEADROOM,
) -> MixResult:
    """
    Weighted sum of two buffers.

    The shorter buffer is zero-padded to the longer one. When the peak of
    the sum exceeds 1.0 the result is either normalized to *headroom*
    (auto_normalize) or hard-clamped to [-1, 1].

    Args:
        a: First buffer
        b: Second buffer
        balance1: Weight of *a*
        balance2: Weight of *b*
        auto_normalize: Normalize instead of clamping on overload
        headroom: Peak level after normalization

    Returns:
        MixResult: Mixed buffer plus normalized / clipped flags
    """
    a, b = harmonize(a, b)
    num_channels = max(a.num_channels, b.num_channels)
    length = max(a.length, b.length)

    mixed = np.zeros((num_channels, length))
    for c, (first, second) in enumerate(zip(_broadcast(a, num_channels), _broadcast(b, num_channels))):
        mixed[c, : len(first)] += first * balance1
        mixed[c, : len(second)] += second * balance2

    peak = float(np.max(np.abs(mixed))) if mixed.size else 0.0
    clipped = peak > 1.0
    normalized = False

    if auto_normalize and clipped:
        mixed *= headroom / peak
        normalized, clipped = True, False
        logger.debug(f"Mix peak {peak:.3f} normalized to {headroom}")
    elif not auto_normalize:
        np.clip(mixed, -1.0, 1.0, out=mixed)

    return MixResult(
        buffer=SampleBuffer(tuple(mixed), a.sample_rate),
        normalized=normalized,
        clipped=clipped
    )
