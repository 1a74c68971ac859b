"""
Loudness analysis and peak normalisation across clips.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from clipdsp.core.models import LoudnessReport, SampleBuffer
from clipdsp.utils.errors import ProcessingError

TARGET_PEAK_DB: float = -1.0
LIMITER_THRESHOLD: float = 0.95
LUFS_FLOOR: float = -100.0
# Offset from RMS dBFS to the rough LUFS figure reported
LUFS_OFFSET: float = 0.691
BLOCK_SECONDS: float = 0.4
DB_EPSILON: float = 1e-10

logger = logging.getLogger(__name__)


def _to_db(value: float) -> float:
    return 20.0 * math.log10(value + DB_EPSILON)


def analyze_loudness(buffer: SampleBuffer) -> LoudnessReport:
    """
    Peak, approximate LUFS and loudness range of channel 0.

    LRA is the spread between the 10th and 90th percentile levels of
    consecutive 400 ms blocks; it is 0 when there are fewer than three
    complete blocks.
    """
    samples = np.asarray(buffer.channel(0), dtype=np.float64)
    if len(samples) == 0:
        return LoudnessReport(peak_db=_to_db(0.0), lufs=LUFS_FLOOR, lra=0.0)

    peak_db = _to_db(float(np.max(np.abs(samples))))
    rms_db = _to_db(math.sqrt(float(np.mean(samples ** 2))))
    lufs = max(LUFS_FLOOR, rms_db - LUFS_OFFSET)

    block = int(math.floor(buffer.sample_rate * BLOCK_SECONDS))
    levels = []
    if block > 0:
        for start in range(0, len(samples) - block, block):
            chunk = samples[start:start + block]
            levels.append(_to_db(math.sqrt(float(np.mean(chunk ** 2)))))

    lra = 0.0
    if len(levels) > 2:
        levels.sort()
        lra = levels[int(len(levels) * 0.9)] - levels[int(len(levels) * 0.1)]

    return LoudnessReport(peak_db=peak_db, lufs=lufs, lra=lra)


def soft_limit(samples: np.ndarray, threshold: float = LIMITER_THRESHOLD) -> np.ndarray:
    """
    tanh knee above *threshold*; magnitudes never exceed 1.

    Samples at or below the threshold pass through untouched.
    """
    if threshold >= 1.0:
        return np.clip(samples, -1.0, 1.0)
    magnitude = np.abs(samples)
    over = magnitude > threshold
    if not np.any(over):
        return samples

    knee = 1.0 - threshold
    compressed = threshold + knee * np.tanh((magnitude - threshold) / knee)
    limited = np.where(over, np.minimum(compressed, 1.0), magnitude)
    return np.sign(samples) * limited


def normalize_peaks(
    buffers: Sequence[SampleBuffer],
    target_peak_db: float = TARGET_PEAK_DB,
    keep_relative: bool = False,
    auto_limiter: bool = True,
    limiter_threshold: float = LIMITER_THRESHOLD,
    reports: Optional[Sequence[LoudnessReport]] = None,
) -> List[SampleBuffer]:
    """
    Gain every clip so its sample peak lands on *target_peak_db*.

    With keep_relative, one common gain brings the loudest clip to the
    target and the others keep their level differences. The auto limiter
    soft-clips anything the gain pushes past *limiter_threshold*.

    Args:
        buffers: Clips to normalise
        target_peak_db: Target sample peak in dBFS
        keep_relative: Use a single gain for all clips
        auto_limiter: Apply the tanh soft limiter after the gain
        limiter_threshold: Linear level where the limiter knee starts
        reports: Precomputed loudness reports, one per buffer

    Returns:
        List[SampleBuffer]: One output per input; silent clips come back unchanged

    Raises:
        ProcessingError: Invalid limiter threshold or report count
    """
    if not 0.0 < limiter_threshold <= 1.0:
        raise ProcessingError(
            f"Limiter threshold must be in (0, 1], got {limiter_threshold}",
            operation="normalize_peaks",
            value=limiter_threshold,
        )
    if reports is None:
        reports = [analyze_loudness(buffer) for buffer in buffers]
    if len(reports) != len(buffers):
        raise ProcessingError(
            f"Got {len(reports)} loudness reports for {len(buffers)} buffers",
            operation="normalize_peaks",
        )

    loudest = max([r.peak_db for r in reports] + [LUFS_FLOOR])

    results = []
    for buffer, report in zip(buffers, reports):
        if buffer.peak() == 0.0:
            results.append(buffer)
            continue

        adjustment = target_peak_db - (loudest if keep_relative else report.peak_db)
        gain = 10.0 ** (adjustment / 20.0)
        logger.debug(f"Peak {report.peak_db:.1f} dB, adjusting {adjustment:+.1f} dB")

        channels = [np.asarray(data, dtype=np.float64) * gain for data in buffer.channels]
        if auto_limiter:
            channels = [soft_limit(data, limiter_threshold) for data in channels]
        results.append(buffer.with_channels(channels))
    return results
