"""
Tempo detection and tempo synchronisation.

BPM comes from autocorrelating an energy-onset envelope; tempo changes
reuse the OLA time stretch, so durations change while pitch stays put.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import librosa
import numpy as np

from clipdsp.core.models import BpmEstimate, SampleBuffer
from clipdsp.transforms.pitch_shift import time_stretch_ola
from clipdsp.utils.errors import ProcessingError

MIN_BPM: float = 60.0
MAX_BPM: float = 200.0
# Clips shorter than this are treated as a single beat
MIN_DETECT_SECONDS: float = 2.0
ENVELOPE_SECONDS: float = 0.01
TEMPO_OLA_GAIN: float = 0.7

TEMPO_WINDOWS: Dict[str, int] = {
    "fast": 1024,
    "standard": 2048,
    "high": 4096,
}

BPM_MODES = ("average", "common", "min", "max")

logger = logging.getLogger(__name__)


def _fold(bpm: float, low: float, high: float) -> float:
    """Halve or double *bpm* until it lies within [low, high]."""
    while bpm > high:
        bpm /= 2.0
    while bpm < low:
        bpm *= 2.0
    return bpm


def onset_envelope(samples: np.ndarray, sample_rate: int) -> np.ndarray:
    """Positive first difference of a 10 ms RMS envelope (hop of half a window)."""
    window = max(2, int(math.floor(sample_rate * ENVELOPE_SECONDS)))
    hop = window // 2
    if len(samples) < window:
        return np.zeros(0)
    energy = librosa.feature.rms(
        y=np.asarray(samples, dtype=np.float64),
        frame_length=window,
        hop_length=hop,
        center=False,
    )[0]
    return np.maximum(np.diff(energy), 0.0)


def detect_bpm(
    buffer: SampleBuffer,
    min_bpm: float = MIN_BPM,
    max_bpm: float = MAX_BPM,
) -> Optional[BpmEstimate]:
    """
    Estimate the tempo of channel 0.

    Clips under two seconds are assumed to hold exactly one beat: the BPM is
    60 / duration, halved or doubled into [min_bpm, max_bpm], at confidence
    0.5. Longer clips autocorrelate the onset envelope over the lags that
    correspond to [min_bpm, max_bpm]. The best lag's BPM is folded once
    (halved above 180, doubled below 70) and its confidence is the peak's
    prominence over the mean correlation, clamped to [0.3, 1].

    Args:
        buffer: Source buffer
        min_bpm: Slowest tempo searched
        max_bpm: Fastest tempo searched

    Returns:
        BpmEstimate, or None for empty clips and clips without any onset energy

    Raises:
        ProcessingError: min_bpm/max_bpm not a positive, increasing pair
    """
    if not 0 < min_bpm < max_bpm:
        raise ProcessingError(
            f"Invalid BPM search range [{min_bpm}, {max_bpm}]",
            operation="detect_bpm",
            value=(min_bpm, max_bpm),
        )

    duration = buffer.duration
    if duration <= 0:
        return None

    if duration < MIN_DETECT_SECONDS:
        one_beat = 60.0 / duration
        return BpmEstimate(
            bpm=_fold(one_beat, min_bpm, max_bpm),
            confidence=0.5,
            estimated=True,
            original_bpm=one_beat,
        )

    sr = buffer.sample_rate
    hop = max(2, int(math.floor(sr * ENVELOPE_SECONDS))) // 2
    onsets = onset_envelope(buffer.channel(0), sr)
    if not np.any(onsets > 0):
        logger.debug(f"No onsets in {buffer!r}; tempo undetectable")
        return None

    frames_per_second = sr / hop
    min_lag = max(1, int(math.floor(60.0 / max_bpm * frames_per_second)))
    max_lag = min(int(math.floor(60.0 / min_bpm * frames_per_second)), len(onsets) - 1)
    if max_lag < min_lag:
        return None

    correlations = np.array([
        np.dot(onsets[:-lag], onsets[lag:]) / (len(onsets) - lag)
        for lag in range(min_lag, max_lag + 1)
    ])
    # First maximum wins
    best = int(np.argmax(correlations))
    best_lag = min_lag + best
    peak = float(correlations[best])

    bpm = 60.0 * sr / (best_lag * hop)
    mean = float(np.mean(correlations))
    confidence = min(1.0, (peak - mean) / mean) if mean > 0 else 0.0
    confidence = max(0.3, min(1.0, confidence))

    folded = bpm
    if bpm > 180.0:
        folded = bpm / 2.0
    elif bpm < 70.0:
        folded = bpm * 2.0

    logger.debug(f"Tempo {folded:.1f} BPM (lag {best_lag}, confidence {confidence:.2f})")
    return BpmEstimate(bpm=folded, confidence=confidence, estimated=False, original_bpm=bpm)


def select_target_bpm(bpms: Sequence[float], mode: str = "average") -> Optional[float]:
    """
    Pick a shared target tempo from detected BPMs.

    Modes: "average" (rounded mean), "common" (most frequent rounded BPM,
    first seen wins ties), "min" and "max" (rounded extremes).

    Returns:
        Target BPM, or None when no positive BPM was given

    Raises:
        ProcessingError: Unknown mode
    """
    if mode not in BPM_MODES:
        raise ProcessingError(f"Unknown BPM mode: {mode!r}", operation="select_target_bpm", value=mode)

    values = [float(b) for b in bpms if b is not None and b > 0]
    if not values:
        return None

    if mode == "average":
        return float(round(sum(values) / len(values)))
    if mode == "min":
        return float(round(min(values)))
    if mode == "max":
        return float(round(max(values)))

    counts: Dict[int, int] = {}
    for value in values:
        rounded = int(round(value))
        counts[rounded] = counts.get(rounded, 0) + 1
    best, best_count = None, 0
    for rounded, count in counts.items():
        if count > best_count:
            best, best_count = rounded, count
    return float(best)


def tempo_sync(
    buffer: SampleBuffer,
    source_bpm: float,
    target_bpm: float,
    quality: str = "standard",
    ola_gain: float = TEMPO_OLA_GAIN,
) -> SampleBuffer:
    """
    Time-stretch *buffer* from *source_bpm* to *target_bpm* without resampling.

    The speed ratio target / source shortens (faster) or lengthens (slower)
    the clip to round(length / ratio) samples; pitch is left alone.

    Args:
        buffer: Source buffer
        source_bpm: Current tempo of the clip
        target_bpm: Desired tempo
        quality: "fast", "standard" or "high" (OLA window 1024, 2048, 4096)
        ola_gain: OLA post-scale tuning factor

    Returns:
        SampleBuffer: Stretched buffer (the input itself when the tempos match)

    Raises:
        ProcessingError: Non-positive BPM or unknown quality
    """
    if quality not in TEMPO_WINDOWS:
        raise ProcessingError(f"Unknown tempo quality: {quality!r}", operation="tempo_sync", value=quality)
    for value in (source_bpm, target_bpm):
        if not value or value <= 0 or not math.isfinite(value):
            raise ProcessingError(
                f"BPM must be a positive number, got {value}",
                operation="tempo_sync",
                value=value,
            )

    speed = target_bpm / source_bpm
    if speed == 1.0:
        return buffer
    if speed > 2.0 or speed < 0.5:
        logger.warning(f"Tempo change x{speed:.2f} exceeds a factor of two; expect artifacts")

    window = TEMPO_WINDOWS[quality]
    return buffer.with_channels([
        time_stretch_ola(data, 1.0 / speed, window, ola_gain)
        for data in buffer.channels
    ])


def sync_tempo(
    buffers: Sequence[SampleBuffer],
    target_bpm: float,
    keep_relative: bool = False,
    quality: str = "standard",
    ola_gain: float = TEMPO_OLA_GAIN,
    estimates: Optional[Sequence[Optional[BpmEstimate]]] = None,
) -> List[SampleBuffer]:
    """
    Bring several clips to a shared tempo.

    Each clip with a detected BPM is stretched to *target_bpm*. With
    keep_relative, every such clip gets the speed ratio of the first detected
    clip instead, so their tempo relationships survive. Clips whose BPM is
    unknown keep their speed.

    Args:
        buffers: Clips to synchronise
        target_bpm: Shared tempo
        keep_relative: Apply one common speed ratio
        quality: OLA quality mode
        ola_gain: OLA post-scale tuning factor
        estimates: Precomputed BPM estimates, one per buffer (detected when omitted)

    Returns:
        List[SampleBuffer]: One output per input, in order
    """
    if estimates is None:
        estimates = [detect_bpm(buffer) for buffer in buffers]
    if len(estimates) != len(buffers):
        raise ProcessingError(
            f"Got {len(estimates)} BPM estimates for {len(buffers)} buffers",
            operation="sync_tempo",
        )

    detected = [e for e in estimates if e is not None]
    base_source = detected[0].bpm if keep_relative and detected else None

    results = []
    for buffer, estimate in zip(buffers, estimates):
        if estimate is None:
            results.append(buffer)
            continue
        source = base_source if base_source is not None else estimate.bpm
        results.append(tempo_sync(buffer, source, target_bpm, quality, ola_gain))
    return results
