"""
YIN pitch analysis for the clip DSP engine.

Single-frame YIN estimation, a sliding pitch curve for interactive preview,
and a batch variant that votes on MIDI notes to find the dominant key of
short or noisy clips.
"""

import logging
import math
from typing import Dict, Iterator, List, Optional, Tuple

import librosa
import numpy as np

from clipdsp.core.analyzer_base import BaseAnalyzer, ProgressFn
from clipdsp.core.context import CancelToken, EngineContext, poll
from clipdsp.core.models import (
    KeyEstimate,
    PitchAnalysis,
    PitchCurvePoint,
    PitchEstimate,
    PitchRange,
    SampleBuffer,
    Spectrogram,
)

CMNDF_EPSILON: float = 1e-10
ENERGY_EPSILON: float = 1e-10
PARABOLA_EPSILON: float = 1e-10

# Estimates outside [min / GUARD, max * GUARD] are rejected outright
GUARD_FACTOR: float = 10.0

# MIDI notes eligible for key voting (A0 .. G9)
MIDI_RANGE: Tuple[int, int] = (21, 127)


def difference_function(frame: np.ndarray) -> np.ndarray:
    """
    YIN difference d[tau] = sum_{i < N - tau} (x[i] - x[i + tau])^2 for tau in [0, N).

    Expanded into two energy terms and an autocorrelation so the whole
    lag range costs one FFT pair instead of N dot products.
    """
    x = np.asarray(frame, dtype=np.float64)
    n = len(x)
    tau = np.arange(n)

    energy = np.concatenate(([0.0], np.cumsum(x * x)))
    size = 1 << int(math.ceil(math.log2(2 * n)))
    spectrum = np.fft.rfft(x, size)
    autocorr = np.fft.irfft(spectrum * np.conj(spectrum), size)[:n]

    diff = energy[n - tau] + (energy[n] - energy[tau]) - 2.0 * autocorr
    diff = np.maximum(diff, 0.0)
    diff[0] = 0.0
    return diff


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """cmndf[0] = 1; cmndf[tau] = d[tau] * tau / (sum(d[1..tau]) + eps)."""
    cmndf = np.ones(len(diff))
    if len(diff) > 1:
        tau = np.arange(1, len(diff))
        cmndf[1:] = diff[1:] * tau / (np.cumsum(diff[1:]) + CMNDF_EPSILON)
    return cmndf


def _parabola(cmndf: np.ndarray, index: int) -> Tuple[float, float, float]:
    """Coefficients (a, b, c) of the parabola through index-1, index, index+1."""
    y1, y0, y2 = cmndf[index - 1], cmndf[index], cmndf[index + 1]
    return (y1 - 2.0 * y0 + y2) / 2.0, (y2 - y1) / 2.0, y0


def rms(frame: np.ndarray) -> float:
    """Root mean square level of a frame (0 for an empty frame)."""
    if len(frame) == 0:
        return 0.0
    x = np.asarray(frame, dtype=np.float64)
    return float(np.sqrt(np.mean(x * x)))


def sliding_windows(length: int, window: int, hop: int) -> Iterator[Tuple[int, int]]:
    """
    (start, end) pairs covering *length* samples.

    The last window may be short; the scan stops at the first window
    shorter than half of *window*.
    """
    if window <= 0 or hop <= 0 or length <= 0:
        return
    total = math.ceil((length - window) / hop) + 1
    for index in range(max(total, 0)):
        start = index * hop
        end = min(start + window, length)
        if end - start < window / 2:
            break
        yield start, end


class YinPitchDetector:
    """
    YIN fundamental-frequency estimator bound to a frequency band.

    The band sets the lag search range; a 10x guard band around it
    rejects absurd estimates, while estimates just outside the band are
    kept with halved confidence.
    """

    def __init__(
        self,
        min_frequency: float = 80.0,
        max_frequency: float = 1000.0,
        threshold: float = 0.15,
    ):
        if min_frequency <= 0 or max_frequency <= min_frequency:
            raise ValueError(
                f"Invalid frequency band: [{min_frequency}, {max_frequency}]"
            )
        self.min_frequency = min_frequency
        self.max_frequency = max_frequency
        self.threshold = threshold

    def lag_bounds(self, sample_rate: int) -> Tuple[int, int]:
        """(min_lag, max_lag) in samples for the configured band."""
        return (
            int(math.floor(sample_rate / self.max_frequency)),
            int(math.floor(sample_rate / self.min_frequency)),
        )

    def _select_lag(self, cmndf: np.ndarray, min_lag: int, max_lag: int) -> int:
        """
        First lag whose cmndf dips under the threshold, followed down to the
        bottom of that dip; the global minimum when nothing dips.
        """
        search = cmndf[min_lag:max_lag + 1]
        below = np.flatnonzero(search < self.threshold)
        if below.size == 0:
            return min_lag + int(np.argmin(search))

        lag = min_lag + int(below[0])
        while lag < max_lag and cmndf[lag + 1] < cmndf[lag]:
            lag += 1
        return lag

    def detect_pitch(self, frame: np.ndarray, sample_rate: int) -> PitchEstimate:
        """
        Estimate the fundamental frequency of one frame.

        Args:
            frame: Mono samples
            sample_rate: Sample rate in Hz

        Returns:
            PitchEstimate: {0, 0} when no pitch can be found
        """
        n = len(frame)
        if n == 0:
            return PitchEstimate.none()

        min_lag, max_lag = self.lag_bounds(sample_rate)
        if min_lag < 1 or max_lag > n:
            return PitchEstimate.none()

        x = np.asarray(frame, dtype=np.float64)
        if float(np.dot(x, x)) < ENERGY_EPSILON:
            return PitchEstimate.none()

        cmndf = cumulative_mean_normalized_difference(difference_function(x))
        lag = self._select_lag(cmndf, min_lag, min(max_lag, n - 1))

        refined_lag = float(lag)
        if 0 < lag < n - 1:
            a, b, _ = _parabola(cmndf, lag)
            if abs(a) > PARABOLA_EPSILON:
                refined_lag = lag - b / (2.0 * a)

        frequency = sample_rate / refined_lag if refined_lag > 0 else 0.0
        if (
            frequency > self.max_frequency * GUARD_FACTOR
            or frequency < self.min_frequency / GUARD_FACTOR
        ):
            return PitchEstimate.none()

        # cmndf re-evaluated at the refined (fractional) lag
        interpolated = 1.0
        lag_index = int(math.floor(refined_lag))
        if 0 < lag_index < n - 1:
            a, b, c = _parabola(cmndf, lag_index)
            offset = refined_lag - lag_index
            interpolated = a * offset * offset + b * offset + c
        elif 0 <= lag_index < n:
            interpolated = float(cmndf[lag_index])

        confidence = max(0.0, 1.0 - max(interpolated, 0.0))
        if frequency < self.min_frequency or frequency > self.max_frequency:
            confidence *= 0.5

        return PitchEstimate(float(frequency), float(min(1.0, max(0.0, confidence))))


def summarize_curve(
    curve: List[PitchCurvePoint],
    confidence_threshold: float = 0.5,
    pitched_ratio: float = 0.3,
) -> Tuple[float, PitchRange, bool]:
    """
    Average pitch, pitch range and pitched flag of a curve.

    Only points above confidence_threshold count; the clip is pitched when
    at least pitched_ratio of all points survive.
    """
    if not curve:
        return 0.0, PitchRange(), False

    survivors = [
        point.frequency for point in curve
        if point.confidence > confidence_threshold
    ]
    if not survivors:
        return 0.0, PitchRange(), False

    average = float(np.mean(survivors))
    pitch_range = PitchRange(min=float(min(survivors)), max=float(max(survivors)))
    is_pitched = len(survivors) / len(curve) >= pitched_ratio
    return average, pitch_range, is_pitched


class PitchAnalyzer(BaseAnalyzer[PitchAnalysis]):
    """
    Sliding-window YIN pitch curve for interactive preview.

    100 ms windows with a 50 ms hop over channel 0; one curve point per
    window. The spectrogram slot is left empty for the engine to fill.
    """

    def __init__(self, context: Optional[EngineContext] = None):
        """Initialize pitch analyzer."""
        super().__init__("yin_pitch", "1.0.0", context)
        section = self.context.setting("pitch.interactive", {})
        self.detector = YinPitchDetector(
            min_frequency=float(section.get("min_frequency", 80.0)),
            max_frequency=float(section.get("max_frequency", 1000.0)),
            threshold=float(self.context.setting("pitch.threshold", 0.15)),
        )
        self.window_seconds = float(section.get("window", 0.1))
        self.hop_seconds = float(section.get("hop", 0.05))
        self.confidence_threshold = float(section.get("confidence_threshold", 0.5))
        self.pitched_ratio = float(section.get("pitched_ratio", 0.3))

    def pitch_curve(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> List[PitchCurvePoint]:
        """
        One PitchCurvePoint per analysis window, ordered by time.

        Args:
            buffer: SampleBuffer to analyze (channel 0 is used)
            cancel_token: Polled every yield_interval windows
            on_progress: Optional sub-progress sink

        Returns:
            List[PitchCurvePoint]: Empty for clips with no full half-window
        """
        sr = buffer.sample_rate
        samples = buffer.channel(0)
        window = int(math.floor(self.window_seconds * sr))
        hop = int(math.floor(self.hop_seconds * sr))

        windows = list(sliding_windows(len(samples), window, hop))
        interval = self.context.yield_interval
        curve: List[PitchCurvePoint] = []

        for index, (start, end) in enumerate(windows):
            poll(cancel_token, index, interval)
            estimate = self.detector.detect_pitch(samples[start:end], sr)
            curve.append(PitchCurvePoint(
                time=start / sr,
                frequency=estimate.frequency,
                confidence=estimate.confidence
            ))
            if on_progress is not None:
                on_progress((index + 1) / len(windows))

        return curve

    def _analyze_impl(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken],
        on_progress: ProgressFn,
    ) -> PitchAnalysis:
        """
        Build and summarize the pitch curve.

        Returns:
            PitchAnalysis: With an empty spectrogram
        """
        curve = self.pitch_curve(buffer, cancel_token, on_progress)
        average, pitch_range, is_pitched = summarize_curve(
            curve, self.confidence_threshold, self.pitched_ratio
        )
        self.logger.debug(
            f"{len(curve)} windows, average {average:.1f} Hz, pitched={is_pitched}"
        )
        return PitchAnalysis(
            pitch_curve=curve,
            spectrogram=Spectrogram.empty(buffer.sample_rate),
            average_pitch=average,
            pitch_range=pitch_range,
            is_pitched=is_pitched
        )


def midi_to_note_name(midi_note: int) -> str:
    """MIDI note number to a sharp-spelled name such as 'C#4'."""
    return librosa.midi_to_note(midi_note, unicode=False)


class BatchPitchDetector:
    """
    Robust dominant-note detection for short or noisy clips.

    Differences from the interactive curve:
    - wider band (50-2000 Hz)
    - window adapts to clip length (25 / 50 / 100 ms), 50% hop
    - windows under the RMS gate are treated as silence
    - lower confidence threshold (0.35) for percussive material
    - the mode of MIDI-rounded pitches wins, not the mean
    """

    def __init__(self, context: Optional[EngineContext] = None):
        self.context = context or EngineContext()
        section = self.context.setting("pitch.batch", {})
        self.detector = YinPitchDetector(
            min_frequency=float(section.get("min_frequency", 50.0)),
            max_frequency=float(section.get("max_frequency", 2000.0)),
            threshold=float(self.context.setting("pitch.threshold", 0.15)),
        )
        self.rms_gate = float(section.get("rms_gate", 0.01))
        self.confidence_threshold = float(section.get("confidence_threshold", 0.35))
        self.logger = logging.getLogger("analyzer.batch_pitch")

    @staticmethod
    def window_seconds(duration: float) -> float:
        """Analysis window length for a clip of *duration* seconds."""
        if duration < 0.1:
            return 0.025
        if duration < 0.2:
            return 0.05
        return 0.1

    def estimates(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[PitchEstimate]:
        """Per-window estimates over channel 0; gated windows yield {0, 0}."""
        sr = buffer.sample_rate
        samples = buffer.channel(0)
        window = int(math.floor(self.window_seconds(buffer.duration) * sr))
        hop = window // 2
        interval = self.context.yield_interval

        results: List[PitchEstimate] = []
        for index, (start, end) in enumerate(sliding_windows(len(samples), window, hop)):
            poll(cancel_token, index, interval)
            frame = samples[start:end]
            if rms(frame) < self.rms_gate:
                results.append(PitchEstimate.none())
                continue
            results.append(self.detector.detect_pitch(frame, sr))
        return results

    def dominant_note(self, estimates: List[PitchEstimate]) -> Optional[KeyEstimate]:
        """
        Mode of MIDI-rounded pitches across confident windows.

        Returns:
            KeyEstimate or None when no window is confident
        """
        valid = [
            e for e in estimates
            if e.confidence > self.confidence_threshold and e.frequency > 0
        ]
        if not valid:
            return None

        counts: Dict[int, int] = {}
        for estimate in valid:
            midi_note = int(round(float(librosa.hz_to_midi(estimate.frequency))))
            if not MIDI_RANGE[0] <= midi_note <= MIDI_RANGE[1]:
                continue
            counts[midi_note] = counts.get(midi_note, 0) + 1

        if not counts:
            return None

        # First note to reach the highest count wins ties
        best_note, best_count = None, 0
        for midi_note, count in counts.items():
            if count > best_count:
                best_note, best_count = midi_note, count

        return KeyEstimate(
            note_name=midi_to_note_name(best_note),
            midi_note=best_note,
            frequency=float(librosa.midi_to_hz(best_note)),
            confidence=best_count / len(valid)
        )

    def detect_key(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[KeyEstimate]:
        """
        Dominant note of a clip.

        Args:
            buffer: SampleBuffer to analyze
            cancel_token: Polled every yield_interval windows

        Returns:
            KeyEstimate or None for silent/unpitched clips
        """
        estimate = self.dominant_note(self.estimates(buffer, cancel_token))
        if estimate is None:
            self.logger.debug(f"No dominant note in {buffer!r}")
        else:
            self.logger.debug(
                f"Dominant note {estimate.note_name} ({estimate.confidence:.2f})"
            )
        return estimate
