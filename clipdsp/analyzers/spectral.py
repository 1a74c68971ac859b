"""
Spectral analyzer for the clip DSP engine.

Windows a representative segment and derives band energy ratios, the
dominant frequency and the spectral centroid from its dB spectrum.
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

import numpy as np

from clipdsp.core.analyzer_base import BaseAnalyzer, ProgressFn
from clipdsp.core.context import CancelToken, EngineContext
from clipdsp.core.models import BandRatios, FrequencyAnalysis, SampleBuffer
from clipdsp.utils.errors import ConfigurationError

# Totals below this are treated as silence
ENERGY_EPSILON: float = 1e-10

logger = logging.getLogger(__name__)


def _to_db(magnitude: np.ndarray) -> np.ndarray:
    """Linear magnitude to dB; zero magnitude maps to -inf."""
    with np.errstate(divide='ignore'):
        return 20.0 * np.log10(magnitude)


class SpectrumEstimator(Protocol):
    """
    Turns a windowed frame of N samples into N/2 dB magnitudes.

    Bin k covers k * (sample_rate / 2) / (N / 2) Hz. Magnitudes are
    |X[k]| / N in dB, so values lie in (-inf, 0].
    """

    name: str

    def magnitude_db(self, windowed: np.ndarray) -> np.ndarray:
        ...


class AcceleratedEstimator:
    """numpy FFT path."""

    name = "accelerated"

    @staticmethod
    def is_available() -> bool:
        """Probe: an impulse must come back as a flat, finite spectrum."""
        try:
            probe = np.zeros(8)
            probe[0] = 1.0
            spectrum = np.abs(np.fft.rfft(probe))
        except (AttributeError, RuntimeError, ValueError) as e:
            logger.warning(f"FFT probe failed: {e}")
            return False
        return bool(np.all(np.isfinite(spectrum)) and np.allclose(spectrum, 1.0))

    def magnitude_db(self, windowed: np.ndarray) -> np.ndarray:
        n = len(windowed)
        spectrum = np.fft.rfft(windowed)[: n // 2]
        return _to_db(np.abs(spectrum) / n)


class DirectDftEstimator:
    """
    O(N^2) discrete Fourier transform over the same windowed samples.

    Basis matrices are cached per frame size, so the spectrogram loop
    pays for them once.
    """

    name = "direct"

    def __init__(self) -> None:
        self._basis: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}

    def _basis_for(self, n: int) -> Tuple[np.ndarray, np.ndarray]:
        if n not in self._basis:
            angles = -2.0 * np.pi * np.outer(np.arange(n // 2), np.arange(n)) / n
            self._basis[n] = (np.cos(angles), np.sin(angles))
        return self._basis[n]

    def magnitude_db(self, windowed: np.ndarray) -> np.ndarray:
        n = len(windowed)
        cos_basis, sin_basis = self._basis_for(n)
        real = cos_basis @ windowed
        imag = sin_basis @ windowed
        return _to_db(np.sqrt(real * real + imag * imag) / n)


class FallbackEstimator:
    """
    Try the primary estimator, recompute with the secondary when the
    primary yields no finite value.
    """

    def __init__(self, primary: SpectrumEstimator, secondary: SpectrumEstimator):
        self.primary = primary
        self.secondary = secondary
        self.name = f"{primary.name}+{secondary.name}"

    def magnitude_db(self, windowed: np.ndarray) -> np.ndarray:
        spectrum = self.primary.magnitude_db(windowed)
        if np.isfinite(spectrum).any():
            return spectrum
        logger.debug(f"{self.primary.name} spectrum unusable, using {self.secondary.name}")
        return self.secondary.magnitude_db(windowed)


def select_estimator(mode: str = "auto") -> SpectrumEstimator:
    """
    Pick a spectrum estimator.

    Args:
        mode: "auto" (probe, accelerated with direct fallback),
              "accelerated" or "direct"

    Returns:
        SpectrumEstimator: Selected implementation

    Raises:
        ConfigurationError: Unknown mode
    """
    if mode == "direct":
        return DirectDftEstimator()
    if mode == "accelerated":
        return AcceleratedEstimator()
    if mode == "auto":
        if AcceleratedEstimator.is_available():
            return FallbackEstimator(AcceleratedEstimator(), DirectDftEstimator())
        logger.warning("Accelerated FFT unavailable, using direct DFT")
        return DirectDftEstimator()
    raise ConfigurationError(
        f"Unknown spectrum estimator: {mode!r}",
        config_key="spectral.estimator"
    )


def middle_segment(samples: np.ndarray, size: int) -> np.ndarray:
    """
    Take *size* samples from the temporal middle of *samples*.

    Clips shorter than *size* are zero-padded at the end.
    """
    if len(samples) < size:
        segment = np.zeros(size)
        segment[: len(samples)] = samples
        return segment
    start = (len(samples) - size) // 2
    return np.asarray(samples[start:start + size], dtype=np.float64)


def bin_frequencies(num_bins: int, sample_rate: int) -> np.ndarray:
    """Centre frequency of each dB bin."""
    return np.arange(num_bins) * (sample_rate / 2) / num_bins


def band_ratios(
    raw_spectrum: np.ndarray,
    sample_rate: int,
    db_floor: float = -100.0,
    low: Tuple[float, float] = (20.0, 250.0),
    mid: Tuple[float, float] = (250.0, 4000.0),
) -> BandRatios:
    """
    Share of linear energy in the low, mid and high bands.

    Bins are clamped to db_floor; bins sitting on the floor carry no
    energy. High runs from the top of mid up to and including nyquist.
    """
    if len(raw_spectrum) == 0:
        return BandRatios()

    nyquist = sample_rate / 2
    freqs = bin_frequencies(len(raw_spectrum), sample_rate)
    clamped = np.maximum(raw_spectrum, db_floor)
    energy = np.where(clamped > db_floor, 10.0 ** (clamped / 20.0), 0.0)

    low_energy = energy[(freqs >= low[0]) & (freqs < low[1])].sum()
    mid_energy = energy[(freqs >= mid[0]) & (freqs < mid[1])].sum()
    high_energy = energy[(freqs >= mid[1]) & (freqs <= nyquist)].sum()

    total = low_energy + mid_energy + high_energy
    if total < ENERGY_EPSILON:
        return BandRatios()

    return BandRatios(
        low=float(low_energy / total),
        mid=float(mid_energy / total),
        high=float(high_energy / total)
    )


def dominant_frequency(raw_spectrum: np.ndarray, sample_rate: int) -> float:
    """Frequency of the loudest finite bin, 0 when none is finite."""
    finite = np.isfinite(raw_spectrum)
    if not finite.any():
        return 0.0
    peak_bin = int(np.argmax(np.where(finite, raw_spectrum, -np.inf)))
    return float(peak_bin * (sample_rate / 2) / len(raw_spectrum))


def spectral_centroid(raw_spectrum: np.ndarray, sample_rate: int) -> float:
    """Magnitude-weighted mean frequency over finite bins."""
    finite = np.isfinite(raw_spectrum)
    if not finite.any():
        return 0.0
    freqs = bin_frequencies(len(raw_spectrum), sample_rate)[finite]
    magnitude = 10.0 ** (raw_spectrum[finite] / 20.0)
    total = magnitude.sum()
    if total < ENERGY_EPSILON:
        return 0.0
    return float(np.sum(freqs * magnitude) / total)


class SpectralAnalyzer(BaseAnalyzer[FrequencyAnalysis]):
    """
    Spectral analysis of a clip's middle segment.

    Analyzes:
    - Band energy ratios (low / mid / high)
    - Dominant frequency
    - Spectral centroid
    """

    def __init__(self, context: Optional[EngineContext] = None):
        """Initialize spectral analyzer."""
        super().__init__("spectral", "1.0.0", context)
        self.fft_size = int(self.context.setting("spectral.fft_size"))
        self.db_floor = float(self.context.setting("spectral.db_floor"))
        bands = self.context.setting("spectral.bands", {})
        self.low_band = tuple(bands.get("low", (20.0, 250.0)))
        self.mid_band = tuple(bands.get("mid", (250.0, 4000.0)))

    @property
    def estimator(self) -> SpectrumEstimator:
        """Estimator shared through the engine context."""
        return self.context.estimator

    def spectrum(self, samples: np.ndarray) -> np.ndarray:
        """Hann-window *samples* and return their dB spectrum."""
        windowed = np.asarray(samples, dtype=np.float64) * np.hanning(len(samples))
        return self.estimator.magnitude_db(windowed)

    def _analyze_impl(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken],
        on_progress: ProgressFn,
    ) -> FrequencyAnalysis:
        """
        Analyze the spectrum of channel 0.

        Args:
            buffer: SampleBuffer to analyze
            cancel_token: Checked once before the transform
            on_progress: Sub-progress sink

        Returns:
            FrequencyAnalysis: Spectral analysis result
        """
        on_progress(0.2)

        segment = middle_segment(buffer.channel(0), self.fft_size)
        on_progress(0.4)

        if cancel_token is not None:
            cancel_token.check()

        raw_spectrum = self.spectrum(segment)
        on_progress(0.85)

        ratios = band_ratios(
            raw_spectrum,
            buffer.sample_rate,
            db_floor=self.db_floor,
            low=self.low_band,
            mid=self.mid_band,
        )
        on_progress(1.0)

        return FrequencyAnalysis(
            band_ratios=ratios,
            dominant_frequency=dominant_frequency(raw_spectrum, buffer.sample_rate),
            spectral_centroid=spectral_centroid(raw_spectrum, buffer.sample_rate),
            raw_spectrum=raw_spectrum
        )
