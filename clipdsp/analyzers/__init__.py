"""
Analyzer implementations for different audio analysis tasks.
"""

from clipdsp.analyzers.spectral import (
    SpectralAnalyzer,
    SpectrumEstimator,
    AcceleratedEstimator,
    DirectDftEstimator,
    FallbackEstimator,
    select_estimator,
)
from clipdsp.analyzers.pitch import PitchAnalyzer, YinPitchDetector, BatchPitchDetector
from clipdsp.analyzers.spectrogram import SpectrogramBuilder

__all__ = [
    "SpectralAnalyzer",
    "SpectrumEstimator",
    "AcceleratedEstimator",
    "DirectDftEstimator",
    "FallbackEstimator",
    "select_estimator",
    "PitchAnalyzer",
    "YinPitchDetector",
    "BatchPitchDetector",
    "SpectrogramBuilder",
]
