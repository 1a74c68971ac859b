"""
Core module containing data models, engine context, analysis engine and processor.

Uses lazy imports for modules that pull in the analyzers (librosa, scipy).
"""

# Models are lightweight - import directly
from clipdsp.core.models import (
    SampleBuffer,
    PitchEstimate,
    PitchCurvePoint,
    Spectrogram,
    BasicInfo,
    BandRatios,
    FrequencyAnalysis,
    PitchRange,
    PitchAnalysis,
    AnalysisResult,
    CropSettings,
    FadeSettings,
    ProcessingSettings,
    ClippingReport,
    MixResult,
    KeyEstimate,
    BpmEstimate,
    LoudnessReport,
    validate_confidence,
)
from clipdsp.core.context import CancelToken, EngineContext

__all__ = [
    # Models (always available)
    "SampleBuffer",
    "PitchEstimate",
    "PitchCurvePoint",
    "Spectrogram",
    "BasicInfo",
    "BandRatios",
    "FrequencyAnalysis",
    "PitchRange",
    "PitchAnalysis",
    "AnalysisResult",
    "CropSettings",
    "FadeSettings",
    "ProcessingSettings",
    "ClippingReport",
    "MixResult",
    "KeyEstimate",
    "BpmEstimate",
    "LoudnessReport",
    "validate_confidence",
    "CancelToken",
    "EngineContext",
    # Heavy modules (lazy loaded)
    "Analyzer",
    "BaseAnalyzer",
    "AudioAnalysisEngine",
    "create_analysis_engine",
    "AudioProcessor",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("Analyzer", "BaseAnalyzer"):
        from clipdsp.core.analyzer_base import Analyzer, BaseAnalyzer
        return Analyzer if name == "Analyzer" else BaseAnalyzer
    elif name in ("AudioAnalysisEngine", "create_analysis_engine"):
        from clipdsp.core.engine import AudioAnalysisEngine, create_analysis_engine
        return AudioAnalysisEngine if name == "AudioAnalysisEngine" else create_analysis_engine
    elif name == "AudioProcessor":
        from clipdsp.core.processor import AudioProcessor
        return AudioProcessor
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
