"""
Clip DSP Engine

Spectral analysis, YIN pitch detection, spectrograms and pure buffer
transforms (crop, gain, fades, rate, pitch shift, join, mix, tempo sync,
peak normalisation) for short, fully decoded multi-channel audio clips.
"""

__version__ = "1.0.0"
__author__ = "Audio Analysis Team"

from clipdsp.core.models import SampleBuffer, ProcessingSettings, AnalysisResult
from clipdsp.core.context import CancelToken, EngineContext
from clipdsp.core.engine import AudioAnalysisEngine, create_analysis_engine
from clipdsp.core.processor import AudioProcessor

__all__ = [
    "SampleBuffer",
    "ProcessingSettings",
    "AnalysisResult",
    "CancelToken",
    "EngineContext",
    "AudioAnalysisEngine",
    "create_analysis_engine",
    "AudioProcessor",
]
