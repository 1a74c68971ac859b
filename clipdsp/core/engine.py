"""
Analysis engine for the clip DSP engine.

Main orchestration engine that coordinates all analyzers.
"""

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, TypeVar

from clipdsp.analyzers.pitch import PitchAnalyzer
from clipdsp.analyzers.spectral import SpectralAnalyzer
from clipdsp.analyzers.spectrogram import SpectrogramBuilder
from clipdsp.core.analyzer_base import Analyzer, ProgressFn
from clipdsp.core.context import CancelToken, EngineContext
from clipdsp.core.models import (
    AnalysisResult,
    BasicInfo,
    FrequencyAnalysis,
    PitchAnalysis,
    SampleBuffer,
    Spectrogram,
)
from clipdsp.utils.errors import AnalysisCancelledError, AnalysisError, InvalidBufferError
from clipdsp.utils.logging import create_logger_with_context

T = TypeVar('T')

# Host progress callback: (percent in [0, 100], message)
ProgressCallback = Callable[[float, str], None]

# Share of the 60-100 band spent on the pitch curve; the spectrogram gets the rest
PITCH_SHARE: float = 0.6


def _scaled(on_progress: ProgressCallback, start: float, span: float, message: str) -> ProgressFn:
    """Map analyzer sub-progress p in [0, 1] onto start + p * span."""
    def report(fraction: float) -> None:
        on_progress(start + min(max(fraction, 0.0), 1.0) * span, message)
    return report


def _no_progress(percent: float, message: str) -> None:
    """Default progress sink."""


class AudioAnalysisEngine:
    """
    Main analysis engine - orchestrates all components.

    Design:
    - Dependency Injection: context and analyzers injected (testable)
    - Sequential Execution: stages run in a fixed order on one thread
    - Error Handling: a failing stage degrades to an empty result,
      cancellation always propagates
    """

    def __init__(
        self,
        context: Optional[EngineContext] = None,
        spectral_analyzer: Optional[Analyzer[FrequencyAnalysis]] = None,
        pitch_analyzer: Optional[Analyzer[PitchAnalysis]] = None,
        spectrogram_builder: Optional[Analyzer[Spectrogram]] = None,
    ):
        """
        Initialize analysis engine.

        Args:
            context: Shared engine context
            spectral_analyzer: Spectral analyzer (SpectralAnalyzer by default)
            pitch_analyzer: Pitch-curve analyzer (PitchAnalyzer by default)
            spectrogram_builder: Spectrogram builder (SpectrogramBuilder by default)
        """
        self.context = context or EngineContext()
        self.analyzers: Dict[str, Any] = {
            'spectral': spectral_analyzer or SpectralAnalyzer(self.context),
            'pitch': pitch_analyzer or PitchAnalyzer(self.context),
            'spectrogram': spectrogram_builder or SpectrogramBuilder(self.context),
        }
        self.logger = logging.getLogger('engine')

    def analyze(
        self,
        buffer: Optional[SampleBuffer],
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AnalysisResult:
        """
        Analyze a clip completely.

        Progress milestones: 0 and 20 (basic info), 20-60 (spectral),
        60-100 (pitch curve, then spectrogram).

        Args:
            buffer: SampleBuffer to analyze
            on_progress: Optional callback(percent, message)
            cancel_token: Optional token; defaults to one carrying the
                configured engine timeout

        Returns:
            AnalysisResult: Complete analysis result

        Raises:
            InvalidBufferError: If buffer is missing
            AnalysisCancelledError: If the token fires or the deadline passes
        """
        if buffer is None:
            raise InvalidBufferError("missing buffer", reason="missing")

        report = on_progress or _no_progress
        token = cancel_token if cancel_token is not None else self.context.new_token()
        logger = create_logger_with_context('engine', {
            'sample_rate': buffer.sample_rate,
            'channels': buffer.num_channels,
            'length': buffer.length,
        })
        start_time = time.perf_counter()
        degraded: List[str] = []

        # Step 1: Basic info
        report(0, "Analyzing basic info")
        basic = BasicInfo.from_buffer(buffer)
        report(20, "Basic info complete")

        # Step 2: Spectral analysis
        token.check()
        frequency = self._run_stage(
            'spectral', buffer, token,
            _scaled(report, 20, 40, "Analyzing spectrum"),
            FrequencyAnalysis.empty, degraded, logger
        )
        report(60, "Analyzing pitch")

        # Step 3: Pitch curve and spectrogram
        token.check()
        pitch = self._run_stage(
            'pitch', buffer, token,
            _scaled(report, 60, 40 * PITCH_SHARE, "Analyzing pitch"),
            lambda: PitchAnalysis.empty(buffer.sample_rate), degraded, logger
        )
        spectrogram = self._run_stage(
            'spectrogram', buffer, token,
            _scaled(report, 60 + 40 * PITCH_SHARE, 40 * (1 - PITCH_SHARE), "Building spectrogram"),
            lambda: Spectrogram.empty(buffer.sample_rate), degraded, logger
        )
        pitch = replace(pitch, spectrogram=spectrogram)

        processing_time = time.perf_counter() - start_time
        report(100, "Analysis complete")

        if degraded:
            logger.warning(f"Analysis degraded: {', '.join(degraded)}")
        logger.info(f"Analysis complete in {processing_time:.3f}s")

        return AnalysisResult(
            basic=basic,
            frequency=frequency,
            pitch=pitch,
            processing_time=processing_time,
            analyzer_versions={
                name: getattr(analyzer, 'version', "1.0.0")
                for name, analyzer in self.analyzers.items()
            },
            degraded=degraded
        )

    def _run_stage(
        self,
        name: str,
        buffer: SampleBuffer,
        token: CancelToken,
        on_progress: ProgressFn,
        fallback: Callable[[], T],
        degraded: List[str],
        logger: logging.LoggerAdapter,
    ) -> T:
        """
        Run single analyzer with error handling.

        Returns:
            The analyzer's result, or fallback() when it fails
        """
        try:
            return self.analyzers[name].analyze(buffer, token, on_progress)
        except AnalysisCancelledError:
            logger.info(f"{name} cancelled")
            raise
        except AnalysisError as e:
            logger.warning(f"{name} analyzer failed, using empty result: {e}")
            degraded.append(name)
            return fallback()


def create_analysis_engine(config: Optional[Dict[str, Any]] = None) -> AudioAnalysisEngine:
    """
    Factory function to create fully configured analysis engine.

    Args:
        config: Configuration dict (defaults when None)

    Returns:
        AudioAnalysisEngine: Configured engine

    Raises:
        ConfigurationError: If the configuration fails validation
    """
    context = EngineContext.from_config(config)
    context.logger.info(f"Analysis engine using {context.estimator.name} spectrum estimator")
    return AudioAnalysisEngine(context)
