"""
Analyzer base interface for the clip DSP engine.

Defines the contract for all analyzers using Protocol (structural subtyping).
"""

import logging
import time
from abc import abstractmethod
from typing import Callable, Generic, Optional, Protocol, TypeVar

from clipdsp.core.context import CancelToken, EngineContext
from clipdsp.core.models import SampleBuffer
from clipdsp.utils.errors import AnalysisError

# Type variable for result types
T = TypeVar('T')

# Sub-progress callback, fraction in [0, 1]
ProgressFn = Callable[[float], None]


class Analyzer(Protocol[T]):
    """
    Base protocol for all analyzers.

    All analyzers must implement:
    - analyze(buffer, cancel_token=None, on_progress=None) -> T
    - name property
    - version property
    """

    @property
    def name(self) -> str:
        """Analyzer name (e.g., 'spectral', 'yin_pitch')."""
        ...

    @property
    def version(self) -> str:
        """Analyzer version for result tracking."""
        ...

    def analyze(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> T:
        """
        Analyze a sample buffer and return a typed result.

        Raises:
            AnalysisError: If analysis fails
        """
        ...


class BaseAnalyzer(Generic[T]):
    """
    Shared timing, logging and error wrapping for analyzers.

    Uses Template Method pattern - analyze() provides the template,
    subclasses implement _analyze_impl().
    """

    def __init__(self, name: str, version: str, context: Optional[EngineContext] = None):
        """
        Initialize analyzer with name and version.

        Args:
            name: Unique analyzer name
            version: Version string for tracking
            context: Engine context; a default one is built when omitted
        """
        self._name = name
        self._version = version
        self.context = context or EngineContext()
        self.logger = logging.getLogger(f"analyzer.{name}")

    @property
    def name(self) -> str:
        """Return analyzer name."""
        return self._name

    @property
    def version(self) -> str:
        """Return analyzer version."""
        return self._version

    def analyze(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> T:
        """
        Template method with timing and error handling.

        Args:
            buffer: SampleBuffer to analyze
            cancel_token: Optional token polled inside long loops
            on_progress: Optional sub-progress callback (fraction 0-1)

        Returns:
            T: Analysis result

        Raises:
            AnalysisError: If analysis fails (AnalysisCancelledError on cancel)
        """
        start_time = time.perf_counter()

        try:
            self.logger.debug(f"Starting analysis: {buffer!r}")

            result = self._analyze_impl(buffer, cancel_token, on_progress or _no_progress)

            elapsed = time.perf_counter() - start_time
            self.logger.info(f"Analysis complete in {elapsed:.3f}s")

            return result

        except AnalysisError:
            raise

        except Exception as e:
            self.logger.error(f"Analysis failed: {e}")
            raise AnalysisError(
                f"{self.name} analysis failed: {e}",
                analyzer_name=self.name,
                original_error=e
            ) from e

    @abstractmethod
    def _analyze_impl(
        self,
        buffer: SampleBuffer,
        cancel_token: Optional[CancelToken],
        on_progress: ProgressFn,
    ) -> T:
        """Subclasses implement actual analysis logic."""
        raise NotImplementedError


def _no_progress(fraction: float) -> None:
    """Default sub-progress sink."""
