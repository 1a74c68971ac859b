"""
Engine context and cancellation for the clip DSP engine.

EngineContext is built once per host from configuration and injected into
analyzers, the analysis engine and the processor. CancelToken lets a host
abandon a long analysis; loops poll it on a fixed cadence.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from clipdsp.utils.config import ConfigManager, ENGINE_SCHEMA, get_default_config, merge_config
from clipdsp.utils.errors import AnalysisCancelledError

if TYPE_CHECKING:
    from clipdsp.analyzers.spectral import SpectrumEstimator


class CancelToken:
    """
    Cooperative cancellation flag with an optional deadline.

    Not thread-aware by itself: the engine is single-threaded and the
    host flips the flag between polls (from a callback or another task).
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: Absolute time.monotonic() value after which check() raises
        """
        self._cancelled = False
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "CancelToken":
        """Token that expires *seconds* from now (never, if None)."""
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Request cancellation."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called."""
        return self._cancelled

    @property
    def expired(self) -> bool:
        """True once the deadline has passed."""
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        """
        Raise if cancelled or expired.

        Raises:
            AnalysisCancelledError: With timed_out set when the deadline passed
        """
        if self._cancelled:
            raise AnalysisCancelledError("Analysis cancelled by caller")
        if self.expired:
            raise AnalysisCancelledError("Analysis deadline exceeded", timed_out=True)


@dataclass
class EngineContext:
    """
    Explicit resource object shared by all engine components.

    Holds the configuration, the selected spectrum estimator and the
    polling cadence. Construct with from_config() and pass it down.
    """

    config: ConfigManager = field(default_factory=lambda: ConfigManager(get_default_config()))
    estimator: Optional["SpectrumEstimator"] = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("engine"))

    def __post_init__(self) -> None:
        """Select an estimator if none was injected."""
        if self.estimator is None:
            from clipdsp.analyzers.spectral import select_estimator
            self.estimator = select_estimator(self.config.get("spectral.estimator", "auto"))

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "EngineContext":
        """
        Build a context from a configuration dictionary.

        Args:
            config: Configuration from load_config(), or a partial mapping
                layered over the defaults; defaults when None

        Returns:
            EngineContext: Ready-to-inject context

        Raises:
            ConfigurationError: If the configuration fails validation
        """
        manager = ConfigManager(merge_config(get_default_config(), config or {}))
        manager.validate(ENGINE_SCHEMA)
        return cls(config=manager)

    def setting(self, key: str, default: Any = None) -> Any:
        """Shortcut for config.get with the built-in default as fallback."""
        value = self.config.get(key)
        if value is None:
            fallback = ConfigManager(get_default_config()).get(key)
            return fallback if fallback is not None else default
        return value

    @property
    def yield_interval(self) -> int:
        """Loop iterations between cancellation polls."""
        return int(self.setting("engine.yield_interval", 10))

    @property
    def timeout(self) -> Optional[float]:
        """Default analysis deadline in seconds, or None."""
        value = self.config.get("engine.timeout")
        return float(value) if value is not None else None

    def new_token(self) -> CancelToken:
        """Token carrying the configured default deadline."""
        return CancelToken.with_timeout(self.timeout)


def poll(token: Optional[CancelToken], iteration: int, interval: int) -> None:
    """Check *token* every *interval* iterations of a long loop."""
    if token is not None and iteration % interval == 0:
        token.check()
