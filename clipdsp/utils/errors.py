"""
Custom exceptions for the clip DSP engine.

This module defines a hierarchy of exceptions for the few conditions the
engine refuses to absorb. Numerical edge cases (silence, empty windows,
invalid intermediate values) are clamped and degraded instead of raised.
"""

from typing import Any, Optional


class AudioDSPError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class InvalidBufferError(AudioDSPError):
    """Raised when a sample buffer is missing or malformed."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message, details={"reason": reason} if reason else None)
        self.reason = reason


class AnalysisError(AudioDSPError):
    """Raised when an analysis step fails."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class AnalysisCancelledError(AnalysisError):
    """Raised when a cancel token fires or its deadline elapses."""

    def __init__(self, message: str = "Analysis cancelled", timed_out: bool = False):
        super().__init__(message, analyzer_name=None)
        self.timed_out = timed_out
        self.details = {"timed_out": timed_out}


class ProcessingError(AudioDSPError):
    """Raised when a transform receives parameters it cannot honour."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        value: Optional[Any] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.value = value
        self.details = {"operation": operation, "value": value}


class ConfigurationError(AudioDSPError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}
