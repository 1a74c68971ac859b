"""
Utility modules for configuration, logging, and error handling.
"""

from clipdsp.utils.errors import (
    AudioDSPError,
    InvalidBufferError,
    AnalysisError,
    AnalysisCancelledError,
    ProcessingError,
    ConfigurationError,
)
from clipdsp.utils.logging import get_logger, setup_logging, setup_logging_from_config, JSONFormatter
from clipdsp.utils.config import ConfigManager, load_config, get_default_config, merge_config

__all__ = [
    "AudioDSPError",
    "InvalidBufferError",
    "AnalysisError",
    "AnalysisCancelledError",
    "ProcessingError",
    "ConfigurationError",
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
    "get_default_config",
    "merge_config",
]
