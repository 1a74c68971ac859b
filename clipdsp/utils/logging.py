"""
Structured logging utilities for the clip DSP engine.

JSON records for log shipping, coloured text for a developer terminal.
The engine itself only ever calls get_logger(); hosts call setup_logging().
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else was passed via extra=
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """
    Formatter that renders each record as one JSON object per line.

    Fields passed through ``extra=`` (sample rate, channel count, stage
    timings) are collected under the "extra" key.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            log_obj["extra"] = extra

        return json.dumps(log_obj, default=str)


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format with color codes."""
        color = self.COLORS.get(record.levelname, "")
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    console_enabled: bool = True,
    colored: bool = True,
) -> None:
    """
    Configure logging for a host application embedding the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "text")
        log_file: Optional file path for log output
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep
        console_enabled: Whether to log to console
        colored: Whether to use colored output (console only, text format only)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%Y-%m-%d %H:%M:%S"
        if colored and console_enabled:
            formatter = ColoredFormatter(fmt, datefmt)
        else:
            formatter = logging.Formatter(fmt, datefmt)

    if console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        # Files are always JSON
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)


def setup_logging_from_config(config: Dict[str, Any]) -> None:
    """
    Configure logging from the "logging" section of an engine configuration.

    Args:
        config: Configuration dictionary from load_config()
    """
    section = config.get("logging") or {}
    setup_logging(
        level=section.get("level", "INFO"),
        log_format=section.get("format", "text"),
        log_file=section.get("file"),
        console_enabled=section.get("console", True),
        colored=section.get("colored", True),
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically "engine", "processor" or "analyzer.<name>")

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that merges a fixed context into every record.

    The engine uses it to tag all records of one analysis run with the
    buffer's sample rate, channel count and length.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Add extra context to log message."""
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra", {}))
        kwargs["extra"] = extra
        return msg, kwargs


def create_logger_with_context(name: str, context: Dict[str, Any]) -> LoggerAdapter:
    """
    Create a logger with persistent context.

    Args:
        name: Logger name
        context: Dictionary of context to add to all logs

    Returns:
        LoggerAdapter: Logger that includes context in all messages

    Example:
        logger = create_logger_with_context(
            "engine",
            {"sample_rate": 44100, "channels": 2}
        )
        logger.info("Spectral analysis complete")
    """
    return LoggerAdapter(get_logger(name), context)
