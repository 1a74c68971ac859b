"""Tests for logging setup, formatters and the context adapter."""

import json
import logging

import pytest

from clipdsp.utils.errors import (
    AnalysisCancelledError,
    AnalysisError,
    InvalidBufferError,
    ProcessingError,
)
from clipdsp.utils.logging import (
    ColoredFormatter,
    JSONFormatter,
    create_logger_with_context,
    setup_logging,
    setup_logging_from_config,
)


def make_record(**extra):
    record = logging.LogRecord("engine", logging.INFO, "engine.py", 42, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestFormatters:
    def test_json_formatter(self):
        data = json.loads(JSONFormatter().format(make_record(sample_rate=44100)))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "engine"
        assert data["extra"] == {"sample_rate": 44100}

    def test_json_formatter_without_extra(self):
        assert "extra" not in json.loads(JSONFormatter().format(make_record()))

    def test_colored_formatter_restores_levelname(self):
        record = make_record()
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)

        assert "\033[32m" in output
        assert record.levelname == "INFO"


class TestSetupLogging:
    def test_json_file_handler(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "engine.log"
        setup_logging(level="DEBUG", log_file=str(log_file), console_enabled=False)

        logging.getLogger("engine").debug("written")
        for handler in restore_root_logger.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "written"
        assert restore_root_logger.level == logging.DEBUG

    def test_from_config_section(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "engine.log"
        setup_logging_from_config({
            "logging": {"level": "WARNING", "format": "json", "file": str(log_file), "console": False}
        })

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        logging.getLogger("engine").warning("configured")
        restore_root_logger.handlers[0].flush()
        assert json.loads(log_file.read_text().strip())["message"] == "configured"

    def test_from_config_defaults(self, restore_root_logger):
        setup_logging_from_config({})

        assert restore_root_logger.level == logging.INFO
        assert isinstance(restore_root_logger.handlers[0].formatter, ColoredFormatter)


class TestContextAdapter:
    def test_context_merged_into_records(self, caplog):
        logger = create_logger_with_context("engine", {"channels": 2})

        with caplog.at_level(logging.INFO, logger="engine"):
            logger.info("stage done", extra={"stage": "spectral"})

        record = caplog.records[-1]
        assert record.channels == 2
        assert record.stage == "spectral"


class TestErrors:
    def test_invalid_buffer_details(self):
        assert str(InvalidBufferError("missing buffer", reason="missing")) == (
            "missing buffer (Details: {'reason': 'missing'})"
        )
        assert str(InvalidBufferError("bad")) == "bad"

    def test_cancelled_is_analysis_error(self):
        error = AnalysisCancelledError(timed_out=True)

        assert isinstance(error, AnalysisError)
        assert error.details == {"timed_out": True}

    def test_processing_error_fields(self):
        error = ProcessingError("bad rate", operation="playback_rate", value=0)
        assert error.details == {"operation": "playback_rate", "value": 0}
