"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from reelvault.shared.errors import ErrorContext, NetworkError
from reelvault.shared.logging import (
    StructuredFormatter,
    log_operation_error,
    log_operation_success,
    setup_structured_logger,
)


@pytest.fixture
def isolated_logger():
    logger = logging.getLogger("reelvault-test-logging")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestSetupStructuredLogger:
    def test_file_output_is_json(self, tmp_path: Path, isolated_logger: logging.Logger) -> None:
        # Given
        log_file = tmp_path / ".log" / "app.log"
        logger = setup_structured_logger(
            isolated_logger.name,
            level="DEBUG",
            log_file=log_file,
            use_rich_console=False,
        )

        # When
        logger.info("moved %s", "ABC-123", extra={"operation": "file-move"})
        for handler in logger.handlers:
            handler.flush()

        # Then
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "moved ABC-123"
        assert entry["operation"] == "file-move"
        assert entry["level"] == "INFO"

    def test_setup_twice_does_not_stack_handlers(self, isolated_logger: logging.Logger) -> None:
        setup_structured_logger(isolated_logger.name, use_rich_console=False)
        logger = setup_structured_logger(isolated_logger.name)

        assert len(logger.handlers) == 1
        assert logger.propagate is False


class TestOperationHelpers:
    def test_error_context_attached(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("reelvault.tests.helpers")
        error = NetworkError(
            "HTTP 503",
            context=ErrorContext(operation="download-image", additional_data={"url": "https://x"}),
        )

        with caplog.at_level(logging.WARNING, logger=logger.name):
            log_operation_error(logger, error, additional_context={"task_id": "ABC-123"}, level=logging.WARNING)

        record = caplog.records[-1]
        assert record.error_code == "NETWORK_ERROR"
        assert record.operation == "download-image"
        assert record.context["task_id"] == "ABC-123"

    def test_success_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("reelvault.tests.helpers")

        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_operation_success(logger, "cache_set", duration_ms=1.5, result_info={"n": 1})

        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert record.duration_ms == 1.5


def test_formatter_includes_exception() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.getLogger("x").makeRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    entry = json.loads(StructuredFormatter().format(record))

    assert "ValueError: boom" in entry["exception"]
