"""Tests for the step event log."""

from __future__ import annotations

import logging

import pytest

from reelvault.services.step_log import StepEventLog
from reelvault.shared.constants import StepStatus
from reelvault.shared.protocols import StepEvent
from tests.fakes import FakeClock


@pytest.fixture
def log(clock: FakeClock) -> StepEventLog:
    return StepEventLog(clock=clock)


class TestStepEventLog:
    def test_records_step_lifecycle(self, log: StepEventLog, clock: FakeClock) -> None:
        # Given
        log.on_step_event(StepEvent("ABC-123", "download-image", StepStatus.STARTED))
        clock.advance(0.25)

        # When
        log.on_step_event(StepEvent("ABC-123", "download-image", StepStatus.COMPLETED, "ok"))

        # Then
        record = log.steps_for("ABC-123")["download-image"]
        assert record.status == StepStatus.COMPLETED
        assert record.message == "ok"
        assert record.history == [StepStatus.STARTED, StepStatus.COMPLETED]
        assert record.duration_ms == pytest.approx(250.0)

    def test_progress_keeps_step_open(self, log: StepEventLog) -> None:
        log.on_step_event(StepEvent("ABC-123", "file-move", StepStatus.STARTED))
        log.on_step_event(StepEvent("ABC-123", "file-move", StepStatus.PROGRESS, "attempt 1 failed"))

        record = log.steps_for("ABC-123")["file-move"]

        assert record.status == StepStatus.PROGRESS
        assert record.duration_ms is None

    def test_failed_tasks(self, log: StepEventLog) -> None:
        log.on_step_event(StepEvent("ABC-123", "nfo-generation", StepStatus.COMPLETED))
        log.on_step_event(StepEvent("XYZ-999", "download-image", StepStatus.FAILED, "HTTP 503"))

        assert log.failed_tasks() == ["XYZ-999"]

    def test_unknown_task_and_clear(self, log: StepEventLog) -> None:
        log.on_step_event(StepEvent("ABC-123", "batch", StepStatus.PROGRESS, "1/2"))

        assert log.steps_for("missing") == {}
        log.clear()
        assert log.steps_for("ABC-123") == {}

    def test_failures_logged_as_warnings(self, log: StepEventLog, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="reelvault.services.step_log"):
            log.on_step_event(StepEvent("XYZ-999", "download-image", StepStatus.FAILED, "HTTP 503"))

        assert any(r.levelno == logging.WARNING and "HTTP 503" in r.getMessage() for r in caplog.records)

    def test_broken_clock_never_raises(self) -> None:
        def _broken_clock() -> float:
            raise RuntimeError("clock")

        log = StepEventLog(clock=_broken_clock)

        log.on_step_event(StepEvent("ABC-123", "batch", StepStatus.STARTED))

        assert log.steps_for("ABC-123") == {}
