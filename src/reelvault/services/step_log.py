"""Step event log.

:class:`StepEventLog` is the default :class:`StepObserver`: it keeps an
in-memory record of every task's steps and writes them to the standard
logger. It is observability only and must never disturb the pipeline.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from reelvault.shared.constants import StepStatus
from reelvault.shared.protocols import StepEvent

logger = logging.getLogger(__name__)


@dataclass
class StepRecord:
    """Lifecycle of one step of one task.

    Attributes:
        step: Step name
        status: Latest status
        message: Latest message
        started_at: Epoch seconds of the first event
        ended_at: Epoch seconds of the terminal event, if any
    """

    step: str
    status: str
    message: str
    started_at: float
    ended_at: float | None = None
    history: list[str] = field(default_factory=list)

    @property
    def duration_ms(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at) * 1000


class StepEventLog:
    """Records step events per task and logs them."""

    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._steps: dict[str, dict[str, StepRecord]] = {}
        self._lock = threading.Lock()

    def on_step_event(self, event: StepEvent) -> None:
        try:
            self._record(event)
            self._log(event)
        except Exception:  # noqa: BLE001
            logger.debug("Failed to record step event %r", event, exc_info=True)

    def steps_for(self, task_id: str) -> dict[str, StepRecord]:
        with self._lock:
            return dict(self._steps.get(task_id, {}))

    def failed_tasks(self) -> list[str]:
        with self._lock:
            return [
                task_id
                for task_id, steps in self._steps.items()
                if any(record.status == StepStatus.FAILED for record in steps.values())
            ]

    def clear(self) -> None:
        with self._lock:
            self._steps.clear()

    def _record(self, event: StepEvent) -> None:
        now = self._clock()
        with self._lock:
            task_steps = self._steps.setdefault(event.task_id, {})
            record = task_steps.get(event.step)
            if record is None or event.status == StepStatus.STARTED:
                record = StepRecord(
                    step=event.step,
                    status=event.status,
                    message=event.message,
                    started_at=now,
                )
                task_steps[event.step] = record
            else:
                record.status = event.status
                record.message = event.message or record.message
            record.history.append(event.status)
            if event.status in (StepStatus.COMPLETED, StepStatus.FAILED):
                record.ended_at = now

    @staticmethod
    def _log(event: StepEvent) -> None:
        extra = {"operation": event.step, "context": {"task_id": event.task_id}}
        if event.status == StepStatus.FAILED:
            logger.warning("[%s] %s failed: %s", event.task_id, event.step, event.message, extra=extra)
        elif event.status == StepStatus.STARTED:
            logger.info("[%s] %s started %s", event.task_id, event.step, event.message, extra=extra)
        elif event.status == StepStatus.COMPLETED:
            logger.info("[%s] %s completed %s", event.task_id, event.step, event.message, extra=extra)
        else:
            logger.debug("[%s] %s: %s", event.task_id, event.step, event.message, extra=extra)


__all__ = ["StepEventLog", "StepRecord"]
