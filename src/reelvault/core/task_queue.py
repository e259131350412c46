"""
TaskQueue - bounded-concurrency priority scheduler for asyncio.

Units of work are zero-argument coroutine functions. Each submission gets
its own future, so callers can await items individually or in bulk. At
most ``concurrency`` tasks run at once; pending entries are admitted in
priority order (higher first) and FIFO within a priority.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, TypeVar

from reelvault.shared.constants import QueueDefaults
from reelvault.shared.errors import (
    ErrorContext,
    QueueStoppedError,
    QueueTimeoutError,
    TaskCancelledError,
    create_config_error,
)

if TYPE_CHECKING:
    from reelvault.config.models.performance_settings import QueueSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")
TaskFn = Callable[[], Awaitable[Any]]


class EntryState(str, Enum):
    PENDING = "pending"
    STARTED = "started"
    CANCELLED = "cancelled"


@dataclass(order=True)
class QueueEntry:
    """A pending or admitted unit of work.

    Entries compare by ``(-priority, enqueued_at, sequence)`` so the heap
    root is always the next entry to admit.
    """

    sort_key: tuple[int, float, int] = field(init=False, repr=False)
    task: TaskFn = field(compare=False)
    priority: int = field(compare=False)
    enqueued_at: float = field(compare=False)
    sequence: int = field(compare=False)
    future: asyncio.Future[Any] = field(compare=False, repr=False)
    state: EntryState = field(default=EntryState.PENDING, compare=False)
    timeout_handle: asyncio.TimerHandle | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.sort_key = (-self.priority, self.enqueued_at, self.sequence)


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of queue counters."""

    queued: int
    running: int
    completed: int
    failed: int
    stopped: bool


class TaskQueue:
    """
    Priority task queue with a fixed admission pool.

    Features:
    - Per-task futures; one failure only fails its own future
    - Optional enqueue timeout for entries that wait too long
    - Bulk cancellation by predicate and a stop/drain protocol
    - Bounded history of recent results and errors for inspection

    Args:
        concurrency: Maximum number of tasks running at once
        history_limit: Size of the recent results/errors windows
        enqueue_timeout: Default enqueue timeout in seconds (0 disables)
    """

    def __init__(
        self,
        concurrency: int = QueueDefaults.CONCURRENCY,
        history_limit: int = QueueDefaults.HISTORY_LIMIT,
        enqueue_timeout: float = QueueDefaults.ENQUEUE_TIMEOUT,
    ) -> None:
        self._validate_concurrency(concurrency)
        if history_limit <= 0:
            raise create_config_error(
                f"history_limit must be positive, got {history_limit}",
                config_key="history_limit",
                operation="task_queue",
            )
        if enqueue_timeout < 0:
            raise create_config_error(
                f"enqueue_timeout must not be negative, got {enqueue_timeout}",
                config_key="enqueue_timeout",
                operation="task_queue",
            )

        self._concurrency = concurrency
        self._default_timeout = enqueue_timeout
        self._pending: list[QueueEntry] = []
        self._running: set[asyncio.Task[None]] = set()
        self._sequence = itertools.count()
        self._stopped = False

        self._completed = 0
        self._failed = 0
        self.recent_results: deque[Any] = deque(maxlen=history_limit)
        self.recent_errors: deque[BaseException] = deque(maxlen=history_limit)

    @classmethod
    def from_settings(cls, settings: QueueSettings) -> TaskQueue:
        return cls(
            concurrency=settings.concurrency,
            history_limit=settings.history_limit,
            enqueue_timeout=settings.enqueue_timeout,
        )

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def submit(
        self,
        task: Callable[[], Awaitable[T]],
        priority: int = 0,
        enqueue_timeout: float | None = None,
    ) -> asyncio.Future[T]:
        """
        Enqueue a task and return a future for its result.

        Must be called from within a running event loop.

        Args:
            task: Zero-argument coroutine function
            priority: Higher values are admitted first
            enqueue_timeout: Seconds the entry may wait for admission;
                None uses the queue default, 0 disables

        Returns:
            Future resolved with the task's result or failed with its error

        Raises:
            QueueStoppedError: The queue is stopped
        """
        if self._stopped:
            raise QueueStoppedError(
                "Queue is stopped, submission refused",
                context=ErrorContext(operation="submit"),
            )

        timeout = self._default_timeout if enqueue_timeout is None else enqueue_timeout
        if timeout < 0:
            raise create_config_error(
                f"enqueue_timeout must not be negative, got {timeout}",
                config_key="enqueue_timeout",
                operation="submit",
            )

        loop = asyncio.get_running_loop()
        entry = QueueEntry(
            task=task,
            priority=priority,
            enqueued_at=time.monotonic(),
            sequence=next(self._sequence),
            future=loop.create_future(),
        )
        heapq.heappush(self._pending, entry)

        if timeout > 0:
            entry.timeout_handle = loop.call_later(timeout, self._expire, entry, timeout)
        entry.future.add_done_callback(lambda _fut: self._on_future_done(entry))

        self._dispatch()
        return entry.future

    async def submit_all(
        self,
        tasks: Iterable[Callable[[], Awaitable[T]]],
        priority: int = 0,
    ) -> list[T]:
        """Submit every task and wait for all results.

        The first failure is raised; the remaining tasks keep running.
        """
        futures = [self.submit(task, priority) for task in tasks]
        return list(await asyncio.gather(*futures))

    def cancel_where(self, predicate: Callable[[TaskFn], bool]) -> int:
        """Cancel pending entries whose task matches ``predicate``.

        Running tasks are never interrupted.

        Returns:
            Number of entries cancelled
        """
        cancelled = 0
        for entry in list(self._pending):
            if entry.state is EntryState.PENDING and predicate(entry.task):
                self._cancel_entry(
                    entry,
                    TaskCancelledError(
                        "Task cancelled before it started",
                        context=ErrorContext(operation="cancel_where"),
                    ),
                )
                cancelled += 1

        if cancelled:
            self._compact()
            logger.info("Cancelled %d pending task(s)", cancelled)
        return cancelled

    def stop(self) -> int:
        """Refuse new work and fail every pending entry.

        Admitted tasks keep running to completion.

        Returns:
            Number of pending entries rejected
        """
        self._stopped = True
        rejected = 0
        for entry in self._pending:
            if entry.state is EntryState.PENDING:
                self._cancel_entry(
                    entry,
                    QueueStoppedError(
                        "Queue stopped before the task started",
                        context=ErrorContext(operation="stop"),
                    ),
                )
                rejected += 1
        self._pending.clear()

        logger.info(
            "Queue stopped: %d pending rejected, %d still running",
            rejected,
            len(self._running),
        )
        return rejected

    async def drain_and_stop(self) -> None:
        """Stop the queue, then wait for every admitted task to finish."""
        self.stop()
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def resume(self) -> None:
        if self._stopped:
            logger.info("Queue resumed")
        self._stopped = False

    def set_concurrency(self, concurrency: int) -> None:
        self._validate_concurrency(concurrency)
        self._concurrency = concurrency
        self._dispatch()

    def stats(self) -> QueueStats:
        return QueueStats(
            queued=sum(1 for e in self._pending if e.state is EntryState.PENDING),
            running=len(self._running),
            completed=self._completed,
            failed=self._failed,
            stopped=self._stopped,
        )

    def clear_history(self) -> None:
        self.recent_results.clear()
        self.recent_errors.clear()

    # Internal

    def _dispatch(self) -> None:
        while len(self._running) < self._concurrency and self._pending:
            entry = heapq.heappop(self._pending)
            if entry.state is not EntryState.PENDING:
                continue
            if entry.future.done():
                # Cancelled by the caller; the done callback has not run yet
                entry.state = EntryState.CANCELLED
                continue
            self._start(entry)

    def _start(self, entry: QueueEntry) -> None:
        entry.state = EntryState.STARTED
        if entry.timeout_handle is not None:
            entry.timeout_handle.cancel()
            entry.timeout_handle = None

        task = asyncio.get_running_loop().create_task(self._run(entry))
        self._running.add(task)
        logger.debug(
            "Admitted task #%d (priority %d), %d running",
            entry.sequence,
            entry.priority,
            len(self._running),
        )

    async def _run(self, entry: QueueEntry) -> None:
        future = entry.future
        try:
            result = await entry.task()
        except asyncio.CancelledError:
            self._failed += 1
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            self._failed += 1
            self.recent_errors.append(exc)
            if not future.done():
                future.set_exception(exc)
        else:
            self._completed += 1
            self.recent_results.append(result)
            if not future.done():
                future.set_result(result)
        finally:
            current = asyncio.current_task()
            if current is not None:
                self._running.discard(current)
            if not self._stopped:
                self._dispatch()

    def _expire(self, entry: QueueEntry, timeout: float) -> None:
        entry.timeout_handle = None
        if entry.state is not EntryState.PENDING:
            return
        self._cancel_entry(
            entry,
            QueueTimeoutError(
                f"Task waited more than {timeout:.2f}s for admission",
                context=ErrorContext(
                    operation="enqueue_timeout",
                    additional_data={"timeout": timeout},
                ),
            ),
        )
        self._compact()
        logger.warning("Task #%d timed out after %.2fs in queue", entry.sequence, timeout)

    def _on_future_done(self, entry: QueueEntry) -> None:
        # Caller cancelled the future of a pending entry: withdraw it
        if entry.state is EntryState.PENDING and entry.future.cancelled():
            entry.state = EntryState.CANCELLED
            if entry.timeout_handle is not None:
                entry.timeout_handle.cancel()
                entry.timeout_handle = None
            self._compact()

    @staticmethod
    def _cancel_entry(entry: QueueEntry, error: BaseException) -> None:
        entry.state = EntryState.CANCELLED
        if entry.timeout_handle is not None:
            entry.timeout_handle.cancel()
            entry.timeout_handle = None
        if not entry.future.done():
            entry.future.set_exception(error)

    def _compact(self) -> None:
        self._pending = [e for e in self._pending if e.state is EntryState.PENDING]
        heapq.heapify(self._pending)

    @staticmethod
    def _validate_concurrency(concurrency: int) -> None:
        if concurrency <= 0:
            raise create_config_error(
                f"concurrency must be positive, got {concurrency}",
                config_key="concurrency",
                operation="task_queue",
            )
