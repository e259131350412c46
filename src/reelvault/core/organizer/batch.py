"""Batch coordination over the task queue."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Sequence

from reelvault.core.models import PipelineResult, WorkItem
from reelvault.core.organizer.pipeline import ItemPipeline
from reelvault.core.task_queue import TaskQueue
from reelvault.services.cache import ResultCache
from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import PipelineSteps, StepStatus
from reelvault.shared.errors import ErrorCode, QueueError, ReelVaultError, classify_error
from reelvault.shared.logging import log_operation_start, log_operation_success
from reelvault.shared.protocols import StepEvent, StepObserver, notify

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, PipelineResult], None]


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    failed: int

    @classmethod
    def from_results(cls, results: Sequence[PipelineResult]) -> BatchSummary:
        succeeded = sum(1 for result in results if result.success)
        return cls(total=len(results), succeeded=succeeded, failed=len(results) - succeeded)


class BatchCoordinator:
    """Fans a batch of work items out over a :class:`TaskQueue`.

    Every item becomes one queue task running :meth:`ItemPipeline.process`.
    Item failures are part of the returned results; queue-level failures
    (stop, enqueue timeout, cancellation) abort :meth:`run` and propagate.

    While a batch runs, the result cache is swept every
    ``cleanup_interval`` seconds; at the end the queue history is cleared
    and one final sweep is made.

    Args:
        pipeline: Shared item pipeline
        queue: Task queue the items are submitted to
        cache: Cache to sweep (None disables sweeping)
        token: Abort token; also stops the periodic sweeper
        observer: Optional step observer for progress events
        cleanup_interval: Sweep period in seconds (0 disables)
        progress: Called with ``(completed, total, result)`` as items settle
    """

    def __init__(
        self,
        pipeline: ItemPipeline,
        queue: TaskQueue,
        cache: ResultCache | None = None,
        token: CancellationToken | None = None,
        observer: StepObserver | None = None,
        cleanup_interval: float = 0.0,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.queue = queue
        self.cache = cache
        self.token = token or CancellationToken()
        self.observer = observer
        self.cleanup_interval = cleanup_interval
        self.progress = progress
        self.results: list[PipelineResult] = []

    async def run(self, items: Iterable[WorkItem]) -> list[PipelineResult]:
        """Process ``items`` and return their results in completion order.

        Every item gets an entry in :attr:`results` once its future
        settles. When the batch aborts, the list keeps filling as running
        items finish; items the queue rejected appear as failed results
        carrying the queue error's kind.

        Raises:
            QueueStoppedError: The queue was stopped while items were pending
            QueueTimeoutError: An item waited longer than the enqueue timeout
            TaskCancelledError: A pending item was cancelled
        """
        work = list(items)
        total = len(work)
        started = time.perf_counter()
        results = self.results = []

        if not work:
            logger.info("Nothing to process")
            return results

        logger.info("Processing %d item(s) with concurrency %d", total, self.queue.concurrency)
        log_operation_start(logger, "organize_batch", context={"total": total})
        futures = []
        for index, item in enumerate(work):
            try:
                future = self.queue.submit(partial(self.pipeline.process, item))
            except QueueError as exc:
                results.extend(_failed_outcome(skipped, exc) for skipped in work[index:])
                raise
            future.add_done_callback(partial(_collect_outcome, results, item))
            futures.append(future)

        sweeper = self._start_sweeper()
        completed = 0
        try:
            for next_done in asyncio.as_completed(futures):
                result = await next_done
                completed += 1
                self._report(completed, total, result)
        finally:
            await self._stop_sweeper(sweeper)

        self.queue.clear_history()
        if self.cache is not None:
            await self.cache.cleanup()

        summary = BatchSummary.from_results(results)
        log_operation_success(
            logger,
            operation="organize_batch",
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={"success": summary.succeeded, "failed": summary.failed, "total": summary.total},
        )
        return results

    def _report(self, completed: int, total: int, result: PipelineResult) -> None:
        logger.info(
            "Progress %d/%d: %s %s",
            completed,
            total,
            result.identifier,
            "ok" if result.success else f"failed ({result.error})",
        )
        notify(
            self.observer,
            StepEvent(
                task_id=result.identifier,
                step=PipelineSteps.BATCH,
                status=StepStatus.PROGRESS,
                message=f"{completed}/{total}",
            ),
        )
        if self.progress is not None:
            try:
                self.progress(completed, total, result)
            except Exception:  # noqa: BLE001
                logger.debug("Progress callback raised", exc_info=True)

    def _start_sweeper(self) -> asyncio.Task[None] | None:
        if self.cache is None or self.cleanup_interval <= 0:
            return None
        return asyncio.create_task(self.cache.sweep_periodically(self.cleanup_interval, self.token))

    @staticmethod
    async def _stop_sweeper(sweeper: asyncio.Task[None] | None) -> None:
        if sweeper is None:
            return
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


def _collect_outcome(
    results: list[PipelineResult],
    item: WorkItem,
    future: asyncio.Future[PipelineResult],
) -> None:
    # Runs for every settled future, including those still running when the batch aborts
    if future.cancelled():
        results.append(
            PipelineResult.failed(item.identifier, "Task was cancelled", ErrorCode.OPERATION_INTERRUPTED)
        )
        return
    error = future.exception()
    results.append(future.result() if error is None else _failed_outcome(item, error))


def _failed_outcome(item: WorkItem, error: BaseException) -> PipelineResult:
    message = error.message if isinstance(error, ReelVaultError) else str(error) or type(error).__name__
    return PipelineResult.failed(item.identifier, message, classify_error(error))


__all__ = ["BatchCoordinator", "BatchSummary", "ProgressCallback"]
