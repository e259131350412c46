"""Tests for batch coordination over the task queue."""

from __future__ import annotations

from pathlib import Path

import pytest

from reelvault.core.models import PipelineResult, WorkItem
from reelvault.core.organizer.batch import BatchCoordinator, BatchSummary
from reelvault.core.task_queue import TaskQueue
from reelvault.services.cache import ResultCache
from reelvault.shared.constants import PipelineSteps, StepStatus
from reelvault.shared.errors import ErrorCode, QueueStoppedError
from tests.fakes import FakeClock, FakeMetadataProvider, RecordingObserver, make_record


def _items(library: Path) -> list[WorkItem]:
    return [
        WorkItem(identifier=path.stem, source_path=path)
        for path in sorted(library.iterdir())
    ]


class TestBatchCoordinator:
    @pytest.mark.asyncio
    async def test_mixed_batch(
        self,
        pipeline_factory,
        library: Path,
        result_cache: ResultCache,
        observer: RecordingObserver,
    ) -> None:
        # Given
        provider = FakeMetadataProvider({"ABC-123": make_record("ABC-123")})
        progress: list[tuple[int, int, str]] = []
        coordinator = BatchCoordinator(
            pipeline_factory(provider=provider),
            TaskQueue(concurrency=2),
            cache=result_cache,
            observer=observer,
            progress=lambda done, total, result: progress.append((done, total, result.identifier)),
        )

        # When
        results = await coordinator.run(_items(library))

        # Then
        by_id = {result.identifier: result for result in results}
        assert by_id["ABC-123"].success
        assert not by_id["XYZ-999"].success
        assert BatchSummary.from_results(results) == BatchSummary(total=2, succeeded=1, failed=1)
        assert [(done, total) for done, total, _ in progress] == [(1, 2), (2, 2)]
        assert observer.statuses(PipelineSteps.BATCH).count(StepStatus.PROGRESS) == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, pipeline_factory) -> None:
        coordinator = BatchCoordinator(pipeline_factory(), TaskQueue())

        assert await coordinator.run([]) == []

    @pytest.mark.asyncio
    async def test_progress_callback_errors_ignored(self, pipeline_factory, library: Path) -> None:
        def _broken(done: int, total: int, result: PipelineResult) -> None:
            raise RuntimeError("display gone")

        coordinator = BatchCoordinator(pipeline_factory(), TaskQueue(), progress=_broken)

        results = await coordinator.run(_items(library))

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_queue_history_cleared(self, pipeline_factory, library: Path) -> None:
        queue = TaskQueue()
        coordinator = BatchCoordinator(pipeline_factory(), queue)

        await coordinator.run(_items(library))

        assert not queue.recent_results
        assert queue.stats().completed == 2

    @pytest.mark.asyncio
    async def test_final_cleanup_removes_expired_entries(
        self,
        pipeline_factory,
        library: Path,
        result_cache: ResultCache,
        clock: FakeClock,
    ) -> None:
        await result_cache.set("stale", {"v": 1}, max_age=10)
        clock.advance(60)
        coordinator = BatchCoordinator(pipeline_factory(), TaskQueue(), cache=result_cache)

        await coordinator.run(_items(library))

        assert await result_cache.get("stale") is None
        assert not result_cache._file_path(ResultCache.hash_key("stale")).exists()


class TestBatchAbort:
    @pytest.mark.asyncio
    async def test_stopped_queue_refuses_batch(self, pipeline_factory, library: Path) -> None:
        queue = TaskQueue()
        queue.stop()
        coordinator = BatchCoordinator(pipeline_factory(), queue)

        with pytest.raises(QueueStoppedError):
            await coordinator.run(_items(library))

        assert [result.error_kind for result in coordinator.results] == [ErrorCode.QUEUE_STOPPED] * 2

    @pytest.mark.asyncio
    async def test_stop_mid_batch_keeps_partial_results(self, pipeline_factory, tmp_path: Path) -> None:
        # Given
        source = tmp_path / "many"
        source.mkdir()
        for name in ("AAA-001.mp4", "BBB-002.mp4", "CCC-003.mp4"):
            (source / name).write_bytes(b"video")
        queue = TaskQueue(concurrency=1)

        def _stop_after_first(done: int, total: int, result: PipelineResult) -> None:
            if done == 1:
                queue.stop()

        coordinator = BatchCoordinator(pipeline_factory(), queue, progress=_stop_after_first)

        # When
        with pytest.raises(QueueStoppedError):
            await coordinator.run(_items(source))
        await queue.drain_and_stop()

        # Then: the item admitted before the stop still reports its outcome
        by_id = {result.identifier: result for result in coordinator.results}
        assert sorted(by_id) == ["AAA-001", "BBB-002", "CCC-003"]
        assert by_id["AAA-001"].error_kind is ErrorCode.METADATA_NOT_FOUND
        assert by_id["BBB-002"].error_kind is ErrorCode.METADATA_NOT_FOUND
        assert by_id["CCC-003"].error_kind is ErrorCode.QUEUE_STOPPED
        assert "before the task started" in by_id["CCC-003"].error
