"""Per-item organizing pipeline.

For one media file the pipeline resolves its metadata (cache first), then
creates ``<output>/<code>/``, writes the description file, saves the cover
images and finally moves the media file in. Each external call goes
through the retry executor of its profile.

If anything fails once the destination directory exists, the pipeline
compensates: the media file is moved back to where it came from and the
partial destination directory is removed. When the directory already held
output of an earlier run, only the entries this run added are removed.
Item failures never raise; they come back as a failed :class:`PipelineResult`.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Collection

from pydantic import ValidationError

from reelvault.core.models import MetadataRecord, PipelineResult, RelocationResult, WorkItem
from reelvault.core.retry import RetryExecutor, RetryPolicy
from reelvault.services.cache import ResultCache
from reelvault.services.images import check_cover_url, cover_extension
from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import CacheDefaults, PipelineSteps, StepStatus, VideoFormats
from reelvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    ReelVaultError,
    classify_error,
    create_file_operation_error,
)
from reelvault.shared.logging import log_operation_success
from reelvault.shared.protocols import (
    DescriptionWriterProtocol,
    FileRelocatorProtocol,
    ImageServiceProtocol,
    MetadataProviderProtocol,
    StepEvent,
    StepObserver,
    notify,
)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    INIT = "init"
    METADATA_RESOLVED = "metadata_resolved"
    DIR_CREATED = "dir_created"
    NFO_WRITTEN = "nfo_written"
    COVERS_SAVED = "covers_saved"
    FILE_MOVED = "file_moved"
    DONE = "done"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """Mutable state of one item going through the pipeline.

    ``existing_entries`` holds the names already present in the
    destination directory before this run touched it; ``moved_media`` is
    where this run put the media file once the move succeeded.
    """

    item: WorkItem
    state: PipelineState = PipelineState.INIT
    destination: Path | None = None
    existing_entries: frozenset[str] = frozenset()
    moved_media: Path | None = None
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.INIT])

    @property
    def identifier(self) -> str:
        return self.item.identifier

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)


@dataclass(frozen=True)
class PipelineExecutors:
    """Retry executors per kind of external call.

    network: cover downloads
    image: saving and deriving covers
    local: description file writes and file moves
    """

    network: RetryExecutor
    image: RetryExecutor
    local: RetryExecutor

    @classmethod
    def from_policies(
        cls,
        network: RetryPolicy,
        image: RetryPolicy,
        local: RetryPolicy,
        token: CancellationToken,
        observer: StepObserver | None = None,
    ) -> PipelineExecutors:
        return cls(
            network=RetryExecutor(network, token, observer, name="network"),
            image=RetryExecutor(image, token, observer, name="image"),
            local=RetryExecutor(local, token, observer, name="local"),
        )


class ItemPipeline:
    """Runs the organizing steps for one :class:`WorkItem` at a time.

    A single instance is shared by every task of a batch; all per-item
    state lives in a :class:`PipelineRun`.

    Args:
        output_dir: Root under which ``<code>/`` directories are created
        cache: Result cache for metadata records
        provider: Metadata provider (retries its own requests)
        writer: Description file writer
        images: Cover image service
        relocator: File relocator
        executors: Retry executors per call profile
        observer: Optional step observer
        video_extensions: Extensions recognised when rolling back
    """

    def __init__(
        self,
        output_dir: Path,
        cache: ResultCache,
        provider: MetadataProviderProtocol,
        writer: DescriptionWriterProtocol,
        images: ImageServiceProtocol,
        relocator: FileRelocatorProtocol,
        executors: PipelineExecutors,
        observer: StepObserver | None = None,
        video_extensions: Collection[str] = VideoFormats.EXTENSIONS,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.cache = cache
        self.provider = provider
        self.writer = writer
        self.images = images
        self.relocator = relocator
        self.executors = executors
        self.observer = observer
        self.video_extensions = {ext.lower() for ext in video_extensions}

    async def process(self, item: WorkItem) -> PipelineResult:
        """Organize one item.

        Returns:
            Success result with the destination directory, or a failed
            result carrying the original error message and its kind.

        Raises:
            asyncio.CancelledError: Propagated after compensation
        """
        run = PipelineRun(item)
        started = time.perf_counter()

        try:
            record = await self._resolve_metadata(run)
            destination = await self._create_directory(run, record)
        except asyncio.CancelledError:
            run.advance(PipelineState.FAILED)
            raise
        except Exception as exc:  # noqa: BLE001
            return self._fail(run, exc)

        try:
            await self._write_description(run, record, destination)
            await self._save_covers(run, record, destination)
            await self._move_media(run, destination)
        except asyncio.CancelledError:
            await self._compensate(run, destination)
            raise
        except Exception as exc:  # noqa: BLE001
            await self._compensate(run, destination)
            return self._fail(run, exc)

        run.advance(PipelineState.DONE)
        log_operation_success(
            logger,
            operation="process_item",
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={"destination": str(destination)},
            context={"identifier": run.identifier},
        )
        return PipelineResult.ok(run.identifier, destination)

    # Steps

    async def _resolve_metadata(self, run: PipelineRun) -> MetadataRecord:
        identifier = run.identifier
        key = f"{CacheDefaults.METADATA_KEY_PREFIX}{identifier}"
        self._emit(run, PipelineSteps.METADATA, StepStatus.STARTED)

        record = None
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                record = MetadataRecord.model_validate(cached)
                self._emit(run, PipelineSteps.METADATA, StepStatus.COMPLETED, "cache hit")
            except ValidationError:
                logger.warning("Ignoring unreadable cached metadata for %s", identifier)

        if record is None:
            record = await self.provider.fetch_metadata(identifier)
            await self.cache.set(key, record.model_dump(mode="json"))
            self._emit(run, PipelineSteps.METADATA, StepStatus.COMPLETED, "fetched")

        if not record.code:
            record = record.model_copy(update={"code": identifier})

        run.advance(PipelineState.METADATA_RESOLVED)
        return record

    async def _create_directory(self, run: PipelineRun, record: MetadataRecord) -> Path:
        destination = self.output_dir / (record.code or run.identifier)
        try:
            run.existing_entries = await asyncio.to_thread(_prepare_directory, destination)
        except OSError as exc:
            raise create_file_operation_error(
                f"Failed to create destination directory: {exc}",
                file_path=destination,
                operation="create_directory",
                original_error=exc,
                code=ErrorCode.DIRECTORY_CREATION_FAILED,
            ) from exc
        run.destination = destination
        run.advance(PipelineState.DIR_CREATED)
        self._emit(run, PipelineSteps.DIRECTORY, StepStatus.COMPLETED, str(destination))
        return destination

    async def _write_description(self, run: PipelineRun, record: MetadataRecord, destination: Path) -> None:
        await self.executors.local.run(
            lambda: self.writer.write(record, destination),
            op_id="nfo-generation",
            task_id=run.identifier,
        )
        run.advance(PipelineState.NFO_WRITTEN)

    async def _save_covers(self, run: PipelineRun, record: MetadataRecord, destination: Path) -> None:
        url = check_cover_url(record.cover_url)
        extension = cover_extension(url)

        data = await self.executors.network.run(
            lambda: self.images.fetch_image(url),
            op_id="download-image",
            task_id=run.identifier,
        )
        await self.executors.image.run(
            lambda: self.images.save_covers(data, destination, extension),
            op_id="process-image",
            task_id=run.identifier,
        )
        run.advance(PipelineState.COVERS_SAVED)

    async def _move_media(self, run: PipelineRun, destination: Path) -> None:
        source = run.item.source_path

        async def _relocate() -> RelocationResult:
            result = await self.relocator.relocate(source, destination, safe_delete=True, overwrite=False)
            if not result.success:
                raise create_file_operation_error(
                    f"Failed to move media file: {result.error}",
                    file_path=source,
                    operation="move_media",
                )
            run.moved_media = result.path
            return result

        await self.executors.local.run(_relocate, op_id="file-move", task_id=run.identifier)
        run.advance(PipelineState.FILE_MOVED)

    # Compensation

    async def _compensate(self, run: PipelineRun, destination: Path) -> None:
        run.advance(PipelineState.ROLLING_BACK)
        self._emit(run, PipelineSteps.ROLLBACK, StepStatus.STARTED, str(destination))
        source = run.item.source_path
        try:
            media = run.moved_media
            if media is None and not source.exists():
                # The move may have landed before it was interrupted
                media = await asyncio.to_thread(
                    self._find_relocated_media, destination, source.name, run.existing_entries
                )
            if media is not None and media.is_file():
                result = await self.relocator.relocate(
                    media,
                    source.parent,
                    safe_delete=False,
                    overwrite=False,
                    new_name=source.name,
                )
                if not result.success:
                    logger.warning("Failed to restore %s during rollback: %s", media, result.error)
            await asyncio.to_thread(_remove_partial_output, destination, run.existing_entries)
            self._emit(run, PipelineSteps.ROLLBACK, StepStatus.COMPLETED)
        except Exception:  # noqa: BLE001
            logger.exception("Rollback of %s failed", run.identifier)
            self._emit(run, PipelineSteps.ROLLBACK, StepStatus.FAILED)

    def _find_relocated_media(
        self, destination: Path, original_name: str, existing: Collection[str] = ()
    ) -> Path | None:
        if not destination.is_dir():
            return None
        preferred = destination / original_name
        if original_name not in existing and preferred.is_file():
            return preferred
        for candidate in sorted(destination.iterdir()):
            if candidate.name in existing:
                continue
            if candidate.is_file() and candidate.suffix.lower() in self.video_extensions:
                return candidate
        return None

    # Helpers

    def _fail(self, run: PipelineRun, exc: BaseException) -> PipelineResult:
        run.advance(PipelineState.FAILED)
        message = exc.message if isinstance(exc, ReelVaultError) else (str(exc) or type(exc).__name__)
        kind = classify_error(exc)
        logger.warning(
            "Processing %s failed: %s",
            run.identifier,
            message,
            extra={
                "error_code": kind.value,
                "operation": "process_item",
                "context": ErrorContext(
                    file_path=str(run.item.source_path),
                    operation="process_item",
                    additional_data={"identifier": run.identifier, "state": run.history[-2].value},
                ).safe_dict(),
            },
        )
        self._emit(run, PipelineSteps.BATCH, StepStatus.FAILED, message)
        return PipelineResult.failed(run.identifier, message, kind)

    def _emit(self, run: PipelineRun, step: str, status: str, message: str = "") -> None:
        notify(self.observer, StepEvent(task_id=run.identifier, step=step, status=status, message=message))


def _prepare_directory(destination: Path) -> frozenset[str]:
    existing = frozenset(entry.name for entry in destination.iterdir()) if destination.is_dir() else frozenset()
    destination.mkdir(parents=True, exist_ok=True)
    return existing


def _remove_partial_output(destination: Path, existing: Collection[str]) -> None:
    if not destination.exists():
        return
    if not existing:
        shutil.rmtree(destination)
        return
    # Output of an earlier run stays in place
    for entry in destination.iterdir():
        if entry.name in existing:
            continue
        if entry.is_dir():
            shutil.rmtree(entry)
        else:
            entry.unlink()
