"""Organize command handler.

Wires settings into the organizing services, runs the batch on one event
loop and turns the outcome into output and an exit code.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

import typer
from rich.console import Console
from rich.table import Table

from reelvault.cli.json_formatter import format_json_output
from reelvault.cli.progress import ProgressManager, create_progress_manager
from reelvault.config.models.performance_settings import RetryProfile
from reelvault.config.models.settings import ResolvedPaths, Settings
from reelvault.core.identifier import extract_identifier
from reelvault.core.models import PipelineResult, WorkItem
from reelvault.core.organizer.batch import BatchCoordinator, BatchSummary
from reelvault.core.organizer.file_mover import FileRelocator
from reelvault.core.organizer.pipeline import ItemPipeline, PipelineExecutors
from reelvault.core.retry import RetryPolicy
from reelvault.core.scanner import scan_media_files
from reelvault.core.task_queue import TaskQueue
from reelvault.services.cache import ResultCache
from reelvault.services.http import HttpSessionManager
from reelvault.services.images import CoverImageService
from reelvault.services.javdb.client import JavdbClient
from reelvault.services.nfo_writer import NfoWriter
from reelvault.services.step_log import StepEventLog
from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import ExitCodes
from reelvault.shared.errors import QueueError, create_file_operation_error

logger = logging.getLogger(__name__)


@dataclass
class OrganizeOutcome:
    results: list[PipelineResult] = field(default_factory=list)
    interrupted: bool = False

    @property
    def summary(self) -> BatchSummary:
        return BatchSummary.from_results(self.results)

    @property
    def exit_code(self) -> int:
        return ExitCodes.INTERRUPTED if self.interrupted else ExitCodes.SUCCESS


def policy_from_profile(profile: RetryProfile) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=profile.max_attempts,
        base_delay=profile.base_delay,
        max_delay=profile.max_delay,
    )


def collect_work_items(settings: Settings, paths: ResolvedPaths) -> Iterator[WorkItem]:
    """Scan the source directory and pair each media file with its identifier."""
    exclude_dirs = set(settings.library.exclude_dirs)
    exclude_dirs.add(paths.output_dir.name)
    for scanned in scan_media_files(
        paths.source_dir,
        exclude_dirs=exclude_dirs,
        allowed_extensions=settings.library.video_extensions,
        skip_hidden=settings.library.skip_hidden_files,
    ):
        yield WorkItem(identifier=extract_identifier(scanned.name), source_path=scanned.path)


def prepare_output_dir(output_dir: Path) -> None:
    """Create the output root; failure is fatal for the batch."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise create_file_operation_error(
            f"Failed to create output directory: {output_dir}",
            file_path=output_dir,
            operation="prepare_output_dir",
            original_error=e,
        ) from e


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, abort: Callable[[], None]) -> list[signal.Signals]:
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (Windows, non-main threads)
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, abort)
            installed.append(sig)
    return installed


async def organize_library(
    settings: Settings,
    paths: ResolvedPaths,
    items: list[WorkItem],
    progress: ProgressManager,
    token: CancellationToken | None = None,
) -> OrganizeOutcome:
    """Run the organizing batch for ``items``.

    Cancelling the token (SIGINT/SIGTERM do so) stops the queue; pending
    items are reported as rejected and items already running fail fast and
    are rolled back. Every item has an entry in the returned outcome.

    Raises:
        CacheInitError: The cache directory cannot be created
        FileOperationError: The output directory cannot be created
    """
    token = token or CancellationToken()
    observer = StepEventLog()
    prepare_output_dir(paths.output_dir)
    cache = ResultCache(
        paths.cache_dir,
        max_memory_items=settings.cache.max_memory_items,
        default_max_age=settings.cache.max_age,
    )
    queue = TaskQueue.from_settings(settings.queue)

    provider = JavdbClient(
        settings.scraper,
        policy_from_profile(settings.retry.network),
        token=token,
        observer=observer,
    )
    image_http = HttpSessionManager(
        timeout=settings.images.timeout,
        headers={"User-Agent": settings.scraper.user_agent},
        proxy=provider.http.proxy,
    )
    pipeline = ItemPipeline(
        output_dir=paths.output_dir,
        cache=cache,
        provider=provider,
        writer=NfoWriter(),
        images=CoverImageService(image_http, settings.images),
        relocator=FileRelocator(),
        executors=PipelineExecutors.from_policies(
            network=policy_from_profile(settings.retry.network),
            image=policy_from_profile(settings.retry.image),
            local=policy_from_profile(settings.retry.local),
            token=token,
            observer=observer,
        ),
        observer=observer,
        video_extensions=settings.library.video_extensions,
    )
    coordinator = BatchCoordinator(
        pipeline,
        queue,
        cache=cache,
        token=token,
        observer=observer,
        cleanup_interval=settings.cache.cleanup_interval,
    )

    def _abort() -> None:
        if not token.is_cancelled:
            logger.warning("Abort requested, stopping the batch")
            token.cancel()

    stop_handle = token.register(queue.stop)
    loop = asyncio.get_running_loop()
    installed = _install_signal_handlers(loop, _abort)
    outcome = OrganizeOutcome()
    try:
        with progress.batch(len(items)) as on_progress:
            coordinator.progress = on_progress
            try:
                await coordinator.run(items)
            except QueueError:
                if not token.is_cancelled:
                    raise
                logger.warning("Batch interrupted before every item was admitted")
    finally:
        token.unregister(stop_handle)
        for sig in installed:
            loop.remove_signal_handler(sig)
        await queue.drain_and_stop()
        await provider.close()
        await image_http.close()

    # Items still running at abort time have settled after the drain
    outcome.results = list(coordinator.results)
    outcome.interrupted = token.is_cancelled
    failed = observer.failed_tasks()
    if failed:
        logger.info("Items with failed steps: %s", ", ".join(sorted(failed)))
    return outcome


def render_summary(outcome: OrganizeOutcome, console: Console) -> None:
    table = Table(title="Organize Results")
    table.add_column("Identifier", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Destination / Error", style="dim")

    for result in outcome.results:
        if result.success:
            table.add_row(result.identifier, "[green]ok[/green]", str(result.destination_path))
        else:
            table.add_row(result.identifier, "[red]failed[/red]", result.error or "")

    console.print(table)
    summary = outcome.summary
    console.print(
        f"success: {summary.succeeded}  failed: {summary.failed}  total: {summary.total}"
        + ("  [yellow](interrupted)[/yellow]" if outcome.interrupted else "")
    )


def outcome_to_dict(outcome: OrganizeOutcome) -> dict:
    summary = outcome.summary
    return {
        "total": summary.total,
        "success": summary.succeeded,
        "failed": summary.failed,
        "interrupted": outcome.interrupted,
        "results": [
            {
                "identifier": result.identifier,
                "success": result.success,
                "destination_path": str(result.destination_path) if result.destination_path else None,
                "error": result.error,
                "error_kind": result.error_kind.value if result.error_kind else None,
            }
            for result in outcome.results
        ],
    }


def handle_organize_command(settings: Settings, *, json_output: bool) -> int:
    """Run the organize command and print its outcome.

    Returns:
        Exit code (0 when the batch ran, 130 when interrupted)
    """
    paths = settings.resolve_paths()
    items = list(collect_work_items(settings, paths))
    logger.info("Found %d media file(s) under %s", len(items), paths.source_dir)

    progress = create_progress_manager(disabled=json_output)
    outcome = asyncio.run(organize_library(settings, paths, items, progress))

    if json_output:
        warnings = [] if items else ["No media files found to organize"]
        payload = format_json_output(
            success=not outcome.interrupted,
            command="organize",
            data=outcome_to_dict(outcome),
            warnings=warnings,
        )
        typer.echo(payload.decode("utf-8"))
    else:
        render_summary(outcome, Console())

    return outcome.exit_code


__all__ = [
    "OrganizeOutcome",
    "collect_work_items",
    "handle_organize_command",
    "organize_library",
    "outcome_to_dict",
    "policy_from_profile",
    "prepare_output_dir",
    "render_summary",
]
