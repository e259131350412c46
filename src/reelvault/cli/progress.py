"""
Progress Display Utility Module

Wraps Rich's progress bar for the batch commands. The display can be
disabled for non-interactive runs and JSON output.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from reelvault.core.models import PipelineResult
from reelvault.core.organizer.batch import ProgressCallback


def _ignore_progress(completed: int, total: int, result: PipelineResult) -> None:
    return None


class ProgressManager:
    """
    A wrapper around Rich's Progress for batch runs and spinners.

    Args:
        disabled: If True, nothing is displayed
        console: Console to render to (stderr by default)
    """

    def __init__(self, *, disabled: bool = False, console: Console | None = None) -> None:
        self.disabled = disabled
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=console or Console(stderr=True),
            disable=disabled,
            expand=True,
        )

    @contextmanager
    def batch(self, total: int, description: str = "Organizing...") -> Generator[ProgressCallback, None, None]:
        """
        Display a progress bar for a batch of ``total`` items.

        Yields:
            Callback suitable for ``BatchCoordinator(progress=...)``

        Example:
            >>> with progress.batch(len(items)) as on_progress:
            ...     coordinator.progress = on_progress
        """
        if self.disabled:
            yield _ignore_progress
            return

        task_id = self._progress.add_task(description, total=total)

        def _advance(completed: int, total: int, result: PipelineResult) -> None:
            marker = "[green]ok[/green]" if result.success else "[red]failed[/red]"
            self._progress.update(
                task_id,
                completed=completed,
                description=f"{description} {result.identifier} {marker}",
            )

        try:
            with self._progress:
                yield _advance
        finally:
            self._progress.remove_task(task_id)

    @contextmanager
    def spinner(self, description: str = "Working...") -> Generator[None, None, None]:
        """Display a spinner for operations of unknown duration."""
        if self.disabled:
            yield
            return

        task_id = self._progress.add_task(description, total=None)
        try:
            with self._progress:
                yield
        finally:
            self._progress.remove_task(task_id)

def create_progress_manager(*, disabled: bool = False) -> ProgressManager:
    return ProgressManager(disabled=disabled)


__all__ = ["ProgressManager", "create_progress_manager"]
