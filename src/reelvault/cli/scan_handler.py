"""Scan and cache maintenance command handlers."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from reelvault.cli.json_formatter import format_json_output
from reelvault.cli.organize_handler import collect_work_items
from reelvault.cli.progress import create_progress_manager
from reelvault.config.models.settings import Settings
from reelvault.core.models import WorkItem
from reelvault.services.cache import ResultCache
from reelvault.shared.constants import ExitCodes

logger = logging.getLogger(__name__)


def _render_scan_table(items: list[WorkItem], console: Console) -> None:
    table = Table(title="Media File Scan Results")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Identifier", style="green")
    table.add_column("Directory", style="dim")
    for item in items:
        table.add_row(item.source_path.name, item.identifier, str(item.source_path.parent))
    console.print(table)
    console.print(f"Found {len(items)} media file(s)")


def handle_scan_command(settings: Settings, *, json_output: bool) -> int:
    """List media files and their identifiers without touching anything."""
    paths = settings.resolve_paths()
    items = list(collect_work_items(settings, paths))
    logger.info("Scan of %s found %d media file(s)", paths.source_dir, len(items))

    if json_output:
        data = {
            "source_dir": str(paths.source_dir),
            "total": len(items),
            "files": [
                {"path": str(item.source_path), "identifier": item.identifier}
                for item in items
            ],
        }
        typer.echo(format_json_output(success=True, command="scan", data=data).decode("utf-8"))
    else:
        _render_scan_table(items, Console())
    return ExitCodes.SUCCESS


def handle_cache_cleanup_command(settings: Settings, *, json_output: bool) -> int:
    """Remove expired entries from the durable cache."""
    paths = settings.resolve_paths()
    cache = ResultCache(
        paths.cache_dir,
        max_memory_items=settings.cache.max_memory_items,
        default_max_age=settings.cache.max_age,
    )
    with create_progress_manager(disabled=json_output).spinner("Sweeping cache..."):
        removed = asyncio.run(cache.cleanup())

    if json_output:
        data = {"cache_dir": str(paths.cache_dir), "removed": removed}
        typer.echo(format_json_output(success=True, command="cache-cleanup", data=data).decode("utf-8"))
    else:
        Console().print(f"Removed {removed} expired cache entr{'y' if removed == 1 else 'ies'} from {paths.cache_dir}")
    return ExitCodes.SUCCESS


__all__ = ["handle_cache_cleanup_command", "handle_scan_command"]
