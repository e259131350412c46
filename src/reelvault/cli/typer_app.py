"""
ReelVault Typer CLI Application

Command-line entry point: ``organize`` runs the batch, ``scan`` previews
what would be organized and ``cache-cleanup`` sweeps expired cache files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import typer

from reelvault import __version__
from reelvault.cli.error_handler import handle_cli_error
from reelvault.cli.organize_handler import handle_organize_command
from reelvault.cli.scan_handler import handle_cache_cleanup_command, handle_scan_command
from reelvault.config.loader import load_settings
from reelvault.config.models.settings import Settings
from reelvault.shared.constants import ExitCodes
from reelvault.shared.logging import setup_structured_logger

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="reelvault",
    help="Organize a local video library into per-title folders with metadata and artwork.",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

config_option = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to a TOML configuration file",
    exists=True,
    dir_okay=False,
    readable=True,
)
source_option = typer.Option(
    None,
    "--source",
    "-s",
    help="Directory to scan for media files (overrides library.source_dir)",
    file_okay=False,
)
json_option = typer.Option(False, "--json", help="Output results in JSON format")


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"reelvault {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version information and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """ReelVault command line interface."""


def build_settings(
    config: Path | None,
    source: Path | None = None,
    output: Path | None = None,
    concurrency: int | None = None,
) -> Settings:
    """Load settings and apply command line overrides."""
    settings = load_settings(config)
    library_updates = {}
    if source is not None:
        library_updates["source_dir"] = str(source)
    if output is not None:
        library_updates["output_dir"] = str(output)
    if library_updates:
        settings.library = settings.library.model_copy(update=library_updates)
    if concurrency is not None:
        settings.queue = settings.queue.model_copy(update={"concurrency": concurrency})
    return settings


def configure_logging(settings: Settings, log_level: str | None = None) -> None:
    paths = settings.resolve_paths()
    setup_structured_logger(
        "reelvault",
        level=log_level or settings.logging.level,
        log_file=paths.log_file if settings.logging.enabled else None,
        use_rich_console=settings.logging.console_output,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )


def _run_command(command: str, json_output: bool, body: Callable[[], int]) -> None:
    try:
        exit_code = body()
    except KeyboardInterrupt:
        logger.info("Command interrupted by user")
        exit_code = ExitCodes.INTERRUPTED
    except Exception as e:  # noqa: BLE001
        exit_code = handle_cli_error(e, command, json_output=json_output)
    raise typer.Exit(exit_code)


@app.command("organize")
def organize_command(
    config: Optional[Path] = config_option,
    source: Optional[Path] = source_option,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (overrides library.output_dir)",
        file_okay=False,
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-j",
        min=1,
        help="Maximum number of items processed at once",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
    json_output: bool = json_option,
) -> None:
    """
    Organize media files into per-title folders.

    Each file's identifier is looked up in the metadata catalogue; a folder
    named after it receives a description file, fanart and poster images
    and the media file itself. Items that fail are rolled back.

    Examples:
        # Organize the current directory
        reelvault organize

        # Organize another directory into a custom output folder
        reelvault organize --source /media/incoming --output /media/library
    """

    def _body() -> int:
        settings = build_settings(config, source, output, concurrency)
        configure_logging(settings, log_level)
        return handle_organize_command(settings, json_output=json_output)

    _run_command("organize", json_output, _body)


@app.command("scan")
def scan_command(
    config: Optional[Path] = config_option,
    source: Optional[Path] = source_option,
    json_output: bool = json_option,
) -> None:
    """List media files and their identifiers (no network, nothing moved)."""

    def _body() -> int:
        settings = build_settings(config, source)
        return handle_scan_command(settings, json_output=json_output)

    _run_command("scan", json_output, _body)


@app.command("cache-cleanup")
def cache_cleanup_command(
    config: Optional[Path] = config_option,
    json_output: bool = json_option,
) -> None:
    """Delete expired entries from the durable metadata cache."""

    def _body() -> int:
        settings = build_settings(config)
        return handle_cache_cleanup_command(settings, json_output=json_output)

    _run_command("cache-cleanup", json_output, _body)


if __name__ == "__main__":
    app()
