"""
CLI Error Handling Utilities

Consistent output and exit codes for errors that end a command.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console

from reelvault.cli.json_formatter import format_json_output
from reelvault.shared.constants import ExitCodes
from reelvault.shared.errors import (
    DomainError,
    InfrastructureError,
    ReelVaultError,
)
from reelvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """User-facing message for ``error``."""
    if isinstance(error, DomainError):
        return f"Configuration or data error: {error.message}"
    if isinstance(error, InfrastructureError):
        return f"Infrastructure error: {error.message}"
    if isinstance(error, ReelVaultError):
        return error.message
    if isinstance(error, OSError):
        return f"File system error: {error}"
    return f"Unexpected error: {error}"


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Log and print a fatal command error.

    Args:
        error: The exception that ended the command
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    if isinstance(error, ReelVaultError):
        log_operation_error(logger, error, operation=command, additional_context={"command": command})
    else:
        logger.error("Command '%s' failed", command, exc_info=error)

    message = describe_error(error)
    if json_output:
        typer.echo(format_json_output(success=False, command=command, errors=[message]).decode("utf-8"))
    else:
        Console(stderr=True).print(f"[bold red]Error:[/bold red] {message}", markup=True, highlight=False)

    return ExitCodes.FAILURE


__all__ = ["describe_error", "handle_cli_error"]
