"""
Structured logging for ReelVault.

Helpers that attach operation context to log records, a JSON formatter for
log files and a Rich console handler for interactive runs.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from reelvault.shared.constants import LogDefaults
from reelvault.shared.errors import ErrorContext, ReelVaultError

_STRUCTURED_FIELDS = ("error_code", "context", "operation", "duration_ms", "result_info")


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def _create_rich_console() -> Console:
    custom_theme = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red bold reverse",
            "log.time": "dim cyan",
            "log.message": "white",
            "log.path": "dim blue",
        }
    )
    return Console(theme=custom_theme, stderr=True)


def setup_structured_logger(
    name: str = "reelvault",
    level: str = "INFO",
    log_file: str | Path | None = None,
    *,
    use_rich_console: bool = True,
    max_bytes: int = LogDefaults.MAX_BYTES,
    backup_count: int = LogDefaults.BACKUP_COUNT,
) -> logging.Logger:
    """
    Configure a logger for console and (optionally) rotating file output.

    Args:
        name: Logger name (default: "reelvault")
        level: Log level name (default: "INFO")
        log_file: Path of the JSON-lines log file (optional)
        use_rich_console: Use Rich for console output instead of JSON
        max_bytes: Size at which the log file is rotated
        backup_count: Number of rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    # Re-running setup must not stack handlers
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    if use_rich_console:
        handler: logging.Handler = RichHandler(
            console=_create_rich_console(),
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format="[%H:%M:%S]",
        )
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    handler.setLevel(log_level)
    logger.addHandler(handler)

    # File output is always JSON
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def _merge_context(
    target: dict[str, Any],
    context: dict[str, Any] | ErrorContext | None,
) -> None:
    if not context:
        return
    if isinstance(context, ErrorContext):
        target.update(context.safe_dict())
    else:
        target.update(context)


def log_operation_error(
    logger: logging.Logger,
    error: ReelVaultError,
    operation: str | None = None,
    additional_context: dict[str, Any] | ErrorContext | None = None,
    *,
    level: int = logging.ERROR,
) -> None:
    """
    Log a ReelVaultError with its structured context.

    Args:
        logger: Logger instance
        error: The error to record
        operation: Operation name, defaults to the one in the error context
        additional_context: Extra context merged over the error context
        level: Log level (item failures are usually WARNING)
    """
    context_dict: dict[str, Any] = {}
    _merge_context(context_dict, error.context)
    _merge_context(context_dict, additional_context)

    logger.log(
        level,
        error.message,
        extra={
            "error_code": error.code.value,
            "context": context_dict,
            "operation": operation or error.context.operation,
        },
        exc_info=error.original_error is not None and level >= logging.ERROR,
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    """
    Log a successful operation with its duration.

    Args:
        logger: Logger instance
        operation: Operation name
        duration_ms: Elapsed time in milliseconds
        result_info: Summary of the result (optional)
        context: Context information (optional)
    """
    context_dict: dict[str, Any] = {}
    _merge_context(context_dict, context)

    logger.debug(
        "Operation '%s' completed successfully",
        operation,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": context_dict,
        },
    )


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    context: dict[str, Any] | None = None,
) -> None:
    logger.debug(
        "Starting operation '%s'",
        operation,
        extra={
            "operation": operation,
            "context": context or {},
        },
    )


def log_file_operation(
    logger: logging.Logger,
    operation: str,
    source_path: str | Path,
    destination_path: str | Path | None = None,
    success: bool = True,
    error_message: str | None = None,
) -> None:
    """
    Log a file system operation.

    Args:
        logger: Logger instance
        operation: Kind of operation (move, copy, delete, rollback)
        source_path: Source path
        destination_path: Destination path (optional)
        success: Whether the operation succeeded
        error_message: Error message on failure
    """
    file_context: dict[str, Any] = {"source_path": str(source_path)}
    if destination_path is not None:
        file_context["destination_path"] = str(destination_path)

    if success:
        logger.info(
            "File operation '%s' completed: %s",
            operation,
            source_path,
            extra={"operation": "file_operation", "context": file_context},
        )
    else:
        logger.error(
            "File operation '%s' failed: %s",
            operation,
            error_message,
            extra={
                "error_code": "IO_FAILURE",
                "operation": "file_operation",
                "context": file_context,
            },
        )
