"""ReelVault Error Handling Module

This module defines the error handling system for ReelVault, providing
structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in the ErrorCode enum
- Structured Context: ErrorContext carries operation and primitive-only data
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]


class ErrorCode(str, Enum):
    """Error codes for ReelVault.

    Doubles as the ``ErrorKind`` reported on failed pipeline results.
    """

    # Configuration
    INVALID_CONFIG = "INVALID_CONFIG"
    CONFIG_FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"

    # Cancellation and retries
    OPERATION_INTERRUPTED = "OPERATION_INTERRUPTED"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"

    # Metadata provider
    METADATA_NOT_FOUND = "METADATA_NOT_FOUND"
    METADATA_PARSE_FAILED = "METADATA_PARSE_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"

    # File system
    IO_FAILURE = "IO_FAILURE"
    DIRECTORY_CREATION_FAILED = "DIRECTORY_CREATION_FAILED"

    # Images
    INVALID_IMAGE = "INVALID_IMAGE"

    # Cache
    CACHE_ERROR = "CACHE_ERROR"

    # Task queue
    QUEUE_STOPPED = "QUEUE_STOPPED"
    QUEUE_TIMEOUT = "QUEUE_TIMEOUT"
    TASK_CANCELLED = "TASK_CANCELLED"

    # Pipeline
    PIPELINE_STEP_FAILED = "PIPELINE_STEP_FAILED"


ErrorKind = ErrorCode


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum and Decimal to primitive types.

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif val is None:
            continue
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types are allowed in additional_data so that contexts
    can always be serialized into structured log records.

    Attributes:
        file_path: Optional file path associated with the error
        operation: Optional operation name that caused the error
        additional_data: Optional dict with primitive values only
    """

    file_path: str | None = None
    operation: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self) -> dict[str, Any]:
        """Export context as a dict; ``additional_data`` is always present."""
        data: dict[str, Any] = {}
        if self.file_path is not None:
            data["file_path"] = self.file_path
        if self.operation is not None:
            data["operation"] = self.operation
        data["additional_data"] = dict(self.additional_data or {})
        return data


class ReelVaultError(Exception):
    """Base exception class for all ReelVault errors."""

    default_code: ErrorCode = ErrorCode.PIPELINE_STEP_FAILED

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        """Initialize ReelVaultError.

        Args:
            message: Human-readable error message
            code: Error code from ErrorCode enum (defaults per subclass)
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code or self.default_code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{self.code.value}: {message}")

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(ReelVaultError):
    """Business rule violations (bad configuration, unknown identifiers)."""


class InfrastructureError(ReelVaultError):
    """Errors talking to the file system, the network or the cache store."""


class InvalidConfigError(DomainError):
    """Invalid retry, queue or cache parameters. Fatal at setup."""

    default_code = ErrorCode.INVALID_CONFIG


class OperationInterruptedError(ReelVaultError):
    """Raised when the abort token fires before or during a wait."""

    default_code = ErrorCode.OPERATION_INTERRUPTED


class RetryExhaustedError(ReelVaultError):
    """All attempts of a wrapped operation failed.

    Attributes:
        attempts: Number of attempts that were made
        last_error: Exception raised by the final attempt
    """

    default_code = ErrorCode.RETRY_EXHAUSTED

    def __init__(
        self,
        attempts: int,
        last_error: BaseException,
        operation: str | None = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        label = f"'{operation}' " if operation else ""
        super().__init__(
            f"Operation {label}failed after {attempts} attempt(s): {last_error}",
            context=ErrorContext(
                operation=operation,
                additional_data={
                    "attempts": attempts,
                    "last_error_type": type(last_error).__name__,
                },
            ),
            original_error=last_error,
        )


class MetadataNotFoundError(DomainError):
    """The metadata provider found no record for an identifier."""

    default_code = ErrorCode.METADATA_NOT_FOUND


class MetadataParseError(DomainError):
    """A provider response could not be turned into a metadata record."""

    default_code = ErrorCode.METADATA_PARSE_FAILED


class NetworkError(InfrastructureError):
    """Transient network failure (connection, timeout, bad status)."""

    default_code = ErrorCode.NETWORK_ERROR


class FileOperationError(InfrastructureError):
    """A file system operation failed."""

    default_code = ErrorCode.IO_FAILURE


class ImageProcessingError(DomainError):
    """Image bytes could not be decoded or cropped."""

    default_code = ErrorCode.INVALID_IMAGE


class CacheInitError(InfrastructureError):
    """The durable cache directory could not be created."""

    default_code = ErrorCode.CACHE_ERROR


class QueueError(ReelVaultError):
    """Base class for task queue failures. These are systemic."""


class QueueStoppedError(QueueError):
    default_code = ErrorCode.QUEUE_STOPPED


class QueueTimeoutError(QueueError):
    default_code = ErrorCode.QUEUE_TIMEOUT


class TaskCancelledError(QueueError):
    default_code = ErrorCode.TASK_CANCELLED


def classify_error(error: BaseException) -> ErrorCode:
    """Map any exception onto the ErrorKind reported for a failed item."""
    if isinstance(error, ReelVaultError):
        return error.code
    if isinstance(error, OSError):
        return ErrorCode.IO_FAILURE
    return ErrorCode.PIPELINE_STEP_FAILED


def create_file_operation_error(
    message: str,
    file_path: str | Path | None = None,
    operation: str | None = None,
    original_error: BaseException | None = None,
    code: ErrorCode | None = None,
) -> FileOperationError:
    """Create a file operation error with context."""
    context = ErrorContext(
        file_path=str(file_path) if file_path is not None else None,
        operation=operation,
    )
    return FileOperationError(message, code=code, context=context, original_error=original_error)


def create_config_error(
    message: str,
    config_key: str | None = None,
    operation: str | None = None,
    original_error: BaseException | None = None,
) -> InvalidConfigError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return InvalidConfigError(message, context=context, original_error=original_error)
