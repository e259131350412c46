"""Logging configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from reelvault.shared.constants import LogDefaults


class LoggingSettings(BaseModel):
    """Logging configuration.

    ``dir`` is resolved relative to the parent of the output directory
    unless it is absolute.
    """

    enabled: bool = Field(default=True, description="Enable file logging")
    level: str = Field(default=LogDefaults.LEVEL, description="Logging level")
    dir: str = Field(default=LogDefaults.DIR_NAME, description="Log directory")
    filename: str = Field(default=LogDefaults.FILENAME, description="Log file name")
    max_bytes: int = Field(
        default=LogDefaults.MAX_BYTES,
        gt=0,
        description="Maximum log file size in bytes",
    )
    backup_count: int = Field(
        default=LogDefaults.BACKUP_COUNT,
        ge=0,
        description="Number of backup log files to keep",
    )
    console_output: bool = Field(default=True, description="Use Rich console output")


__all__ = ["LoggingSettings"]
