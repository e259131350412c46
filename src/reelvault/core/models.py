"""Core data models for the organizing pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from reelvault.shared.errors import ErrorKind


@dataclass(frozen=True)
class ScannedFile:
    """A candidate media file found by the scanner."""

    path: Path
    name: str


@dataclass(frozen=True)
class WorkItem:
    """One unit of batch work: a media file and its identifier."""

    identifier: str
    source_path: Path


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of processing a single :class:`WorkItem`.

    Attributes:
        identifier: Identifier of the processed item
        success: Whether every pipeline step completed
        destination_path: Destination directory on success
        error: Message of the original failure
        error_kind: Classification of the failure
    """

    identifier: str
    success: bool
    destination_path: Path | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, identifier: str, destination_path: Path) -> PipelineResult:
        return cls(identifier=identifier, success=True, destination_path=destination_path)

    @classmethod
    def failed(cls, identifier: str, error: str, error_kind: ErrorKind) -> PipelineResult:
        return cls(identifier=identifier, success=False, error=error, error_kind=error_kind)


@dataclass(frozen=True)
class CoverPaths:
    fanart: Path
    poster: Path


@dataclass(frozen=True)
class RelocationResult:
    """Result of a file relocation.

    ``path`` is set on success, ``error`` on failure.
    """

    success: bool
    path: Path | None = None
    error: str | None = None


class MetadataRecord(BaseModel):
    """Descriptive metadata for a media item.

    Stored in the result cache as JSON, so every field must be JSON
    compatible.
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(default="", description="Canonical identifier as published")
    title: str = Field(default="", description="Display title")
    release_date: str = Field(default="", description="Release date (YYYY-MM-DD)")
    duration: str = Field(default="", description="Runtime as displayed")
    maker: str = Field(default="", description="Studio")
    series: str = Field(default="", description="Series name")
    rating: float | None = Field(default=None, ge=0, le=10, description="Rating on a 10-point scale")
    votes: int | None = Field(default=None, ge=0, description="Number of votes")
    categories: list[str] = Field(default_factory=list)
    actors: list[str] = Field(default_factory=list)
    cover_url: str | None = Field(default=None, description="Cover image URL")
    detail_url: str | None = Field(default=None, description="Source detail page")

    @property
    def year(self) -> str:
        return self.release_date[:4]
