"""Media library configuration model.

Where to look for media files, which files qualify and where organized
items are written.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from reelvault.shared.constants import ExclusionPatterns, VideoFormats


class LibrarySettings(BaseModel):
    """Source/output directories and scan filters."""

    source_dir: str = Field(default=".", description="Directory scanned for media files")
    output_dir: str = Field(
        default="output",
        description="Destination root, relative to source_dir unless absolute",
    )
    skip_hidden_files: bool = Field(default=True, description="Skip dot-files and dot-directories")
    exclude_dirs: list[str] = Field(
        default_factory=lambda: list(ExclusionPatterns.DIRECTORIES),
        description="Directory names never descended into",
    )
    video_extensions: list[str] = Field(
        default_factory=lambda: list(VideoFormats.EXTENSIONS),
        description="Allowed media file extensions",
    )

    @field_validator("video_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return normalized


__all__ = ["LibrarySettings"]
