"""ReelVault Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reelvault.config.models.app_settings import LoggingSettings
from reelvault.config.models.cache_settings import CacheSettings
from reelvault.config.models.library_settings import LibrarySettings
from reelvault.config.models.performance_settings import QueueSettings, RetrySettings
from reelvault.config.models.scraper_settings import ImageSettings, ScraperSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPaths:
    """Absolute locations derived from the library, cache and logging sections."""

    source_dir: Path
    output_dir: Path
    cache_dir: Path
    log_file: Path


def _resolve(path: str, base: Path) -> Path:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return (base / candidate).resolve()


class Settings(BaseSettings):
    """Unified configuration access.

    Values come from keyword arguments (usually a TOML file); fields not
    given there are read from ``REELVAULT_<SECTION>__<FIELD>`` environment
    variables before falling back to defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="REELVAULT_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    library: LibrarySettings = Field(default_factory=LibrarySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from TOML file with environment variable overrides."""
        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        logger.debug("Loaded configuration from %s", file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(exclude_none=True)
        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)

    def resolve_paths(self, cwd: Path | None = None) -> ResolvedPaths:
        """Resolve configured directories to absolute paths.

        The source directory is relative to ``cwd``, the output directory
        to the source directory, and the cache and log directories to the
        parent of the output directory.
        """
        base = (cwd or Path.cwd()).resolve()
        source_dir = _resolve(self.library.source_dir or ".", base)
        output_dir = _resolve(self.library.output_dir or "output", source_dir)
        output_parent = output_dir.parent
        return ResolvedPaths(
            source_dir=source_dir,
            output_dir=output_dir,
            cache_dir=_resolve(self.cache.dir, output_parent),
            log_file=_resolve(self.logging.dir, output_parent) / self.logging.filename,
        )


__all__ = ["ResolvedPaths", "Settings"]
