"""Configuration domain models."""

from __future__ import annotations

from .app_settings import LoggingSettings
from .cache_settings import CacheSettings
from .library_settings import LibrarySettings
from .performance_settings import QueueSettings, RetryProfile, RetrySettings
from .scraper_settings import ImageSettings, ScraperSettings
from .settings import ResolvedPaths, Settings

__all__ = [
    "CacheSettings",
    "ImageSettings",
    "LibrarySettings",
    "LoggingSettings",
    "QueueSettings",
    "ResolvedPaths",
    "RetryProfile",
    "RetrySettings",
    "ScraperSettings",
    "Settings",
]
