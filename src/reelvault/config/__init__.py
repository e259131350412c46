"""ReelVault configuration package."""

from __future__ import annotations

from reelvault.config.loader import load_settings
from reelvault.config.models import ResolvedPaths, Settings

__all__ = ["ResolvedPaths", "Settings", "load_settings"]
