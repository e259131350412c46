"""Cache configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from reelvault.shared.constants import CacheDefaults


class CacheSettings(BaseModel):
    """Result cache configuration.

    ``dir`` is resolved relative to the parent of the output directory
    unless it is absolute.
    """

    dir: str = Field(default=CacheDefaults.DIR_NAME, description="Durable cache directory")
    max_memory_items: int = Field(
        default=CacheDefaults.MAX_MEMORY_ITEMS,
        gt=0,
        description="Bound of the in-process tier",
    )
    max_age: float = Field(
        default=CacheDefaults.MAX_AGE,
        gt=0,
        description="Default entry max age in seconds",
    )
    cleanup_interval: float = Field(
        default=CacheDefaults.CLEANUP_INTERVAL,
        ge=0,
        description="Seconds between background sweeps (0 disables)",
    )


__all__ = ["CacheSettings"]
