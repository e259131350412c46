"""Concurrency and retry configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from reelvault.shared.constants import QueueDefaults, RetryDefaults


class QueueSettings(BaseModel):
    """Task queue configuration."""

    concurrency: int = Field(
        default=QueueDefaults.CONCURRENCY,
        gt=0,
        description="Maximum number of items processed at once",
    )
    history_limit: int = Field(
        default=QueueDefaults.HISTORY_LIMIT,
        gt=0,
        description="Size of the recent results/errors windows",
    )
    enqueue_timeout: float = Field(
        default=QueueDefaults.ENQUEUE_TIMEOUT,
        ge=0,
        description="Seconds an item may wait for admission (0 disables)",
    )


class RetryProfile(BaseModel):
    """One backoff profile; delays are in seconds."""

    max_attempts: int = Field(default=RetryDefaults.MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=RetryDefaults.LOCAL_BASE_DELAY, ge=0)
    max_delay: float = Field(default=RetryDefaults.LOCAL_MAX_DELAY, ge=0)


class RetrySettings(BaseModel):
    """Backoff profiles per kind of external call.

    network: metadata search and detail requests, cover downloads
    image: saving and deriving cover images
    local: description file writes and file moves
    """

    network: RetryProfile = Field(
        default_factory=lambda: RetryProfile(
            base_delay=RetryDefaults.NETWORK_BASE_DELAY,
            max_delay=RetryDefaults.NETWORK_MAX_DELAY,
        ),
    )
    image: RetryProfile = Field(
        default_factory=lambda: RetryProfile(
            base_delay=RetryDefaults.IMAGE_BASE_DELAY,
            max_delay=RetryDefaults.IMAGE_MAX_DELAY,
        ),
    )
    local: RetryProfile = Field(default_factory=RetryProfile)


__all__ = ["QueueSettings", "RetryProfile", "RetrySettings"]
