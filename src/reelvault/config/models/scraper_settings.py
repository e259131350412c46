"""Metadata scraper and cover image configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from reelvault.shared.constants import ImageDefaults, ScraperDefaults


class ScraperSettings(BaseModel):
    """JavDB scraper configuration."""

    base_url: str = Field(default=ScraperDefaults.BASE_URL, description="Catalogue base URL")
    cookie_file: str | None = Field(
        default=ScraperDefaults.COOKIE_FILE,
        description="Netscape cookie file (missing file means no cookies)",
    )
    proxy: str | None = Field(default=None, description="HTTP proxy URL")
    proxy_file: str | None = Field(
        default="config/proxy.json",
        description="JSON proxy definition used when proxy is not set",
    )
    timeout: float = Field(default=ScraperDefaults.TIMEOUT, gt=0, description="Request timeout in seconds")
    rate_limit_rps: float = Field(
        default=ScraperDefaults.RATE_LIMIT_RPS,
        gt=0,
        description="Maximum requests per second",
    )
    locale: str = Field(default=ScraperDefaults.LOCALE, description="Search locale")
    user_agent: str = Field(default=ScraperDefaults.USER_AGENT, description="User-Agent header")


class ImageSettings(BaseModel):
    """Cover image configuration."""

    timeout: float = Field(default=ImageDefaults.TIMEOUT, gt=0, description="Download timeout in seconds")
    right_half: bool = Field(default=True, description="Poster is the right half of the cover")
    fanart_name: str = Field(default=ImageDefaults.FANART_NAME, min_length=1)
    poster_name: str = Field(default=ImageDefaults.POSTER_NAME, min_length=1)


__all__ = ["ImageSettings", "ScraperSettings"]
