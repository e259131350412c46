"""Cover image download and poster derivation.

The cover published by the catalogue is a wide two-panel image: the
original is stored as the fanart and one half (normally the right, the
front cover) becomes the poster.
"""

from __future__ import annotations

import asyncio
import io
import logging
import math
import os
from pathlib import Path
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from reelvault.config.models.scraper_settings import ImageSettings
from reelvault.core.models import CoverPaths
from reelvault.services.http import HttpSessionManager
from reelvault.shared.constants import ImageDefaults
from reelvault.shared.errors import (
    ErrorContext,
    ImageProcessingError,
    create_file_operation_error,
)

logger = logging.getLogger(__name__)


def check_cover_url(url: str | None) -> str:
    """Return ``url`` if it looks like a downloadable cover URL.

    Raises:
        ImageProcessingError: If the URL is missing or not http(s)
    """
    if not url or not url.startswith("http"):
        raise ImageProcessingError(
            f"Invalid cover image URL: {url!r}",
            context=ErrorContext(operation="check_cover_url"),
        )
    return url


def cover_extension(url: str) -> str:
    """Extension of the image named by ``url`` (``.jpg`` when unknown)."""
    return os.path.splitext(urlparse(url).path)[1] or ImageDefaults.DEFAULT_EXTENSION


def split_cover(data: bytes, right_half: bool = True) -> bytes:
    """Crop one half of a cover image.

    Odd widths are split at ``ceil(width / 2)``, so the left half gets the
    extra column.

    Raises:
        ImageProcessingError: If the bytes are not a decodable image
    """
    if not data:
        raise ImageProcessingError("Invalid image data: empty buffer")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            width, height = image.size
            if not width or not height:
                raise ImageProcessingError("Cannot read image dimensions")

            half = math.ceil(width / 2)
            box = (half, 0, width, height) if right_half else (0, 0, half, height)
            cropped = image.crop(box)

            fmt = image.format or "JPEG"
            if fmt == "JPEG" and cropped.mode not in ("RGB", "L", "CMYK"):
                cropped = cropped.convert("RGB")

            buffer = io.BytesIO()
            cropped.save(buffer, format=fmt)
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(
            f"Failed to process cover image: {e}",
            context=ErrorContext(operation="split_cover"),
            original_error=e,
        ) from e


class CoverImageService:
    """Downloads covers and writes fanart/poster files.

    Args:
        http: Session manager used for downloads
        settings: Image settings (names, crop side)
    """

    def __init__(self, http: HttpSessionManager, settings: ImageSettings | None = None) -> None:
        self.http = http
        self.settings = settings or ImageSettings()

    async def fetch_image(self, url: str) -> bytes:
        """Download an image.

        Raises:
            NetworkError: On transport failures or non-2xx responses
            ImageProcessingError: If the response body is empty
        """
        data = await self.http.get_bytes(url)
        if not data:
            raise ImageProcessingError(
                "Cover download returned an empty body",
                context=ErrorContext(operation="fetch_image", additional_data={"url": url}),
            )
        logger.debug("Downloaded cover %s (%d bytes)", url, len(data))
        return data

    def derive_secondary_image(self, data: bytes, right_half: bool = True) -> bytes:
        return split_cover(data, right_half=right_half)

    async def save_covers(self, data: bytes, destination_dir: Path, extension: str) -> CoverPaths:
        return await asyncio.to_thread(self._save_covers_sync, data, Path(destination_dir), extension)

    def _save_covers_sync(self, data: bytes, destination_dir: Path, extension: str) -> CoverPaths:
        if not destination_dir.is_dir() or not os.access(destination_dir, os.W_OK):
            raise create_file_operation_error(
                f"Output directory does not exist or is not writable: {destination_dir}",
                file_path=destination_dir,
                operation="save_covers",
            )

        fanart = destination_dir / f"{self.settings.fanart_name}{extension}"
        poster = destination_dir / f"{self.settings.poster_name}{extension}"

        fanart.write_bytes(data)
        poster.write_bytes(self.derive_secondary_image(data, right_half=self.settings.right_half))
        logger.debug("Saved covers %s and %s", fanart, poster)
        return CoverPaths(fanart=fanart, poster=poster)
