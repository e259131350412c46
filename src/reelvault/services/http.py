"""Shared aiohttp session handling.

One lazily created ``aiohttp.ClientSession`` per batch, used by the
metadata provider and the cover downloader. Transport failures are
converted into :class:`~reelvault.shared.errors.NetworkError` so the retry
layer sees a single error type.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from reelvault.shared.errors import ErrorContext, NetworkError

logger = logging.getLogger(__name__)


class HttpSessionManager:
    """Owns the lifecycle of an ``aiohttp.ClientSession``.

    Args:
        timeout: Total request timeout in seconds
        headers: Default request headers
        proxy: Optional proxy URL applied to every request
    """

    def __init__(
        self,
        timeout: float,
        headers: dict[str, str] | None = None,
        proxy: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.proxy = proxy
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers=self.headers,
                )
                logger.debug("aiohttp.ClientSession created")
            return self._session

    async def close(self) -> None:
        async with self._lock:
            if self._session is not None and not self._session.closed:
                await self._session.close()
                logger.debug("aiohttp.ClientSession closed")
            self._session = None

    async def get_text(self, url: str, **kwargs: Any) -> str:
        return await self._request(url, binary=False, **kwargs)

    async def get_bytes(self, url: str, **kwargs: Any) -> bytes:
        return await self._request(url, binary=True, **kwargs)

    async def _request(self, url: str, *, binary: bool, **kwargs: Any) -> Any:
        session = await self.get_session()
        context = ErrorContext(operation="http_get", additional_data={"url": url})
        try:
            async with session.get(url, proxy=self.proxy, **kwargs) as response:
                if response.status < 200 or response.status >= 300:
                    raise NetworkError(
                        f"GET {url} failed with status {response.status}",
                        context=ErrorContext(
                            operation="http_get",
                            additional_data={"url": url, "status": response.status},
                        ),
                    )
                if binary:
                    return await response.read()
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"GET {url} failed: {e!s}" if str(e) else f"GET {url} failed: {type(e).__name__}",
                context=context,
                original_error=e,
            ) from e
