"""JavDB metadata provider.

Looks an identifier up in the catalogue search, follows the matching
result to its detail page and parses it into a
:class:`~reelvault.core.models.MetadataRecord`. Search and detail requests
are retried separately with the network backoff profile and throttled by
a shared ``aiolimiter`` rate limiter.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from aiolimiter import AsyncLimiter

from reelvault.config.models.scraper_settings import ScraperSettings
from reelvault.core.models import MetadataRecord
from reelvault.core.retry import RetryExecutor, RetryPolicy
from reelvault.services.http import HttpSessionManager
from reelvault.services.javdb.cookies import (
    format_cookie_header,
    load_proxy_url,
    parse_cookie_file,
)
from reelvault.services.javdb.parser import find_detail_url, parse_detail_page
from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.errors import ErrorContext, MetadataNotFoundError
from reelvault.shared.protocols import StepObserver

logger = logging.getLogger(__name__)


class JavdbClient:
    """Metadata provider backed by JavDB.

    Args:
        settings: Scraper settings
        policy: Network retry profile
        token: Abort token shared with the batch
        observer: Optional step observer
        http: Session manager (created from the settings when omitted)
    """

    def __init__(
        self,
        settings: ScraperSettings,
        policy: RetryPolicy,
        token: CancellationToken | None = None,
        observer: StepObserver | None = None,
        http: HttpSessionManager | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.http = http or self._create_session_manager(settings)
        self._limiter = AsyncLimiter(settings.rate_limit_rps, 1)
        self._search = RetryExecutor(policy, token, observer, name="javdb-search")
        self._detail = RetryExecutor(policy, token, observer, name="javdb-detail")

    @staticmethod
    def _create_session_manager(settings: ScraperSettings) -> HttpSessionManager:
        headers = {"User-Agent": settings.user_agent}
        cookies = parse_cookie_file(settings.cookie_file)
        if cookies:
            headers["Cookie"] = format_cookie_header(cookies)
        proxy = settings.proxy or load_proxy_url(settings.proxy_file)
        if proxy:
            logger.info("Using proxy %s", proxy)
        return HttpSessionManager(timeout=settings.timeout, headers=headers, proxy=proxy)

    def search_url(self, identifier: str) -> str:
        query = quote(identifier.strip(), safe="")
        return f"{self.base_url}/search?q={query}&f=all&locale={self.settings.locale}"

    async def _get(self, url: str) -> str:
        async with self._limiter:
            return await self.http.get_text(url)

    async def fetch_metadata(self, identifier: str) -> MetadataRecord:
        """Fetch the metadata record for ``identifier``.

        Raises:
            MetadataNotFoundError: No search result matches the identifier
            RetryExhaustedError: A request kept failing
            OperationInterruptedError: The batch was aborted
        """
        identifier = identifier.strip()
        context = ErrorContext(operation="fetch_metadata", additional_data={"identifier": identifier})
        if not identifier:
            raise MetadataNotFoundError("Identifier must not be empty", context=context)

        search_url = self.search_url(identifier)
        search_page = await self._search.run(lambda: self._get(search_url), task_id=identifier)

        detail_url = find_detail_url(search_page, identifier, self.base_url)
        if detail_url is None:
            raise MetadataNotFoundError(f"No catalogue entry matches {identifier}", context=context)
        logger.debug("Matched %s to %s", identifier, detail_url)

        async def _fetch_detail() -> MetadataRecord:
            return parse_detail_page(await self._get(detail_url), detail_url)

        record = await self._detail.run(_fetch_detail, task_id=identifier)
        logger.info("Fetched metadata for %s", identifier)
        return record

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> JavdbClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
