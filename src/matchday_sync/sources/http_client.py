# SPDX-License-Identifier: MIT
"""HTTP client for the upstream fantasy-football API."""

import asyncio
from typing import Any

import aiohttp

from ..config import UpstreamConfig
from ..constants import DEFAULT_USER_AGENT
from ..enums import FetchErrorCode, ValidationErrorCode
from ..errors import DataError, FetchError, ValidationError
from ..logging_config import get_detail_logger
from ..retry_utils import async_retry_with_backoff


detail_logger = get_detail_logger()


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, DataError) and error.retryable


class UpstreamClient:
    """Client for the read-only upstream API.

    Every request carries a ``ClientTimeout``; transient failures (timeouts,
    connection errors, 5xx and 429 responses) are retried a bounded number of
    times with exponential backoff and jitter. Anything that still fails is
    raised as a single :class:`FetchError` whose ``details`` carry the HTTP
    status and URL.
    """

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        if config is None:
            from ..config import get_config_manager

            config = get_config_manager().load_config().upstream
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self.timeout = aiohttp.ClientTimeout(total=config.timeout)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "UpstreamClient":
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers=self.headers, timeout=self.timeout
            )
        return self.session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request_json(self, url: str, params: dict[str, Any] | None) -> Any:
        session = self._ensure_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    detail_logger.warning(
                        f"Upstream returned status {response.status} for {url}"
                    )
                    raise FetchError(
                        f"Upstream returned HTTP {response.status} for {url}",
                        FetchErrorCode.HTTP_STATUS,
                        details={"status": response.status, "url": url},
                    )
                try:
                    return await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise ValidationError(
                        f"Upstream returned a non-JSON body for {url}",
                        ValidationErrorCode.SCHEMA,
                        cause=e,
                        details={"status": response.status, "url": url},
                    ) from e
        except asyncio.TimeoutError as e:
            detail_logger.warning(f"Upstream timeout for {url}")
            raise FetchError(
                f"Upstream request timed out for {url}",
                FetchErrorCode.TIMEOUT,
                cause=e,
                details={"url": url},
            ) from e
        except aiohttp.ClientError as e:
            detail_logger.warning(f"Upstream connection error for {url}: {e}")
            raise FetchError(
                f"Could not reach upstream for {url}: {e}",
                FetchErrorCode.CONNECTION,
                cause=e,
                details={"url": url},
            ) from e

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Fetch one JSON document.

        Args:
            path: Path relative to the configured base URL
            params: Optional query parameters

        Returns:
            Decoded JSON body

        Raises:
            FetchError: If the upstream could not be reached after all retries
            ValidationError: If the body is not JSON
        """
        url = self._url(path)
        detail_logger.debug(f"GET {url} params={params}")

        request = async_retry_with_backoff(
            max_retries=self.config.max_retries,
            initial_delay=self.config.initial_delay,
            max_delay=self.config.max_delay,
            jitter=self.config.jitter,
            exceptions=(FetchError,),
            retry_if=_is_retryable,
        )(self._request_json)
        return await request(url, params)

    async def get_all_pages(
        self,
        path: str,
        results_key: str = "results",
        container_key: str | None = None,
        page_param: str = "page",
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> list[Any]:
        """Collect every page of a ``has_next`` paginated resource.

        Args:
            path: Path relative to the configured base URL
            results_key: Key of the item list on each page
            container_key: Key of the object holding ``results_key`` and
                ``has_next``, when they are nested (e.g. ``standings``)
            page_param: Query parameter carrying the 1-based page number
            params: Additional query parameters
            max_pages: Page cap; defaults to the configured ``max_pages``

        Returns:
            Items of all pages, in page order

        Raises:
            FetchError: With code PAGE_LIMIT if more than ``max_pages`` pages
                would be needed
        """
        limit = max_pages if max_pages is not None else self.config.max_pages
        items: list[Any] = []
        page = 1

        while True:
            if page > limit:
                raise FetchError(
                    f"Pagination of {path} exceeded {limit} pages",
                    FetchErrorCode.PAGE_LIMIT,
                    details={"path": path, "max_pages": limit},
                )

            data = await self.get_json(path, {**(params or {}), page_param: page})
            container = data
            if container_key and isinstance(data, dict):
                container = data.get(container_key)
            if not isinstance(container, dict):
                raise ValidationError(
                    f"Unexpected page shape for {path}",
                    details={"path": path, "page": page},
                )

            items.extend(container.get(results_key) or [])
            if not container.get("has_next"):
                detail_logger.debug(f"Fetched {page} pages ({len(items)} items) of {path}")
                return items
            page += 1
