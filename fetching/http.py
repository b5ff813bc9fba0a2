"""aiohttp-backed JSON retrieval functions."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from fetching.config import get_settings
from fetching.exceptions import ResponseError, TransportError
from fetching.monitoring import timed_retrieval


class JsonFetcher:
    """Retrieval function that GETs ``base_url + key`` and decodes the JSON body.

    Usable directly as the ``retrieve`` argument of a loader. A non-2xx
    status raises :class:`ResponseError`; connection problems and timeouts
    raise :class:`TransportError` once ``max_attempts`` is exhausted.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds or settings.http_timeout_seconds
        self._max_attempts = max_attempts or settings.http_max_attempts
        self._session = session
        self._owns_session = session is None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        yield self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "JsonFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def url_for(self, key: str) -> str:
        if not self._base_url or key.startswith(("http://", "https://")):
            return key
        return f"{self._base_url}/{key.lstrip('/')}"

    @timed_retrieval("http.fetch")
    async def __call__(self, key: str) -> Any:
        url = self.url_for(key)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
                retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
                reraise=True,
            ):
                with attempt:
                    return await self._get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Request to {url} failed: {str(exc) or type(exc).__name__}") from exc

    async def _get(self, url: str) -> Any:
        async with self.session() as session:
            async with session.get(url, headers={"Accept": "application/json"}) as response:
                if not 200 <= response.status < 300:
                    raise ResponseError("Failed to fetch", status=response.status)
                try:
                    return await response.json(content_type=None)
                except ValueError as exc:
                    raise ResponseError(f"Invalid JSON from {url}", status=response.status) from exc


async def fetch_json(url: str) -> Any:
    """One-shot fetch with a throwaway session; the default loader fetcher."""

    async with JsonFetcher() as fetcher:
        return await fetcher(url)


__all__ = ["JsonFetcher", "fetch_json"]
