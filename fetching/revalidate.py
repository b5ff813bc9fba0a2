"""Time-based revalidation for server-side fetches."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TimedEntry:
    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class RevalidatingFetchCache:
    """Caches fetched payloads per URL for a caller-chosen number of seconds.

    ``revalidate=None`` means no-store: the fetch always goes upstream and
    nothing is kept. ``revalidate=0`` behaves the same way.
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._entries: Dict[str, TimedEntry] = {}
        self._lock = asyncio.Lock()
        self._now = now

    async def fetch(
        self,
        url: str,
        retrieve: Callable[[str], Awaitable[Any]],
        *,
        revalidate: Optional[float] = None,
    ) -> Any:
        if not revalidate:
            return await retrieve(url)

        async with self._lock:
            entry = self._entries.get(url)
            if entry and not entry.is_expired(self._now()):
                return entry.value
            if entry:
                del self._entries[url]

        value = await retrieve(url)
        async with self._lock:
            self._entries[url] = TimedEntry(
                value=value, expires_at=self._now() + timedelta(seconds=revalidate)
            )
        logger.debug("revalidate.stored", url=url, revalidate_seconds=revalidate)
        return value

    async def invalidate(self, url: str) -> None:
        async with self._lock:
            self._entries.pop(url, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()


__all__ = ["RevalidatingFetchCache"]
