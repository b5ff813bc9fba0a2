"""Shared resource cache with request deduplication.

One :class:`ResourceCache` is built at application start and handed to every
caching loader. For each key it holds the last good value, the last error and
at most one in-flight retrieval. Callers asking for a key while a retrieval
is running attach to it; callers arriving within the dedup window after a
retrieval started get its settled result without a new network call.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

import structlog

from fetching.exceptions import to_error_info
from fetching.state import Err, ErrorInfo, Ok, Result


T = TypeVar("T")

Retrieve = Callable[[str], Awaitable[Any]]
Listener = Callable[["CacheSnapshot[Any]"], None]

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry(Generic[T]):
    key: str
    value: Optional[T] = None
    has_value: bool = False
    error: Optional[ErrorInfo] = None
    last_fetched_at: Optional[float] = None
    started_at: Optional[float] = None
    generation: int = 0
    inflight: Optional["asyncio.Task[Result]"] = None
    queued: Optional["asyncio.Task[Result]"] = None

    @property
    def is_loading(self) -> bool:
        return self.inflight is not None or self.queued is not None

    def result(self) -> Result:
        if self.error is not None:
            return Err(self.error)
        return Ok(self.value)


@dataclass(frozen=True)
class CacheSnapshot(Generic[T]):
    """Immutable view of one entry as seen by consumers."""

    key: str
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None
    is_loading: bool = False
    last_fetched_at: Optional[float] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ResourceCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self.clock = clock

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.has_value

    def get(self, key: str) -> Optional[CacheEntry[Any]]:
        return self._entries.get(key)

    def snapshot(self, key: str) -> CacheSnapshot[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return CacheSnapshot(key=key)
        return CacheSnapshot(
            key=key,
            data=entry.value,
            error=entry.error,
            is_loading=entry.is_loading,
            last_fetched_at=entry.last_fetched_at,
        )

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def request(
        self,
        key: str,
        retrieve: Retrieve,
        *,
        dedupe_interval: float,
        force: bool = False,
    ) -> "asyncio.Future[Result]":
        """Return a future resolving to the key's result.

        ``dedupe_interval`` is in seconds. With ``force`` the result always
        comes from a retrieval initiated after this call.
        """

        entry = self._entry(key)
        if entry.inflight is not None and not force:
            return asyncio.shield(entry.inflight)
        if entry.queued is not None:
            # the queued follow-up owns the next flight for this key
            return asyncio.shield(entry.queued)
        if entry.inflight is not None:
            return asyncio.shield(self._queue_after_inflight(entry, retrieve))

        now = self.clock()
        if (
            not force
            and entry.started_at is not None
            and now - entry.started_at < dedupe_interval
        ):
            logger.debug("cache.request.deduplicated", key=key)
            future: asyncio.Future[Result] = asyncio.get_running_loop().create_future()
            future.set_result(entry.result())
            return future

        return asyncio.shield(self._launch(entry, retrieve))

    def set(self, key: str, value: Any) -> None:
        """Write ``value`` as the key's current data and notify subscribers."""

        entry = self._entry(key)
        entry.value = value
        entry.has_value = True
        entry.error = None
        entry.last_fetched_at = self.clock()
        self._notify(entry)

    def clear(self) -> None:
        self._entries.clear()

    async def close(self) -> None:
        """Wait for in-flight retrievals, then drop every entry."""

        while True:
            tasks = [
                task
                for entry in self._entries.values()
                for task in (entry.inflight, entry.queued)
                if task is not None
            ]
            if not tasks:
                break
            await asyncio.wait(tasks)
        self._entries.clear()
        self._listeners.clear()

    def _entry(self, key: str) -> CacheEntry[Any]:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        return entry

    def _launch(self, entry: CacheEntry[Any], retrieve: Retrieve) -> "asyncio.Task[Result]":
        entry.generation += 1
        entry.started_at = self.clock()
        task = asyncio.get_running_loop().create_task(
            self._retrieve(entry, retrieve, entry.generation)
        )
        entry.inflight = task
        self._notify(entry)
        return task

    def _queue_after_inflight(
        self, entry: CacheEntry[Any], retrieve: Retrieve
    ) -> "asyncio.Task[Result]":
        # one follow-up retrieval shared by every forced caller during this flight
        previous = entry.inflight
        if previous is None:
            raise RuntimeError(f"No retrieval in flight for {entry.key!r}")

        async def run_after() -> Result:
            try:
                await asyncio.wait([previous])
            finally:
                entry.queued = None
            return await self._launch(entry, retrieve)

        queued = asyncio.get_running_loop().create_task(run_after())
        queued.add_done_callback(lambda task: self._release_queued(entry, task))
        entry.queued = queued
        return queued

    @staticmethod
    def _release_queued(entry: CacheEntry[Any], task: "asyncio.Task[Result]") -> None:
        # a follow-up cancelled before it ran never reaches its own cleanup
        if entry.queued is task:
            entry.queued = None

    async def _retrieve(self, entry: CacheEntry[Any], retrieve: Retrieve, generation: int) -> Result:
        try:
            value = await retrieve(entry.key)
        except Exception as exc:
            error = to_error_info(exc)
            logger.info(
                "cache.retrieve.failed",
                key=entry.key,
                error=error.message,
                kept_stale=entry.has_value,
            )
            result: Result = Err(error)
            entry.error = error
        else:
            result = Ok(value)
            entry.value = value
            entry.has_value = True
            entry.error = None
            entry.last_fetched_at = self.clock()
        finally:
            if entry.generation == generation:
                entry.inflight = None

        self._notify(entry)
        return result

    def _notify(self, entry: CacheEntry[Any]) -> None:
        if self._entries.get(entry.key) is not entry:
            return
        snapshot = self.snapshot(entry.key)
        for listener in list(self._listeners.get(entry.key, ())):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("cache.listener.failed", key=entry.key)


__all__ = ["CacheEntry", "CacheSnapshot", "ResourceCache", "Retrieve"]
