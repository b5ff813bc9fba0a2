"""Cache-backed loader with deduplication and stale-while-revalidate."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, Union

import structlog

from fetching.cache import CacheSnapshot, ResourceCache, Retrieve
from fetching.config import CachingOptions
from fetching.http import fetch_json
from fetching.state import ErrorInfo, KeyChanged, Result
from fetching.triggers import RevalidationTriggers


T = TypeVar("T")

Observer = Callable[[Union[CacheSnapshot[Any], KeyChanged]], None]

logger = structlog.get_logger(__name__)

_UNSET: Any = object()


class CachingResourceLoader(Generic[T]):
    """Consumer view over one key of a shared :class:`ResourceCache`.

    Per key the cache moves ``uncached -> fetching -> cached`` and on each
    revalidation ``cached -> revalidating -> cached`` (or cached with an
    error, keeping the previous data). While revalidating, ``data`` keeps
    the stale value and ``is_loading`` is true.
    """

    def __init__(
        self,
        key: str,
        *,
        cache: ResourceCache,
        options: Optional[CachingOptions] = None,
        triggers: Optional[RevalidationTriggers] = None,
        retrieve: Optional[Retrieve] = None,
    ) -> None:
        self._key = key
        self._cache = cache
        self._options = options or CachingOptions()
        self._retrieve: Retrieve = retrieve or self._options.fetcher or fetch_json
        self._observers: list[Observer] = []
        self._pending: set[asyncio.Future] = set()
        self._last_focus_at: Optional[float] = None
        self._unsubscribe_cache = cache.subscribe(key, self._on_cache_update)
        self._unsubscribe_triggers: list[Callable[[], None]] = []
        if triggers is not None:
            self._unsubscribe_triggers = [
                triggers.subscribe("focus", self.on_focus),
                triggers.subscribe("reconnect", self.on_reconnect),
            ]

    @classmethod
    def create(
        cls,
        key: str,
        options: Union[CachingOptions, Dict[str, Any], None] = None,
        *,
        cache: ResourceCache,
        triggers: Optional[RevalidationTriggers] = None,
        retrieve: Optional[Retrieve] = None,
    ) -> "CachingResourceLoader[T]":
        """Build a loader and request its key on the running loop.

        ``options`` may be a :class:`CachingOptions` or a mapping of
        overrides applied on top of the defaults.
        """

        if not isinstance(options, CachingOptions):
            options = CachingOptions().merged(options)
        loader: CachingResourceLoader[T] = cls(
            key, cache=cache, options=options, triggers=triggers, retrieve=retrieve
        )
        loader._request(force=False)
        return loader

    @property
    def key(self) -> str:
        return self._key

    @property
    def options(self) -> CachingOptions:
        return self._options

    @property
    def snapshot(self) -> CacheSnapshot[T]:
        return self._cache.snapshot(self._key)

    @property
    def data(self) -> Optional[T]:
        return self.snapshot.data

    @property
    def error(self) -> Optional[ErrorInfo]:
        return self.snapshot.error

    @property
    def is_loading(self) -> bool:
        return self.snapshot.is_loading

    @property
    def is_error(self) -> bool:
        return self.snapshot.is_error

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def mutate(self, data: Any = _UNSET, *, revalidate: bool = True) -> Result:
        """Force a fresh retrieval for the current key.

        Passing ``data`` writes it into the cache first so every consumer of
        the key sees it immediately; ``revalidate=False`` skips the retrieval.
        """

        if data is not _UNSET:
            self._cache.set(self._key, data)
            if not revalidate:
                return self._cache.get(self._key).result()  # type: ignore[union-attr]
        return await self._request(force=True)

    def set_key(self, key: str) -> Optional[KeyChanged]:
        if key == self._key:
            return None
        event = KeyChanged(old=self._key, new=key)
        self._unsubscribe_cache()
        self._key = key
        self._unsubscribe_cache = self._cache.subscribe(key, self._on_cache_update)
        logger.debug("caching_loader.key_changed", old=event.old, new=event.new)
        self._publish(event)
        self._request(force=False)
        return event

    def on_focus(self) -> None:
        if not self._options.revalidate_on_focus:
            return
        now = self._cache.clock()
        if (
            self._last_focus_at is not None
            and now - self._last_focus_at < self._options.focus_throttle_seconds
        ):
            logger.debug("caching_loader.focus.throttled", key=self._key)
            return
        self._last_focus_at = now
        self._request(force=False)

    def on_reconnect(self) -> None:
        if self._options.revalidate_on_reconnect:
            self._request(force=False)

    async def wait(self) -> None:
        """Wait until every request issued by this loader has settled."""

        while self._pending:
            await asyncio.wait(list(self._pending))

    def close(self) -> None:
        self._unsubscribe_cache()
        for unsubscribe in self._unsubscribe_triggers:
            unsubscribe()
        self._unsubscribe_triggers = []
        self._observers.clear()

    def _request(self, *, force: bool) -> "asyncio.Future[Result]":
        future = self._cache.request(
            self._key,
            self._retrieve,
            dedupe_interval=self._options.deduping_seconds,
            force=force,
        )
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        return future

    def _on_cache_update(self, snapshot: CacheSnapshot[Any]) -> None:
        self._publish(snapshot)

    def _publish(self, event: Union[CacheSnapshot[Any], KeyChanged]) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("caching_loader.observer.failed", key=self._key)


__all__ = ["CachingResourceLoader"]
