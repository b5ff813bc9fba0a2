"""Single-resource loader: fetch, expose state, refetch on demand or key change."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import structlog

from fetching.exceptions import to_error_info
from fetching.state import (
    Err,
    ErrorInfo,
    KeyChanged,
    Ok,
    ResourceRequest,
    ResourceState,
    Result,
)


T = TypeVar("T")

Retrieve = Callable[[str], Awaitable[Any]]
Observer = Callable[[Union[ResourceState[Any], KeyChanged]], None]

logger = structlog.get_logger(__name__)


class ResourceLoader(Generic[T]):
    """Fetch state machine for one resource: ``idle -> loading -> success | error``.

    Every fetch is stamped with a generation number. Only the response of the
    most recent generation may touch ``state``; older responses are dropped
    when they arrive, so switching keys mid-flight never shows the previous
    key's data. Superseded requests are not aborted.

    Failures are captured into ``state.error`` and the returned ``Err``; they
    are never raised to the caller and never retried.
    """

    def __init__(
        self,
        key: str,
        retrieve: Retrieve,
        *,
        on_success: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[ErrorInfo], None]] = None,
    ) -> None:
        self._key = key
        self._retrieve = retrieve
        self._on_success = on_success
        self._on_error = on_error
        self._generation = 0
        self._state: ResourceState[T] = ResourceState()
        self._observers: list[Observer] = []
        self._pending: set[asyncio.Task] = set()
        self._closed = False
        self.current_request: Optional[ResourceRequest] = None

    @classmethod
    def create(
        cls,
        key: str,
        retrieve: Retrieve,
        on_success: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[ErrorInfo], None]] = None,
    ) -> "ResourceLoader[T]":
        """Build a loader and schedule its first fetch on the running loop."""

        loader: ResourceLoader[T] = cls(key, retrieve, on_success=on_success, on_error=on_error)
        loader._schedule()
        return loader

    @property
    def key(self) -> str:
        return self._key

    @property
    def state(self) -> ResourceState[T]:
        return self._state

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set_key(self, key: str) -> Optional[KeyChanged]:
        """Point the loader at ``key``; refetch only if it differs from the current one."""

        if key == self._key:
            return None
        event = KeyChanged(old=self._key, new=key)
        self._key = key
        logger.debug("loader.key_changed", old=event.old, new=event.new)
        self._publish(event)
        self._schedule()
        return event

    async def refetch(self) -> Result:
        return await self._run(self._begin())

    async def wait(self) -> None:
        """Wait until every scheduled fetch has settled."""

        while self._pending:
            await asyncio.wait(list(self._pending))

    def close(self) -> None:
        self._closed = True
        self._observers.clear()

    def _begin(self) -> ResourceRequest:
        self._generation += 1
        request = ResourceRequest(
            key=self._key, started_at=time.monotonic(), generation=self._generation
        )
        self.current_request = request
        self._transition(ResourceState.pending())
        return request

    async def _run(self, request: ResourceRequest) -> Result:
        try:
            value = await self._retrieve(request.key)
        except Exception as exc:
            error = to_error_info(exc)
            if not self._is_current(request):
                return Err(error)
            logger.info("loader.fetch.failed", key=request.key, error=error.message)
            self._settle(request, ResourceState.failed(error))
            self._notify(self._on_error, error)
            return Err(error)

        if not self._is_current(request):
            return Ok(value)
        self._settle(request, ResourceState.succeeded(value))
        self._notify(self._on_success, value)
        return Ok(value)

    def _schedule(self) -> None:
        request = self._begin()
        task = asyncio.get_running_loop().create_task(self._run(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _is_current(self, request: ResourceRequest) -> bool:
        if request.generation == self._generation and not self._closed:
            return True
        logger.debug(
            "loader.fetch.discarded",
            key=request.key,
            generation=request.generation,
            latest=self._generation,
        )
        return False

    def _settle(self, request: ResourceRequest, state: ResourceState[T]) -> None:
        if self.current_request is request:
            self.current_request = None
        self._transition(state)

    def _transition(self, state: ResourceState[T]) -> None:
        self._state = state
        self._publish(state)

    def _publish(self, event: Union[ResourceState[Any], KeyChanged]) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("loader.observer.failed", key=self._key)

    def _notify(self, callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception:
            logger.exception("loader.callback.failed", key=self._key)


__all__ = ["ResourceLoader", "Retrieve"]
