"""Timing of retrievals for structured logs."""

from __future__ import annotations

import time
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from fetching.exceptions import FetchError


RetrieveMethod = TypeVar("RetrieveMethod", bound=Callable[..., Awaitable[Any]])


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def timed_retrieval(event: str) -> Callable[[RetrieveMethod], RetrieveMethod]:
    """Log the outcome and duration of a ``(self, key)`` retrieval method.

    Successes are logged at debug as ``<event>.complete``. A :class:`FetchError`
    is logged at warning as ``<event>.failed`` with its status, if any, and
    re-raised. Every entry carries the key.
    """

    def decorate(func: RetrieveMethod) -> RetrieveMethod:
        logger = structlog.get_logger(func.__module__)

        @wraps(func)
        async def wrapper(self: Any, key: str, *args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = await func(self, key, *args, **kwargs)
            except FetchError as exc:
                logger.warning(
                    f"{event}.failed",
                    key=key,
                    duration_ms=_elapsed_ms(started),
                    status=getattr(exc, "status", None),
                    error=str(exc),
                )
                raise
            logger.debug(f"{event}.complete", key=key, duration_ms=_elapsed_ms(started))
            return result

        return wrapper  # type: ignore[return-value]

    return decorate


__all__ = ["timed_retrieval"]
