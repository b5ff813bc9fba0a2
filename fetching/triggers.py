"""Focus and reconnect signals that drive background revalidation."""

from __future__ import annotations

from typing import Callable, Dict, List, Literal

import structlog


TriggerKind = Literal["focus", "reconnect"]

logger = structlog.get_logger(__name__)


class RevalidationTriggers:
    """Fan-out of environment events to subscribed loaders.

    The embedding application reports what happened (the surface regained
    focus, connectivity changed) and every subscribed loader decides on its
    own whether to revalidate.
    """

    def __init__(self, *, online: bool = True) -> None:
        self._online = online
        self._handlers: Dict[TriggerKind, List[Callable[[], None]]] = {
            "focus": [],
            "reconnect": [],
        }

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, kind: TriggerKind, handler: Callable[[], None]) -> Callable[[], None]:
        handlers = self._handlers[kind]
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def focus(self) -> None:
        self._emit("focus")

    def set_online(self, online: bool) -> None:
        """Record connectivity; only an offline -> online change counts as a reconnect."""

        was_online = self._online
        self._online = online
        if online and not was_online:
            self._emit("reconnect")

    def _emit(self, kind: TriggerKind) -> None:
        handlers = list(self._handlers[kind])
        logger.debug("triggers.emit", kind=kind, subscribers=len(handlers))
        for handler in handlers:
            try:
                handler()
            except Exception:
                logger.exception("triggers.handler.failed", kind=kind)


__all__ = ["RevalidationTriggers", "TriggerKind"]
