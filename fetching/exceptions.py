"""Exceptions raised by retrieval functions and how loaders normalize them."""

from __future__ import annotations

from fetching.state import ErrorInfo


class FetchError(RuntimeError):
    """Base error for failed retrievals."""


class TransportError(FetchError):
    """Network or transport failure (connection refused, timeout, DNS...)."""


class ResponseError(FetchError):
    """Upstream answered with a non-success status or an unusable payload."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


def to_error_info(exc: BaseException) -> ErrorInfo:
    """Collapse any exception into the single shape consumers inspect."""

    message = str(exc).strip()
    if not message:
        message = type(exc).__name__
    return ErrorInfo(message=message)


__all__ = ["FetchError", "ResponseError", "TransportError", "to_error_info"]
