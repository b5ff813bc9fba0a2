"""State and result types shared by the resource loaders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class ErrorInfo:
    """Normalized failure surfaced to consumers."""

    message: str


@dataclass(frozen=True)
class ResourceRequest:
    key: str
    started_at: float
    generation: int


@dataclass(frozen=True)
class ResourceState(Generic[T]):
    data: Optional[T] = None
    loading: bool = False
    error: Optional[ErrorInfo] = None

    @classmethod
    def pending(cls) -> "ResourceState[T]":
        return cls(data=None, loading=True, error=None)

    @classmethod
    def succeeded(cls, value: T) -> "ResourceState[T]":
        return cls(data=value, loading=False, error=None)

    @classmethod
    def failed(cls, error: ErrorInfo) -> "ResourceState[T]":
        return cls(data=None, loading=False, error=error)


@dataclass(frozen=True)
class KeyChanged:
    """Emitted when a loader is pointed at a different resource key."""

    old: str
    new: str


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: ErrorInfo

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[Any], Err]


__all__ = [
    "ErrorInfo",
    "Err",
    "KeyChanged",
    "Ok",
    "ResourceRequest",
    "ResourceState",
    "Result",
]
