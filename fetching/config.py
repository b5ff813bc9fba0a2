"""Configuration for loaders and the HTTP fetcher using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings


class FetchSettings(BaseSettings):
    deduping_interval_ms: int = Field(default=2000, ge=0)
    focus_throttle_interval_ms: int = Field(default=300_000, ge=0)
    revalidate_on_focus: bool = True
    revalidate_on_reconnect: bool = True
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    http_max_attempts: int = Field(default=1, ge=1)

    model_config = {
        "env_prefix": "FETCH_",
        "case_sensitive": False,
    }


@lru_cache(maxsize=1)
def get_settings() -> FetchSettings:
    return FetchSettings()


class CachingOptions(BaseModel):
    """Per-loader options for :class:`fetching.caching_loader.CachingResourceLoader`.

    Field names accept both snake_case and the camelCase spelling
    (``dedupingInterval`` and friends). Intervals are in milliseconds.
    """

    revalidate_on_focus: bool = Field(default_factory=lambda: get_settings().revalidate_on_focus)
    revalidate_on_reconnect: bool = Field(
        default_factory=lambda: get_settings().revalidate_on_reconnect
    )
    deduping_interval: int = Field(
        default_factory=lambda: get_settings().deduping_interval_ms, ge=0
    )
    focus_throttle_interval: int = Field(
        default_factory=lambda: get_settings().focus_throttle_interval_ms, ge=0
    )
    fetcher: Optional[Callable[[str], Awaitable[Any]]] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        frozen=True,
        extra="forbid",
    )

    @property
    def deduping_seconds(self) -> float:
        return self.deduping_interval / 1000

    @property
    def focus_throttle_seconds(self) -> float:
        return self.focus_throttle_interval / 1000

    def merged(self, overrides: dict[str, Any] | None = None) -> "CachingOptions":
        """Return a copy with ``overrides`` applied, validating them."""

        if not overrides:
            return self
        normalized = {
            (to_camel(key) if key in CachingOptions.model_fields else key): value
            for key, value in overrides.items()
        }
        return CachingOptions.model_validate({**self.model_dump(by_alias=True), **normalized})


__all__ = ["CachingOptions", "FetchSettings", "get_settings"]
