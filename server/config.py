"""Configuration management for the demo API server."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


ROOT = Path(__file__).resolve().parents[1]


class APISettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins")
    @classmethod
    def ensure_cors_origins(cls, value: List[str]) -> List[str]:
        if any(origin.strip() == "" for origin in value):
            raise ValueError("CORS origins must not contain empty entries")
        return value


class NewsSettings(BaseModel):
    upstream_url: str = "https://jsonplaceholder.typicode.com"
    list_limit: int = Field(default=5, ge=1)
    list_revalidate_seconds: float = Field(default=5, ge=0)
    featured_post_id: int = 3
    featured_revalidate_seconds: float = Field(default=10, ge=0)


class Settings(BaseSettings):
    """Top-level configuration values for the demo server."""

    api: APISettings = Field(default_factory=APISettings)
    news: NewsSettings = Field(default_factory=NewsSettings)
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    model_config = {
        "env_file": ROOT / ".env",
        "env_prefix": "DEMO_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
