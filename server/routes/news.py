"""News endpoints proxied from an upstream posts API with time-based revalidation."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, TypeAdapter, ValidationError

from fetching.exceptions import FetchError, ResponseError
from fetching.revalidate import RevalidatingFetchCache
from server.config import NewsSettings, get_settings


logger = structlog.get_logger(__name__)

router = APIRouter(tags=["news"])

Upstream = Callable[[str], Awaitable[Any]]


class News(BaseModel):
    id: int
    title: str
    body: str


class NewsSummary(News):
    excerpt: str


NewsList = TypeAdapter(List[News])
NewsItem = TypeAdapter(News)


def get_upstream(request: Request) -> Upstream:
    return request.app.state.upstream


def get_news_cache(request: Request) -> RevalidatingFetchCache:
    return request.app.state.news_cache


def get_news_settings() -> NewsSettings:
    return get_settings().news


async def _load(
    cache: RevalidatingFetchCache, upstream: Upstream, path: str, revalidate: float | None
) -> Any:
    try:
        return await cache.fetch(path, upstream, revalidate=revalidate)
    except ResponseError as exc:
        if exc.status == 404:
            raise HTTPException(status_code=404, detail="News not found") from exc
        logger.warning("news.upstream.failed", path=path, status=exc.status, error=str(exc))
        raise HTTPException(status_code=502, detail="Upstream news service failed") from exc
    except FetchError as exc:
        logger.warning("news.upstream.failed", path=path, error=str(exc))
        raise HTTPException(status_code=502, detail="Upstream news service failed") from exc


def _parse(adapter: Any, payload: Any, path: str) -> Any:
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        logger.warning("news.upstream.malformed", path=path, errors=exc.error_count())
        raise HTTPException(status_code=502, detail="Upstream news payload was malformed") from exc


@router.get("/news", response_model=List[NewsSummary])
async def latest_news(
    upstream: Upstream = Depends(get_upstream),
    cache: RevalidatingFetchCache = Depends(get_news_cache),
    settings: NewsSettings = Depends(get_news_settings),
) -> List[NewsSummary]:
    path = f"/posts?_limit={settings.list_limit}"
    payload = await _load(cache, upstream, path, settings.list_revalidate_seconds)
    items = _parse(NewsList, payload, path)
    return [
        NewsSummary(**item.model_dump(), excerpt=item.body[:80])
        for item in items[: settings.list_limit]
    ]


@router.get("/news/{news_id}", response_model=News)
async def news_detail(
    news_id: int,
    upstream: Upstream = Depends(get_upstream),
    cache: RevalidatingFetchCache = Depends(get_news_cache),
) -> News:
    path = f"/posts/{news_id}"
    return _parse(NewsItem, await _load(cache, upstream, path, None), path)


@router.get("/revalidate", response_model=News)
async def featured_news(
    upstream: Upstream = Depends(get_upstream),
    cache: RevalidatingFetchCache = Depends(get_news_cache),
    settings: NewsSettings = Depends(get_news_settings),
) -> News:
    path = f"/posts/{settings.featured_post_id}"
    payload = await _load(cache, upstream, path, settings.featured_revalidate_seconds)
    return _parse(NewsItem, payload, path)
