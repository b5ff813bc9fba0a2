from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fetching.http import JsonFetcher
from fetching.revalidate import RevalidatingFetchCache
from server.config import get_settings
from server.logging import configure_logging
from server.routes import demo, news, products


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_format == "json")
    logger.info("server.startup")
    try:
        yield
    finally:
        upstream = app.state.upstream
        if isinstance(upstream, JsonFetcher):
            await upstream.close()
        await app.state.news_cache.clear()
        logger.info("server.shutdown")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Data Fetching Demo API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.products = products.ProductStore()
    app.state.upstream = JsonFetcher(settings.news.upstream_url)
    app.state.news_cache = RevalidatingFetchCache()

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    app.include_router(demo.router)
    app.include_router(products.router)
    app.include_router(news.router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(),
        host=get_settings().api.host,
        port=get_settings().api.port,
    )
