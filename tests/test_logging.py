from __future__ import annotations

import json
import logging
from typing import Iterator

import pytest
import structlog
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from fetching.exceptions import ResponseError
from fetching.monitoring import timed_retrieval
from server.api import create_app
from server.config import get_settings
from server.logging import SERVICE_NAME, build_processors, configure_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    get_settings.cache_clear()
    yield
    root.setLevel(level)
    structlog.reset_defaults()
    get_settings.cache_clear()


def render(json_output: bool) -> str:
    event = {"event": "cache.request.deduplicated", "key": "users"}
    logger = logging.getLogger("fetching.cache")
    for processor in build_processors(json_output):
        event = processor(logger, "info", event)
    return event


def test_json_chain_adds_service_and_logger_name() -> None:
    record = json.loads(render(json_output=True))

    assert record["event"] == "cache.request.deduplicated"
    assert record["key"] == "users"
    assert record["level"] == "info"
    assert record["logger"] == "fetching.cache"
    assert record["service"] == SERVICE_NAME
    assert "timestamp" in record


def test_console_chain_renders_plain_text() -> None:
    line = render(json_output=False)

    assert "cache.request.deduplicated" in line
    assert "key=users" in line


@pytest.mark.parametrize(
    ("json_output", "renderer"),
    [(True, structlog.processors.JSONRenderer), (False, structlog.dev.ConsoleRenderer)],
)
def test_configure_logging_sets_level_and_renderer(json_output: bool, renderer: type) -> None:
    configure_logging("debug", json_output=json_output)

    assert logging.getLogger().level == logging.DEBUG
    assert isinstance(structlog.get_config()["processors"][-1], renderer)


def test_server_startup_applies_log_settings(monkeypatch) -> None:
    monkeypatch.setenv("DEMO_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("DEMO_LOG_FORMAT", "console")

    with TestClient(create_app()) as client:
        assert client.get("/health").status_code == 200

    assert logging.getLogger().level == logging.WARNING
    assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)


@pytest.mark.asyncio
async def test_timed_retrieval_logs_key_and_outcome() -> None:
    class Source:
        @timed_retrieval("demo.fetch")
        async def __call__(self, key: str) -> dict:
            if key == "missing":
                raise ResponseError("Failed to fetch", status=404)
            return {"key": key}

    source = Source()
    with capture_logs() as logs:
        assert await source("users") == {"key": "users"}
        with pytest.raises(ResponseError):
            await source("missing")

    complete, failed = logs
    assert complete["event"] == "demo.fetch.complete"
    assert complete["key"] == "users"
    assert complete["log_level"] == "debug"
    assert complete["duration_ms"] >= 0
    assert failed["event"] == "demo.fetch.failed"
    assert failed["key"] == "missing"
    assert failed["status"] == 404
    assert failed["log_level"] == "warning"
