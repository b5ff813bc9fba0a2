from __future__ import annotations

from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient

from fetching.exceptions import ResponseError, TransportError
from server.api import create_app


POSTS = [
    {"userId": 1, "id": index, "title": f"Post {index}", "body": "x" * 120}
    for index in range(1, 11)
]


class FakeUpstream:
    """Stands in for the posts API the news endpoints proxy."""

    def __init__(self) -> None:
        self.paths: list[str] = []
        self.failure: Exception | None = None
        self.payload: Any = None

    async def __call__(self, path: str) -> Any:
        self.paths.append(path)
        if self.failure is not None:
            raise self.failure
        if self.payload is not None:
            return self.payload
        if path.startswith("/posts?_limit="):
            return POSTS[: int(path.rsplit("=", 1)[1])]
        post_id = int(path.rsplit("/", 1)[1])
        for post in POSTS:
            if post["id"] == post_id:
                return post
        raise ResponseError("Failed to fetch", status=404)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client(upstream: FakeUpstream) -> Iterator[TestClient]:
    """Create a test client for the FastAPI app."""
    app = create_app()
    app.state.upstream = upstream
    with TestClient(app) as test_client:
        yield test_client


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_hello(client: TestClient) -> None:
    response = client.get("/api/hello")
    assert response.status_code == 200
    assert response.json() == {"message": "Hello from API"}


def test_user_page(client: TestClient) -> None:
    assert client.get("/api/users/42").json() == {"id": "42"}


def test_form_echoes_name(client: TestClient) -> None:
    response = client.post("/api/form", json={"name": "Ann"})
    assert response.status_code == 200
    assert response.json() == {"name": "Ann"}


def test_form_without_name(client: TestClient) -> None:
    assert client.post("/api/form", json={}).json() == {"name": None}


class TestProducts:
    def test_starts_empty(self, client: TestClient) -> None:
        assert client.get("/api/products").json() == []

    def test_add_then_list(self, client: TestClient) -> None:
        response = client.post("/api/products", json={"name": "Lamp", "price": 19.5})
        assert response.status_code == 201
        assert response.json() == {"id": 1, "name": "Lamp", "price": 19.5}

        client.post("/api/products", json={"name": "Desk", "price": 120})
        products = client.get("/api/products").json()
        assert [product["name"] for product in products] == ["Lamp", "Desk"]
        assert [product["id"] for product in products] == [1, 2]

    def test_delete(self, client: TestClient) -> None:
        created = client.post("/api/products", json={"name": "Lamp", "price": 1}).json()

        response = client.delete("/api/products", params={"id": created["id"]})

        assert response.status_code == 200
        assert response.json() == {"deleted": created["id"]}
        assert client.get("/api/products").json() == []

    def test_delete_missing_returns_404(self, client: TestClient) -> None:
        response = client.delete("/api/products", params={"id": 99})
        assert response.status_code == 404

    def test_ids_not_reused_after_delete(self, client: TestClient) -> None:
        first = client.post("/api/products", json={"name": "A", "price": 1}).json()
        client.delete("/api/products", params={"id": first["id"]})
        second = client.post("/api/products", json={"name": "B", "price": 2}).json()
        assert second["id"] == first["id"] + 1

    @pytest.mark.parametrize(
        "payload",
        [{"name": "", "price": 1}, {"name": "Lamp", "price": -1}, {"name": "Lamp"}],
    )
    def test_invalid_payload_rejected(self, client: TestClient, payload: dict) -> None:
        response = client.post("/api/products", json=payload)
        assert response.status_code == 422


class TestNews:
    def test_latest_news_limited_and_excerpted(self, client: TestClient) -> None:
        response = client.get("/news")

        assert response.status_code == 200
        news = response.json()
        assert len(news) == 5
        assert news[0]["title"] == "Post 1"
        assert len(news[0]["excerpt"]) == 80

    def test_latest_news_cached_within_revalidate_window(
        self, client: TestClient, upstream: FakeUpstream
    ) -> None:
        client.get("/news")
        client.get("/news")
        assert upstream.paths == ["/posts?_limit=5"]

    def test_detail_is_never_cached(self, client: TestClient, upstream: FakeUpstream) -> None:
        first = client.get("/news/2")
        client.get("/news/2")

        assert first.json() == {"id": 2, "title": "Post 2", "body": "x" * 120}
        assert upstream.paths == ["/posts/2", "/posts/2"]

    def test_detail_missing_returns_404(self, client: TestClient) -> None:
        assert client.get("/news/999").status_code == 404

    def test_featured_post(self, client: TestClient, upstream: FakeUpstream) -> None:
        response = client.get("/revalidate")
        client.get("/revalidate")

        assert response.json()["title"] == "Post 3"
        assert upstream.paths == ["/posts/3"]

    @pytest.mark.parametrize(
        "failure",
        [TransportError("connection refused"), ResponseError("Failed to fetch", status=500)],
    )
    def test_upstream_failure_maps_to_502(
        self, client: TestClient, upstream: FakeUpstream, failure: Exception
    ) -> None:
        upstream.failure = failure
        response = client.get("/news/1")
        assert response.status_code == 502

    @pytest.mark.parametrize(
        "payload",
        [
            {"posts": POSTS},
            [{"id": 1, "title": "No body"}],
            "<html>maintenance</html>",
        ],
    )
    def test_malformed_list_maps_to_502(
        self, client: TestClient, upstream: FakeUpstream, payload: Any
    ) -> None:
        upstream.payload = payload
        response = client.get("/news")
        assert response.status_code == 502

    def test_malformed_featured_post_maps_to_502(
        self, client: TestClient, upstream: FakeUpstream
    ) -> None:
        upstream.payload = {"id": "three", "title": None}
        assert client.get("/revalidate").status_code == 502
