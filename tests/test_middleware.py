"""Tests for request-id, security header and body size middleware."""

import httpx
import pytest
import structlog
from fastapi import FastAPI

from src.core.security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from src.telemetry import RequestIdMiddleware, current_request_id


def _app(*, is_production: bool = False, max_size: int = 100) -> FastAPI:
    app = FastAPI()

    @app.get("/ping")
    async def ping() -> dict[str, str | None]:
        return {"request_id": current_request_id()}

    @app.post("/echo")
    async def echo(payload: dict) -> dict:
        return payload

    app.add_middleware(SecurityHeadersMiddleware, is_production=is_production)
    app.add_middleware(RequestSizeLimitMiddleware, max_size=max_size)
    app.add_middleware(RequestIdMiddleware)
    return app


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture(autouse=True)
def _clean_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestRequestId:
    async def test_bound_for_handlers(self):
        async with _client(_app()) as client:
            response = await client.get("/ping")

        request_id = response.headers["X-Request-ID"]
        assert request_id.startswith("req_")
        assert len(request_id) == len("req_") + 16
        assert response.json() == {"request_id": request_id}

    async def test_unique_per_request(self):
        async with _client(_app()) as client:
            first = await client.get("/ping")
            second = await client.get("/ping")

        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    async def test_client_id_reused(self):
        async with _client(_app()) as client:
            response = await client.get("/ping", headers={"X-Request-ID": "gw-01HXYZ_abc"})

        assert response.headers["X-Request-ID"] == "gw-01HXYZ_abc"
        assert response.json() == {"request_id": "gw-01HXYZ_abc"}

    async def test_overlong_client_id_replaced(self):
        async with _client(_app()) as client:
            response = await client.get("/ping", headers={"X-Request-ID": "a" * 65})

        assert response.headers["X-Request-ID"].startswith("req_")


class TestSecurityHeaders:
    async def test_static_headers(self):
        async with _client(_app()) as client:
            response = await client.get("/ping")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "Strict-Transport-Security" not in response.headers

    async def test_hsts_in_production(self):
        async with _client(_app(is_production=True)) as client:
            response = await client.get("/ping")

        assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")

    async def test_headers_on_errors(self):
        async with _client(_app()) as client:
            response = await client.get("/missing")

        assert response.status_code == 404
        assert response.headers["X-Frame-Options"] == "DENY"


class TestRequestSizeLimit:
    async def test_small_body_passes(self):
        async with _client(_app()) as client:
            response = await client.post("/echo", json={"a": 1})

        assert response.status_code == 200
        assert response.json() == {"a": 1}

    async def test_large_body_rejected(self):
        async with _client(_app(max_size=100)) as client:
            response = await client.post("/echo", json={"a": "x" * 200})

        assert response.status_code == 413
        assert response.json()["detail"] == "Request body too large. Maximum allowed: 100 bytes"
        assert response.headers["X-Request-ID"].startswith("req_")

    async def test_invalid_content_length(self):
        async with _client(_app()) as client:
            response = await client.post(
                "/echo",
                content=b"{}",
                headers={"Content-Length": "abc", "Content-Type": "application/json"},
            )

        assert response.status_code == 400


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


class TestChunkedRequestSizeLimit:
    async def test_oversized_chunked_body_rejected(self):
        async with _client(_app(max_size=100)) as client:
            response = await client.post(
                "/echo",
                content=_chunks(b'{"a": "', b"x" * 80, b"x" * 80, b'"}'),
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 413
        assert response.json()["detail"] == "Request body too large. Maximum allowed: 100 bytes"

    async def test_small_chunked_body_reaches_route(self):
        async with _client(_app(max_size=100)) as client:
            response = await client.post(
                "/echo",
                content=_chunks(b'{"a": ', b"1}"),
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 200
        assert response.json() == {"a": 1}
