"""
Unit Tests - Rate Limiting Middleware
"""
from types import SimpleNamespace

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
import pytest

from src.serving.api import middleware
from src.serving.api.middleware import RateLimitMiddleware


@pytest.fixture
def clock(monkeypatch):
    """Controllable wall clock for the limiter"""
    state = SimpleNamespace(now=1000.0)
    monkeypatch.setattr(
        middleware, "time", SimpleNamespace(time=lambda: state.now, perf_counter=lambda: state.now),
    )
    return state


@pytest.fixture
def limiter():
    app = FastAPI()

    @app.get("/track/ping")
    async def ping():
        return {"ok": True}

    @app.get("/other")
    async def other():
        return {"ok": True}

    return RateLimitMiddleware(app, max_requests=2, window_seconds=60, path_prefixes=("/track",))


async def _get(limiter, host: str, path: str = "/track/ping"):
    transport = ASGITransport(app=limiter, client=(host, 5000))
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        return await http.get(path)


class TestRateLimit:
    """Tests for RateLimitMiddleware"""

    async def test_limit_per_client(self, limiter, clock):
        assert (await _get(limiter, "10.0.0.1")).status_code == 200
        assert (await _get(limiter, "10.0.0.1")).status_code == 200

        blocked = await _get(limiter, "10.0.0.1")

        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "60"
        assert (await _get(limiter, "10.0.0.2")).status_code == 200

    async def test_window_slides(self, limiter, clock):
        await _get(limiter, "10.0.0.1")
        await _get(limiter, "10.0.0.1")

        clock.now += 61

        assert (await _get(limiter, "10.0.0.1")).status_code == 200

    async def test_unlimited_prefix_is_not_tracked(self, limiter, clock):
        response = await _get(limiter, "10.0.0.1", path="/other")

        assert response.status_code == 200
        assert limiter._requests == {}

    async def test_idle_clients_are_evicted(self, limiter, clock):
        await _get(limiter, "10.0.0.1")
        await _get(limiter, "10.0.0.2")

        clock.now += 61
        await _get(limiter, "10.0.0.3")

        assert set(limiter._requests) == {"10.0.0.3"}
