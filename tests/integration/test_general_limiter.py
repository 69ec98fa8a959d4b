"""Integration tests: general IP limiter and strict registration limiter on the full app.

Scenario: one client IP sends 100 requests inside a 15-minute window. Each
response reports the remaining quota (99 down to 0); request 101 is rejected
with 429, Retry-After: 900 and the general denial message.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from throttleguard.config import Config
from throttleguard.main import create_app

pytestmark = pytest.mark.asyncio


def _client(app, host: str = "1.2.3.4") -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app, client=(host, 40000)),
        base_url="http://test",
    )


async def test_hundred_requests_then_429(fast_config: Config, clock) -> None:
    app = create_app(config=fast_config, clock=clock)

    async with _client(app) as client:
        responses = [await client.get("/") for _ in range(100)]
        denied = await client.get("/")

    assert all(r.status_code == 200 for r in responses)
    assert [int(r.headers["X-RateLimit-Remaining"]) for r in responses] == list(
        range(99, -1, -1)
    )
    assert all(r.headers["X-RateLimit-Limit"] == "100" for r in responses)

    assert denied.status_code == 429
    assert denied.headers["Retry-After"] == "900"
    assert denied.json() == {
        "success": False,
        "error": {
            "message": "Too many requests from this IP, please try again later",
            "statusCode": 429,
            "retryAfter": 900,
        },
    }


async def test_other_ip_unaffected(fast_config: Config, clock) -> None:
    fast_config.policies["general"].max_requests = 1
    app = create_app(config=fast_config, clock=clock)

    async with _client(app, "1.2.3.4") as first, _client(app, "5.6.7.8") as second:
        assert (await first.get("/")).status_code == 200
        assert (await first.get("/")).status_code == 429
        assert (await second.get("/")).status_code == 200


async def test_window_rolls_over(fast_config: Config, clock) -> None:
    fast_config.policies["general"].max_requests = 1
    app = create_app(config=fast_config, clock=clock)

    async with _client(app) as client:
        await client.get("/")
        clock.advance(899)
        retry = await client.get("/")
        clock.advance(1)
        fresh = await client.get("/")

    assert retry.status_code == 429
    assert retry.headers["Retry-After"] == "1"
    assert fresh.status_code == 200
    assert fresh.headers["X-RateLimit-Remaining"] == "0"


async def test_forwarded_for_ignored_unless_trusted(fast_config: Config, clock) -> None:
    fast_config.policies["general"].max_requests = 1
    app = create_app(config=fast_config, clock=clock)

    async with _client(app) as client:
        await client.get("/", headers={"X-Forwarded-For": "9.9.9.1"})
        response = await client.get("/", headers={"X-Forwarded-For": "9.9.9.2"})

    assert response.status_code == 429


async def test_forwarded_for_trusted(fast_config: Config, clock) -> None:
    fast_config.policies["general"].max_requests = 1
    fast_config.server.trust_forwarded_for = True
    app = create_app(config=fast_config, clock=clock)

    async with _client(app) as client:
        await client.get("/", headers={"X-Forwarded-For": "9.9.9.1"})
        response = await client.get("/", headers={"X-Forwarded-For": "9.9.9.2"})

    assert response.status_code == 200


class TestStrictRegistration:
    async def test_successful_registrations_are_refunded(self, fast_config: Config, clock) -> None:
        app = create_app(config=fast_config, clock=clock)

        async with _client(app) as client:
            responses = [
                await client.post(
                    "/api/users/register",
                    json={"email": f"user{i}@example.com", "password": "secret1", "name": "U"},
                )
                for i in range(7)
            ]

        assert [r.status_code for r in responses] == [201] * 7
        assert responses[-1].headers["X-RateLimit-Limit"] == "5"
        assert responses[-1].headers["X-RateLimit-Remaining"] == "4"
        assert responses[0].json()["data"]["user"]["email"] == "user0@example.com"

    async def test_failed_registrations_are_limited(self, fast_config: Config, clock) -> None:
        app = create_app(config=fast_config, clock=clock)

        async with _client(app) as client:
            failures = [
                await client.post("/api/users/register", json={"email": "x@example.com"})
                for _ in range(5)
            ]
            denied = await client.post(
                "/api/users/register",
                json={"email": "ok@example.com", "password": "secret1", "name": "Ok"},
            )

        assert [r.status_code for r in failures] == [400] * 5
        assert failures[0].json()["error"]["message"] == "Email, password, and name are required"
        assert denied.status_code == 429
        assert denied.json()["error"]["message"] == "Too many attempts, please try again later"
        assert len(app.state.accounts) == 0
