"""Unit tests for create_app(), the lifespan and the health/limits endpoints.

Covers:
  - create_app() builds independent apps with ready=False and an idle reaper
  - /health: 503 before lifespan startup, 200 with policy summary after
  - the reaper runs for the lifetime of the app and stops on shutdown
  - GET /api/limits lists every policy and is guarded by the api policy
  - create_app() without arguments loads the config file (SystemExit on errors)
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from throttleguard.config import Config
from throttleguard.main import create_app


def _stub_config() -> Config:
    """Return a default Config for testing (no file I/O)."""
    config = Config.defaults()
    config.accounts.bcrypt_rounds = 4
    return config


class TestCreateAppFactory:
    def test_returns_fastapi_instance(self) -> None:
        assert isinstance(create_app(_stub_config()), FastAPI)

    def test_independent_instances(self) -> None:
        app1 = create_app(_stub_config())
        app2 = create_app(_stub_config())
        assert app1 is not app2
        assert app1.state.throttle_registry is not app2.state.throttle_registry

    def test_initial_state(self) -> None:
        application = create_app(_stub_config())
        assert application.state.ready is False
        assert application.state.reaper.running is False
        assert application.state.reaper.interval_s == 60.0
        assert [g.name for g in application.state.throttle_registry] == [
            "general",
            "strict",
            "login",
            "api",
        ]

    def test_loads_config_file_when_not_given(self, tmp_path: Path) -> None:
        (tmp_path / ".throttleguard").mkdir()
        (tmp_path / ".throttleguard" / "config.yaml").write_text(
            "version: 1\nreaper:\n  interval_ms: 5000\n"
        )
        application = create_app()
        assert application.state.reaper.interval_s == 5.0

    def test_bad_config_exits(self, tmp_path: Path) -> None:
        (tmp_path / ".throttleguard").mkdir()
        (tmp_path / ".throttleguard" / "config.yaml").write_text("version: 7\n")
        with pytest.raises(SystemExit):
            create_app()


class TestHealth:
    def test_503_before_ready(self) -> None:
        client = TestClient(create_app(_stub_config()))
        response = client.get("/health")
        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["error"]["status"] == "starting"
        assert body["error"]["statusCode"] == 503

    def test_200_after_startup(self) -> None:
        application = create_app(_stub_config())
        with TestClient(application) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["reaper"] == "running"
        assert [p["name"] for p in body["policies"]] == ["general", "strict", "login", "api"]

    def test_shutdown_stops_reaper(self) -> None:
        application = create_app(_stub_config())
        with TestClient(application):
            assert application.state.ready is True
            assert application.state.reaper.running is True
        assert application.state.ready is False
        assert application.state.reaper.running is False

    def test_root(self) -> None:
        with TestClient(create_app(_stub_config())) as client:
            response = client.get("/")
        assert response.json()["service"] == "ThrottleGuard"


class TestLimitsEndpoint:
    def test_lists_policies(self) -> None:
        with TestClient(create_app(_stub_config())) as client:
            response = client.get("/api/limits")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "10"
        policies = {p["name"]: p for p in response.json()["data"]["policies"]}
        assert policies["login"]["countingMode"] == "outcome-gated"
        assert policies["login"]["maxEvents"] == 5
        assert policies["general"]["windowMs"] == 900_000
        assert policies["strict"]["skipSuccessfulRequests"] is True
        assert policies["api"]["paths"] == []
        assert policies["general"]["trackedKeys"] == 1

    def test_guarded_by_api_policy(self) -> None:
        with TestClient(create_app(_stub_config())) as client:
            statuses = [client.get("/api/limits").status_code for _ in range(11)]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429
