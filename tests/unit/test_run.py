"""Unit tests for the uvicorn entry point (uvicorn.run is replaced)."""

from __future__ import annotations

import pytest

from throttleguard import run


@pytest.fixture
def uvicorn_calls(monkeypatch: pytest.MonkeyPatch) -> list:
    calls: list = []
    monkeypatch.setattr(run.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
    return calls


def test_main_starts_single_worker(uvicorn_calls: list) -> None:
    run.main()

    [(args, kwargs)] = uvicorn_calls
    assert args == ("throttleguard.main:app",)
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 3000
    assert kwargs["workers"] == 1
    assert kwargs["limit_concurrency"] == run.UVICORN_LIMIT_CONCURRENCY


def test_main_uses_port_override(uvicorn_calls: list, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("THROTTLEGUARD_PORT", "8088")
    run.main()
    assert uvicorn_calls[0][1]["port"] == 8088


def test_main_exits_on_bad_config(uvicorn_calls: list, monkeypatch, tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("version: 1\nserver:\n  trust_forwarded_for: 'false'\n")
    monkeypatch.setenv("THROTTLEGUARD_CONFIG", str(path))

    with pytest.raises(SystemExit):
        run.main()
    assert uvicorn_calls == []
