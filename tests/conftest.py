"""Root test configuration for ThrottleGuard.

Every test runs in a temporary working directory with the THROTTLEGUARD_*
environment variables cleared, so a developer's local
`.throttleguard/config.yaml` or shell exports never leak into the suite.

Windows are driven by FakeClock (the ``clock`` fixture) rather than real time:
pass it to ThrottleGuard / WindowStore / create_app() and call
``clock.advance(seconds)`` to move past a window boundary.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from throttleguard.config import Config

# Arbitrary fixed epoch (2023-11-14T22:13:20Z) so reset timestamps are stable.
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_config() -> Config:
    """Default config with the minimum bcrypt cost so account tests stay quick."""
    config = Config.defaults()
    config.accounts.bcrypt_rounds = 4
    return config


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Clear ThrottleGuard env overrides and run from an empty directory."""
    for name in (
        "THROTTLEGUARD_CONFIG",
        "THROTTLEGUARD_PORT",
        "THROTTLEGUARD_TRUST_FORWARDED_FOR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
