"""Unit tests for the route policy presets and ThrottleRegistry."""

from __future__ import annotations

import pytest

from throttleguard.config import Config, PolicyConfig
from throttleguard.errors import ConfigurationError
from throttleguard.limiter.guard import ThrottleGuard
from throttleguard.limiter.keys import ClientIPKey, EmailKey
from throttleguard.limiter.policy import CountingMode
from throttleguard.limiter.presets import (
    api_policy,
    build_policy,
    general_policy,
    login_policy,
    strict_policy,
)
from throttleguard.limiter.registry import GuardBinding, ThrottleRegistry


class TestPresets:
    def test_general(self) -> None:
        policy = general_policy()
        assert policy.window_ms == 15 * 60 * 1000
        assert policy.max_events == 100
        assert policy.counting_mode is CountingMode.ALL_REQUESTS
        assert policy.message == "Too many requests from this IP, please try again later"
        assert isinstance(policy.key_strategy, ClientIPKey)

    def test_strict_refunds_successes(self) -> None:
        policy = strict_policy()
        assert policy.max_events == 5
        assert policy.skip_successful_requests is True

    def test_login_is_identity_keyed_and_outcome_gated(self) -> None:
        policy = login_policy()
        assert policy.max_events == 5
        assert isinstance(policy.key_strategy, EmailKey)
        assert policy.counting_mode is CountingMode.OUTCOME_GATED
        assert policy.failure_statuses == frozenset({400, 401})

    def test_api(self) -> None:
        policy = api_policy()
        assert policy.window_ms == 60_000
        assert policy.max_events == 10

    def test_overrides(self) -> None:
        policy = login_policy(max_requests=6)
        assert policy.max_events == 6

    def test_trust_forwarded_for(self) -> None:
        assert general_policy(trust_forwarded_for=True).key_strategy.trust_forwarded_for is True

    def test_build_policy_default_identity_message(self) -> None:
        policy = build_policy("custom", PolicyConfig(window_ms=1000, max_requests=1, key="email"))
        assert policy.message == (
            "Too many failed attempts for this account, please try again later"
        )

    def test_build_policy_rejects_zero_ceiling(self) -> None:
        with pytest.raises(ConfigurationError):
            build_policy("bad", PolicyConfig(window_ms=1000, max_requests=0))


class TestGuardBinding:
    @pytest.mark.parametrize(
        "paths,methods,method,path,expected",
        [
            (("/",), (), "GET", "/anything", True),
            (("/api/users/login",), ("POST",), "POST", "/api/users/login", True),
            (("/api/users/login",), ("POST",), "GET", "/api/users/login", False),
            (("/api/users/login",), (), "POST", "/api/users/login/", True),
            (("/api/users/login",), (), "POST", "/api/users/loginx", False),
            (("/api/",), (), "GET", "/api/limits", True),
            ((), (), "GET", "/", False),
        ],
    )
    def test_matches(self, paths, methods, method, path, expected) -> None:
        binding = GuardBinding(guard=ThrottleGuard(general_policy()), paths=paths, methods=methods)
        assert binding.matches(method, path) is expected


class TestRegistry:
    def test_from_default_config(self, clock) -> None:
        registry = ThrottleRegistry.from_config(Config.defaults(), clock=clock)

        assert [guard.name for guard in registry] == ["general", "strict", "login", "api"]
        assert len(registry) == 4
        assert "login" in registry
        assert registry.binding("api").mounted is False
        assert registry.binding("login").methods == ("POST",)
        assert registry.guard("general").clock is clock

    def test_one_store_per_guard(self) -> None:
        stores = ThrottleRegistry.from_config(Config.defaults()).stores()
        assert len({id(store) for store in stores}) == 4

    def test_duplicate_name_rejected(self) -> None:
        registry = ThrottleRegistry()
        registry.register(ThrottleGuard(general_policy()), paths=["/"])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(ThrottleGuard(general_policy()))

    def test_unknown_name(self) -> None:
        registry = ThrottleRegistry()
        assert registry.get("missing") is None
        with pytest.raises(KeyError):
            registry.guard("missing")

    def test_methods_upper_cased(self) -> None:
        registry = ThrottleRegistry()
        registry.register(ThrottleGuard(strict_policy()), paths=["/x"], methods=["post"])
        assert registry.binding("strict").methods == ("POST",)

    def test_trust_forwarded_for_from_server_config(self) -> None:
        config = Config.defaults()
        config.server.trust_forwarded_for = True
        registry = ThrottleRegistry.from_config(config)
        assert registry.guard("general").policy.key_strategy.trust_forwarded_for is True
        assert isinstance(registry.guard("login").policy.key_strategy, EmailKey)
