"""Route policy factories.

Four configured instances of ThrottleGuard protect the companion backend:

  general — every route, 100 requests / 15 min per client IP
  strict  — registration, 5 failed attempts / 15 min per client IP
            (successful requests are refunded)
  login   — login, 5 failed attempts / 15 min per email address
            (outcome-gated: a successful login clears the count)
  api     — heavy operations, 10 requests / min per client IP

build_policy() turns a PolicyConfig (from config.yaml) into a ThrottlePolicy;
the named factories are shortcuts with the built-in defaults.
"""

from __future__ import annotations

from typing import Optional

from throttleguard.config import PolicyConfig, default_policies
from throttleguard.constants import DEFAULT_IDENTITY_MESSAGE, DEFAULT_IP_MESSAGE
from throttleguard.limiter.keys import ClientIPKey, EmailKey, KeyStrategy
from throttleguard.limiter.policy import CountingMode, ThrottlePolicy


def build_policy(
    name: str,
    config: PolicyConfig,
    trust_forwarded_for: bool = False,
) -> ThrottlePolicy:
    """Build a ThrottlePolicy from its config entry.

    Raises:
        ConfigurationError: On unusable window/ceiling values.
    """
    key_strategy: KeyStrategy
    if config.key == "email":
        key_strategy = EmailKey()
        default_message = DEFAULT_IDENTITY_MESSAGE
    else:
        key_strategy = ClientIPKey(trust_forwarded_for=trust_forwarded_for)
        default_message = DEFAULT_IP_MESSAGE

    return ThrottlePolicy(
        name=name,
        window_ms=config.window_ms,
        max_events=config.max_requests,
        key_strategy=key_strategy,
        counting_mode=CountingMode(config.counting),
        skip_successful_requests=config.skip_successful_requests,
        failure_statuses=frozenset(config.failure_statuses),
        message=config.message or default_message,
    )


def _preset(name: str, trust_forwarded_for: bool, overrides: Optional[dict]) -> ThrottlePolicy:
    config = default_policies()[name]
    for attr, value in (overrides or {}).items():
        setattr(config, attr, value)
    return build_policy(name, config, trust_forwarded_for=trust_forwarded_for)


def general_policy(trust_forwarded_for: bool = False, **overrides) -> ThrottlePolicy:
    return _preset("general", trust_forwarded_for, overrides)


def strict_policy(trust_forwarded_for: bool = False, **overrides) -> ThrottlePolicy:
    return _preset("strict", trust_forwarded_for, overrides)


def login_policy(**overrides) -> ThrottlePolicy:
    """Per-email failed-login limiter. Requests without an email bypass it."""
    return _preset("login", False, overrides)


def api_policy(trust_forwarded_for: bool = False, **overrides) -> ThrottlePolicy:
    return _preset("api", trust_forwarded_for, overrides)
