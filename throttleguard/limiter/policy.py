"""Throttle policies and the allow/deny evaluator.

ThrottlePolicy is immutable configuration: window length, ceiling, key
strategy, counting mode and denial message. evaluate() is the decision
function: given a policy, the policy's WindowStore, a key and the current
time, it charges the key (when allowed) and returns a Decision.

Counting modes:
  - all-requests  — every admitted request is charged. With
                    ``skip_successful_requests`` the charge is refunded when
                    the handler succeeds.
  - outcome-gated — every admitted request is charged up front; the outcome
                    observer resets the count on success and refunds anything
                    that is neither a success nor a listed failure status.

The charge is always applied at decision time so that a denial happens before
the handler runs; outcomes can only ever undo charges.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from throttleguard.constants import (
    DEFAULT_FAILURE_STATUSES,
    DEFAULT_IP_MESSAGE,
    HEADER_LIMIT,
    HEADER_REMAINING,
    HEADER_RESET,
    HEADER_RETRY_AFTER,
    THROTTLED_STATUS_CODE,
)
from throttleguard.errors import ConfigurationError
from throttleguard.limiter.keys import ClientIPKey, KeyStrategy
from throttleguard.limiter.store import WindowStore


def _positive_int(value: object) -> bool:
    # bool is an int subclass; `window_ms: true` must not read as 1 ms.
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class CountingMode(str, Enum):
    ALL_REQUESTS = "all-requests"
    OUTCOME_GATED = "outcome-gated"


@dataclass(frozen=True)
class ThrottlePolicy:
    """Configuration of one guarded route class.

    Raises:
        ConfigurationError: On a non-positive window or ceiling, a status code
                            outside 400-599, or ``skip_successful_requests``
                            combined with the outcome-gated mode.
    """

    name: str
    window_ms: int
    max_events: int
    key_strategy: KeyStrategy = field(default_factory=ClientIPKey)
    counting_mode: CountingMode = CountingMode.ALL_REQUESTS
    skip_successful_requests: bool = False
    failure_statuses: frozenset[int] = DEFAULT_FAILURE_STATUSES
    message: str = DEFAULT_IP_MESSAGE
    status_code: int = THROTTLED_STATUS_CODE

    def __post_init__(self) -> None:
        if not _positive_int(self.window_ms):
            raise ConfigurationError(
                f"Policy '{self.name}': window_ms must be a positive integer, got {self.window_ms!r}"
            )
        if not _positive_int(self.max_events):
            raise ConfigurationError(
                f"Policy '{self.name}': max_events must be a positive integer, got {self.max_events!r}"
            )
        if not 400 <= self.status_code <= 599:
            raise ConfigurationError(
                f"Policy '{self.name}': status_code must be a 4xx/5xx code, "
                f"got {self.status_code}"
            )
        if self.skip_successful_requests and self.counting_mode is CountingMode.OUTCOME_GATED:
            raise ConfigurationError(
                f"Policy '{self.name}': skip_successful_requests only applies to "
                f"the '{CountingMode.ALL_REQUESTS.value}' counting mode"
            )
        # Normalise so callers may pass any iterable of ints.
        object.__setattr__(self, "failure_statuses", frozenset(self.failure_statuses))

    @property
    def window_s(self) -> float:
        return self.window_ms / 1000.0


def format_reset(reset_at: float) -> str:
    """Render an epoch timestamp as ISO-8601 UTC, e.g. ``2026-10-18T09:15:00.000Z``."""
    moment = datetime.fromtimestamp(reset_at, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Decision:
    """Outcome of one evaluation.

    Attributes:
        allowed:     True if the request may proceed.
        limit:       The policy ceiling (X-RateLimit-Limit).
        remaining:   Events left in the window after this one.
        reset_at:    Epoch seconds at which the window ends (always set).
        retry_after: Whole seconds until reset when denied; 0 when allowed.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0

    def headers(self) -> dict[str, str]:
        """Rate-limit response headers; Retry-After is included only on denial."""
        headers = {
            HEADER_LIMIT: str(self.limit),
            HEADER_REMAINING: str(self.remaining),
            HEADER_RESET: format_reset(self.reset_at),
        }
        if not self.allowed:
            headers[HEADER_RETRY_AFTER] = str(self.retry_after)
        return headers


def evaluate(policy: ThrottlePolicy, store: WindowStore, key: str, now: float) -> Decision:
    """Decide whether the request keyed by ``key`` may proceed at ``now``.

    Denied requests are not charged. The whole read-check-increment sequence
    runs under the store lock, so concurrent requests for the same key are
    charged one at a time in arrival order.

    Args:
        policy: The route policy.
        store:  The policy's WindowStore.
        key:    Limiting key from the policy's key strategy.
        now:    Current epoch seconds.

    Returns:
        Decision with ``reset_at`` populated in both branches.
    """
    with store.lock:
        record = store.get_or_init(key, now, policy.window_s)

        # A non-positive ceiling can only come from bypassing ThrottlePolicy
        # validation; it denies everything rather than allowing everything.
        if record.count >= policy.max_events:
            return Decision(
                allowed=False,
                limit=policy.max_events,
                remaining=0,
                reset_at=record.reset_at,
                retry_after=max(1, math.ceil(record.reset_at - now)),
            )

        store.increment(key)
        return Decision(
            allowed=True,
            limit=policy.max_events,
            remaining=max(0, policy.max_events - record.count),
            reset_at=record.reset_at,
        )
