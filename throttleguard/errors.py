"""Exception types for ThrottleGuard.

  - ConfigurationError   — invalid policy values; raised at construction time
  - ThrottledError       — a denied request; rendered as HTTP 429
  - StoreCorruptionError — inconsistent window record; never leaves the store

Only ThrottledError is visible to HTTP clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from throttleguard.constants import THROTTLED_STATUS_CODE

if TYPE_CHECKING:
    from throttleguard.limiter.policy import Decision


class ConfigurationError(ValueError):
    """Raised when a ThrottlePolicy is constructed with unusable values.

    A policy with a non-positive window or ceiling would silently allow or
    deny everything, so it is rejected before the application starts.
    """


class StoreCorruptionError(Exception):
    """Raised by WindowRecord.check() for a record that violates its invariants.

    The WindowStore catches this and starts a fresh window for the key.
    """

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt window record for {key!r}: {reason}")
        self.key = key
        self.reason = reason


class ThrottledError(Exception):
    """A request was denied by a throttle policy.

    HTTP mapping: ``status_code`` (429) with a ``Retry-After`` header and the
    JSON envelope produced by ``to_body()``.
    """

    def __init__(
        self,
        decision: "Decision",
        message: str,
        status_code: int = THROTTLED_STATUS_CODE,
        policy_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.decision = decision
        self.message = message
        self.status_code = status_code
        self.policy_name = policy_name

    @property
    def retry_after(self) -> int:
        """Seconds until the caller's window resets."""
        return self.decision.retry_after

    def headers(self) -> dict[str, str]:
        """Rate-limit headers plus Retry-After for the denial response."""
        return self.decision.headers()

    def to_body(self) -> dict[str, Any]:
        """JSON body of the denial response."""
        return {
            "success": False,
            "error": {
                "message": self.message,
                "statusCode": self.status_code,
                "retryAfter": self.retry_after,
            },
        }
