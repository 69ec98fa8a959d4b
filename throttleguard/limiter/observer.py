"""Outcome reconciliation for charges applied at decision time.

evaluate() charges every admitted request before its handler runs. Once the
handler has produced a status, reconcile() undoes the charge where the policy
says that outcome should not count:

  outcome-gated policy
    success (status < 400)          → count reset to 0 (a good login clears the slate)
    status in failure_statuses      → charge kept
    anything else (422, 5xx, ...)   → charge refunded

  all-requests policy
    skip_successful_requests + success → charge refunded
    otherwise                          → charge kept

Refunds only apply to the window that was charged. If the window rolled over
while the handler ran, the outcome is stale and nothing changes.
"""

from __future__ import annotations

from dataclasses import dataclass

from throttleguard.limiter.policy import CountingMode, ThrottlePolicy
from throttleguard.limiter.store import WindowStore

KEPT = "kept"
REFUNDED = "refunded"
RESET = "reset"
STALE = "stale"


@dataclass(frozen=True)
class Outcome:
    """Result of the guarded handler, as reported by the HTTP layer."""

    success: bool
    status_code: int

    @classmethod
    def from_status(cls, status_code: int) -> "Outcome":
        return cls(success=status_code < 400, status_code=status_code)


def reconcile(
    policy: ThrottlePolicy,
    store: WindowStore,
    key: str,
    window_reset_at: float,
    outcome: Outcome,
) -> str:
    """Apply the policy's outcome rule to the charge made for ``key``.

    Args:
        policy:          The policy that admitted the request.
        store:           The policy's WindowStore.
        key:             The limiting key that was charged.
        window_reset_at: ``reset_at`` of the window that was charged.
        outcome:         Handler result.

    Returns:
        The action taken: "kept", "refunded", "reset" or "stale".
    """
    with store.lock:
        record = store.get(key)
        if record is None or record.reset_at != window_reset_at:
            return STALE

        if policy.counting_mode is CountingMode.OUTCOME_GATED:
            if outcome.success:
                store.reset(key)
                return RESET
            if outcome.status_code in policy.failure_statuses:
                return KEPT
            store.decrement(key)
            return REFUNDED

        if policy.skip_successful_requests and outcome.success:
            store.decrement(key)
            return REFUNDED
        return KEPT
