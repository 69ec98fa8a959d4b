"""ThrottleGuard — per-request entry point of the limiter.

A guard owns one policy and one WindowStore. The HTTP layer calls:

    admission = guard.admit(throttle_request)     # before the handler
    if admission.denied:
        -> respond 429 with admission.to_error()
    ... run handler ...
    admission.complete(Outcome.from_status(status))   # after the handler

admit() never raises: a key strategy or store failure is logged and the
request is let through without headers (fail-open). A limiter bug must not
turn into an outage for legitimate callers. complete() is equally silent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from throttleguard.errors import ThrottledError
from throttleguard.limiter.keys import ThrottleRequest
from throttleguard.limiter.observer import Outcome, reconcile
from throttleguard.limiter.policy import Decision, ThrottlePolicy, evaluate
from throttleguard.limiter.store import Clock, WindowStore
from throttleguard.utils.logger import get_policy_logger


@dataclass
class Admission:
    """The guard's verdict for one request, plus its completion hook.

    ``decision`` is None for pass-through admissions (no limiting key, or the
    limiter failed open); such admissions carry no headers and are never
    reconciled.
    """

    guard: "ThrottleGuard"
    key: Optional[str] = None
    decision: Optional[Decision] = None
    _completed: bool = field(default=False, repr=False)

    @property
    def policy(self) -> ThrottlePolicy:
        return self.guard.policy

    @property
    def allowed(self) -> bool:
        return self.decision is None or self.decision.allowed

    @property
    def denied(self) -> bool:
        return not self.allowed

    def headers(self) -> dict[str, str]:
        if self.decision is None:
            return {}
        return self.decision.headers()

    def to_error(self) -> ThrottledError:
        """ThrottledError describing this denial. Only valid when ``denied``."""
        if self.decision is None or self.decision.allowed:
            raise RuntimeError("to_error() called on an allowed admission")
        return ThrottledError(
            self.decision,
            message=self.policy.message,
            status_code=self.policy.status_code,
            policy_name=self.policy.name,
        )

    def complete(self, outcome: Outcome) -> Optional[str]:
        """Report the handler outcome. Only the first call has any effect.

        Returns:
            The reconcile action, or None when nothing was reconciled.
        """
        if self._completed:
            return None
        self._completed = True
        if self.key is None or self.decision is None or not self.decision.allowed:
            return None
        return self.guard.reconcile(self.key, self.decision, outcome)


class ThrottleGuard:
    """Composition of a ThrottlePolicy, its WindowStore and the evaluator.

    Args:
        policy: The policy to enforce.
        store:  Store for this guard; a fresh one is created if omitted. Never
                share a store between guards.
        clock:  Returns the current epoch seconds (``time.time`` by default).
    """

    def __init__(
        self,
        policy: ThrottlePolicy,
        store: Optional[WindowStore] = None,
        clock: Clock = time.time,
    ) -> None:
        self.policy = policy
        self.clock = clock
        self.store = store if store is not None else WindowStore(clock=clock)
        self.log = get_policy_logger(__name__, policy.name)

    @property
    def name(self) -> str:
        return self.policy.name

    def admit(self, request: ThrottleRequest) -> Admission:
        """Evaluate the request against the policy and charge it if allowed."""
        try:
            key = self.policy.key_strategy(request)
        except Exception as exc:  # noqa: BLE001
            self.log.error(
                "Key strategy failed — request allowed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return Admission(guard=self)

        if key is None:
            return Admission(guard=self)

        try:
            decision = evaluate(self.policy, self.store, key, self.clock())
        except Exception as exc:  # noqa: BLE001
            self.log.error(
                "Throttle evaluation failed — request allowed",
                key=key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return Admission(guard=self, key=key)

        return Admission(guard=self, key=key, decision=decision)

    def reconcile(self, key: str, decision: Decision, outcome: Outcome) -> Optional[str]:
        """Apply the outcome rule for a previously admitted request. Never raises."""
        try:
            action = reconcile(self.policy, self.store, key, decision.reset_at, outcome)
        except Exception as exc:  # noqa: BLE001
            self.log.error(
                "Outcome reconciliation failed",
                key=key,
                error=str(exc),
            )
            return None
        self.log.debug(
            "Outcome reconciled",
            key=key,
            status_code=outcome.status_code,
            action=action,
        )
        return action
