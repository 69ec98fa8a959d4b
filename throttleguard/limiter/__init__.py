"""ThrottleGuard limiter package — in-memory fixed-window request throttling.

Public API:
  - WindowStore / WindowRecord  — per-policy key → window counter storage
  - ThrottlePolicy / CountingMode — immutable route policy configuration
  - evaluate() / Decision       — allow/deny decision, charges allowed requests
  - Outcome / reconcile()       — undo charges based on the handler outcome
  - ThrottleGuard / Admission   — per-request entry point (fail-open)
  - Reaper                      — background expired-record sweeper
  - ThrottleRegistry            — named guards and their route scope
  - ClientIPKey / EmailKey / ThrottleRequest — limiting-key strategies
"""

from __future__ import annotations

from throttleguard.limiter.guard import Admission, ThrottleGuard
from throttleguard.limiter.keys import ClientIPKey, EmailKey, ThrottleRequest
from throttleguard.limiter.observer import Outcome, reconcile
from throttleguard.limiter.policy import CountingMode, Decision, ThrottlePolicy, evaluate
from throttleguard.limiter.reaper import Reaper
from throttleguard.limiter.registry import GuardBinding, ThrottleRegistry
from throttleguard.limiter.store import WindowRecord, WindowStore

__all__ = [
    "Admission",
    "ClientIPKey",
    "CountingMode",
    "Decision",
    "EmailKey",
    "GuardBinding",
    "Outcome",
    "Reaper",
    "ThrottleGuard",
    "ThrottlePolicy",
    "ThrottleRegistry",
    "ThrottleRequest",
    "WindowRecord",
    "WindowStore",
    "evaluate",
    "reconcile",
]
