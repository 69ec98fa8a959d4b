"""ThrottleGuard — in-memory request throttling for FastAPI/Starlette services.

IP-keyed and identity-keyed fixed-window limiting with per-route policies,
X-RateLimit-* headers, outcome-based refunds and a background reaper.
"""

from __future__ import annotations

from throttleguard.errors import ConfigurationError, StoreCorruptionError, ThrottledError
from throttleguard.limiter import (
    Admission,
    ClientIPKey,
    CountingMode,
    Decision,
    EmailKey,
    Outcome,
    Reaper,
    ThrottleGuard,
    ThrottlePolicy,
    ThrottleRegistry,
    ThrottleRequest,
    WindowRecord,
    WindowStore,
    evaluate,
    reconcile,
)

__version__ = "1.0.0"

__all__ = [
    "Admission",
    "ClientIPKey",
    "ConfigurationError",
    "CountingMode",
    "Decision",
    "EmailKey",
    "Outcome",
    "Reaper",
    "StoreCorruptionError",
    "ThrottleGuard",
    "ThrottlePolicy",
    "ThrottleRegistry",
    "ThrottleRequest",
    "ThrottledError",
    "WindowRecord",
    "WindowStore",
    "evaluate",
    "reconcile",
]
