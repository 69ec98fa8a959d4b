"""HTTP adapters binding the limiter to Starlette/FastAPI.

  - ThrottleMiddleware / install_throttling() — path-scoped middleware
  - require_quota()                           — per-route FastAPI dependency
  - throttled_error_handler()                 — ThrottledError → HTTP 429
"""

from __future__ import annotations

from throttleguard.http.dependencies import require_quota, throttled_error_handler
from throttleguard.http.middleware import (
    ThrottleMiddleware,
    build_throttle_request,
    install_throttling,
    throttled_response,
)

__all__ = [
    "ThrottleMiddleware",
    "build_throttle_request",
    "install_throttling",
    "require_quota",
    "throttled_error_handler",
    "throttled_response",
]
