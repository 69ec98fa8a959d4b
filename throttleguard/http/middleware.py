"""Starlette middleware that applies a ThrottleGuard to a set of routes.

Registration (in create_app() in throttleguard/main.py):
    install_throttling(application, registry)

Per request in scope:
  1. Build a ThrottleRequest (the JSON body is parsed only for identity keys).
  2. guard.admit() — denied → HTTP 429 with Retry-After, rate headers and
     {"success": false, "error": {message, statusCode, retryAfter}}.
     The route handler never runs.
  3. Allowed → run the handler, report its status to admission.complete(),
     then add X-RateLimit-* headers. Headers already set by an inner guard
     are kept, so the most specific policy's numbers reach the client.

Requests outside the guard's paths/methods pass through untouched.
"""

from __future__ import annotations

import json
from typing import Sequence

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from throttleguard.errors import ThrottledError
from throttleguard.limiter.guard import ThrottleGuard
from throttleguard.limiter.keys import ThrottleRequest
from throttleguard.limiter.observer import Outcome
from throttleguard.limiter.registry import GuardBinding, ThrottleRegistry
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)


async def build_throttle_request(request: Request, read_body: bool = False) -> ThrottleRequest:
    """Convert a Starlette request into the limiter's framework-neutral view.

    Args:
        request:   Incoming request.
        read_body: Parse the body as JSON. Starlette caches the bytes, so the
                   route handler can still read the body afterwards.

    Returns:
        ThrottleRequest whose ``body`` is a dict, or None for empty, non-JSON
        or non-object bodies.
    """
    body = None
    if read_body:
        raw = await request.body()
        if raw:
            try:
                parsed = json.loads(raw)
            except (ValueError, UnicodeDecodeError):
                parsed = None
            if isinstance(parsed, dict):
                body = parsed

    return ThrottleRequest(
        method=request.method.upper(),
        path=request.url.path,
        client_host=request.client.host if request.client else None,
        headers={name.lower(): value for name, value in request.headers.items()},
        body=body,
    )


def throttled_response(error: ThrottledError) -> JSONResponse:
    """Render a ThrottledError as the 429 JSON response."""
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_body(),
        headers=error.headers(),
    )


class ThrottleMiddleware(BaseHTTPMiddleware):
    """Apply one ThrottleGuard to requests matching ``paths`` and ``methods``.

    Args:
        app:     Next ASGI app.
        guard:   The guard to apply.
        paths:   Path prefixes in scope (``"/"`` matches everything).
        methods: HTTP methods in scope; empty means all.
    """

    def __init__(
        self,
        app: ASGIApp,
        guard: ThrottleGuard,
        paths: Sequence[str] = ("/",),
        methods: Sequence[str] = (),
    ) -> None:
        super().__init__(app)
        self.guard = guard
        self.binding = GuardBinding(guard=guard, paths=tuple(paths), methods=tuple(
            m.upper() for m in methods
        ))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.binding.matches(request.method, request.url.path):
            return await call_next(request)

        throttle_request = await build_throttle_request(
            request, read_body=self.guard.policy.key_strategy.reads_body
        )
        admission = self.guard.admit(throttle_request)

        if admission.denied:
            error = admission.to_error()
            self.guard.log.warning(
                "Request throttled",
                key=admission.key,
                path=request.url.path,
                method=request.method,
                retry_after=error.retry_after,
            )
            return throttled_response(error)

        try:
            response = await call_next(request)
        except Exception:
            admission.complete(Outcome(success=False, status_code=500))
            raise

        admission.complete(Outcome.from_status(response.status_code))
        for name, value in admission.headers().items():
            response.headers.setdefault(name, value)
        return response


def install_throttling(app: Starlette, registry: ThrottleRegistry) -> None:
    """Mount a ThrottleMiddleware for every scoped guard in the registry.

    Starlette runs the LAST-added middleware first, so guards are added in
    reverse registration order: the first registered guard is outermost.
    Guards without paths are dependency-only and are skipped.
    """
    for binding in reversed(registry.bindings()):
        if not binding.mounted:
            continue
        app.add_middleware(
            ThrottleMiddleware,
            guard=binding.guard,
            paths=binding.paths,
            methods=binding.methods,
        )
        logger.debug(
            "Throttle middleware mounted",
            policy=binding.guard.name,
            paths=list(binding.paths),
            methods=list(binding.methods),
        )
