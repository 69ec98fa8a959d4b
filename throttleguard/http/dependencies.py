"""FastAPI dependency adapter for throttle policies.

For routes that want a policy attached per endpoint instead of by path
prefix:

    @router.post("/render", dependencies=[Depends(require_quota("api"))])

The dependency charges the request, raises ThrottledError when the quota is
exhausted (rendered as HTTP 429 by throttled_error_handler) and copies the
rate-limit headers onto the response. It cannot observe the handler's
outcome, so charges made here are never refunded; outcome-gated and
skip-successful policies belong on ThrottleMiddleware.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from throttleguard.errors import ThrottledError
from throttleguard.http.middleware import build_throttle_request, throttled_response
from throttleguard.limiter.policy import Decision


def require_quota(policy_name: str) -> Callable[[Request, Response], Awaitable[Optional[Decision]]]:
    """Build a dependency enforcing the registered policy ``policy_name``.

    The guard is looked up on ``request.app.state.throttle_registry`` at
    request time, so the same dependency works for any app instance.

    Raises (from the dependency):
        ThrottledError: Quota exhausted.
        KeyError:       No policy registered under ``policy_name``.
    """

    async def _require_quota(request: Request, response: Response) -> Optional[Decision]:
        guard = request.app.state.throttle_registry.guard(policy_name)
        policy = guard.policy
        throttle_request = await build_throttle_request(
            request, read_body=policy.key_strategy.reads_body
        )
        admission = guard.admit(throttle_request)

        if admission.denied:
            error = admission.to_error()
            guard.log.warning(
                "Request throttled",
                key=admission.key,
                path=request.url.path,
                method=request.method,
                retry_after=error.retry_after,
            )
            raise error

        for name, value in admission.headers().items():
            response.headers[name] = value
        return admission.decision

    return _require_quota


async def throttled_error_handler(request: Request, exc: ThrottledError) -> JSONResponse:
    """Exception handler: ThrottledError → 429 JSON response with Retry-After."""
    return throttled_response(exc)
