"""Health endpoint for ThrottleGuard.

  GET /health — 503 before startup completes, 200 with limiter status after.

The ``app.state.ready`` flag is set by the lifespan once the reaper runs.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from throttleguard.http.limits import describe_policies

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check endpoint.

    Response body (200):
        {
          "status": "ok",
          "reaper": "running" | "stopped",
          "policies": [{name, windowMs, maxEvents, ...}, ...]
        }

    Response body (503):
        {"status": "starting", "message": "ThrottleGuard is starting up..."}
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "ThrottleGuard is starting up...",
            },
        )

    reaper = getattr(request.app.state, "reaper", None)
    return {
        "status": "ok",
        "reaper": "running" if reaper is not None and reaper.running else "stopped",
        "policies": describe_policies(request),
    }
