"""Throttle policy snapshot endpoint.

  GET /api/limits — configured policies and how many keys each one tracks

Walking every store is the most expensive read the service offers, so the
route is itself guarded by the heavy-operation ``api`` policy.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from throttleguard.http.dependencies import require_quota

router = APIRouter(tags=["limits"])


def describe_policies(request: Request) -> list[dict[str, Any]]:
    """Summarise every registered policy (shared with /health)."""
    registry = request.app.state.throttle_registry
    summary = []
    for binding in registry.bindings():
        policy = binding.guard.policy
        summary.append(
            {
                "name": policy.name,
                "windowMs": policy.window_ms,
                "maxEvents": policy.max_events,
                "countingMode": policy.counting_mode.value,
                "skipSuccessfulRequests": policy.skip_successful_requests,
                "paths": list(binding.paths),
                "methods": list(binding.methods),
                "trackedKeys": len(binding.guard.store),
            }
        )
    return summary


@router.get("/limits", dependencies=[Depends(require_quota("api"))])
async def get_limits(request: Request) -> dict[str, Any]:
    """Return the throttle policy snapshot.

    Response body:
        {"success": true, "data": {"policies": [{name, windowMs, maxEvents,
         countingMode, skipSuccessfulRequests, paths, methods, trackedKeys}, ...]}}
    """
    return {"success": True, "data": {"policies": describe_policies(request)}}
