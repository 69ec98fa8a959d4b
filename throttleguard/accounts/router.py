"""Account endpoints of the companion backend.

Provides:
  POST /api/users/register — create an account (201)
  POST /api/users/login    — verify credentials (200)

Throttling is not declared here: the strict and login policies are mounted
as middleware on these paths (see throttleguard.config.default_policies), so
the login limiter can see the status code each attempt produced.

Status codes feed the login limiter's outcome rule: 400 and 401 count as
failed attempts, 200 clears the count.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from throttleguard.accounts.directory import AccountDirectory, AccountError
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["users"])


# ─── Request Models ───────────────────────────────────────────────────────────
# Fields are optional so that missing values produce the 400 envelope from
# AccountValidationError instead of FastAPI's 422.


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


def _directory(request: Request) -> AccountDirectory:
    return request.app.state.accounts


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, request: Request) -> dict[str, Any]:
    """Register a new account.

    Returns:
        JSON: {"success": true, "data": {"user": {id, email, name, createdAt}}}

    Raises:
        HTTP 400: Missing fields, short password, or email already registered.
    """
    try:
        account = await _directory(request).register(body.email, body.password, body.name)
    except AccountError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    return {"success": True, "data": {"user": account.to_public()}}


@router.post("/login")
async def login(body: LoginRequest, request: Request) -> dict[str, Any]:
    """Verify email and password.

    Returns:
        JSON: {"success": true, "data": {"user": {id, email, name, createdAt}}}

    Raises:
        HTTP 400: Missing email or password.
        HTTP 401: Unknown email or wrong password.
    """
    try:
        account = await _directory(request).authenticate(body.email, body.password)
    except AccountError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    logger.info("Login succeeded", account_id=account.id)
    return {"success": True, "data": {"user": account.to_public()}}
