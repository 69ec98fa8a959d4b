"""ThrottleGuard FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app = create_app() — module-level instance for uvicorn

Construction (create_app):
  1. load_config()                      → app.state.config
  2. ThrottleRegistry.from_config()     → app.state.throttle_registry
                                          (one guard + one WindowStore per policy)
  3. Reaper(registry.stores())          → app.state.reaper (not started yet)
  4. AccountDirectory()                 → app.state.accounts
  5. install_throttling()               → one ThrottleMiddleware per scoped policy

Guards are built here rather than in the lifespan because Starlette needs
the middleware stack before the first request.

Startup (lifespan): start reaper → app.state.ready = True
Shutdown (reverse): app.state.ready = False → stop reaper
"""

from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from throttleguard.accounts.directory import AccountDirectory
from throttleguard.accounts.router import router as accounts_router
from throttleguard.config import Config, load_config
from throttleguard.errors import ThrottledError
from throttleguard.health import router as health_router
from throttleguard.http.dependencies import throttled_error_handler
from throttleguard.http.limits import router as limits_router
from throttleguard.http.middleware import install_throttling
from throttleguard.limiter.reaper import Reaper
from throttleguard.limiter.registry import ThrottleRegistry
from throttleguard.limiter.store import Clock
from throttleguard.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Routers ──────────────────────────────────────────────────────────────────

root_router = APIRouter(tags=["root"])


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "ThrottleGuard",
        "health": "/health",
        "limits": "/api/limits",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — start the reaper, flip ready, and undo on shutdown."""
    logger.info("ThrottleGuard starting up...")

    reaper: Reaper = app.state.reaper
    reaper.start()

    app.state.ready = True
    logger.info(
        "ThrottleGuard ready",
        policies=[guard.name for guard in app.state.throttle_registry],
    )

    yield

    logger.info("ThrottleGuard shutting down...")
    app.state.ready = False

    try:
        await reaper.stop()
    except Exception as exc:
        logger.warning("Reaper stop error (non-fatal)", error=str(exc))

    logger.info("ThrottleGuard shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def _error_body(status_code: int, detail: Any) -> dict[str, Any]:
    if isinstance(detail, dict):
        error = {**detail, "statusCode": status_code}
    else:
        error = {"message": str(detail), "statusCode": status_code}
    return {"success": False, "error": error}


def create_app(config: Optional[Config] = None, clock: Optional[Clock] = None) -> FastAPI:
    """Create and configure the ThrottleGuard FastAPI application.

    Call this function directly in tests to get an isolated app instance
    (each call builds fresh guards and stores):
        app = create_app(config=Config.defaults(), clock=fake_clock)

    Args:
        config: Configuration; loaded with load_config() when omitted.
        clock:  Epoch-seconds clock shared by guards and reaper
                (``time.time`` when omitted).

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.

    Raises:
        SystemExit(1): Propagated from load_config() on config errors.
    """
    if config is None:
        config = load_config()

    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="ThrottleGuard",
        description="Request throttling for authentication and heavy endpoints",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    application.state.ready = False
    application.state.config = config

    if clock is None:
        clock = time.time

    registry = ThrottleRegistry.from_config(config, clock=clock)
    application.state.throttle_registry = registry

    application.state.reaper = Reaper(
        registry.stores(),
        interval_s=config.reaper.interval_ms / 1000.0,
        clock=clock,
    )

    application.state.accounts = AccountDirectory(
        bcrypt_rounds=config.accounts.bcrypt_rounds
    )

    # One ThrottleMiddleware per scoped policy; the first configured policy
    # (general) is outermost so IP floods are rejected before body parsing.
    install_throttling(application, registry)

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(accounts_router, prefix="/api/users")
    application.include_router(limits_router, prefix="/api")

    # Global exception handlers
    application.add_exception_handler(ThrottledError, throttled_error_handler)  # type: ignore[arg-type]

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content=_error_body(500, "Internal server error")
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────
#   uvicorn throttleguard.main:app --host 127.0.0.1 --port 3000

app = create_app()
