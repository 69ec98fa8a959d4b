"""Programmatic uvicorn entry point for ThrottleGuard.

Reads host and port from the loaded config (127.0.0.1:3000 by default) and
starts uvicorn with hardened defaults:

  --limit-concurrency 100  Max 100 concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth; limits SYN flood exposure
  --timeout-keep-alive 5   Reduces Slow Loris attack window

Run a single worker: limiter state is per process, so N workers would each
enforce the full ceiling.

Usage:
    python -m throttleguard.run
    throttleguard                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from throttleguard.config import load_config
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)

UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the ThrottleGuard server.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    config = load_config()

    mounted = [name for name, policy in config.policies.items() if policy.paths]
    logger.info(
        "Starting ThrottleGuard",
        host=config.server.host,
        port=config.server.port,
        middleware_policies=mounted,
        dependency_policies=sorted(set(config.policies) - set(mounted)),
        reaper_interval_ms=config.reaper.interval_ms,
    )

    uvicorn.run(
        "throttleguard.main:app",
        host=config.server.host,
        port=config.server.port,
        workers=1,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
