"""Background sweeper that evicts expired window records.

The Reaper bounds memory: every ``interval_s`` it calls sweep_expired() on
each store it was given. It is an explicit lifecycle object owned by the
application lifespan — nothing starts at import time.

Usage (in lifespan):
    reaper = Reaper(registry.stores(), interval_s=60.0)
    reaper.start()
    ...
    await reaper.stop()

Failure model: an exception from one store is logged and the pass continues
with the next store; a failed tick never ends the loop. Sweeps take each
store's lock per record only, so request handling is never blocked behind a
full scan.
"""

from __future__ import annotations

import asyncio
import time
from typing import Iterable, Optional

from throttleguard.limiter.store import Clock, WindowStore
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)


class Reaper:
    """Periodic expired-record sweeper for a fixed set of WindowStores."""

    def __init__(
        self,
        stores: Iterable[WindowStore],
        interval_s: float = 60.0,
        clock: Clock = time.time,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"Reaper interval must be positive, got {interval_s}")
        self._stores = list(stores)
        self._interval_s = interval_s
        self._clock = clock
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> int:
        """Run one pass over every store.

        Returns:
            Total number of records removed.
        """
        now = self._clock()
        removed = 0
        for store in self._stores:
            try:
                removed += store.sweep_expired(now)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Window sweep failed (non-fatal)",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        if removed:
            logger.debug("Expired window records evicted", removed=removed)
        return removed

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop.

        Must be called from within a running loop (e.g. the app lifespan).
        A second call while the loop is running is ignored.
        """
        if self.running:
            logger.warning("Reaper already running — start() ignored")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="throttleguard-reaper"
        )
        logger.info(
            "Reaper started",
            interval_s=self._interval_s,
            stores=len(self._stores),
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish. Safe to call twice."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Reaper stopped")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval_s)
                try:
                    self.sweep()
                except Exception as exc:  # noqa: BLE001
                    logger.error("Reaper tick failed (non-fatal)", error=str(exc))
        except asyncio.CancelledError:
            logger.debug("Reaper loop cancelled")
            raise
