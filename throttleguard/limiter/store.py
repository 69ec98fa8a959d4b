"""In-memory window store for ThrottleGuard.

One WindowStore per policy holds a WindowRecord per limiting key (client IP or
``email:<address>``). Each record is a fixed window: a count and the epoch
timestamp at which the window ends.

Concurrency:
    Every mutating method takes the store's re-entrant lock, and callers that
    need a multi-step read-modify-write (evaluate(), reconcile()) hold
    ``store.lock`` around the whole sequence. The lock is per store, so
    policies never contend with each other.

    sweep_expired() never holds the lock for a full scan: it snapshots the
    candidates, then re-checks and removes each one under the lock. A request
    racing an eviction simply starts a fresh window.

State is process-local and does not survive a restart. Several instances
behind a load balancer each enforce the ceiling independently.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from throttleguard.errors import StoreCorruptionError
from throttleguard.utils.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class WindowRecord:
    """Counter for one limiting key.

    Attributes:
        key:      Limiting key (raw client IP or ``email:<lowercased>``).
        count:    Charged events in the current window (never negative).
        reset_at: Epoch seconds at which the current window ends.
    """

    key: str
    count: int
    reset_at: float

    def is_active(self, now: float) -> bool:
        """True while the window is still running (``reset_at`` strictly after now)."""
        return self.reset_at > now

    def check(self, now: float, window_s: float) -> None:
        """Raise StoreCorruptionError if the record violates its invariants.

        A record is corrupt when its count is negative or its window ends
        further in the future than a full window (wall clock moved backwards,
        or the policy's window was shortened).
        """
        if self.count < 0:
            raise StoreCorruptionError(self.key, f"negative count {self.count}")
        if self.reset_at - now > window_s:
            raise StoreCorruptionError(self.key, "reset_at beyond one window")


class WindowStore:
    """Key-addressable WindowRecords with expiry-aware reads."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._records: dict[str, WindowRecord] = {}
        self._clock = clock
        self.lock = threading.RLock()

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[WindowRecord]:
        """Return the record for key, expired or not, without side effects."""
        return self._records.get(key)

    def keys(self) -> list[str]:
        with self.lock:
            return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[WindowRecord]:
        return iter(list(self._records.values()))

    # ── Window lifecycle ──────────────────────────────────────────────────────

    def get_or_init(self, key: str, now: float, window_s: float) -> WindowRecord:
        """Return the active record for key, starting a fresh window if needed.

        A window ending exactly at ``now`` is over: the request belongs to a
        new window. Corrupt records are logged and replaced, never raised.

        Args:
            key:      Limiting key.
            now:      Current epoch seconds.
            window_s: Window length in seconds for a fresh record.

        Returns:
            The live WindowRecord for key (count 0 when freshly created).
        """
        with self.lock:
            record = self._records.get(key)
            if record is not None and record.is_active(now):
                try:
                    record.check(now, window_s)
                    return record
                except StoreCorruptionError as exc:
                    logger.warning(
                        "Corrupt window record replaced",
                        key=key,
                        reason=exc.reason,
                    )
            record = WindowRecord(key=key, count=0, reset_at=now + window_s)
            self._records[key] = record
            return record

    def increment(self, key: str) -> Optional[WindowRecord]:
        """Charge one event to key. No-op for unknown keys (call get_or_init first)."""
        with self.lock:
            record = self._records.get(key)
            if record is None:
                return None
            record.count += 1
            return record

    def decrement(self, key: str) -> Optional[WindowRecord]:
        """Refund one event for key, floored at zero. No-op for unknown keys."""
        with self.lock:
            record = self._records.get(key)
            if record is None:
                return None
            record.count = max(0, record.count - 1)
            return record

    def reset(self, key: str) -> Optional[WindowRecord]:
        """Clear the count for key while keeping its window. No-op for unknown keys."""
        with self.lock:
            record = self._records.get(key)
            if record is None:
                return None
            record.count = 0
            return record

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Remove every record whose window has ended.

        Args:
            now: Epoch seconds; defaults to the store's clock.

        Returns:
            Number of records removed.
        """
        if now is None:
            now = self._clock()
        candidates = [
            key for key, record in list(self._records.items()) if record.reset_at <= now
        ]
        removed = 0
        for key in candidates:
            with self.lock:
                record = self._records.get(key)
                # Re-check: a request may have refreshed the window meanwhile.
                if record is not None and record.reset_at <= now:
                    del self._records[key]
                    removed += 1
        return removed

    def clear(self) -> None:
        with self.lock:
            self._records.clear()
