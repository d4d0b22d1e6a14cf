"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state so increments are atomic.
- Expiry is evaluated lazily on access, like Redis' passive expiration, and
  every ``sweep_interval`` increments expired entries of other keys are
  swept so the map does not grow with every client ever seen.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounterStore


@dataclass
class _CounterEntry:
    value: int
    expires_at: float | None = None


DEFAULT_SWEEP_INTERVAL = 1024


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store honouring the shared-store contract inside one process.

    Useful for tests and local development. It never raises
    ``StoreUnavailableAppError`` since there is no backend to lose.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; monotonic by default.
            sweep_interval: Number of increments between sweeps of expired
                entries.

        Raises:
            ValueError: If sweep_interval is invalid.
        """
        if sweep_interval < 1:
            raise ValueError("sweep_interval must be >= 1")

        self._clock = clock
        self._sweep_interval = sweep_interval
        self._increments_since_sweep = 0
        self._lock = threading.RLock()
        self._entries: dict[str, _CounterEntry] = {}

    def size(self) -> int:
        """Number of counters currently held, expired ones not yet swept included."""
        with self._lock:
            return len(self._entries)

    def _get_live_entry(self, key: str, now: float) -> _CounterEntry | None:
        """Return the entry for key, dropping it first if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def _sweep_expired(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for key in expired:
            del self._entries[key]

    def increment(self, key: str) -> int:
        with self._lock:
            now = self._clock()
            self._increments_since_sweep += 1
            if self._increments_since_sweep >= self._sweep_interval:
                self._increments_since_sweep = 0
                self._sweep_expired(now)

            entry = self._get_live_entry(key, now)
            if entry is None:
                entry = _CounterEntry(value=0)
                self._entries[key] = entry
            entry.value += 1
            return entry.value

    def set_expiry_if_absent(self, key: str, ttl: timedelta) -> None:
        with self._lock:
            now = self._clock()
            entry = self._get_live_entry(key, now)
            if entry is None or entry.expires_at is not None:
                return
            entry.expires_at = now + ttl.total_seconds()

    def get_remaining_ttl(self, key: str) -> timedelta | None:
        with self._lock:
            now = self._clock()
            entry = self._get_live_entry(key, now)
            if entry is None or entry.expires_at is None:
                return None
            return timedelta(seconds=entry.expires_at - now)

    def clear(self) -> None:
        """Drop every counter (test helper)."""
        with self._lock:
            self._entries.clear()
