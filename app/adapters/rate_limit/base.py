"""Counter store interface and the rate limit decision value object.

The limiter engine depends on this abstraction (not the concrete store) so the
shared backend (Redis) can be replaced by the in-memory store in tests or
single-process deployments without touching the limiting logic.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta

NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class RateLimitResult:
    """Decision returned for a single consume call.

    Attributes:
        allowed: Whether the request may proceed.
        remaining_tokens: Requests still permitted in the current window after
            this one (0 once the limit is reached or exceeded).
        nanos_to_reset: Estimated nanoseconds until the window closes and the
            counter resets.
    """

    allowed: bool
    remaining_tokens: int
    nanos_to_reset: int

    @property
    def seconds_to_reset(self) -> int:
        """Whole seconds until reset, rounded up (HTTP header friendly)."""
        return math.ceil(self.nanos_to_reset / NANOS_PER_SECOND)


def to_nanos(duration: timedelta) -> int:
    """Convert a timedelta to integer nanoseconds without float rounding."""
    return (duration // timedelta(microseconds=1)) * 1_000


class AbstractCounterStore(ABC):
    """Interface for the shared counter store.

    Every method raises ``StoreUnavailableAppError`` on connectivity or backend
    errors (including client-side timeouts).
    """

    @abstractmethod
    def increment(self, key: str) -> int:
        """Atomically add one to ``key`` and return the new total.

        Creates the key with value 1 when it does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def set_expiry_if_absent(self, key: str, ttl: timedelta) -> None:
        """Attach ``ttl`` to ``key`` unless it already carries an expiry."""
        raise NotImplementedError

    @abstractmethod
    def get_remaining_ttl(self, key: str) -> timedelta | None:
        """Return the remaining time-to-live of ``key``.

        Returns:
            Remaining lifetime, or None when the key is absent or has no expiry.
        """
        raise NotImplementedError

    def ping(self) -> bool:
        """Report whether the store is reachable. Never raises."""
        return True

    def close(self) -> None:
        """Release connections held by the store."""
