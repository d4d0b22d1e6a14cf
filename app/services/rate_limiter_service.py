"""Fixed-window rate limiting over a shared counter store.

Each client identity maps to one counter key. The first increment in a window
creates the key and attaches the window lifetime; the store expiring the key
is what starts the next window. Correctness across gateway instances relies
only on the store's atomic increment, so this service keeps no per-client
state and takes no locks.

Failure policy (availability over strictness):
- increment fails: allow the request as the first of a fresh window
- expiry-set fails: ignore, the decision is unchanged
- TTL read fails or finds no expiry: report the full window as time to reset
"""

from __future__ import annotations

import logging
from datetime import timedelta

from app.adapters.rate_limit.base import AbstractCounterStore, RateLimitResult, to_nanos
from app.core.errors import StoreUnavailableAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "ratelimit:"


def build_window_key(client_identity: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Derive the counter key for a client identity.

    The identity is opaque: it is neither sanitized nor hashed, so distinct
    identities always produce distinct keys.

    Examples:
        >>> build_window_key("client-1")
        'ratelimit:client-1'
    """
    return f"{prefix}{client_identity}"


def _log_store_failure(event: str, exc: Exception, key_hash: str) -> None:
    extra = {"key_hash": key_hash, "error_type": type(exc).__name__}
    if isinstance(exc, StoreUnavailableAppError):
        logger.warning(event, extra={**extra, "error_code": exc.code})
    else:
        logger.exception(event, extra=extra)


class RateLimiterService:
    """Fixed-window limiter engine.

    Attributes:
        limit: Maximum requests allowed per window.
        window: Fixed window duration.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared counter store.
            limit: Maximum number of requests per window.
            window_seconds: Window length in seconds.
            key_prefix: Namespace prepended to client identities.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._store = store
        self._limit = limit
        self._window = timedelta(seconds=window_seconds)
        self._window_nanos = to_nanos(self._window)
        self._key_prefix = key_prefix

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def _fail_open_result(self) -> RateLimitResult:
        """Decision used when the counter cannot be read: a fresh window."""
        return RateLimitResult(
            allowed=True,
            remaining_tokens=self._limit - 1,
            nanos_to_reset=self._window_nanos,
        )

    def _remaining_nanos(self, key: str, key_hash: str) -> int:
        """Read the window's remaining lifetime, falling back to the full window."""
        try:
            ttl = self._store.get_remaining_ttl(key)
        except Exception as exc:
            _log_store_failure("rate_limit.ttl_read_failed", exc, key_hash)
            return self._window_nanos

        if ttl is None or ttl <= timedelta(0):
            logger.debug("rate_limit.ttl_missing", extra={"key_hash": key_hash})
            return self._window_nanos
        return to_nanos(ttl)

    def consume(self, client_identity: str) -> RateLimitResult:
        """Count one request for the client and decide whether it may proceed.

        Never raises: every store failure is absorbed per the failure policy
        described in the module docstring. Each store call is attempted at
        most once.

        Args:
            client_identity: Opaque client identifier (API key, IP, user id).

        Returns:
            RateLimitResult for this request.
        """
        key = build_window_key(client_identity, self._key_prefix)
        key_hash = hash_identifier(key)

        try:
            count = self._store.increment(key)
        except Exception as exc:
            _log_store_failure("rate_limit.store_unavailable", exc, key_hash)
            return self._fail_open_result()

        if count == 1:
            # Only the request that created the key sets its lifetime, so the
            # window is never extended by later traffic.
            try:
                self._store.set_expiry_if_absent(key, self._window)
            except Exception as exc:
                _log_store_failure("rate_limit.expiry_set_failed", exc, key_hash)

        nanos_to_reset = self._remaining_nanos(key, key_hash)

        return RateLimitResult(
            allowed=count <= self._limit,
            remaining_tokens=max(0, self._limit - count),
            nanos_to_reset=nanos_to_reset,
        )
