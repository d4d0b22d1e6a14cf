"""Redis-backed counter store shared by every gateway instance.

Maps the counter store contract onto three Redis commands:
- ``INCR key``: atomic increment, creates the key at 1 when missing
- ``PEXPIRE key <ms> NX``: attach the window lifetime only if none is set
- ``PTTL key``: remaining lifetime (-2 = key absent, -1 = no expiry)

Any ``redis.RedisError`` (connection refused, timeout, server error) is
translated to ``StoreUnavailableAppError`` so the limiter engine can apply
its per-step fallback policy without knowing about Redis.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, TypeVar

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from app.adapters.rate_limit.base import AbstractCounterStore
from app.core.config import RedisSettings, settings
from app.core.errors import StoreUnavailableAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PTTL_KEY_ABSENT = -2
_PTTL_NO_EXPIRY = -1


class RedisCounterStore(AbstractCounterStore):
    """Counter store using a synchronous ``redis.Redis`` client.

    The client is not retried here: each command is attempted once and a
    failure surfaces immediately as ``StoreUnavailableAppError``.
    """

    def __init__(self, client: redis.Redis, *, expire_nx: bool = True) -> None:
        """Initialize the store.

        Args:
            client: Configured Redis client (connection pool is owned by it).
            expire_nx: Send ``PEXPIRE ... NX``; requires Redis >= 7.0.
        """
        self._client = client
        self._expire_nx = expire_nx

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings | None = None) -> "RedisCounterStore":
        """Build a store from ``REDIS_*`` settings.

        Connection is lazy: no network call happens until the first command.
        """
        cfg = redis_settings or settings.redis
        client = redis.Redis.from_url(
            cfg.url,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.connect_timeout_seconds,
            retry_on_timeout=False,
            retry=Retry(NoBackoff(), 0),
            decode_responses=True,
        )
        return cls(client, expire_nx=cfg.expire_nx)

    def _execute(self, operation: str, key: str, command: Callable[[], T]) -> T:
        try:
            return command()
        except redis.RedisError as exc:
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message=f"Redis {operation} failed: {exc}",
                details={
                    "backend": "redis",
                    "operation": operation,
                    "key_hash": hash_identifier(key),
                    "error_type": type(exc).__name__,
                },
            ) from exc

    def increment(self, key: str) -> int:
        return int(self._execute("incr", key, lambda: self._client.incr(key)))

    def set_expiry_if_absent(self, key: str, ttl: timedelta) -> None:
        kwargs: dict[str, Any] = {"nx": True} if self._expire_nx else {}
        self._execute("pexpire", key, lambda: self._client.pexpire(key, ttl, **kwargs))

    def get_remaining_ttl(self, key: str) -> timedelta | None:
        ttl_ms = int(self._execute("pttl", key, lambda: self._client.pttl(key)))
        if ttl_ms in (_PTTL_KEY_ABSENT, _PTTL_NO_EXPIRY):
            return None
        return timedelta(milliseconds=ttl_ms)

    def ping(self) -> bool:
        """Return True when Redis answers PING; never raises."""
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            logger.warning(
                "redis.ping_failed",
                extra={"error_type": type(exc).__name__},
            )
            return False

    def close(self) -> None:
        self._client.close()
