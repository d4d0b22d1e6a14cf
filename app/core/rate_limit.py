"""Rate limiting dependency for FastAPI routes.

This module wires the limiter engine into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter store is chosen by settings (Redis or memory).
- The limiter itself never fails a request; only a denied decision does.

Rate limiting strategy:
- Fixed-window limit per client identity, shared across instances via Redis.
- Identity is the X-API-Key header when present, otherwise the client IP.
"""

from __future__ import annotations

import logging
import threading
from typing import Annotated

from fastapi import Header, HTTPException, Request, Response, status

from app.adapters.rate_limit.base import RateLimitResult
from app.adapters.rate_limit.factory import create_counter_store
from app.core.config import settings
from app.core.logging import hash_identifier
from app.services.rate_limiter_service import RateLimiterService

logger = logging.getLogger(__name__)


_LimiterConfig = tuple[int, int, str, str]

# (config, limiter) swapped as one reference so lock-free readers never pair
# a limiter with another configuration
_cached: tuple[_LimiterConfig, RateLimiterService] | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter_service() -> RateLimiterService:
    """Return a process-wide limiter instance.

    The instance is cached in-module so the Redis connection pool is reused
    across requests. If configuration changes (primarily in tests), the
    limiter and its store are rebuilt. The dependency runs in FastAPI's
    threadpool, so building is serialized with double-checked locking and
    every caller shares one store.

    Returns:
        RateLimiterService: Configured limiter.
    """

    global _cached

    cfg = settings.rate_limit
    config = (cfg.requests_per_window, cfg.window_seconds, cfg.key_prefix, cfg.backend)

    cached = _cached
    if cached is not None and cached[0] == config:
        return cached[1]

    with _limiter_lock:
        if _cached is not None and _cached[0] == config:
            return _cached[1]
        if _cached is not None:
            _cached[1].store.close()
        limiter = RateLimiterService(
            create_counter_store(),
            limit=cfg.requests_per_window,
            window_seconds=cfg.window_seconds,
            key_prefix=cfg.key_prefix,
        )
        _cached = (config, limiter)
        logger.info(
            "rate_limit.configured",
            extra={
                "backend": cfg.backend,
                "limit": cfg.requests_per_window,
                "window_s": cfg.window_seconds,
            },
        )
        return limiter


def reset_rate_limiter_service() -> None:
    """Drop the cached limiter (closing its store)."""

    global _cached

    with _limiter_lock:
        if _cached is not None:
            _cached[1].store.close()
        _cached = None


def build_client_identity(request: Request, x_api_key: str | None) -> str:
    """Build the client identity for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced client identity.
    """

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def build_rate_limit_headers(result: RateLimitResult, limit: int) -> dict[str, str]:
    """Render a decision as X-RateLimit-* headers (plus Retry-After when blocked)."""

    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining_tokens),
        "X-RateLimit-Reset": str(result.seconds_to_reset),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.seconds_to_reset)
    return headers


def enforce_rate_limit(
    request: Request,
    response: Response,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> RateLimitResult | None:
    """FastAPI dependency enforcing rate limits.

    Sync because the Redis client blocks; FastAPI runs it in the threadpool.

    When enabled, consumes 1 request from the caller's window. Allowed
    decisions get rate limit headers attached to the response; denied ones
    raise HTTP 429.

    Args:
        request: FastAPI request.
        response: Response the headers are attached to.
        x_api_key: API key from X-API-Key header.

    Returns:
        The decision, or None when rate limiting is disabled.

    Raises:
        HTTPException: 429 Too Many Requests when the window is exhausted.
    """

    if not settings.rate_limit.enabled:
        return None

    limiter = get_rate_limiter_service()
    identity = build_client_identity(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    result = limiter.consume(identity)
    request.state.rate_limit = result

    log_extra = {
        "key_type": key_type,
        "key_hash": hash_identifier(identity),
        "limit": limiter.limit,
        "remaining": result.remaining_tokens,
        "reset_s": result.seconds_to_reset,
    }
    headers = build_rate_limit_headers(result, limiter.limit)

    if result.allowed:
        logger.info("rate_limit.allowed", extra=log_extra)
        if settings.rate_limit.include_headers:
            response.headers.update(headers)
        return result

    logger.warning("rate_limit.exceeded", extra=log_extra)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers if settings.rate_limit.include_headers else None,
    )
