"""Factory for creating counter store instances."""

from app.adapters.rate_limit.base import AbstractCounterStore
from app.adapters.rate_limit.in_memory import InMemoryCounterStore
from app.adapters.rate_limit.redis_store import RedisCounterStore
from app.core.config import settings
from app.core.errors import ValidationAppError


def create_counter_store() -> AbstractCounterStore:
    """Instantiate the counter store selected by ``RATE_LIMIT_BACKEND``.

    Settings already restrict the backend to the supported names at startup;
    the final error only guards values assigned without validation.

    Returns:
        AbstractCounterStore: Redis store (shared across instances) or the
            per-process in-memory store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = settings.rate_limit.backend

    if backend == "redis":
        return RedisCounterStore.from_settings(settings.redis)

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="rate_limit_unknown_backend",
        message=(
            f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory"
        ),
        details={"hint": "Set RATE_LIMIT_BACKEND to 'redis' or 'memory'"},
    )
