"""Counter store adapters for the fixed-window rate limiter.

The limiter engine only talks to ``AbstractCounterStore``. Redis is the shared
production backend; the in-memory store honours the same contract for tests
and single-process runs.
"""

from app.adapters.rate_limit.base import AbstractCounterStore, RateLimitResult
from app.adapters.rate_limit.factory import create_counter_store
from app.adapters.rate_limit.in_memory import InMemoryCounterStore
from app.adapters.rate_limit.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RateLimitResult",
    "RedisCounterStore",
    "create_counter_store",
]
