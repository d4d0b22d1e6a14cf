"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING=true so app.core.config skips the .env file, and points the
limiter at the in-memory store so no Redis server is needed.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_WINDOW", "5")
os.environ.setdefault("RATE_LIMIT_WINDOW_SECONDS", "60")

import pytest

from app.core.rate_limit import reset_rate_limiter_service


@pytest.fixture(autouse=True)
def reset_limiter():
    """Give every test a fresh limiter (and a fresh in-memory store)."""
    reset_rate_limiter_service()
    yield
    reset_rate_limiter_service()
