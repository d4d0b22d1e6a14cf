"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def log_stream() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys(log_stream):
    logger, stream = log_stream

    logger.info(
        "rate_limit.allowed",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_identity_and_redis_url(log_stream):
    logger, stream = log_stream

    logger.warning(
        "rate_limit.store_unavailable",
        extra={
            "client_identity": "api_key:top-secret",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "key_hash": "abc123",
        },
    )

    output = stream.getvalue()
    assert "top-secret" not in output
    assert "hunter2" not in output
    assert "abc123" in output


def test_sensitive_filter_redacts_nested_dicts(log_stream):
    logger, stream = log_stream

    logger.info(
        "nested_event",
        extra={
            "headers": {"x-api-key": "secret-key", "user-agent": "pytest"},
            "safe_data": {"count": 5},
        },
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output


def test_json_formatter_emits_one_json_object_with_request_id(log_stream):
    logger, stream = log_stream
    set_request_id("req-123")
    try:
        logger.info("rate_limit.exceeded", extra={"limit": 2, "remaining": 0})
    finally:
        clear_request_id()

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.exceeded"
    assert payload["level"] == "info"
    assert payload["request_id"] == "req-123"
    assert payload["limit"] == 2
    assert payload["remaining"] == 0


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("ip:1.2.3.4") == hash_identifier("ip:1.2.3.4")
    assert hash_identifier("ip:1.2.3.4") != hash_identifier("ip:1.2.3.5")
    assert len(hash_identifier("x")) == 16
    assert len(hash_identifier("x", length=32)) == 32


def test_hash_identifier_accepts_lone_surrogates():
    digest = hash_identifier("client-\ud800")

    assert len(digest) == 16
    assert digest != hash_identifier("client-")
