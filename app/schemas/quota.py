"""Pydantic schemas for quota responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.adapters.rate_limit.base import RateLimitResult


class QuotaResponse(BaseModel):
    """Rate limit decision for the calling client."""

    enabled: bool = Field(
        ..., description="Whether rate limiting is active on this gateway."
    )
    allowed: bool = Field(
        ..., description="Whether this request was counted within the limit."
    )
    limit: int | None = Field(
        default=None,
        description="Maximum requests per window (absent when rate limiting is disabled).",
    )
    remaining: int | None = Field(
        default=None,
        description="Requests still permitted in the current window after this one.",
    )
    reset_after_seconds: int | None = Field(
        default=None,
        description="Seconds until the current window closes and the counter resets.",
    )

    @classmethod
    def from_result(cls, result: RateLimitResult | None, limit: int) -> "QuotaResponse":
        if result is None:
            return cls(enabled=False, allowed=True)
        return cls(
            enabled=True,
            allowed=result.allowed,
            limit=limit,
            remaining=result.remaining_tokens,
            reset_after_seconds=result.seconds_to_reset,
        )
