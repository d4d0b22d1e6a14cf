from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import RateLimitResult
from app.core.config import settings
from app.core.rate_limit import enforce_rate_limit
from app.schemas.quota import QuotaResponse

router = APIRouter(tags=["Quota"])


@router.get("/quota", response_model=QuotaResponse)
def get_quota(
    result: Annotated[RateLimitResult | None, Depends(enforce_rate_limit)],
) -> QuotaResponse:
    """Report the caller's rate limit state.

    The call itself counts against the window, exactly like any other
    rate-limited route, so the values reflect the state after this request.
    Exceeding the limit yields 429 before this handler runs.

    Returns:
        QuotaResponse: Limit, remaining requests and seconds to reset.
    """

    return QuotaResponse.from_result(result, settings.rate_limit.requests_per_window)
