from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.quota import router as quota_router

__all__ = ["health_router", "quota_router"]
