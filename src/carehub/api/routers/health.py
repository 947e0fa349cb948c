"""
Health check endpoints.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ...core.config import get_settings
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import DocumentStoreDep
from ..schemas.common import ApiResponse, error_responses
from ..utils.responses import fail, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    timestamp: datetime
    version: str
    service: str
    uptime: float
    checks: dict


async def _database_check(store) -> str:
    try:
        return "ok" if await store.ping() else "unavailable"
    except Exception as e:
        logger.warning(f"Database ping failed: {e}")
        return "unavailable"


@router.get("", response_model=ApiResponse[HealthResponse], responses=error_responses(503))
async def health_check(request: Request, store: DocumentStoreDep):
    """
    Health check endpoint.

    Pings the document store; answers 503 with the same payload under
    ``error.details`` when a dependency is down.
    """
    settings = get_settings()
    started_at = getattr(request.app.state, "started_at", None)
    checks = {"database": await _database_check(store)}
    healthy = all(value == "ok" for value in checks.values())

    payload = HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=get_current_timestamp(),
        version=settings.app_version,
        service=settings.app_name,
        uptime=round(time.monotonic() - started_at, 3) if started_at else 0.0,
        checks=checks,
    ).model_dump()

    if not healthy:
        return fail("SERVICE_DEGRADED", "One or more dependencies are unavailable", 503, payload)
    return ok(payload)
