"""
Health Check Endpoints

The service keeps working without the backend (default settings,
synthesized slots), so only readiness looks at it.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from booking_flow.config import settings
from booking_flow.core.scheduling import get_flow_store, utcnow
from booking_flow.infra.backend import check_backend_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_start_time: Optional[datetime] = None


def set_start_time() -> None:
    global _start_time
    _start_time = utcnow()


def get_uptime_seconds() -> Optional[float]:
    """Seconds since startup, or None before the lifespan ran."""
    if _start_time is None:
        return None
    return (utcnow() - _start_time).total_seconds()


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness with one entry per checked dependency."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness plus the number of flow records held in memory."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None
    active_flows: int = 0


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=utcnow(),
        version="1.0.0",
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    responses={
        200: {"description": "Scheduling backend reachable"},
        503: {"description": "Scheduling backend unreachable"},
    },
)
async def ready() -> ReadyResponse:
    """503 while the scheduling settings endpoint cannot be reached."""
    backend_ok = await check_backend_health()
    checks = {"backend": "ok" if backend_ok else "failed"}
    response = ReadyResponse(
        status="ready" if backend_ok else "not_ready",
        timestamp=utcnow(),
        checks=checks,
    )

    if backend_ok:
        return response

    logger.warning(f"Not ready: {checks}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def live() -> LiveResponse:
    return LiveResponse(
        status="alive",
        timestamp=utcnow(),
        uptime_seconds=get_uptime_seconds(),
        active_flows=len(get_flow_store()),
    )
