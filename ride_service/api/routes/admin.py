"""
Admin / observability endpoints
===============================

GET /admin/rides/summary -- ride counts per status and busy drivers
GET /admin/health        -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ride_service.api.dependencies import get_db
from ride_service.api.middleware import RATE_LIMIT, limiter
from ride_service.api.schemas import HealthResponse, RideSummaryResponse
from ride_service.domain.enums import RideStatus
from ride_service.infrastructure.repositories import RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/rides/summary",
    response_model=RideSummaryResponse,
    summary="Ride counts per status",
)
@limiter.limit(RATE_LIMIT)
async def ride_summary(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    repo = RideRepository(db)
    counts = await repo.count_by_status()
    busy = await repo.busy_driver_ids()
    return RideSummaryResponse(
        counts={status.value: counts.get(status, 0) for status in RideStatus},
        busy_drivers=sorted(busy),
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
