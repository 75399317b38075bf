"""
Ride endpoints
==============

POST /ride/                              -- create a ride request
PUT  /ride/{ride_id}/cancel?status=      -- cancel / force a terminal status
PUT  /ride/{ride_id}/accept              -- driver accepts (starts) a ride
PUT  /ride/{ride_id}/end                 -- driver ends a ride
PUT  /ride/{ride_id}/reject              -- driver declines a ride
GET  /ride/status/{status}               -- rides by status
GET  /ride/customer/{customer_id}        -- a customer's rides
GET  /ride/driver/{driver_id}/requests   -- pending requests for a driver
GET  /ride/driver/{driver_id}/rides      -- rides assigned to a driver
GET  /ride/{ride_id}                     -- one ride
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ride_service.api.dependencies import get_db, get_lifecycle
from ride_service.api.middleware import RATE_LIMIT, limiter
from ride_service.api.schemas import (
    DriverActionRequest,
    EndRideResponse,
    ErrorResponse,
    RideCreateRequest,
    RideResponse,
)
from ride_service.domain.enums import RideStatus
from ride_service.domain.errors import NotFoundError
from ride_service.infrastructure.repositories import RideRepository
from ride_service.services.lifecycle import RideLifecycle

router = APIRouter(prefix="/ride", tags=["rides"])

CONFLICT = {400: {"model": ErrorResponse, "description": "Invalid or conflicting request"}}
NOT_FOUND = {404: {"model": ErrorResponse, "description": "Ride not found"}}


# ── Lifecycle ─────────────────────────────────────────────────────────


@router.post(
    "/",
    status_code=201,
    response_model=RideResponse,
    summary="Create a ride request",
    responses={**CONFLICT, 500: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    outcome = await lifecycle.create_ride(
        body.customer_id, body.place_to, body.place_from, body.price
    )
    return outcome.ride


@router.put(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Moves the ride to ``status`` (default ``cancel``; ``ended`` is "
        "accepted as an operator override).  Cancelling notifies the "
        "drivers the ride was offered to."
    ),
    responses={**CONFLICT, **NOT_FOUND},
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: str,
    status: RideStatus = Query(RideStatus.CANCEL),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    outcome = await lifecycle.cancel_ride(ride_id, status)
    return outcome.ride


@router.put(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept a ride",
    responses={**CONFLICT, **NOT_FOUND},
)
@limiter.limit(RATE_LIMIT)
async def accept_ride(
    request: Request,
    ride_id: str,
    body: DriverActionRequest,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    outcome = await lifecycle.accept_ride(ride_id, body.driver_id)
    return outcome.ride


@router.put(
    "/{ride_id}/end",
    response_model=EndRideResponse,
    summary="End a ride and return the driver to the pool",
    responses={**CONFLICT, **NOT_FOUND},
)
@limiter.limit(RATE_LIMIT)
async def end_ride(
    request: Request,
    ride_id: str,
    body: DriverActionRequest,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    result = await lifecycle.end_ride(ride_id, body.driver_id)
    return EndRideResponse(
        message=result.message,
        ride=RideResponse.model_validate(result.ride),
        updated_rides_count=result.updated_rides_count,
        notifications_sent=result.notifications_sent,
    )


@router.put(
    "/{ride_id}/reject",
    response_model=RideResponse,
    summary="Reject a ride",
    responses=NOT_FOUND,
)
@limiter.limit(RATE_LIMIT)
async def reject_ride(
    request: Request,
    ride_id: str,
    body: DriverActionRequest,
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.reject_ride(ride_id, body.driver_id)


# ── Queries ───────────────────────────────────────────────────────────


@router.get(
    "/status/{status}",
    response_model=list[RideResponse],
    summary="List rides in a status",
)
@limiter.limit(RATE_LIMIT)
async def get_rides_by_status(
    request: Request,
    status: RideStatus,
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_by_status(status)


@router.get(
    "/customer/{customer_id}",
    response_model=list[RideResponse],
    summary="List a customer's rides",
    description="Without ``status`` only rides still in progress are returned.",
)
@limiter.limit(RATE_LIMIT)
async def get_rides_by_customer(
    request: Request,
    customer_id: str,
    status: Optional[RideStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_by_customer(customer_id, status)


@router.get(
    "/driver/{driver_id}/requests",
    response_model=list[RideResponse],
    summary="Pending ride requests offered to a driver",
)
@limiter.limit(RATE_LIMIT)
async def get_ride_requests_for_driver(
    request: Request,
    driver_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_requests_for_driver(driver_id)


@router.get(
    "/driver/{driver_id}/rides",
    response_model=list[RideResponse],
    summary="Rides assigned to a driver",
)
@limiter.limit(RATE_LIMIT)
async def get_rides_by_driver(
    request: Request,
    driver_id: str,
    status: Optional[RideStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_by_driver(driver_id, status)


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride",
    responses=NOT_FOUND,
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: str,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise NotFoundError("Ride not found")
    return ride
