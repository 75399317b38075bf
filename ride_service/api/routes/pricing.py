"""
Pricing / routing endpoints
===========================

POST /price           -- distance, duration and tiered price between two places
POST /gMaps/distance  -- raw distance and duration between two coordinates
"""

from fastapi import APIRouter, Depends, Request

from ride_service.api.dependencies import get_estimator
from ride_service.api.middleware import RATE_LIMIT, limiter
from ride_service.api.schemas import (
    ErrorResponse,
    PriceRequest,
    PriceResponse,
    RouteRequest,
    RouteResponse,
)
from ride_service.domain.enums import travel_mode_for
from ride_service.services.routing import Coordinates, FareEstimator

price_router = APIRouter(prefix="/price", tags=["pricing"])
maps_router = APIRouter(prefix="/gMaps", tags=["pricing"])

ERRORS = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@price_router.post(
    "",
    response_model=PriceResponse,
    summary="Estimate the fare between two places",
    responses=ERRORS,
)
@limiter.limit(RATE_LIMIT)
async def estimate_price(
    request: Request,
    body: PriceRequest,
    estimator: FareEstimator = Depends(get_estimator),
):
    estimate = await estimator.estimate(body.origin, body.destination)
    return PriceResponse.from_estimate(estimate)


@maps_router.post(
    "/distance",
    response_model=RouteResponse,
    summary="Distance and travel time between two coordinates",
    responses=ERRORS,
)
@limiter.limit(RATE_LIMIT)
async def route_distance(
    request: Request,
    body: RouteRequest,
    estimator: FareEstimator = Depends(get_estimator),
):
    route = await estimator.router.route(
        Coordinates(body.origin.lat, body.origin.lng),
        Coordinates(body.destination.lat, body.destination.lng),
        travel_mode_for(body.vehicle_type),
    )
    return RouteResponse.from_route(route, body)
