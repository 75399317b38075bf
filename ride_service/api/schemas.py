"""Pydantic request / response schemas for the REST API.

Field names are snake_case in Python and camelCase on the wire, matching
what the mobile clients send (``customerId``, ``placeTo`` ...).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ride_service.domain.enums import RideStatus
from ride_service.services.notifications import FanOutResult
from ride_service.services.routing import FareEstimate, RouteEstimate

# Opaque origin / destination data: a Places-API object or a plain label
PlaceDescriptor = Union[dict[str, Any], str]


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(CamelModel):
    customer_id: str = Field(..., min_length=1)
    place_to: PlaceDescriptor
    place_from: Optional[PlaceDescriptor] = None
    price: Optional[float] = Field(
        None,
        ge=0,
        description="Fare quoted to the rider; computed from the route when omitted.",
    )

    @field_validator("customer_id")
    @classmethod
    def _customer_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("customerId is required")
        return value.strip()

    @field_validator("place_to")
    @classmethod
    def _place_not_empty(cls, value: PlaceDescriptor) -> PlaceDescriptor:
        if isinstance(value, str) and not value.strip():
            raise ValueError("placeTo is required")
        if not value:
            raise ValueError("placeTo is required")
        return value


class DriverActionRequest(CamelModel):
    driver_id: str = Field(..., min_length=1)


class DeviceRegisterRequest(CamelModel):
    id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)
    device_type: str = Field("unknown", max_length=20)


class NotifyRequest(CamelModel):
    id: Optional[str] = None
    ids: Optional[list[str]] = None
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _has_recipients(self) -> "NotifyRequest":
        if not self.id and not self.ids:
            raise ValueError("Device ID(s), title, and body are required")
        return self

    def recipient_ids(self) -> list[str]:
        return list(self.ids or []) + ([self.id] if self.id else [])


class BroadcastRequest(CamelModel):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class PriceRequest(CamelModel):
    origin: dict[str, Any]
    destination: dict[str, Any]


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RouteRequest(CamelModel):
    origin: LatLng
    destination: LatLng
    vehicle_type: Optional[str] = None


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(CamelModel):
    ride_id: str
    customer_id: str
    driver_id: Optional[str] = None
    accepted_by: Optional[str] = None
    place_to: Any = None
    place_from: Any = None
    price: Optional[float] = None
    requested_to: list[str] = []
    rejected_by: list[str] = []
    status: RideStatus
    created_at: Optional[datetime] = None


class EndRideResponse(CamelModel):
    success: bool = True
    message: str
    ride: RideResponse
    updated_rides_count: int
    notifications_sent: int


class DeviceResponse(CamelModel):
    id: str
    fcm_token: str
    device_type: str
    active: bool
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    last_notified: Optional[datetime] = None


class DeviceRegisterResponse(CamelModel):
    success: bool = True
    message: str = "Device registered successfully"
    device: DeviceResponse


class RecipientResultResponse(CamelModel):
    recipient_id: str
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class FanOutSummary(CamelModel):
    total_devices: int
    success_count: int
    failure_count: int
    responses: list[RecipientResultResponse] = []
    recipient_ids: list[str] = []


class NotifyResponse(CamelModel):
    success: bool
    message: str
    result: FanOutSummary

    @classmethod
    def from_result(cls, result: FanOutResult) -> "NotifyResponse":
        return cls(
            success=result.success,
            message=result.message,
            result=FanOutSummary.model_validate(result),
        )


class Measure(BaseModel):
    value: int
    text: str


class PriceResponse(CamelModel):
    success: bool = True
    distance: Measure
    duration: Measure
    price: float
    currency: str
    origin_name: str
    destination_name: str

    @classmethod
    def from_estimate(cls, estimate: FareEstimate) -> "PriceResponse":
        route = estimate.route
        return cls(
            distance=Measure(value=route.distance_meters, text=route.distance_text),
            duration=Measure(value=route.duration_seconds, text=route.duration_text),
            price=estimate.price,
            currency=estimate.currency,
            origin_name=estimate.origin_name,
            destination_name=estimate.destination_name,
        )


class RouteData(CamelModel):
    distance: Measure
    duration: Measure
    origin: str
    destination: str
    vehicle_type: str


class RouteResponse(CamelModel):
    success: bool = True
    data: RouteData

    @classmethod
    def from_route(
        cls, route: RouteEstimate, request: RouteRequest
    ) -> "RouteResponse":
        return cls(
            data=RouteData(
                distance=Measure(value=route.distance_meters, text=route.distance_text),
                duration=Measure(value=route.duration_seconds, text=route.duration_text),
                origin=f"{request.origin.lat},{request.origin.lng}",
                destination=f"{request.destination.lat},{request.destination.lng}",
                vehicle_type=request.vehicle_type or route.travel_mode.value,
            )
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    message: str
    data: Optional[Any] = None


class RideSummaryResponse(CamelModel):
    counts: dict[str, int]
    busy_drivers: list[str]


class CustomerUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=120)
    phone_number: Optional[str] = Field(None, max_length=20)


class CustomerProfile(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class CustomerResponse(CamelModel):
    success: bool = True
    customer: CustomerProfile
