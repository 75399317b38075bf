"""
Routing / Pricing collaborators
===============================

* ``DistanceMatrixRouter`` -- Google Distance Matrix API over ``httpx``.
* ``HaversineRouter``      -- offline great-circle distance with a fixed
  average speed; no API key needed.
* ``FareEstimator``        -- route lookup + tiered price.

Every provider failure (transport error, timeout, non-OK status at either
the response or the element level) surfaces as ``DownstreamError``: a ride
price is persisted immutably, so it must never be guessed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from ride_service.domain.enums import TravelMode
from ride_service.domain.errors import DownstreamError, ValidationError
from ride_service.domain.pricing import (
    PricingStrategy,
    TieredPricing,
    format_distance,
    format_duration,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def as_param(self) -> str:
        return f"{self.lat},{self.lng}"


@dataclass(frozen=True)
class RouteEstimate:
    distance_meters: int
    duration_seconds: int
    distance_text: str
    duration_text: str
    travel_mode: TravelMode = TravelMode.DRIVING


@dataclass(frozen=True)
class FareEstimate:
    route: RouteEstimate
    price: float
    currency: str
    origin_name: str
    destination_name: str


class Router(Protocol):
    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: TravelMode = TravelMode.DRIVING,
    ) -> RouteEstimate: ...

    async def close(self) -> None: ...


def coordinates_from_place(place: Any) -> Optional[Coordinates]:
    """Pull ``lat``/``lng`` out of a place descriptor.

    Accepts a Places-API style object (``geometry.location``) or a bare
    ``{"lat": .., "lng": ..}`` mapping.  Returns ``None`` when the
    descriptor carries no usable coordinates.
    """
    if not isinstance(place, dict):
        return None
    geometry = place.get("geometry")
    location = geometry.get("location") if isinstance(geometry, dict) else place
    if not isinstance(location, dict):
        return None
    try:
        lat, lng = float(location["lat"]), float(location["lng"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Coordinates(lat, lng)


# ── Providers ─────────────────────────────────────────────────────────


class DistanceMatrixRouter:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/distancematrix/json",
        timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: TravelMode = TravelMode.DRIVING,
    ) -> RouteEstimate:
        params = {
            "origins": origin.as_param(),
            "destinations": destination.as_param(),
            "mode": mode.value,
            "key": self._api_key,
        }
        try:
            response = await self._client.get(self._base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise DownstreamError(f"Routing provider unreachable: {exc}") from exc
        except ValueError as exc:
            raise DownstreamError("Routing provider returned invalid JSON") from exc

        if payload.get("status") != "OK":
            raise DownstreamError(f"API Error: {payload.get('status')}")
        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise DownstreamError("Routing provider returned no route") from exc
        if element.get("status") != "OK":
            raise DownstreamError(f"Route Error: {element.get('status')}")

        distance, duration = element["distance"], element["duration"]
        return RouteEstimate(
            distance_meters=int(distance["value"]),
            duration_seconds=int(duration["value"]),
            distance_text=distance.get("text") or format_distance(distance["value"]),
            duration_text=duration.get("text") or format_duration(duration["value"]),
            travel_mode=mode,
        )

    async def close(self) -> None:
        await self._client.aclose()


class HaversineRouter:
    """Great-circle distance; duration from a constant average speed."""

    SPEED_FACTORS = {
        TravelMode.DRIVING: 1.0,
        TravelMode.TRANSIT: 0.8,
        TravelMode.BICYCLING: 0.6,
        TravelMode.WALKING: 0.2,
    }

    def __init__(self, average_speed_kmh: float = 25.0):
        self.average_speed_kmh = average_speed_kmh

    @staticmethod
    def distance_meters(origin: Coordinates, destination: Coordinates) -> float:
        lat1, lat2 = math.radians(origin.lat), math.radians(destination.lat)
        dlat = lat2 - lat1
        dlng = math.radians(destination.lng - origin.lng)
        h = (
            math.sin(dlat / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
        )
        return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: TravelMode = TravelMode.DRIVING,
    ) -> RouteEstimate:
        meters = self.distance_meters(origin, destination)
        speed_mps = self.average_speed_kmh * self.SPEED_FACTORS[mode] / 3.6
        seconds = meters / speed_mps if speed_mps > 0 else 0.0
        return RouteEstimate(
            distance_meters=round(meters),
            duration_seconds=round(seconds),
            distance_text=format_distance(meters),
            duration_text=format_duration(seconds),
            travel_mode=mode,
        )

    async def close(self) -> None:
        return None


# ── Fare estimator ────────────────────────────────────────────────────


class FareEstimator:
    def __init__(
        self,
        router: Router,
        pricing: Optional[PricingStrategy] = None,
        currency: str = "INR",
    ):
        self.router = router
        self.pricing = pricing or TieredPricing()
        self.currency = currency

    async def estimate(self, origin: Any, destination: Any) -> FareEstimate:
        """Distance, duration and price between two place descriptors."""
        start = coordinates_from_place(origin)
        end = coordinates_from_place(destination)
        if start is None or end is None:
            raise ValidationError(
                "Invalid place objects. Missing geometry.location data."
            )

        route = await self.router.route(start, end, TravelMode.DRIVING)
        price = self.pricing.calculate(route.distance_meters)
        logger.debug(
            "Estimated %s -> %s: %dm, price %.2f",
            start.as_param(),
            end.as_param(),
            route.distance_meters,
            price,
        )
        return FareEstimate(
            route=route,
            price=price,
            currency=self.currency,
            origin_name=_place_name(origin, "Origin"),
            destination_name=_place_name(destination, "Destination"),
        )


def _place_name(place: Any, default: str) -> str:
    if isinstance(place, dict) and place.get("name"):
        return str(place["name"])
    return default
