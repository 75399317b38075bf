"""Unit tests for tiered pricing, routing providers and fare estimation."""

import httpx
import pytest

from ride_service.domain.enums import TravelMode
from ride_service.domain.errors import DownstreamError, ValidationError
from ride_service.domain.pricing import TieredPricing, format_distance, format_duration
from ride_service.services.routing import (
    Coordinates,
    DistanceMatrixRouter,
    FareEstimator,
    HaversineRouter,
    coordinates_from_place,
)

AIRPORT = {"name": "Airport", "geometry": {"location": {"lat": 19.0896, "lng": 72.8656}}}
ANDHERI = {"name": "Andheri", "geometry": {"location": {"lat": 19.0760, "lng": 72.8777}}}


class TestTieredPricing:
    @pytest.mark.parametrize(
        "meters, price",
        [
            (0, 129.0),
            (5_000, 129.0),
            (8_000, 129.0),
            (8_001, 137.0),
            (12_000, 137.0),
            (12_001, 150.0),
            (40_000, 150.0),
        ],
    )
    def test_default_tiers(self, meters, price):
        assert TieredPricing().calculate(meters) == price

    def test_custom_tiers_are_sorted(self):
        pricing = TieredPricing(tiers=((5_000, 90.0), (1_000, 50.0)), ceiling=120.0)
        assert pricing.calculate(500) == 50.0
        assert pricing.calculate(3_000) == 90.0
        assert pricing.calculate(9_000) == 120.0


class TestFormatting:
    def test_distance_text(self):
        assert format_distance(8_460) == "8.5 km"
        assert format_distance(12_000) == "12.0 km"

    def test_duration_text(self):
        assert format_duration(30) == "1 min"
        assert format_duration(600) == "10 mins"


class TestCoordinates:
    def test_places_api_shape(self):
        assert coordinates_from_place(AIRPORT) == Coordinates(19.0896, 72.8656)

    def test_bare_lat_lng(self):
        assert coordinates_from_place({"lat": "1.5", "lng": 2}) == Coordinates(1.5, 2.0)

    @pytest.mark.parametrize(
        "place",
        [
            None,
            "Dadar station",
            {},
            {"geometry": {}},
            {"geometry": {"location": {"lat": 91, "lng": 0}}},
            {"geometry": {"location": {"lat": "north", "lng": 0}}},
        ],
    )
    def test_unusable_places(self, place):
        assert coordinates_from_place(place) is None


class TestHaversineRouter:
    def test_zero_distance(self):
        point = Coordinates(19.0, 72.0)
        assert HaversineRouter.distance_meters(point, point) == 0

    def test_one_degree_of_latitude(self):
        meters = HaversineRouter.distance_meters(Coordinates(0, 0), Coordinates(1, 0))
        assert 111_000 < meters < 111_400

    @pytest.mark.asyncio
    async def test_walking_is_slower_than_driving(self):
        router = HaversineRouter(average_speed_kmh=30.0)
        a, b = Coordinates(19.0896, 72.8656), Coordinates(19.1176, 72.9060)
        driving = await router.route(a, b, TravelMode.DRIVING)
        walking = await router.route(a, b, TravelMode.WALKING)
        assert driving.distance_meters == walking.distance_meters
        assert walking.duration_seconds > driving.duration_seconds
        assert walking.travel_mode is TravelMode.WALKING


def _matrix_router(handler) -> DistanceMatrixRouter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DistanceMatrixRouter("test-key", base_url="https://maps.test/dm", client=client)


def _ok_payload(meters=9_500, seconds=1_260):
    return {
        "status": "OK",
        "rows": [
            {
                "elements": [
                    {
                        "status": "OK",
                        "distance": {"value": meters, "text": "9.5 km"},
                        "duration": {"value": seconds, "text": "21 mins"},
                    }
                ]
            }
        ],
    }


class TestDistanceMatrixRouter:
    @pytest.mark.asyncio
    async def test_successful_route(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=_ok_payload())

        router = _matrix_router(handler)
        route = await router.route(
            Coordinates(19.0896, 72.8656), Coordinates(19.1176, 72.906), TravelMode.TRANSIT
        )
        await router.close()

        assert route.distance_meters == 9_500
        assert route.duration_seconds == 1_260
        assert route.distance_text == "9.5 km"
        assert seen["origins"] == "19.0896,72.8656"
        assert seen["mode"] == "transit"
        assert seen["key"] == "test-key"

    @pytest.mark.asyncio
    async def test_api_level_error(self):
        router = _matrix_router(
            lambda request: httpx.Response(200, json={"status": "REQUEST_DENIED"})
        )
        with pytest.raises(DownstreamError, match="API Error: REQUEST_DENIED"):
            await router.route(Coordinates(0, 0), Coordinates(1, 1))

    @pytest.mark.asyncio
    async def test_element_level_error(self):
        payload = {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}
        router = _matrix_router(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(DownstreamError, match="Route Error: ZERO_RESULTS"):
            await router.route(Coordinates(0, 0), Coordinates(1, 1))

    @pytest.mark.asyncio
    async def test_http_failure(self):
        router = _matrix_router(lambda request: httpx.Response(503))
        with pytest.raises(DownstreamError):
            await router.route(Coordinates(0, 0), Coordinates(1, 1))

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        router = _matrix_router(handler)
        with pytest.raises(DownstreamError, match="unreachable"):
            await router.route(Coordinates(0, 0), Coordinates(1, 1))


class TestFareEstimator:
    @pytest.mark.asyncio
    async def test_short_trip_uses_first_tier(self, estimator):
        estimate = await estimator.estimate(AIRPORT, ANDHERI)
        assert estimate.price == 129.0
        assert estimate.currency == "INR"
        assert estimate.origin_name == "Airport"
        assert estimate.destination_name == "Andheri"

    @pytest.mark.asyncio
    async def test_default_names(self, estimator):
        estimate = await estimator.estimate(
            {"lat": 19.0896, "lng": 72.8656}, {"lat": 19.0760, "lng": 72.8777}
        )
        assert estimate.origin_name == "Origin"
        assert estimate.destination_name == "Destination"

    @pytest.mark.asyncio
    async def test_price_follows_route_distance(self):
        router = _matrix_router(lambda request: httpx.Response(200, json=_ok_payload(11_000)))
        estimate = await FareEstimator(router).estimate(AIRPORT, ANDHERI)
        assert estimate.price == 137.0
        assert estimate.route.duration_text == "21 mins"

    @pytest.mark.asyncio
    async def test_missing_geometry(self, estimator):
        with pytest.raises(ValidationError, match="geometry.location"):
            await estimator.estimate({"name": "Nowhere"}, ANDHERI)
