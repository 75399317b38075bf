"""Process-wide collaborators, built once at startup and shared by reference."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .lifecycle import RideLifecycle
from .notifications import NotificationFanOut
from .push import DisabledPushClient, FirebasePushClient, PushClient
from .routing import DistanceMatrixRouter, FareEstimator, HaversineRouter, Router
from ride_service.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    lifecycle: RideLifecycle
    fan_out: NotificationFanOut
    estimator: FareEstimator
    push_client: PushClient
    router: Router

    async def aclose(self) -> None:
        await self.router.close()
        await self.push_client.close()


def build_push_client(settings: Settings) -> PushClient:
    if not settings.firebase_credentials_path:
        logger.warning("No Firebase credentials configured; push delivery disabled")
        return DisabledPushClient()
    return FirebasePushClient.from_service_account(
        settings.firebase_credentials_path, settings.firebase_app_name
    )


def build_router(settings: Settings) -> Router:
    if settings.routing_provider == "haversine":
        return HaversineRouter(settings.haversine_speed_kmh)
    return DistanceMatrixRouter(
        settings.google_api_key,
        base_url=settings.distance_matrix_url,
        timeout_seconds=settings.routing_timeout_seconds,
    )


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    push_client: PushClient | None = None,
    router: Router | None = None,
) -> Services:
    push_client = push_client or build_push_client(settings)
    router = router or build_router(settings)
    fan_out = NotificationFanOut(
        session_factory, push_client, timeout_seconds=settings.push_timeout_seconds
    )
    estimator = FareEstimator(router, currency=settings.currency)
    lifecycle = RideLifecycle(session_factory, fan_out, estimator)
    return Services(
        lifecycle=lifecycle,
        fan_out=fan_out,
        estimator=estimator,
        push_client=push_client,
        router=router,
    )
