"""FastAPI dependency injection helpers."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ride_service.infrastructure.database import async_session_factory
from ride_service.services.container import Services
from ride_service.services.lifecycle import RideLifecycle
from ride_service.services.notifications import NotificationFanOut
from ride_service.services.routing import FareEstimator


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_lifecycle(request: Request) -> RideLifecycle:
    return get_services(request).lifecycle


def get_fan_out(request: Request) -> NotificationFanOut:
    return get_services(request).fan_out


def get_estimator(request: Request) -> FareEstimator:
    return get_services(request).estimator
