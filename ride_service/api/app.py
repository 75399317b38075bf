"""
FastAPI application factory.

* Registers routes for rides, notifications, customers, pricing and admin.
* Builds the shared service container (push, routing, lifecycle) in the
  lifespan handler and releases its clients on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ride_service.api.errors import register_exception_handlers
from ride_service.api.middleware import limiter
from ride_service.api.routes import admin, customers, notifications, pricing, rides
from ride_service.config import settings
from ride_service.infrastructure.database import async_session_factory, engine
from ride_service.services.container import Services, build_services

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build collaborators on startup; close them on shutdown."""
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(async_session_factory, settings)
        logger.info("Service container built")
    yield
    await app.state.services.aclose()
    await engine.dispose()


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="Ride Hailing API",
        description=(
            "Customers request rides, idle drivers are offered them, and "
            "the first driver to accept wins.  Every state change is "
            "pushed to the affected devices."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Routers
    app.include_router(rides.router)
    app.include_router(notifications.router)
    app.include_router(customers.router)
    app.include_router(pricing.price_router)
    app.include_router(pricing.maps_router)
    app.include_router(admin.router)

    return app
