"""
FastAPI application factory.

* Builds the stores, the request orchestrator and the fleet service once
  and keeps them on ``app.state``.
* Registers routes for rides, vehicles and admin.
* Maps domain exceptions to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Optional

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.middleware import limiter
from src.api.routes import admin, rides, vehicles
from src.config import settings
from src.domain.errors import (
    InvalidInputError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
    StaleRecordError,
)
from src.infrastructure.locks import ZoneLocks, create_redis
from src.infrastructure.repositories import RideRequestRepository, VehicleRepository
from src.services.fleet import FleetService
from src.services.orchestrator import RequestOrchestrator

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[Exception], int] = {
    InvalidInputError: 400,
    NotFoundError: 404,
    InvalidStateTransition: 409,
    StaleRecordError: 409,
    PersistenceError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the Redis pool on shutdown."""
    yield
    client: Optional[aioredis.Redis] = app.state.redis
    if client is not None:
        await client.aclose()


def _domain_error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    redis_client: Optional[aioredis.Redis] = None,
    zone_lock_enabled: Optional[bool] = None,
) -> FastAPI:
    app = FastAPI(
        title="Airport Ride Pooling Dispatch API",
        description=(
            "Pools pickup requests at the same airport into shared cabs and "
            "dispatches the nearest available vehicle to each formed group, "
            "without double-booking vehicles under concurrent demand."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    if session_factory is None:
        from src.infrastructure.database import async_session_factory

        session_factory = async_session_factory

    if zone_lock_enabled is None:
        zone_lock_enabled = settings.zone_lock_enabled
    zone_locks = None
    if zone_lock_enabled:
        redis_client = redis_client or create_redis(settings.redis_url)
        zone_locks = ZoneLocks(
            redis_client,
            settings.zone_lock_ttl_seconds,
            wait_seconds=settings.zone_lock_wait_seconds,
        )
    app.state.redis = redis_client

    request_store = RideRequestRepository(session_factory)
    vehicle_store = VehicleRepository(session_factory)
    app.state.orchestrator = RequestOrchestrator(
        request_store,
        vehicle_store,
        settings.matcher_config(),
        settings.dispatch_config(),
        zone_locks=zone_locks,
    )
    app.state.fleet = FleetService(vehicle_store, request_store)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    for exc_type, status_code in _ERROR_STATUS.items():
        app.add_exception_handler(exc_type, _domain_error_handler(status_code))

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
