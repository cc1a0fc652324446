"""
Shared test fixtures.

Uses a throw-away SQLite file per test (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` lets every
store call open its own connection, which is what the concurrency tests
need: SQLite then serialises the competing conditional UPDATEs the same way
PostgreSQL row locks do.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.domain.entities import Location, RideRequest, Vehicle
from src.domain.enums import RequestStatus
from src.infrastructure.database import Base, build_session_factory
from src.infrastructure.repositories import RideRequestRepository, VehicleRepository

# Delhi airport area, as in the pooling scenarios
ORIGIN = Location(28.600, 77.200)
KM_PER_DEG_LAT = 111.195


def north_of(point: Location, km: float) -> Location:
    """A point *km* due north of *point* (exact along a meridian)."""
    return Location(point.latitude + km / KM_PER_DEG_LAT, point.longitude)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, yield a factory, then dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ridepool.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def request_store(session_factory) -> RideRequestRepository:
    return RideRequestRepository(session_factory)


@pytest_asyncio.fixture
async def vehicle_store(session_factory) -> VehicleRepository:
    return VehicleRepository(session_factory)


# ── Builders ──────────────────────────────────────────────────────────


async def add_request(
    store: RideRequestRepository,
    at: Location = ORIGIN,
    seats: int = 1,
    luggage: int = 0,
    zone: str = "DEL",
    user: str = "user",
    status: RequestStatus = RequestStatus.WAITING,
    group_id: Optional[str] = None,
) -> RideRequest:
    return await store.create_request(
        RideRequest(
            user_id=user,
            pickup=at,
            zone_code=zone,
            seats_requested=seats,
            luggage_count=luggage,
            status=status,
            group_id=group_id,
        )
    )


async def add_vehicle(
    store: VehicleRepository,
    at: Location = ORIGIN,
    operator: str = "Rajesh Kumar",
    seats: int = 4,
    luggage: int = 3,
) -> Vehicle:
    return await store.create_vehicle(
        Vehicle(
            operator_name=operator,
            position=at,
            total_seats=seats,
            available_seats=seats,
            luggage_capacity=luggage,
            available_luggage=luggage,
        )
    )
