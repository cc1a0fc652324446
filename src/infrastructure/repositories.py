"""
Repository Pattern -- SQLAlchemy implementations of the domain stores.

Each repository receives an ``async_sessionmaker`` and runs every call in
its own short transaction, mapping ORM rows to domain entities so the
matching and dispatch engines stay DB-agnostic.

Conditional writes
------------------
``save_*`` issue ``UPDATE ... WHERE id = :id AND version = :version`` and
bump the version.  A ``rowcount`` of zero means somebody else wrote the row
first, reported as ``StaleRecordError``.  This is a single statement, so
two concurrent reservations of one vehicle cannot both succeed: the second
UPDATE waits for the first row lock and then matches no row.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import RideRequestModel, VehicleModel
from src.domain.entities import Location, RideRequest, Vehicle
from src.domain.enums import GROUPED_STATUSES, RequestStatus, VehicleStatus
from src.domain.errors import PersistenceError, StaleRecordError


class _SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """One unit of work; driver errors surface as ``PersistenceError``."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc


# ── Ride requests ─────────────────────────────────────────────────────


def _to_request(m: RideRequestModel) -> RideRequest:
    return RideRequest(
        id=m.id,
        user_id=m.user_id,
        pickup=Location(m.pickup_lat, m.pickup_lng),
        zone_code=m.zone_code,
        seats_requested=m.seats_requested,
        luggage_count=m.luggage_count,
        status=RequestStatus(m.status),
        group_id=m.group_id,
        assigned_vehicle_id=m.assigned_vehicle_id,
        operator_name=m.operator_name,
        estimated_arrival=m.estimated_arrival,
        idempotency_key=m.idempotency_key,
        created_at=m.created_at,
        version=m.version,
    )


def _request_values(r: RideRequest) -> dict:
    """Mutable columns written by ``save_request``."""
    return {
        "status": r.status,
        "group_id": r.group_id,
        "assigned_vehicle_id": r.assigned_vehicle_id,
        "operator_name": r.operator_name,
        "estimated_arrival": r.estimated_arrival,
    }


class RideRequestRepository(_SqlStore):
    async def create_request(self, request: RideRequest) -> RideRequest:
        model = RideRequestModel(
            user_id=request.user_id,
            pickup_lat=request.pickup.latitude,
            pickup_lng=request.pickup.longitude,
            zone_code=request.zone_code,
            seats_requested=request.seats_requested,
            luggage_count=request.luggage_count,
            status=request.status,
            group_id=request.group_id,
            idempotency_key=request.idempotency_key,
            created_at=request.created_at or datetime.now(timezone.utc),
            version=1,
        )
        async with self._transaction() as session:
            session.add(model)
            await session.flush()
            return _to_request(model)

    async def get_request(self, request_id: int) -> Optional[RideRequest]:
        async with self._transaction() as session:
            model = await session.get(RideRequestModel, request_id)
            return _to_request(model) if model else None

    async def get_by_idempotency_key(self, key: str) -> Optional[RideRequest]:
        async with self._transaction() as session:
            result = await session.execute(
                select(RideRequestModel).where(RideRequestModel.idempotency_key == key)
            )
            model = result.scalar_one_or_none()
            return _to_request(model) if model else None

    async def query_requests(
        self, zone_code: str, status: RequestStatus
    ) -> list[RideRequest]:
        """Requests of one zone in one status, oldest first."""
        async with self._transaction() as session:
            result = await session.execute(
                select(RideRequestModel)
                .where(
                    RideRequestModel.zone_code == zone_code,
                    RideRequestModel.status == status,
                )
                .order_by(RideRequestModel.created_at, RideRequestModel.id)
            )
            return [_to_request(m) for m in result.scalars().all()]

    async def query_group(self, group_id: str) -> list[RideRequest]:
        async with self._transaction() as session:
            result = await session.execute(
                select(RideRequestModel)
                .where(RideRequestModel.group_id == group_id)
                .order_by(RideRequestModel.id)
            )
            return [_to_request(m) for m in result.scalars().all()]

    async def query_grouped(self) -> list[RideRequest]:
        """Every request currently in a group (MATCHED or DISPATCHED)."""
        async with self._transaction() as session:
            result = await session.execute(
                select(RideRequestModel)
                .where(RideRequestModel.status.in_(list(GROUPED_STATUSES)))
                .order_by(RideRequestModel.group_id, RideRequestModel.id)
            )
            return [_to_request(m) for m in result.scalars().all()]

    async def save_request(self, request: RideRequest) -> RideRequest:
        stmt = (
            update(RideRequestModel)
            .where(
                RideRequestModel.id == request.id,
                RideRequestModel.version == request.version,
            )
            .values(**_request_values(request), version=request.version + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                raise StaleRecordError(
                    f"Request {request.id} changed since version {request.version}"
                )
        return replace(request, version=request.version + 1)


# ── Vehicles ──────────────────────────────────────────────────────────


def _to_vehicle(m: VehicleModel) -> Vehicle:
    return Vehicle(
        id=m.id,
        operator_name=m.operator_name,
        position=Location(m.current_lat, m.current_lng),
        total_seats=m.total_seats,
        available_seats=m.available_seats,
        luggage_capacity=m.luggage_capacity,
        available_luggage=m.available_luggage,
        status=VehicleStatus(m.status),
        bound_group_id=m.bound_group_id,
        version=m.version,
    )


def _vehicle_values(v: Vehicle) -> dict:
    return {
        "current_lat": v.position.latitude,
        "current_lng": v.position.longitude,
        "available_seats": v.available_seats,
        "available_luggage": v.available_luggage,
        "status": v.status,
        "bound_group_id": v.bound_group_id,
    }


class VehicleRepository(_SqlStore):
    async def create_vehicle(self, vehicle: Vehicle) -> Vehicle:
        model = VehicleModel(
            operator_name=vehicle.operator_name,
            total_seats=vehicle.total_seats,
            luggage_capacity=vehicle.luggage_capacity,
            **_vehicle_values(vehicle),
            version=1,
        )
        async with self._transaction() as session:
            session.add(model)
            await session.flush()
            return _to_vehicle(model)

    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        async with self._transaction() as session:
            model = await session.get(VehicleModel, vehicle_id)
            return _to_vehicle(model) if model else None

    async def query_vehicles(self, status: VehicleStatus) -> list[Vehicle]:
        async with self._transaction() as session:
            result = await session.execute(
                select(VehicleModel)
                .where(VehicleModel.status == status)
                .order_by(VehicleModel.id)
            )
            return [_to_vehicle(m) for m in result.scalars().all()]

    async def save_vehicle(self, vehicle: Vehicle) -> Vehicle:
        stmt = (
            update(VehicleModel)
            .where(
                VehicleModel.id == vehicle.id,
                VehicleModel.version == vehicle.version,
            )
            .values(**_vehicle_values(vehicle), version=vehicle.version + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                raise StaleRecordError(
                    f"Vehicle {vehicle.id} changed since version {vehicle.version}"
                )
        return replace(vehicle, version=vehicle.version + 1)
