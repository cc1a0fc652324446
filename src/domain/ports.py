"""
Store contracts consumed by the matching and dispatch engines.

The engines never talk to a database directly; they receive objects that
satisfy these protocols.  ``src.infrastructure.repositories`` provides the
SQLAlchemy implementations.

Write semantics
---------------
``save_request`` / ``save_vehicle`` are *conditional*: the write is applied
only if the stored ``version`` still equals the entity's ``version``.  On
success the stored copy is returned with ``version + 1``; otherwise
``StaleRecordError`` is raised.  Any other failure surfaces as
``PersistenceError``.
"""

from __future__ import annotations

from typing import Optional, Protocol

from .entities import RideRequest, Vehicle
from .enums import RequestStatus, VehicleStatus


class RequestStore(Protocol):
    async def create_request(self, request: RideRequest) -> RideRequest: ...

    async def get_request(self, request_id: int) -> Optional[RideRequest]: ...

    async def get_by_idempotency_key(self, key: str) -> Optional[RideRequest]: ...

    async def query_requests(
        self, zone_code: str, status: RequestStatus
    ) -> list[RideRequest]: ...

    async def query_group(self, group_id: str) -> list[RideRequest]: ...

    async def query_grouped(self) -> list[RideRequest]: ...

    async def save_request(self, request: RideRequest) -> RideRequest: ...


class VehicleStore(Protocol):
    async def create_vehicle(self, vehicle: Vehicle) -> Vehicle: ...

    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]: ...

    async def query_vehicles(self, status: VehicleStatus) -> list[Vehicle]: ...

    async def save_vehicle(self, vehicle: Vehicle) -> Vehicle: ...
