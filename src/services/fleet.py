"""
Fleet operations outside the dispatch core.

Registering vehicles, moving them through a trip, and the release path
that frees a vehicle again.  Every status change goes through the
``Vehicle`` state machine and a version-checked write, so these calls
cannot silently overwrite a concurrent reservation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Callable

from src.domain.entities import Location, RideRequest, Vehicle
from src.domain.enums import RequestStatus, VehicleStatus
from src.domain.errors import InvalidInputError, InvalidStateTransition, NotFoundError
from src.domain.ports import RequestStore, VehicleStore

logger = logging.getLogger(__name__)


class FleetService:
    def __init__(self, vehicles: VehicleStore, requests: RequestStore):
        self.vehicles = vehicles
        self.requests = requests

    async def register_vehicle(
        self,
        *,
        operator_name: str,
        current_lat: float,
        current_lng: float,
        total_seats: int = 4,
        luggage_capacity: int = 3,
    ) -> Vehicle:
        if not operator_name:
            raise InvalidInputError("operator_name is required")
        if not (math.isfinite(current_lat) and math.isfinite(current_lng)):
            raise InvalidInputError("Vehicle position must be finite")
        if total_seats <= 0 or luggage_capacity < 0:
            raise InvalidInputError("Vehicle capacity must be positive")

        vehicle = await self.vehicles.create_vehicle(
            Vehicle(
                operator_name=operator_name,
                position=Location(current_lat, current_lng),
                total_seats=total_seats,
                available_seats=total_seats,
                luggage_capacity=luggage_capacity,
                available_luggage=luggage_capacity,
            )
        )
        logger.info(
            "Vehicle %s registered: operator=%s at (%.4f, %.4f)",
            vehicle.id,
            operator_name,
            current_lat,
            current_lng,
        )
        return vehicle

    async def get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.vehicles.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError(f"Vehicle {vehicle_id} not found")
        return vehicle

    async def start_trip(self, vehicle_id: int) -> Vehicle:
        """RESERVED -> IN_SERVICE: the passengers have been picked up."""
        return await self._move(vehicle_id, VehicleStatus.IN_SERVICE)

    async def finish_trip(self, vehicle_id: int) -> Vehicle:
        """IN_SERVICE -> AVAILABLE, completing the dispatched passengers."""
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.status is not VehicleStatus.IN_SERVICE:
            raise InvalidStateTransition(
                f"Vehicle {vehicle_id} is {vehicle.status.value}, not on a trip"
            )
        return await self._settle_group(vehicle, RideRequest.complete)

    async def release_vehicle(self, vehicle_id: int) -> Vehicle:
        """RESERVED -> AVAILABLE: a reservation abandoned before pickup.

        The group's dispatched members go back to ``WAITING`` with vehicle,
        operator and arrival time cleared, so the next arrival in their
        zone can pool them again.
        """
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.status is not VehicleStatus.RESERVED:
            raise InvalidStateTransition(
                f"Only a reserved vehicle can be released (vehicle {vehicle_id} "
                f"is {vehicle.status.value})"
            )
        return await self._settle_group(vehicle, RideRequest.release)

    async def set_maintenance(self, vehicle_id: int) -> Vehicle:
        """Any -> MAINTENANCE.  A reserved group goes back to waiting; a group
        already on board is completed.
        """
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.status is VehicleStatus.RESERVED:
            return await self._settle_group(
                vehicle, RideRequest.release, VehicleStatus.MAINTENANCE
            )
        if vehicle.status is VehicleStatus.IN_SERVICE:
            return await self._settle_group(
                vehicle, RideRequest.complete, VehicleStatus.MAINTENANCE
            )
        return await self._move(vehicle_id, VehicleStatus.MAINTENANCE, current=vehicle)

    async def return_to_service(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.status is not VehicleStatus.MAINTENANCE:
            raise InvalidStateTransition(
                f"Vehicle {vehicle_id} is {vehicle.status.value}, not in maintenance"
            )
        return await self._move(vehicle_id, VehicleStatus.AVAILABLE, current=vehicle)

    async def _settle_group(
        self,
        vehicle: Vehicle,
        settle: Callable[[RideRequest], None],
        target: VehicleStatus = VehicleStatus.AVAILABLE,
    ) -> Vehicle:
        """Apply *settle* to the bound group's dispatched members, then move
        the vehicle to *target*.  Any failed write restores the members
        already written.
        """
        applied: list[tuple[RideRequest, RideRequest]] = []  # (before, after)
        try:
            for member in await self.requests.query_group(vehicle.bound_group_id):
                if member.status is not RequestStatus.DISPATCHED:
                    continue
                changed = replace(member)
                settle(changed)
                applied.append((member, await self.requests.save_request(changed)))
            return await self._move(vehicle.id, target, current=vehicle)
        except BaseException:
            logger.warning(
                "Could not settle group %s of vehicle %s; restoring %d members",
                vehicle.bound_group_id,
                vehicle.id,
                len(applied),
            )
            await self._restore_members(applied)
            raise

    async def _restore_members(
        self, applied: list[tuple[RideRequest, RideRequest]]
    ) -> None:
        for before, after in reversed(applied):
            try:
                await self.requests.save_request(replace(before, version=after.version))
            except Exception:
                logger.exception("Could not restore request %s", before.id)

    async def _move(
        self, vehicle_id: int, status: VehicleStatus, current: Vehicle | None = None
    ) -> Vehicle:
        vehicle = current or await self.get_vehicle(vehicle_id)
        moved = replace(vehicle)
        moved.transition_to(status)
        stored = await self.vehicles.save_vehicle(moved)
        logger.info(
            "Vehicle %s: %s -> %s", vehicle_id, vehicle.status.value, status.value
        )
        return stored
