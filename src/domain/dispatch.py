"""
Nearest-Vehicle Dispatch
========================

Binds one vehicle to one formed group, all or nothing.

Algorithm
---------
1. Centroid of the members' pickups.
2. Linear scan of ``AVAILABLE`` vehicles; keep the closest one inside
   ``cab_assignment_radius_km`` that can carry the group's seats and
   luggage.  Ties go to the first vehicle in query order.
3. **Reserve** it with a single version-checked ``AVAILABLE -> RESERVED``
   write.  If another dispatch got there first the write is rejected and
   this attempt reports failure; it does not fall back to the next vehicle.
4. Write vehicle, operator and arrival time to every member and move it to
   ``DISPATCHED``, each write version-checked as well.
5. If any member write fails, every member already written is restored and
   the reservation is released (compensating writes), then failure.

Complexity: O(V) for V available vehicles, plus k + 1 writes for k members.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .distance import centroid, haversine_km
from .entities import Group, Location, RideRequest, Vehicle
from .enums import VehicleStatus
from .errors import InvalidStateTransition, PersistenceError, StaleRecordError
from .ports import RequestStore, VehicleStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DispatchConfig:
    min_passengers_for_assignment: int = 2
    cab_assignment_radius_km: float = 10.0
    enable_assignment: bool = True
    estimated_arrival_seconds: int = 30


def find_nearest_vehicle(
    origin: Location,
    vehicles: list[Vehicle],
    radius_km: float,
    seats: int = 0,
    luggage: int = 0,
) -> Optional[Vehicle]:
    """Closest vehicle within *radius_km* that can take the load.  O(V)."""
    nearest: Optional[Vehicle] = None
    nearest_km = float("inf")
    for vehicle in vehicles:
        if not vehicle.can_accommodate(seats, luggage):
            continue
        d = haversine_km(origin, vehicle.position)
        if d > radius_km:
            continue
        if d < nearest_km:  # strict: first seen wins a tie
            nearest, nearest_km = vehicle, d
    if nearest is not None:
        logger.info("Nearest vehicle %s at %.2f km", nearest.id, nearest_km)
    return nearest


class DispatchEngine:
    def __init__(
        self,
        requests: RequestStore,
        vehicles: VehicleStore,
        config: DispatchConfig,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.requests = requests
        self.vehicles = vehicles
        self.config = config
        self.clock = clock

    async def try_dispatch(self, group: Group) -> bool:
        """Reserve the nearest eligible vehicle and bind it to *group*.

        Returns ``True`` only if the reservation and every member update
        were stored.  On ``True`` the group's members are replaced by their
        stored copies.  On ``False`` nothing this call wrote is left behind.
        """
        if not self.config.enable_assignment:
            logger.warning("Dispatch is disabled in configuration")
            return False

        if group.size < self.config.min_passengers_for_assignment:
            logger.info(
                "Group has %d passengers, minimum for dispatch is %d",
                group.size,
                self.config.min_passengers_for_assignment,
            )
            return False

        center = centroid(m.pickup for m in group.members)

        try:
            available = await self.vehicles.query_vehicles(VehicleStatus.AVAILABLE)
        except PersistenceError:
            logger.exception("Could not load available vehicles")
            return False
        if not available:
            logger.warning("No available vehicles for group %s", group.group_id)
            return False

        chosen = find_nearest_vehicle(
            center,
            available,
            self.config.cab_assignment_radius_km,
            seats=group.total_seats,
            luggage=group.total_luggage,
        )
        if chosen is None:
            logger.warning(
                "No vehicle within %.1f km of (%.4f, %.4f)",
                self.config.cab_assignment_radius_km,
                center.latitude,
                center.longitude,
            )
            return False

        group_id = group.group_id or str(uuid.uuid4())
        reserved = await self._reserve(chosen, group, group_id)
        if reserved is None:
            return False

        eta = self.clock() + timedelta(seconds=self.config.estimated_arrival_seconds)
        dispatched = await self._bind_members(group, reserved, group_id, eta)
        if dispatched is None:
            await self._release(reserved)
            return False

        group.members = dispatched
        group.group_id = group_id
        logger.info(
            "Vehicle %s (%s) dispatched to group %s, %d passengers, eta %s",
            reserved.id,
            reserved.operator_name,
            group_id,
            group.size,
            eta.isoformat(),
        )
        return True

    # ── Internals ─────────────────────────────────────────────────────

    async def _reserve(
        self, vehicle: Vehicle, group: Group, group_id: str
    ) -> Optional[Vehicle]:
        pending = replace(vehicle)
        pending.reserve(group_id, group.total_seats, group.total_luggage)
        try:
            return await self.vehicles.save_vehicle(pending)
        except StaleRecordError:
            logger.warning("Vehicle %s was taken by a concurrent dispatch", vehicle.id)
        except PersistenceError:
            logger.exception("Could not reserve vehicle %s", vehicle.id)
        return None

    async def _bind_members(
        self,
        group: Group,
        vehicle: Vehicle,
        group_id: str,
        eta: datetime,
    ) -> Optional[list[RideRequest]]:
        """Dispatch every member or none of them."""
        applied: list[tuple[RideRequest, RideRequest]] = []  # (before, after)
        for member in group.members:
            pending = replace(member)
            try:
                pending.dispatch(group_id, vehicle.id, vehicle.operator_name, eta)
                stored = await self.requests.save_request(pending)
            except (StaleRecordError, PersistenceError, InvalidStateTransition) as exc:
                logger.warning(
                    "Dispatch write failed for request %s (%s); rolling back %d",
                    member.id,
                    type(exc).__name__,
                    len(applied),
                )
                await self._restore_members(applied)
                return None
            except BaseException:
                await self._restore_members(applied)
                await self._release(vehicle)
                raise
            applied.append((member, stored))
        return [after for _, after in applied]

    async def _restore_members(
        self, applied: list[tuple[RideRequest, RideRequest]]
    ) -> None:
        for before, after in reversed(applied):
            try:
                await self.requests.save_request(replace(before, version=after.version))
            except Exception:
                logger.exception("Could not restore request %s", before.id)

    async def _release(self, vehicle: Vehicle) -> None:
        released = replace(vehicle)
        released.transition_to(VehicleStatus.AVAILABLE)
        try:
            await self.vehicles.save_vehicle(released)
        except Exception:
            logger.exception("Could not release reservation on vehicle %s", vehicle.id)
