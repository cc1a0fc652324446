"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``RideRequest`` and ``Vehicle``: enforces valid
  lifecycle transitions and keeps the group-id / bound-group invariants
  in one place.
- ``Vehicle.can_accommodate`` encapsulates capacity & luggage invariants.
- ``Group`` is a transient aggregate; it is never persisted on its own,
  only through the ids written back to its members.

Every persisted entity carries a ``version`` stamp.  Stores only accept a
write whose version matches the stored one (optimistic concurrency).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    BOUND_STATUSES,
    GROUPED_STATUSES,
    REQUEST_TRANSITIONS,
    VEHICLE_TRANSITIONS,
    GroupFullness,
    RequestStatus,
    VehicleStatus,
)
from .errors import InvalidStateTransition


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class RideRequest:
    id: Optional[int] = None
    user_id: str = ""
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    zone_code: str = ""
    seats_requested: int = 1
    luggage_count: int = 0
    status: RequestStatus = RequestStatus.WAITING
    group_id: Optional[str] = None
    assigned_vehicle_id: Optional[int] = None
    operator_name: Optional[str] = None
    estimated_arrival: Optional[datetime] = None
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int = 0

    def transition_to(self, new_status: RequestStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = REQUEST_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition request from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status

    def claim(self, group_id: str) -> None:
        self.transition_to(RequestStatus.MATCHED)
        self.group_id = group_id

    def release(self) -> None:
        """Give a claimed or dispatched request back to the waiting pool."""
        self.transition_to(RequestStatus.WAITING)
        self.group_id = None
        self.assigned_vehicle_id = None
        self.operator_name = None
        self.estimated_arrival = None

    def dispatch(
        self,
        group_id: str,
        vehicle_id: int,
        operator_name: str,
        estimated_arrival: datetime,
    ) -> None:
        self.transition_to(RequestStatus.DISPATCHED)
        self.group_id = group_id
        self.assigned_vehicle_id = vehicle_id
        self.operator_name = operator_name
        self.estimated_arrival = estimated_arrival

    def complete(self) -> None:
        self.transition_to(RequestStatus.COMPLETED)
        self.group_id = None

    def cancel(self) -> None:
        self.transition_to(RequestStatus.CANCELLED)
        self.group_id = None

    @property
    def is_grouped(self) -> bool:
        return self.status in GROUPED_STATUSES


@dataclass
class Vehicle:
    id: Optional[int] = None
    operator_name: str = ""
    position: Location = field(default_factory=lambda: Location(0, 0))
    total_seats: int = 4
    available_seats: int = 4
    luggage_capacity: int = 3
    available_luggage: int = 3
    status: VehicleStatus = VehicleStatus.AVAILABLE
    bound_group_id: Optional[str] = None
    version: int = 0

    def transition_to(self, new_status: VehicleStatus) -> None:
        allowed = VEHICLE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition vehicle from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status
        if new_status not in BOUND_STATUSES:
            self.bound_group_id = None
            self.available_seats = self.total_seats
            self.available_luggage = self.luggage_capacity

    def can_accommodate(self, seats: int, luggage: int) -> bool:
        return seats <= self.available_seats and luggage <= self.available_luggage

    def reserve(self, group_id: str, seats: int, luggage: int) -> None:
        self.transition_to(VehicleStatus.RESERVED)
        self.bound_group_id = group_id
        self.available_seats = max(0, self.total_seats - seats)
        self.available_luggage = max(0, self.luggage_capacity - luggage)


@dataclass
class Group:
    members: list[RideRequest]
    zone_code: str
    fullness: GroupFullness = GroupFullness.PARTIAL
    group_id: Optional[str] = None

    @classmethod
    def singleton(cls, request: RideRequest) -> Group:
        """The degraded outcome: the request on its own, always PARTIAL."""
        return cls(
            members=[request],
            zone_code=request.zone_code,
            fullness=GroupFullness.PARTIAL,
        )

    @property
    def total_seats(self) -> int:
        return sum(m.seats_requested for m in self.members)

    @property
    def total_luggage(self) -> int:
        return sum(m.luggage_count for m in self.members)

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_full(self) -> bool:
        return self.fullness is GroupFullness.FULL
