"""Domain enumerations and state-transition rules."""

import enum


class RequestStatus(str, enum.Enum):
    WAITING = "WAITING"
    MATCHED = "MATCHED"
    DISPATCHED = "DISPATCHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses.
# MATCHED -> WAITING releases a claim that never made it into a committed
# group; DISPATCHED -> WAITING undoes a dispatch whose vehicle was released
# before pickup; WAITING -> DISPATCHED only happens for a dispatched singleton.
REQUEST_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.WAITING: {
        RequestStatus.MATCHED,
        RequestStatus.DISPATCHED,
        RequestStatus.CANCELLED,
    },
    RequestStatus.MATCHED: {
        RequestStatus.DISPATCHED,
        RequestStatus.WAITING,
        RequestStatus.CANCELLED,
    },
    RequestStatus.DISPATCHED: {RequestStatus.COMPLETED, RequestStatus.WAITING},
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
}

# Statuses in which a request carries a group id
GROUPED_STATUSES = frozenset({RequestStatus.MATCHED, RequestStatus.DISPATCHED})


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    IN_SERVICE = "IN_SERVICE"
    MAINTENANCE = "MAINTENANCE"


VEHICLE_TRANSITIONS: dict[VehicleStatus, set[VehicleStatus]] = {
    VehicleStatus.AVAILABLE: {VehicleStatus.RESERVED, VehicleStatus.MAINTENANCE},
    VehicleStatus.RESERVED: {
        VehicleStatus.IN_SERVICE,
        VehicleStatus.AVAILABLE,
        VehicleStatus.MAINTENANCE,
    },
    VehicleStatus.IN_SERVICE: {VehicleStatus.AVAILABLE, VehicleStatus.MAINTENANCE},
    VehicleStatus.MAINTENANCE: {VehicleStatus.AVAILABLE},
}

# Statuses in which a vehicle is bound to a group
BOUND_STATUSES = frozenset({VehicleStatus.RESERVED, VehicleStatus.IN_SERVICE})


class GroupFullness(str, enum.Enum):
    PARTIAL = "PARTIAL"
    FULL = "FULL"
