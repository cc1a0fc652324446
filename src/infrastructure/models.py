"""
SQLAlchemy ORM models  (PostgreSQL in production, SQLite in tests).

Tables
------
* ``ride_requests`` -- individual pickup requests at an airport zone
* ``vehicles``      -- the fleet, with capacity and current position

Groups have no table: a group exists only as the ``group_id`` shared by
its member requests and the ``bound_group_id`` of its vehicle.

Both tables carry a ``version`` column.  Repositories bump it on every
write and only update a row whose version still matches (optimistic
concurrency), which is what makes claims and reservations exclusive.

Indexes
-------
* ``(zone_code, status)`` -- the matcher's waiting-pool query
* ``status`` on vehicles  -- the dispatcher's available-fleet query
* ``group_id``            -- group look-ups from the API

CHECK constraints keep ``group_id`` set exactly while a request is
``MATCHED``/``DISPATCHED`` and ``bound_group_id`` set exactly while a
vehicle is ``RESERVED``/``IN_SERVICE``.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from src.domain.enums import RequestStatus, VehicleStatus


class RideRequestModel(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    zone_code = Column(String(16), nullable=False)

    seats_requested = Column(Integer, default=1, nullable=False)
    luggage_count = Column(Integer, default=0, nullable=False)
    status = Column(
        Enum(RequestStatus, name="requeststatus"),
        default=RequestStatus.WAITING,
        nullable=False,
    )
    group_id = Column(String(36), nullable=True)

    assigned_vehicle_id = Column(Integer, nullable=True)
    operator_name = Column(String(120), nullable=True)
    estimated_arrival = Column(DateTime(timezone=True), nullable=True)

    idempotency_key = Column(String(64), unique=True, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_requests_zone_status", "zone_code", "status"),
        Index("idx_requests_group", "group_id"),
        CheckConstraint(
            "(status IN ('MATCHED', 'DISPATCHED')) = (group_id IS NOT NULL)",
            name="ck_requests_group_id",
        ),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    operator_name = Column(String(120), nullable=False)
    current_lat = Column(Float, nullable=False)
    current_lng = Column(Float, nullable=False)

    total_seats = Column(Integer, default=4, nullable=False)
    available_seats = Column(Integer, default=4, nullable=False)
    luggage_capacity = Column(Integer, default=3, nullable=False)
    available_luggage = Column(Integer, default=3, nullable=False)

    status = Column(
        Enum(VehicleStatus, name="vehiclestatus"),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
    )
    bound_group_id = Column(String(36), nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_vehicles_status", "status"),
        Index("idx_vehicles_group", "bound_group_id"),
        CheckConstraint(
            "(status IN ('RESERVED', 'IN_SERVICE')) = (bound_group_id IS NOT NULL)",
            name="ck_vehicles_bound_group",
        ),
    )
