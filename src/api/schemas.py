"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import Group, RideRequest, Vehicle


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    zone_code: str = Field(
        ..., min_length=2, max_length=16, description="Airport / terminal code, e.g. DEL."
    )
    seats_requested: int = Field(1, ge=1, le=8)
    luggage_count: int = Field(0, ge=0, le=10)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent duplicate requests on retries.",
    )


class VehicleCreateRequest(BaseModel):
    operator_name: str = Field(..., min_length=1, max_length=120)
    current_lat: float = Field(..., ge=-90, le=90)
    current_lng: float = Field(..., ge=-180, le=180)
    total_seats: int = Field(4, ge=1, le=12)
    luggage_capacity: int = Field(3, ge=0, le=20)


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    user_id: str
    pickup_lat: float
    pickup_lng: float
    zone_code: str
    status: str
    seats_requested: int
    luggage_count: int
    group_id: Optional[str] = None
    assigned_vehicle_id: Optional[int] = None
    operator_name: Optional[str] = None
    estimated_arrival: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, r: RideRequest) -> RideResponse:
        return cls(
            id=r.id,
            user_id=r.user_id,
            pickup_lat=r.pickup.latitude,
            pickup_lng=r.pickup.longitude,
            zone_code=r.zone_code,
            status=r.status.value,
            seats_requested=r.seats_requested,
            luggage_count=r.luggage_count,
            group_id=r.group_id,
            assigned_vehicle_id=r.assigned_vehicle_id,
            operator_name=r.operator_name,
            estimated_arrival=r.estimated_arrival,
            created_at=r.created_at,
        )


class GroupResponse(BaseModel):
    group_id: Optional[str] = None
    zone_code: str
    fullness: str
    total_seats: int
    total_luggage: int
    members: list[RideResponse] = []

    @classmethod
    def from_entity(cls, g: Group) -> GroupResponse:
        return cls(
            group_id=g.group_id,
            zone_code=g.zone_code,
            fullness=g.fullness.value,
            total_seats=g.total_seats,
            total_luggage=g.total_luggage,
            members=[RideResponse.from_entity(m) for m in g.members],
        )


class IntakeResponse(BaseModel):
    request: RideResponse
    group: GroupResponse
    dispatched: bool
    duplicate: bool = Field(
        False, description="True when the idempotency key replayed an earlier request."
    )


class VehicleResponse(BaseModel):
    id: int
    operator_name: str
    current_lat: float
    current_lng: float
    total_seats: int
    available_seats: int
    luggage_capacity: int
    available_luggage: int
    status: str
    bound_group_id: Optional[str] = None

    @classmethod
    def from_entity(cls, v: Vehicle) -> VehicleResponse:
        return cls(
            id=v.id,
            operator_name=v.operator_name,
            current_lat=v.position.latitude,
            current_lng=v.position.longitude,
            total_seats=v.total_seats,
            available_seats=v.available_seats,
            luggage_capacity=v.luggage_capacity,
            available_luggage=v.available_luggage,
            status=v.status.value,
            bound_group_id=v.bound_group_id,
        )


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
