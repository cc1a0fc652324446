"""
Vehicle endpoints
=================

POST  /api/v1/vehicles                         -- register a vehicle
GET   /api/v1/vehicles/{vehicle_id}            -- vehicle status and binding
PATCH /api/v1/vehicles/{vehicle_id}/start      -- RESERVED -> IN_SERVICE
PATCH /api/v1/vehicles/{vehicle_id}/finish     -- IN_SERVICE -> AVAILABLE
PATCH /api/v1/vehicles/{vehicle_id}/release    -- RESERVED -> AVAILABLE
PATCH /api/v1/vehicles/{vehicle_id}/maintenance -- any -> MAINTENANCE
PATCH /api/v1/vehicles/{vehicle_id}/activate   -- MAINTENANCE -> AVAILABLE
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_fleet
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import VehicleCreateRequest, VehicleResponse
from src.services.fleet import FleetService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post(
    "",
    status_code=201,
    response_model=VehicleResponse,
    summary="Register a vehicle",
)
@limiter.limit(RATE_LIMIT)
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    fleet: FleetService = Depends(get_fleet),
):
    vehicle = await fleet.register_vehicle(
        operator_name=body.operator_name,
        current_lat=body.current_lat,
        current_lng=body.current_lng,
        total_seats=body.total_seats,
        luggage_capacity=body.luggage_capacity,
    )
    return VehicleResponse.from_entity(vehicle)


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get a vehicle")
@limiter.limit(RATE_LIMIT)
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.get_vehicle(vehicle_id))


@router.patch("/{vehicle_id}/start", response_model=VehicleResponse, summary="Start the trip")
@limiter.limit(RATE_LIMIT)
async def start_trip(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.start_trip(vehicle_id))


@router.patch("/{vehicle_id}/finish", response_model=VehicleResponse, summary="Finish the trip")
@limiter.limit(RATE_LIMIT)
async def finish_trip(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.finish_trip(vehicle_id))


@router.patch(
    "/{vehicle_id}/release",
    response_model=VehicleResponse,
    summary="Release a reservation",
)
@limiter.limit(RATE_LIMIT)
async def release_vehicle(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.release_vehicle(vehicle_id))


@router.patch(
    "/{vehicle_id}/maintenance",
    response_model=VehicleResponse,
    summary="Take a vehicle out of service",
)
@limiter.limit(RATE_LIMIT)
async def set_maintenance(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.set_maintenance(vehicle_id))


@router.patch(
    "/{vehicle_id}/activate",
    response_model=VehicleResponse,
    summary="Return a vehicle from maintenance",
)
@limiter.limit(RATE_LIMIT)
async def activate(
    request: Request,
    vehicle_id: int,
    fleet: FleetService = Depends(get_fleet),
):
    return VehicleResponse.from_entity(await fleet.return_to_service(vehicle_id))
