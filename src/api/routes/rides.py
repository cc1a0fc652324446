"""
Ride request endpoints
======================

POST  /api/v1/rides                  -- submit a request; matching and dispatch run inline
GET   /api/v1/rides/{ride_id}        -- current status, group and vehicle
PATCH /api/v1/rides/{ride_id}/cancel -- cancel a WAITING or MATCHED request
PATCH /api/v1/rides/{ride_id}/complete -- mark a dispatched request completed
GET   /api/v1/rides/groups/{group_id}  -- members of one group
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import get_orchestrator
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    GroupResponse,
    IntakeResponse,
    RideCreateRequest,
    RideResponse,
)
from src.services.orchestrator import RequestOrchestrator

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=IntakeResponse,
    summary="Submit a ride request",
    responses={
        201: {"description": "Request stored; grouping and dispatch outcome included."},
        400: {"description": "Request rejected by intake validation."},
    },
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    outcome = await orchestrator.submit_request(
        user_id=body.user_id,
        pickup_lat=body.pickup_lat,
        pickup_lng=body.pickup_lng,
        zone_code=body.zone_code,
        seats_requested=body.seats_requested,
        luggage_count=body.luggage_count,
        idempotency_key=body.idempotency_key,
    )
    return IntakeResponse(
        request=RideResponse.from_entity(outcome.request),
        group=GroupResponse.from_entity(outcome.group),
        dispatched=outcome.dispatched,
        duplicate=outcome.duplicate,
    )


@router.get(
    "/groups/{group_id}",
    response_model=GroupResponse,
    summary="List the members of a group",
)
@limiter.limit(RATE_LIMIT)
async def get_group(
    request: Request,
    group_id: str,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    group = await orchestrator.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return GroupResponse.from_entity(group)


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride request status",
)
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    return RideResponse.from_entity(await orchestrator.get_request(ride_id))


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride request",
    description=(
        "Transitions a WAITING or MATCHED request to CANCELLED. "
        "Dispatched requests go through the vehicle release path instead."
    ),
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: int,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    return RideResponse.from_entity(await orchestrator.cancel_request(ride_id))


@router.patch(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete a dispatched ride request",
)
@limiter.limit(RATE_LIMIT)
async def complete_ride(
    request: Request,
    ride_id: int,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    return RideResponse.from_entity(await orchestrator.complete_request(ride_id))
