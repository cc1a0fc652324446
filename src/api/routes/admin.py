"""
Admin / observability endpoints
===============================

GET /api/v1/admin/active-groups -- every MATCHED or DISPATCHED group with its members
GET /api/v1/admin/health        -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_orchestrator
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import GroupResponse, HealthResponse
from src.services.orchestrator import RequestOrchestrator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/active-groups",
    response_model=list[GroupResponse],
    summary="List all active groups with their members",
)
@limiter.limit(RATE_LIMIT)
async def get_active_groups(
    request: Request,
    orchestrator: RequestOrchestrator = Depends(get_orchestrator),
):
    return [GroupResponse.from_entity(g) for g in await orchestrator.active_groups()]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
