"""FastAPI dependency injection helpers.

Services are built once by the app factory and kept on ``app.state``;
these helpers hand them to the routes.
"""

from fastapi import Request

from src.services.fleet import FleetService
from src.services.orchestrator import RequestOrchestrator


def get_orchestrator(request: Request) -> RequestOrchestrator:
    return request.app.state.orchestrator


def get_fleet(request: Request) -> FleetService:
    return request.app.state.fleet
