"""
Liveness and readiness probes.

The process is ready once a bulk snapshot has been loaded into the search
index; card resolution works before that, search does not.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from manabase.api.dependencies import get_card_service
from manabase.services.card_service import CardService

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Probe result."""

    status: str
    search_index: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness: answers as long as the process is serving requests."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    service: Annotated[CardService, Depends(get_card_service)],
) -> HealthResponse:
    """Readiness: 503 until the search index has been built."""
    if service.index_ready:
        return HealthResponse(status="ready", search_index="loaded")
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(status="not ready", search_index="missing")
