"""
Card API endpoints.

Resolution, search and refresh triggers over the CardService. Unknown
cards come back as stubs (missing=true), never as errors.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from manabase.api.dependencies import get_card_service
from manabase.models.card import CanonicalCard
from manabase.services.card_service import CardService

router = APIRouter(prefix="/cards", tags=["cards"])

ServiceDep = Annotated[CardService, Depends(get_card_service)]


class BatchRequest(BaseModel):
    """Request model for resolving several cards."""

    names: list[str] = Field(
        ...,
        description="Card names, resolved in order",
        examples=[["Forest", "Overgrown Tomb", "Island"]],
    )


class BatchResponse(BaseModel):
    """Response model for batch resolution."""

    cards: list[CanonicalCard]
    missing: int


class SearchResponse(BaseModel):
    """Response model for card search."""

    query: str
    cards: list[CanonicalCard]
    count: int


class BulkRefreshResponse(BaseModel):
    """Response model for a bulk data refresh."""

    downloaded: bool
    index_ready: bool


class PriceRefreshResponse(BaseModel):
    """Response model for a price refresh cycle."""

    checked: int
    updated: int
    failed: int
    remaining: int


@router.get("/resolve", response_model=CanonicalCard)
async def resolve_card(
    service: ServiceDep,
    name: Annotated[str, Query(description="Card name (fuzzy)")] = "",
) -> CanonicalCard:
    """Resolve one card name to its canonical record."""
    return await service.resolve_card(name)


@router.post("/batch", response_model=BatchResponse)
async def resolve_batch(request: BatchRequest, service: ServiceDep) -> BatchResponse:
    """Resolve card names sequentially, preserving order."""
    cards = await service.resolve_cards_batch(request.names)
    return BatchResponse(cards=cards, missing=sum(1 for c in cards if c.missing))


@router.get("/details", response_model=CanonicalCard)
async def card_details(
    service: ServiceDep,
    name: Annotated[str, Query(description="Card name (fuzzy)")] = "",
) -> CanonicalCard:
    """Resolve a card with its cheapest printing and full print list."""
    return await service.resolve_card_details(name)


@router.get("/search", response_model=SearchResponse)
async def search_cards(
    service: ServiceDep,
    q: Annotated[str, Query(description="Card name query")] = "",
) -> SearchResponse:
    """Search the local card index by name."""
    cards = service.search_cards(q)
    return SearchResponse(query=q, cards=cards, count=len(cards))


@router.get("/exact", response_model=CanonicalCard)
async def lookup_exact(
    service: ServiceDep,
    name: Annotated[str, Query(description="Exact card name")] = "",
) -> CanonicalCard:
    """Exact-name lookup including every known printing."""
    return service.lookup_exact_card(name)


@router.get("/upstream-search")
async def upstream_search(
    service: ServiceDep,
    q: Annotated[str, Query(min_length=1, description="Scryfall search syntax")],
) -> dict[str, Any]:
    """Cached proxy of a Scryfall search query."""
    return await service.search_upstream(q)


@router.post("/refresh/bulk", response_model=BulkRefreshResponse)
async def refresh_bulk(
    service: ServiceDep,
    force: bool = False,
) -> BulkRefreshResponse:
    """Download new bulk data if stale (or forced) and rebuild the index."""
    downloaded = await service.ensure_bulk_data_fresh(force=force)
    return BulkRefreshResponse(downloaded=downloaded, index_ready=service.index_ready)


@router.post("/refresh/prices", response_model=PriceRefreshResponse)
async def refresh_prices(service: ServiceDep) -> PriceRefreshResponse:
    """Run one stale-price refresh cycle."""
    result = await service.refresh_stale_prices()
    return PriceRefreshResponse(
        checked=result.checked,
        updated=result.updated,
        failed=result.failed,
        remaining=result.remaining,
    )
