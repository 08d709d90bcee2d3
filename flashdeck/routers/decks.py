"""
Deck API Router

Endpoints for the deck tree.

Endpoints:
- GET /api/decks - Deck forest of the current owner
- POST /api/decks - Create a deck
- GET /api/decks/{id}/stats - Card counts over the deck's subtree
- PATCH /api/decks/{id}/name - Rename a deck (descendant paths follow)
- PATCH /api/decks/{id}/parent - Move a deck under another deck or to the root
- DELETE /api/decks/{id} - Delete a deck with its subtree and cards
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.db.base import get_db
from flashdeck.dependencies import get_owner
from flashdeck.models.base import SuccessResponse
from flashdeck.models.decks import (
    DeckCreate,
    DeckMove,
    DeckRename,
    DeckResponse,
    DeckStatsResponse,
    DeckTreeNode,
)
from flashdeck.services.decks import DeckService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/decks", tags=["decks"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_deck_service(
    db: AsyncSession = Depends(get_db),
    owner: str = Depends(get_owner),
) -> DeckService:
    """Get deck service for the request owner."""
    return DeckService(db, owner)


# ===========================================
# Deck Endpoints
# ===========================================


@router.get("", response_model=list[DeckTreeNode])
async def list_decks(
    service: DeckService = Depends(get_deck_service),
) -> list[DeckTreeNode]:
    """Get all decks as a tree ordered by name."""
    tree = await service.list_tree()
    return [DeckTreeNode.from_node(node) for node in tree]


@router.post("", response_model=DeckResponse, status_code=201)
async def create_deck(
    request: DeckCreate,
    service: DeckService = Depends(get_deck_service),
) -> DeckResponse:
    """Create a deck, optionally under a parent deck."""
    deck = await service.create_deck(
        request.name, parent_id=request.parent_id, description=request.description
    )
    return DeckResponse.from_domain(deck)


@router.get("/{deck_id}/stats", response_model=DeckStatsResponse)
async def get_deck_stats(
    deck_id: str,
    service: DeckService = Depends(get_deck_service),
) -> DeckStatsResponse:
    """
    Get card counts for a deck including all of its descendants.

    ``due`` counts studied cards whose due time has passed; ``progress`` is
    the percentage of cards that are neither new nor due.
    """
    stats = await service.get_stats(deck_id)
    return DeckStatsResponse.from_domain(deck_id, stats)


@router.patch("/{deck_id}/name", response_model=DeckResponse)
async def rename_deck(
    deck_id: str,
    request: DeckRename,
    service: DeckService = Depends(get_deck_service),
) -> DeckResponse:
    """Rename a deck."""
    deck = await service.rename_deck(deck_id, request.name)
    return DeckResponse.from_domain(deck)


@router.patch("/{deck_id}/parent", response_model=DeckResponse)
async def move_deck(
    deck_id: str,
    request: DeckMove,
    service: DeckService = Depends(get_deck_service),
) -> DeckResponse:
    """Move a deck. Moving a deck under its own descendant is rejected."""
    deck = await service.move_deck(deck_id, request.parent_id)
    return DeckResponse.from_domain(deck)


@router.delete("/{deck_id}", response_model=SuccessResponse)
async def delete_deck(
    deck_id: str,
    service: DeckService = Depends(get_deck_service),
) -> SuccessResponse:
    """Delete a deck together with its sub-decks, cards and review history."""
    removed = await service.delete_deck(deck_id)
    return SuccessResponse(message=f"Deleted {len(removed)} decks")
