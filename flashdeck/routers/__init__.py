"""API Routers package."""

from flashdeck.routers import apkg as apkg_router
from flashdeck.routers import decks as decks_router
from flashdeck.routers import health as health_router
from flashdeck.routers import review as review_router

__all__ = ["apkg_router", "decks_router", "health_router", "review_router"]
