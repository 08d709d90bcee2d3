"""
Flashdeck API

Application factory wiring configuration, logging, error handling and the
routers together.

Usage:
    uvicorn flashdeck.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flashdeck.config import settings
from flashdeck.db.base import init_db
from flashdeck.middleware.error_handling import setup_error_handling
from flashdeck.routers import apkg_router, decks_router, health_router, review_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} started")
    yield


def create_app(create_tables: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        create_tables: Create missing tables on startup. Tests pass False
            and manage their own database.
    """
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        lifespan=lifespan if create_tables else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(decks_router.router)
    app.include_router(review_router.router)
    app.include_router(apkg_router.router)

    return app


app = create_app()
