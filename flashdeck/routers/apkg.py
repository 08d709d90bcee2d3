"""
Archive API Router

Endpoints for .apkg import and export.

Endpoints:
- POST /api/apkg/import - Upload an archive and import its decks and cards
- GET /api/apkg/export/{deck_id} - Download a deck (with sub-decks) as an archive
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck.config import settings
from flashdeck.db.base import get_db
from flashdeck.dependencies import get_owner
from flashdeck.models.apkg import ImportResponse
from flashdeck.services.apkg import ApkgService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/apkg", tags=["apkg"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_apkg_service(
    db: AsyncSession = Depends(get_db),
    owner: str = Depends(get_owner),
) -> ApkgService:
    """Get archive service for the request owner."""
    return ApkgService(db, owner)


# ===========================================
# Archive Endpoints
# ===========================================


@router.post("/import", response_model=ImportResponse)
async def import_archive(
    file: UploadFile = File(..., description=".apkg archive"),
    service: ApkgService = Depends(get_apkg_service),
) -> ImportResponse:
    """
    Import an archive.

    Unreadable archives are rejected with 415. Problems with individual
    notes or cards are reported in ``errors`` and ``warnings`` without
    failing the import.
    """
    max_bytes = settings.APKG_MAX_UPLOAD_MB * 1024 * 1024
    data = await file.read(max_bytes + 1)
    if not data:
        raise HTTPException(status_code=400, detail="No file provided")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {settings.APKG_MAX_UPLOAD_MB}MB",
        )

    logger.info(f"Importing archive {file.filename} ({len(data)} bytes)")
    result = await service.import_archive(data)
    return ImportResponse(
        decks_imported=result.decks_imported,
        cards_imported=result.cards_imported,
        media_imported=result.media_imported,
        errors=result.errors,
        warnings=result.warnings,
    )


@router.get("/export/{deck_id}")
async def export_deck(
    deck_id: str,
    service: ApkgService = Depends(get_apkg_service),
) -> Response:
    """Download a deck and all of its sub-decks as an .apkg archive."""
    data, filename = await service.export_deck(deck_id)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
