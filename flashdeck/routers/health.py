"""
Health Check Endpoints

Endpoints:
- GET /api/health - Liveness: the process is up
- GET /api/health/detailed - Readiness: database reachable, media directory writable
"""

import os
from pathlib import Path

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from flashdeck import __version__
from flashdeck.config import settings
from flashdeck.db.base import get_db

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": __version__}


@router.get("/detailed")
async def detailed_health_check(db: AsyncSession = Depends(get_db)):
    """
    Check the dependencies an import or review needs.

    Any failing dependency turns the overall status to "degraded"; the
    endpoint itself still answers 200 so monitoring can read the body.
    """
    dependencies = {}

    try:
        await db.execute(text("SELECT 1"))
        dependencies["database"] = {"status": "healthy"}
    except Exception as e:
        dependencies["database"] = {"status": "unhealthy", "error": str(e)}

    media_dir = Path(settings.MEDIA_DIR)
    target = media_dir if media_dir.exists() else media_dir.parent
    if os.access(target, os.W_OK):
        dependencies["media"] = {"status": "healthy", "path": str(media_dir)}
    else:
        dependencies["media"] = {"status": "unhealthy", "path": str(media_dir)}

    degraded = any(dep["status"] != "healthy" for dep in dependencies.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "service": settings.APP_NAME,
        "version": __version__,
        "dependencies": dependencies,
    }
