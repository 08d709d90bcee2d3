"""
FastAPI Dependencies

Common dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Header

from flashdeck.config import settings


async def get_owner(
    x_owner: Optional[str] = Header(None, alias="X-Owner"),
) -> str:
    """
    Resolve the deck owner for the request.

    Authentication is out of scope; the owner comes from the X-Owner header
    and falls back to DEFAULT_OWNER when the header is absent.
    """
    owner = (x_owner or "").strip()
    return owner or settings.DEFAULT_OWNER
