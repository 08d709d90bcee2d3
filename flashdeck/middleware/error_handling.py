"""
Error Handling Middleware

Exception taxonomy shared by the scheduling engine, deck hierarchy and
archive codecs, and the middleware that turns those exceptions into JSON.

Every domain failure is a ServiceError subclass carrying its own HTTP status
and machine-readable code. Routers let them propagate.

Failure classes:
    UnsupportedFormat    (415) archive missing its collection DB or tables
    InvalidRating        (422) rating outside Again..Easy
    InvalidState         (409) corrupt card snapshot or clock
    CycleDetected        (409) reparent would put a deck under itself
    InvalidDeckName      (422) empty, taken, or containing the path separator
    ExportEncodingError  (500) a card could not be written; no archive produced
    NotFoundError        (404) deck or card missing from the store

Response body (ErrorResponse):
    {"error": "invalid_rating", "message": "...", "error_id": "1a2b3c4d",
     "details": null, "timestamp": "..."}

``details`` is only filled in when the app runs with DEBUG enabled.

Usage:
    from flashdeck.middleware import setup_error_handling

    setup_error_handling(app, debug=settings.DEBUG)
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """JSON body of every error produced by the middleware."""

    error: str = Field(..., description="Error code, e.g. invalid_rating")
    message: str
    error_id: str = Field(..., description="Correlates the response with the log line")
    details: Optional[dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Domain Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base class for domain failures.

    Subclasses set ``status_code`` and ``error_code``; both can be
    overridden per instance. ``details`` is free-form context for logs and
    debug responses.
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code


class UnsupportedFormat(ServiceError):
    """Upload is not a readable .apkg archive. Fatal to the whole import."""

    status_code = 415
    error_code = "unsupported_format"


class InvalidRating(ServiceError):
    """Rating is not one of Again (1), Hard (2), Good (3), Easy (4)."""

    status_code = 422
    error_code = "invalid_rating"


class InvalidState(ServiceError):
    """
    Card snapshot or review clock is inconsistent.

    The engine refuses to coerce such input; the caller must repair or
    discard the card.
    """

    status_code = 409
    error_code = "invalid_state"


class CycleDetected(ServiceError):
    status_code = 409
    error_code = "cycle_detected"


class InvalidDeckName(ServiceError):
    status_code = 422
    error_code = "invalid_deck_name"


class ExportEncodingError(ServiceError):
    """A card could not be written to the archive; exports are all-or-nothing."""

    status_code = 500
    error_code = "export_encoding_error"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"


# =============================================================================
# Middleware
# =============================================================================


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Converts exceptions escaping a route into ErrorResponse bodies.

    HTTPException is left to FastAPI. ServiceError keeps its status and code.
    Anything else becomes a sanitized 500 with the traceback logged.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = uuid4().hex[:8]
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except ServiceError as e:
            logger.warning(
                f"[{error_id}] {request.method} {request.url.path} -> "
                f"{e.status_code} {e.error_code}: {e.message}"
            )
            body = ErrorResponse(
                error=e.error_code,
                message=e.message,
                error_id=error_id,
                details=e.details if self.debug else None,
            )
            return JSONResponse(status_code=e.status_code, content=body.model_dump(mode="json"))
        except Exception as e:
            trace = traceback.format_exc()
            logger.error(
                f"[{error_id}] {request.method} {request.url.path} -> "
                f"unhandled {type(e).__name__}: {e}\n{trace}"
            )
            body = ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                error_id=error_id,
                details={"exception": type(e).__name__, "message": str(e), "traceback": trace}
                if self.debug
                else None,
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """Install ErrorHandlingMiddleware on ``app``."""
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")
