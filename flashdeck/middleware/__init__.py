"""
Middleware Package

Provides FastAPI error handling middleware and the domain exception
taxonomy.

Usage:
    from flashdeck.middleware import setup_error_handling, ServiceError

    setup_error_handling(app, debug=settings.DEBUG)
"""

from flashdeck.middleware.error_handling import (
    CycleDetected,
    ErrorHandlingMiddleware,
    ExportEncodingError,
    InvalidDeckName,
    InvalidRating,
    InvalidState,
    NotFoundError,
    ServiceError,
    UnsupportedFormat,
    setup_error_handling,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "setup_error_handling",
    "ServiceError",
    "UnsupportedFormat",
    "InvalidRating",
    "InvalidState",
    "CycleDetected",
    "InvalidDeckName",
    "ExportEncodingError",
    "NotFoundError",
]
