"""
Base Models for the HTTP Contract

Requests are strict: unknown fields are a 422 and strings are trimmed, so
deck names arrive already stripped. Responses are lenient and build straight
from the frozen domain dataclasses via ``from_attributes``.
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """Base for request bodies."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )


class StrictResponse(BaseModel):
    """Base for response bodies; ``model_validate(card)`` works on domain entities."""

    model_config = ConfigDict(
        extra="ignore",
        from_attributes=True,
    )


class SuccessResponse(StrictResponse):
    """Acknowledgement for operations with nothing else to return, such as deck deletion."""

    success: bool = True
    message: str
