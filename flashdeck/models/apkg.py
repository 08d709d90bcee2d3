"""
Archive API Models (Pydantic)

The import summary is serialized with camelCase keys to match the
existing web client.
"""

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from flashdeck.models.base import StrictResponse


class ImportResponse(StrictResponse):
    """
    Summary of an archive import.

    Item-level problems do not fail the import; they are listed in
    ``errors`` (item skipped) and ``warnings`` (item imported with a fix-up).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    decks_imported: int
    cards_imported: int
    media_imported: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
