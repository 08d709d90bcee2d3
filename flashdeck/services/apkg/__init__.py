"""Archive (.apkg) import and export."""

from flashdeck.services.apkg.apkg_service import ApkgService
from flashdeck.services.apkg.exporter import export_apkg
from flashdeck.services.apkg.importer import ImportResult, import_apkg
from flashdeck.services.apkg.schema import checksum

__all__ = ["ApkgService", "ImportResult", "checksum", "export_apkg", "import_apkg"]
