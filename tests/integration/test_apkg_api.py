"""
Integration tests for the archive API.
"""

import pytest

from flashdeck.config import settings
from flashdeck.services.apkg import import_apkg

pytestmark = pytest.mark.integration


@pytest.fixture
def archive(apkg_builder):
    return apkg_builder(
        {"1": {"name": "Deck::Sub"}},
        [(1, "g1", "Q\x1fA"), (2, "g2", "only front")],
        [{"nid": 1, "did": 1}, {"nid": 2, "did": 1}, {"nid": 99, "did": 1}],
    )


def _upload(client, data, filename="deck.apkg"):
    return client.post(
        "/api/apkg/import",
        files={"file": (filename, data, "application/octet-stream")},
    )


class TestImport:
    def test_import_summary_uses_camel_case(self, test_client, archive):
        response = _upload(test_client, archive)

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["decksImported"] == 2
        assert body["cardsImported"] == 2
        assert body["mediaImported"] == 0
        assert len(body["errors"]) == 1
        assert len(body["warnings"]) == 1

        tree = test_client.get("/api/decks").json()
        assert tree[0]["name"] == "Deck"
        assert tree[0]["children"][0]["name"] == "Sub"

    def test_not_an_archive(self, test_client):
        response = _upload(test_client, b"plain text")

        assert response.status_code == 415
        assert response.json()["error"] == "unsupported_format"

    def test_empty_upload(self, test_client):
        assert _upload(test_client, b"").status_code == 400

    def test_too_large(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "APKG_MAX_UPLOAD_MB", 0)

        assert _upload(test_client, b"x").status_code == 413


class TestExport:
    def test_export_download(self, test_client, archive, now):
        _upload(test_client, archive)
        sub = test_client.get("/api/decks").json()[0]["children"][0]

        response = test_client.get(f"/api/apkg/export/{sub['id']}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.headers["content-disposition"] == 'attachment; filename="Sub.apkg"'

        result = import_apkg(response.content, owner="local", now=now)
        assert sorted((c.front, c.back) for c in result.cards) == [("Q", "A"), ("only front", "")]

    def test_export_unknown_deck(self, test_client):
        response = test_client.get("/api/apkg/export/missing")

        assert response.status_code == 404
