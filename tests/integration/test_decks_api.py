"""
Integration tests for the deck API.
"""

from datetime import timedelta

import pytest

from flashdeck.enums.learning import CardState
from tests.conftest import make_deck

pytestmark = pytest.mark.integration


def _create(client, name, parent_id=None, owner=None):
    headers = {"X-Owner": owner} if owner else {}
    response = client.post(
        "/api/decks", json={"name": name, "parent_id": parent_id}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestDeckTree:
    def test_empty(self, test_client):
        response = test_client.get("/api/decks")

        assert response.status_code == 200
        assert response.json() == []

    def test_nested_tree(self, test_client):
        languages = _create(test_client, "Languages")
        spanish = _create(test_client, "Spanish", languages["id"])
        _create(test_client, "Verbs", spanish["id"])
        _create(test_client, "Art")

        tree = test_client.get("/api/decks").json()

        assert [node["name"] for node in tree] == ["Art", "Languages"]
        verbs = tree[1]["children"][0]["children"][0]
        assert verbs["deck_path"] == "Languages::Spanish::Verbs"

    def test_owner_header(self, test_client):
        _create(test_client, "Mine", owner="alice")

        assert test_client.get("/api/decks").json() == []
        assert len(test_client.get("/api/decks", headers={"X-Owner": "alice"}).json()) == 1


class TestDeckValidation:
    @pytest.mark.parametrize("name", ["A::B", "   "])
    def test_invalid_name(self, test_client, name):
        response = test_client.post("/api/decks", json={"name": name})

        assert response.status_code == 422

    def test_invalid_name_error_body(self, test_client):
        response = test_client.post("/api/decks", json={"name": "A::B"})

        assert response.json()["error"] == "invalid_deck_name"

    def test_unknown_field_rejected(self, test_client):
        response = test_client.post("/api/decks", json={"name": "A", "color": "red"})

        assert response.status_code == 422

    def test_unknown_parent(self, test_client):
        response = test_client.post("/api/decks", json={"name": "A", "parent_id": "missing"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestDeckUpdates:
    def test_rename(self, test_client):
        root = _create(test_client, "Languages")
        child = _create(test_client, "Spanish", root["id"])

        response = test_client.patch(f"/api/decks/{root['id']}/name", json={"name": "Idiomas"})

        assert response.status_code == 200
        assert response.json()["deck_path"] == "Idiomas"
        tree = test_client.get("/api/decks").json()
        assert tree[0]["children"][0]["id"] == child["id"]
        assert tree[0]["children"][0]["deck_path"] == "Idiomas::Spanish"

    def test_move_to_root(self, test_client):
        root = _create(test_client, "Languages")
        child = _create(test_client, "Spanish", root["id"])

        response = test_client.patch(f"/api/decks/{child['id']}/parent", json={"parent_id": None})

        assert response.status_code == 200
        assert response.json()["deck_path"] == "Spanish"
        assert len(test_client.get("/api/decks").json()) == 2

    def test_move_into_descendant_conflicts(self, test_client):
        root = _create(test_client, "Languages")
        child = _create(test_client, "Spanish", root["id"])

        response = test_client.patch(
            f"/api/decks/{root['id']}/parent", json={"parent_id": child["id"]}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "cycle_detected"
        tree = test_client.get("/api/decks").json()
        assert tree[0]["id"] == root["id"]

    def test_delete(self, test_client):
        root = _create(test_client, "Languages")
        _create(test_client, "Spanish", root["id"])

        response = test_client.delete(f"/api/decks/{root['id']}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Deleted 2 decks"}
        assert test_client.get("/api/decks").json() == []

    def test_delete_unknown(self, test_client):
        assert test_client.delete("/api/decks/missing").status_code == 404


class TestDeckStats:
    def test_stats(self, test_client, seed, make_card, now):
        deck = make_deck("deck-1", "Spanish")
        seed(
            decks=[deck],
            cards=[
                make_card(id="n1"),
                make_card(id="n2"),
                make_card(
                    id="r1",
                    state=CardState.REVIEW,
                    stability=5.0,
                    difficulty=5.0,
                    due=now + timedelta(days=10000),
                    last_review=now,
                    reps=2,
                    scheduled_days=5,
                ),
            ],
        )

        response = test_client.get("/api/decks/deck-1/stats")

        assert response.status_code == 200
        assert response.json() == {
            "deck_id": "deck-1",
            "total": 3,
            "new": 2,
            "learning": 0,
            "review": 1,
            "due": 0,
            "progress": 33,
        }
