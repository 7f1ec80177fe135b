"""Tests for the HTTP API."""

import pytest

from mizan.config import Settings, get_settings
from mizan.main import app


RULE = {
    "name": "High value",
    "condition": "amount > 1000",
    "action": "REVIEW",
    "reason": "Large transfer",
    "priority": 2,
}


def _create(client, **overrides):
    response = client.post("/api/rules", json={**RULE, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Mizan Rules Engine"
        assert "decide" in data["endpoints"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestRulesApi:
    def test_create(self, client):
        data = _create(client)
        assert data["id"].startswith("r-")
        assert data["name"] == "High value"
        assert data["active"] is True
        assert data["condition_error"] is None

    def test_create_with_unparseable_condition(self, client):
        data = _create(client, condition="(amount > 1000")
        assert "Unbalanced" in data["condition_error"]

        listing = client.get("/api/rules").json()
        assert listing["total"] == 1
        assert listing["invalid"] == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {**RULE, "action": "MAYBE"},
            {**RULE, "priority": "high"},
            {**RULE, "id": "r-mine"},
            {"name": "No condition", "action": "REVIEW"},
        ],
    )
    def test_create_invalid(self, client, payload):
        response = client.post("/api/rules", json=payload)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert client.get("/api/rules").json()["total"] == 0

    def test_list(self, client):
        _create(client, name="first")
        _create(client, name="second", active=False)

        listing = client.get("/api/rules").json()
        assert [rule["name"] for rule in listing["rules"]] == ["first", "second"]

        active = client.get("/api/rules", params={"active_only": True}).json()
        assert [rule["name"] for rule in active["rules"]] == ["first"]

    def test_get(self, client):
        created = _create(client)
        assert client.get(f"/api/rules/{created['id']}").json() == created

    def test_get_unknown(self, client):
        response = client.get("/api/rules/r-missing")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_update(self, client):
        created = _create(client)
        response = client.put(f"/api/rules/{created['id']}", json={"priority": 9})
        assert response.status_code == 200
        data = response.json()
        assert data["priority"] == 9
        assert data["condition"] == RULE["condition"]

    def test_update_invalid(self, client):
        created = _create(client)
        response = client.put(f"/api/rules/{created['id']}", json={"id": "r-other"})
        assert response.status_code == 422
        assert client.get(f"/api/rules/{created['id']}").json() == created

    def test_update_unknown(self, client):
        assert client.put("/api/rules/r-missing", json={"priority": 1}).status_code == 404

    def test_delete(self, client):
        created = _create(client)
        response = client.delete(f"/api/rules/{created['id']}")
        assert response.json() == {"success": True}
        assert client.delete(f"/api/rules/{created['id']}").status_code == 404


class TestDecideApi:
    def test_highest_priority_wins(self, client):
        _create(client, name="A", action="APPROVED", priority=1)
        review = _create(client, name="B", action="REVIEW", priority=2)

        response = client.post("/api/decide", json={"facts": {"amount": 5000}})

        assert response.status_code == 200
        data = response.json()
        assert data["decision"] == "REVIEW"
        assert data["matched_rule_id"] == review["id"]
        assert data["rule_name"] == "B"
        assert data["facts"] == {"amount": 5000}
        assert data["id"].startswith("d-")

    def test_no_rules(self, client):
        data = client.post("/api/decide", json={"facts": {"amount": 5000}}).json()
        assert data["decision"] == "REVIEW"
        assert data["matched_rule_id"] is None
        assert data["rule_name"] == "No matching rule"

    def test_nested_facts_rejected(self, client):
        response = client.post("/api/decide", json={"facts": {"tags": ["a", "b"]}})
        assert response.status_code == 422

    def test_decisions_logged(self, client):
        client.post("/api/decide", json={"facts": {"n": 1}})
        client.post("/api/decide", json={"facts": {"n": 2}})
        decisions = client.get("/api/decisions").json()
        assert [d["facts"] for d in decisions] == [{"n": 1}, {"n": 2}]

    def test_conflicts(self, client):
        _create(client, name="A", action="APPROVED", priority=1)
        _create(client, name="B", action="REVIEW", priority=2)
        conflicts = client.get("/api/conflicts").json()
        assert len(conflicts) == 1
        assert conflicts[0]["type"] == "contradictory"
        assert conflicts[0]["rule_names"] == ["A", "B"]


class TestExtractApi:
    def test_extract(self, client):
        response = client.post(
            "/api/extract", json={"text": "Applicants must be verified\nIf unsure, send for review"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "heuristic"
        assert [rule["action"] for rule in data["rules"]] == ["APPROVED", "REVIEW"]
        assert data["rules"][0]["condition_error"] is not None
        assert client.get("/api/rules").json()["total"] == 0

    def test_extract_empty_text(self, client):
        response = client.post("/api/extract", json={"text": "   "})
        assert response.status_code == 422
        assert response.json()["message"] == "No policy text provided"


class TestDemoApi:
    def test_load_and_reset(self, client):
        client.post("/api/decide", json={"facts": {"n": 1}})

        loaded = client.post("/api/demo/load").json()
        assert loaded == {"success": True, "rules_loaded": 6}
        assert client.get("/api/rules").json()["total"] == 6

        decision = client.post(
            "/api/decide",
            json={"facts": {"country": "SA", "years_in_business": 3, "amount": 20000,
                            "verified": True, "credit_score": 720}},
        ).json()
        assert decision["decision"] == "APPROVED"

        assert client.post("/api/demo/reset").json() == {"success": True}
        assert client.get("/api/rules").json()["total"] == 0
        assert len(client.get("/api/decisions").json()) == 2

    def test_load_replaces_existing_rules(self, client):
        _create(client)
        client.post("/api/demo/load")
        client.post("/api/demo/load")
        assert client.get("/api/rules").json()["total"] == 6


class TestApiKey:
    def test_missing_key_allowed_by_default(self, client):
        assert client.get("/api/rules").status_code == 200

    def test_correct_key(self, client):
        assert client.get("/api/rules", headers={"x-api-key": "test-key"}).status_code == 200

    def test_wrong_key(self, client):
        response = client.get("/api/rules", headers={"x-api-key": "nope"})
        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_key_required(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings(
            api_key="test-key", require_api_key=True
        )
        assert client.get("/api/rules").status_code == 401
        assert client.get("/api/rules", headers={"x-api-key": "test-key"}).status_code == 200

    def test_health_needs_no_key(self, client):
        assert client.get("/health", headers={"x-api-key": "nope"}).status_code == 200
