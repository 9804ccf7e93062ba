"""Tests for the HTTP API."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from crm_rules.api import deps
from crm_rules.api.app import app

RULE = {
    "name": "High Value Deal",
    "entity_type": "DEAL",
    "trigger_type": "EVENT_BASED",
    "trigger_events": ["CREATE"],
    "conditions": [{"field": "amount", "operator": "GREATER_THAN", "value": 50000}],
    "actions": [{"type": "NOTIFY_OWNER", "template": "High Value Deal"}],
}

CONTEXT = {
    "entity_type": "DEAL",
    "entity_id": "deal-1",
    "trigger_event": "CREATE",
    "entity_data": {"name": "Acme", "amount": 75000, "user_id": "user-1"},
}


@pytest.fixture
def dispatcher():
    mock = Mock()
    mock.dispatch.return_value = True
    return mock


@pytest.fixture
def client(db_session, dispatcher):
    def override_get_db():
        yield db_session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def create_rule(client, **overrides):
    payload = dict(RULE)
    payload.update(overrides)
    response = client.post("/api/rules/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRulesApi:
    """Tests for /api/rules."""

    def test_create_and_get(self, client):
        rule = create_rule(client)

        assert rule["status"] == "DRAFT"
        assert rule["conditions"][0]["value"] == "50000"

        response = client.get(f"/api/rules/{rule['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "High Value Deal"

    def test_create_invalid_rule(self, client):
        response = client.post("/api/rules/", json={"name": "", "entity_type": "DEAL"})

        assert response.status_code == 422
        errors = response.json()["detail"]["errors"]
        assert "Rule name is required" in errors
        assert "At least one condition is required" in errors
        assert "Trigger type is required" in errors

    def test_duplicate_name_conflicts(self, client):
        create_rule(client)
        response = client.post("/api/rules/", json=RULE)
        assert response.status_code == 409

    def test_validate_endpoint(self, client):
        response = client.post("/api/rules/validate", json={"name": "x", "conditions": [], "actions": []})

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert body["errors"] == [
            "At least one condition is required",
            "At least one action is required",
        ]

        response = client.post("/api/rules/validate", json=RULE)
        assert response.json() == {"valid": True, "errors": []}

    def test_list_and_filter(self, client):
        rule = create_rule(client)
        create_rule(client, name="Lead Rule", entity_type="LEAD")

        assert len(client.get("/api/rules/").json()) == 2
        assert [r["name"] for r in client.get("/api/rules/?entity_type=LEAD").json()] == ["Lead Rule"]
        assert client.get("/api/rules/?active_only=true").json() == []

        client.post(f"/api/rules/{rule['id']}/activate")
        active = client.get("/api/rules/?active_only=true").json()
        assert [r["id"] for r in active] == [rule["id"]]

    def test_update(self, client):
        rule = create_rule(client)

        response = client.patch(f"/api/rules/{rule['id']}", json={"priority": 5})
        assert response.status_code == 200
        assert response.json()["priority"] == 5

        response = client.patch(f"/api/rules/{rule['id']}", json={"actions": []})
        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == ["At least one action is required"]

    def test_activate_deactivate(self, client):
        rule = create_rule(client)

        assert client.post(f"/api/rules/{rule['id']}/activate").json()["status"] == "ACTIVE"
        assert client.post(f"/api/rules/{rule['id']}/deactivate").json()["status"] == "INACTIVE"

    def test_duplicate(self, client):
        rule = create_rule(client, status="ACTIVE")

        response = client.post(f"/api/rules/{rule['id']}/duplicate", json={"name": "Copy"})
        assert response.status_code == 201
        copy = response.json()
        assert copy["name"] == "Copy"
        assert copy["status"] == "DRAFT"
        assert copy["id"] != rule["id"]

    def test_delete(self, client):
        rule = create_rule(client)

        assert client.delete(f"/api/rules/{rule['id']}").status_code == 204
        assert client.get(f"/api/rules/{rule['id']}").status_code == 404

    def test_missing_rule(self, client):
        assert client.get("/api/rules/nope").status_code == 404
        assert client.post("/api/rules/nope/activate").status_code == 404
        assert client.patch("/api/rules/nope", json={"priority": 1}).status_code == 404


class TestProcessingApi:
    """Tests for /api/process."""

    def test_process_dispatches_and_records(self, client, dispatcher):
        create_rule(client, status="ACTIVE")

        response = client.post("/api/process/", json=CONTEXT)

        assert response.status_code == 200, response.text
        summary = response.json()
        assert summary["rules_processed"] == 1
        assert summary["rules_matched"] == 1
        assert summary["notifications_created"] == 1
        assert summary["results"][0]["actions"][0]["request"]["title"] == "High Value Deal - Acme"
        dispatcher.dispatch.assert_called_once()

        executions = client.get("/api/process/executions").json()
        assert len(executions) == 1
        assert executions[0]["conditions_met"] is True

        rules = client.get("/api/rules/").json()
        assert rules[0]["execution_count"] == 1

    def test_test_mode_records_nothing(self, client, dispatcher):
        create_rule(client, status="ACTIVE")

        response = client.post("/api/process/", json=dict(CONTEXT, test_mode=True))

        assert response.status_code == 200
        assert response.json()["notifications_created"] == 1
        dispatcher.dispatch.assert_called_once()
        assert client.get("/api/process/executions").json() == []

    def test_invalid_context(self, client, dispatcher):
        response = client.post("/api/process/", json={"entity_type": "DEAL"})

        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == [
            "Entity ID is required",
            "Trigger event is required",
            "Entity data is required",
        ]
        dispatcher.dispatch.assert_not_called()

    def test_analytics(self, client):
        create_rule(client, status="ACTIVE")
        client.post("/api/process/", json=CONTEXT)

        analytics = client.get("/api/process/analytics?entity_type=DEAL&days=7").json()
        assert analytics["total_executions"] == 1
        assert analytics["total_matches"] == 1
        assert analytics["period_days"] == 7


class TestApiKey:
    """X-API-Key is enforced only when configured."""

    def test_rejects_missing_key(self, client, monkeypatch):
        monkeypatch.setattr(deps.settings, "api_key", "secret")

        assert client.get("/api/rules/").status_code == 401
        assert client.get("/api/rules/", headers={"X-API-Key": "wrong"}).status_code == 401
        assert client.get("/api/rules/", headers={"X-API-Key": "secret"}).status_code == 200

    def test_health_is_open(self, client, monkeypatch):
        monkeypatch.setattr(deps.settings, "api_key", "secret")
        assert client.get("/api/health").status_code == 200
