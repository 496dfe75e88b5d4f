"""Tests for the webhook and health endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import LINE_ID, TENANT_ID, fetch_all, inbound_event, seed_line
from ticketflow.api.routers import health
from ticketflow.infra.config import config
from ticketflow.main import app


@pytest.fixture
def client(db_engine, fake_redis, monkeypatch):
    monkeypatch.setattr(config, "WEBHOOK_TOKEN", None)
    monkeypatch.setattr(health, "redis_conn", fake_redis)
    seed_line(db_engine)
    return TestClient(app)


class TestMessagesWebhook:
    """Test POST /webhooks/lines/{line_id}/messages."""

    def test_batch_is_processed_in_order(self, client, db_engine):
        response = client.post(
            f"/webhooks/lines/{LINE_ID}/messages",
            json={
                "tenant_id": TENANT_ID,
                "messages": [
                    inbound_event("M1"),
                    inbound_event("M1"),
                    inbound_event("M2", message={"senderKeyDistributionMessage": {}}),
                ],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["processed"] == 3
        assert [result["outcome"] for result in data["results"]] == ["created", "updated", "dropped"]
        assert data["results"][0]["ticket_id"] is not None
        assert len(fetch_all(db_engine, "SELECT id FROM messages")) == 1

    def test_unknown_line(self, client):
        response = client.post("/webhooks/lines/99/messages", json={"tenant_id": TENANT_ID, "messages": []})
        assert response.status_code == 404

    def test_invalid_payload(self, client):
        response = client.post(f"/webhooks/lines/{LINE_ID}/messages", json={"messages": []})
        assert response.status_code == 422


class TestUpdatesWebhook:
    """Test POST /webhooks/lines/{line_id}/updates."""

    def test_ack_update(self, client, db_engine):
        client.post(
            f"/webhooks/lines/{LINE_ID}/messages",
            json={"tenant_id": TENANT_ID, "messages": [inbound_event("M1")]},
        )

        response = client.post(
            f"/webhooks/lines/{LINE_ID}/updates",
            json={
                "tenant_id": TENANT_ID,
                "updates": [{"key": {"id": "M1", "remoteJid": "x@s.whatsapp.net"}, "update": {"status": "READ"}}],
            },
        )

        assert response.status_code == 200
        assert response.json()["results"][0]["outcome"] == "updated"
        assert fetch_all(db_engine, "SELECT ack FROM messages") == [{"ack": 3}]


class TestGatewayToken:
    """Test shared-token authentication."""

    def test_missing_token(self, client, monkeypatch):
        monkeypatch.setattr(config, "WEBHOOK_TOKEN", "secret")
        response = client.post(f"/webhooks/lines/{LINE_ID}/messages", json={"tenant_id": TENANT_ID, "messages": []})
        assert response.status_code == 401

    def test_wrong_token(self, client, monkeypatch):
        monkeypatch.setattr(config, "WEBHOOK_TOKEN", "secret")
        response = client.post(
            f"/webhooks/lines/{LINE_ID}/messages",
            json={"tenant_id": TENANT_ID, "messages": []},
            headers={"X-Gateway-Token": "guess"},
        )
        assert response.status_code == 401

    def test_valid_token(self, client, monkeypatch):
        monkeypatch.setattr(config, "WEBHOOK_TOKEN", "secret")
        response = client.post(
            f"/webhooks/lines/{LINE_ID}/messages",
            json={"tenant_id": TENANT_ID, "messages": []},
            headers={"X-Gateway-Token": "secret"},
        )
        assert response.status_code == 200
        assert response.json()["processed"] == 0


class TestHealth:
    """Test health and metrics endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"] == {"database": "ok", "redis": "ok"}

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "inbound_events_total" in response.text
