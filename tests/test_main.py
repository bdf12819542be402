"""
Tests for app-level behaviour: health endpoints, request ids, error rendering
and push subscriptions.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from cleancare import config
from cleancare.main import app
from cleancare.models import PushSubscription


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["service"] == config.SERVICE_NAME
    assert body["timestamp"]


def test_test_endpoint(client):
    assert client.get("/api/test").json()["message"] == "CleanCare Pro API is working!"


class TestRequestId:

    def test_generated(self, client):
        resp = client.get("/api/health")
        assert len(resp.headers["X-Request-ID"]) == 36

    def test_echoed(self, client):
        resp = client.get("/api/health", headers={"X-Request-ID": "trace-123"})
        assert resp.headers["X-Request-ID"] == "trace-123"


def test_unknown_route(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Route not found"}


def test_unhandled_error(client, monkeypatch):
    monkeypatch.setattr(config, "DEBUG", False)
    with TestClient(app, raise_server_exceptions=False) as raw_client:
        with patch("cleancare.routes.catalog.catalog.get_catalog", side_effect=RuntimeError("db on fire")):
            resp = raw_client.get("/api/services/dynamic")

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Internal server error"}


class TestPush:

    def test_subscribe_upserts_by_endpoint(self, client, make_user, db_session):
        user = make_user()
        body = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "k1", "auth": "a1"}, "user_id": user.id}
        resp = client.post("/api/push/subscribe", json=body)
        assert resp.status_code == 201
        assert resp.json() == {"success": True, "message": "Subscribed"}

        body["keys"] = {"p256dh": "k2", "auth": "a2"}
        client.post("/api/push/subscribe", json=body)

        rows = db_session.query(PushSubscription).all()
        assert len(rows) == 1
        assert rows[0].keys["p256dh"] == "k2"
        assert rows[0].user_id == user.id

    def test_subscribe_unknown_user(self, client):
        resp = client.post("/api/push/subscribe", json={"endpoint": "https://push.example/x", "user_id": 42})
        assert resp.status_code == 404

    def test_subscribe_empty_endpoint(self, client):
        resp = client.post("/api/push/subscribe", json={"endpoint": ""})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Subscription endpoint is required"

    def test_unsubscribe(self, client):
        client.post("/api/push/subscribe", json={"endpoint": "https://push.example/abc"})
        resp = client.post("/api/push/unsubscribe", json={"endpoint": "https://push.example/abc"})
        assert resp.json() == {"success": True, "message": "Unsubscribed", "removed": 1}

        again = client.post("/api/push/unsubscribe", json={"endpoint": "https://push.example/abc"})
        assert again.json()["removed"] == 0

    def test_unsubscribe_requires_endpoint(self, client):
        assert client.post("/api/push/unsubscribe", json={}).status_code == 400
