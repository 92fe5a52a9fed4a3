"""
Tests for the Strava webhook routes.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from fitsync.config import settings
from fitsync.db.session import get_session_factory
from fitsync.features.strava import QueueStats, StravaAPIError, StravaWebhookEvent
from fitsync.main import app
from fitsync.api.v1.routes import strava_webhook
from fitsync.api.v1.routes.strava_webhook import get_rate_limiter, get_strava_client


URL = "/api/v1/webhooks/strava"
ADMIN = {"X-API-Key": "admin-key"}

EVENT = {
    "object_type": "activity",
    "object_id": 88888,
    "aspect_type": "create",
    "owner_id": 67890,
    "subscription_id": 1,
    "event_time": 1705305600,
}


@pytest.fixture(autouse=True)
def configured(monkeypatch):
    monkeypatch.setattr(settings, "strava_webhook_verify_token", "verify-me")
    monkeypatch.setattr(settings, "strava_client_id", "12345")
    monkeypatch.setattr(settings, "strava_client_secret", "shh")
    monkeypatch.setattr(settings, "admin_api_key", "admin-key")
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def strava_client():
    client = MagicMock()
    client.list_subscriptions = AsyncMock(return_value=[{"id": 120475}])
    client.create_subscription = AsyncMock(return_value={"id": 120476})
    client.delete_subscription = AsyncMock(return_value=None)
    app.dependency_overrides[get_strava_client] = lambda: client
    return client


@pytest.fixture
def client():
    return TestClient(app)


# =============================================================================
# Handshake
# =============================================================================

class TestVerifyWebhook:
    """Tests for GET /webhooks/strava."""

    def test_echoes_challenge(self, client):
        response = client.get(URL, params={
            "hub.mode": "subscribe", "hub.challenge": "15f7d1a9", "hub.verify_token": "verify-me"
        })
        assert response.status_code == 200
        assert response.json() == {"hub.challenge": "15f7d1a9"}

    def test_bad_mode(self, client):
        response = client.get(URL, params={"hub.mode": "nope", "hub.verify_token": "verify-me"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid mode"}

    def test_bad_token(self, client):
        response = client.get(URL, params={"hub.mode": "subscribe", "hub.verify_token": "guess"})
        assert response.status_code == 403
        assert response.json() == {"error": "Invalid verify token"}

    def test_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "strava_webhook_verify_token", None)
        response = client.get(URL, params={"hub.mode": "subscribe", "hub.verify_token": "x"})
        assert response.status_code == 500
        assert response.json() == {"error": "Webhook not configured"}


# =============================================================================
# Event intake
# =============================================================================

class TestReceiveWebhook:
    """Tests for POST /webhooks/strava."""

    def test_acknowledges_and_queues(self, client, monkeypatch):
        enqueue = AsyncMock(return_value=1)
        monkeypatch.setattr(strava_webhook, "enqueue_event", enqueue)
        factory = MagicMock()
        app.dependency_overrides[get_session_factory] = lambda: factory

        response = client.post(URL, json=EVENT)

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"
        enqueue.assert_awaited_once_with(factory, EVENT)

    def test_malformed_event_still_acknowledged(self, client, monkeypatch):
        enqueue = AsyncMock(return_value=None)
        monkeypatch.setattr(strava_webhook, "enqueue_event", enqueue)
        app.dependency_overrides[get_session_factory] = lambda: MagicMock()

        response = client.post(URL, json={"object_type": "activity"})

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"

    def test_invalid_json_acknowledged(self, client, monkeypatch):
        enqueue = AsyncMock()
        monkeypatch.setattr(strava_webhook, "enqueue_event", enqueue)
        app.dependency_overrides[get_session_factory] = lambda: MagicMock()

        response = client.post(URL, content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"
        enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_lands_in_queue(self, session_factory):
        """End to end: the background task stores the event."""
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.post(URL, json=EVENT)

        assert response.status_code == 200
        async with session_factory() as db:
            rows = (await db.execute(select(StravaWebhookEvent))).scalars().all()
        assert len(rows) == 1
        assert rows[0].object_id == 88888
        assert rows[0].processed is False


# =============================================================================
# Subscription management
# =============================================================================

class TestSubscriptionAdmin:
    """Tests for the admin subscription endpoints."""

    def test_requires_api_key(self, client, strava_client):
        assert client.get(f"{URL}/subscriptions").status_code == 401
        assert client.get(f"{URL}/subscriptions", headers={"X-API-Key": "wrong"}).status_code == 401

    def test_admin_not_configured(self, client, strava_client, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", None)
        assert client.get(f"{URL}/subscriptions", headers=ADMIN).status_code == 503

    def test_list(self, client, strava_client):
        response = client.get(f"{URL}/subscriptions", headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"subscriptions": [{"id": 120475}]}

    def test_list_without_credentials(self, client, strava_client, monkeypatch):
        monkeypatch.setattr(settings, "strava_client_secret", None)
        response = client.get(f"{URL}/subscriptions", headers=ADMIN)
        assert response.status_code == 500
        strava_client.list_subscriptions.assert_not_awaited()

    def test_create(self, client, strava_client):
        response = client.post(
            f"{URL}/subscriptions", headers=ADMIN, json={"callback_url": "https://example.com/hook"}
        )
        assert response.status_code == 201
        assert response.json() == {"success": True, "subscription_id": 120476}
        strava_client.create_subscription.assert_awaited_once_with(
            "https://example.com/hook", "verify-me"
        )

    def test_create_requires_callback_url(self, client, strava_client):
        response = client.post(f"{URL}/subscriptions", headers=ADMIN, json={})
        assert response.status_code == 400
        strava_client.create_subscription.assert_not_awaited()

    def test_create_without_verify_token(self, client, strava_client, monkeypatch):
        monkeypatch.setattr(settings, "strava_webhook_verify_token", None)
        response = client.post(
            f"{URL}/subscriptions", headers=ADMIN, json={"callback_url": "https://example.com/hook"}
        )
        assert response.status_code == 500

    def test_create_relays_strava_failure(self, client, strava_client):
        strava_client.create_subscription.side_effect = StravaAPIError(
            "Failed to create subscription", status_code=400, details='{"message":"exists"}'
        )
        response = client.post(
            f"{URL}/subscriptions", headers=ADMIN, json={"callback_url": "https://example.com/hook"}
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "Failed to create subscription",
            "details": '{"message":"exists"}',
        }

    def test_delete(self, client, strava_client):
        response = client.delete(f"{URL}/subscriptions/120475", headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"success": True}
        strava_client.delete_subscription.assert_awaited_once_with(120475)


# =============================================================================
# Stats
# =============================================================================

class TestAdminStats:
    """Tests for GET /webhooks/strava/admin/stats."""

    def test_stats(self, client, rate_limiter, monkeypatch):
        class FakeSession:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc):
                return False

        repository = MagicMock()
        repository.return_value.get_stats = AsyncMock(
            return_value=QueueStats(pending=2, processed=5, dead_lettered=1)
        )
        monkeypatch.setattr(strava_webhook, "WebhookEventRepository", repository)
        app.dependency_overrides[get_session_factory] = lambda: FakeSession
        app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

        response = client.get(f"{URL}/admin/stats", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["queue"] == {"pending": 2, "processed": 5, "dead_lettered": 1}
        assert body["rate_limits"]["read_15min"] == 0.0

    def test_stats_requires_api_key(self, client):
        assert client.get(f"{URL}/admin/stats").status_code == 401


class TestHealth:
    """Tests for /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
