"""
Tests for webhook handshake and event intake.
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from fitsync.features.strava import StravaWebhookEvent
from fitsync.features.strava.webhook import (
    VerificationFailure,
    WebhookVerificationError,
    enqueue_event,
    parse_event,
    verify_subscription,
)


EVENT = {
    "object_type": "activity",
    "object_id": 88888,
    "aspect_type": "create",
    "owner_id": 67890,
    "subscription_id": 120475,
    "event_time": 1705305600,
}


# =============================================================================
# Handshake
# =============================================================================

class TestVerifySubscription:
    """Tests for verify_subscription."""

    def test_echoes_challenge(self):
        assert verify_subscription("subscribe", "15f7d1a9", "secret", "secret") == "15f7d1a9"

    def test_bad_mode(self):
        with pytest.raises(WebhookVerificationError) as exc:
            verify_subscription("unsubscribe", "c", "secret", "secret")
        assert exc.value.reason is VerificationFailure.BAD_MODE

    def test_not_configured(self):
        with pytest.raises(WebhookVerificationError) as exc:
            verify_subscription("subscribe", "c", "secret", None)
        assert exc.value.reason is VerificationFailure.NOT_CONFIGURED

    def test_bad_token(self):
        with pytest.raises(WebhookVerificationError) as exc:
            verify_subscription("subscribe", "c", "guess", "secret")
        assert exc.value.reason is VerificationFailure.BAD_TOKEN

    def test_mode_checked_before_configuration(self):
        with pytest.raises(WebhookVerificationError) as exc:
            verify_subscription(None, "c", None, None)
        assert exc.value.reason is VerificationFailure.BAD_MODE


# =============================================================================
# Parsing
# =============================================================================

class TestParseEvent:
    """Tests for parse_event."""

    def test_valid_event(self):
        event = parse_event(EVENT)
        assert event.object_id == 88888
        assert event.owner_id == 67890
        assert event.updates is None
        assert event.event_datetime == datetime(2024, 1, 15, 8, 0)

    def test_optional_fields_default_to_zero(self):
        event = parse_event({k: v for k, v in EVENT.items() if k not in ("subscription_id", "event_time")})
        assert event.subscription_id == 0
        assert event.event_time == 0

    @pytest.mark.parametrize("missing", ["object_type", "object_id", "aspect_type", "owner_id"])
    def test_missing_required_field(self, missing):
        assert parse_event({k: v for k, v in EVENT.items() if k != missing}) is None

    def test_zero_ids_rejected(self):
        assert parse_event({**EVENT, "object_id": 0}) is None
        assert parse_event({**EVENT, "owner_id": 0}) is None

    def test_unknown_vocabulary_rejected(self):
        assert parse_event({**EVENT, "object_type": "route"}) is None
        assert parse_event({**EVENT, "aspect_type": "archive"}) is None

    def test_not_an_object(self):
        assert parse_event(["activity"]) is None

    def test_update_values_become_strings(self):
        event = parse_event({
            **EVENT,
            "object_type": "athlete",
            "aspect_type": "update",
            "updates": {"authorized": False, "private": "true"},
        })
        assert event.updates == {"authorized": "false", "private": "true"}


# =============================================================================
# Enqueue
# =============================================================================

class TestEnqueueEvent:
    """Tests for enqueue_event."""

    @pytest.mark.asyncio
    async def test_stores_event(self, session_factory):
        event_id = await enqueue_event(session_factory, {**EVENT, "updates": {"title": "Lunch Run"}})

        async with session_factory() as db:
            row = await db.get(StravaWebhookEvent, event_id)

        assert row.object_type == "activity"
        assert row.aspect_type == "create"
        assert row.object_id == 88888
        assert row.owner_id == 67890
        assert row.subscription_id == 120475
        assert row.event_time == datetime(2024, 1, 15, 8, 0)
        assert row.updates == {"title": "Lunch Run"}
        assert row.processed is False
        assert row.retry_count == 0

    @pytest.mark.asyncio
    async def test_malformed_event_dropped(self, session_factory):
        assert await enqueue_event(session_factory, {"object_type": "activity"}) is None

        async with session_factory() as db:
            result = await db.execute(select(StravaWebhookEvent))
            assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_storage_error_swallowed(self):
        """Storage failures are logged, never raised to the caller."""
        broken_factory = MagicMock(side_effect=RuntimeError("database unavailable"))
        assert await enqueue_event(broken_factory, EVENT) is None
