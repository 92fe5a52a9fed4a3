"""
Strava webhook receiver.

Two entry points:
- verify_subscription(): the GET handshake Strava performs when a push
  subscription is created
- enqueue_event(): store an inbound event for the processor

Strava expects an answer within two seconds and retries deliveries that
fail, so enqueue_event() never raises: bad payloads and storage errors are
logged and dropped.
"""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repository import WebhookEventRepository
from .schemas import InboundWebhookEvent

logger = logging.getLogger(__name__)


SUBSCRIBE_MODE = "subscribe"
EVENT_RECEIVED = "EVENT_RECEIVED"


class VerificationFailure(str, Enum):
    BAD_MODE = "bad_mode"
    NOT_CONFIGURED = "not_configured"
    BAD_TOKEN = "bad_token"


class WebhookVerificationError(Exception):
    """Subscription handshake rejected."""

    def __init__(self, reason: VerificationFailure):
        super().__init__(reason.value)
        self.reason = reason


def verify_subscription(
    mode: Optional[str],
    challenge: Optional[str],
    verify_token: Optional[str],
    expected_token: Optional[str]
) -> str:
    """
    Validate the subscription handshake.

    Returns:
        The challenge, to be echoed back

    Raises:
        WebhookVerificationError: mode is not "subscribe", no verify token
            is configured, or the token does not match
    """
    if mode != SUBSCRIBE_MODE:
        logger.error(f"Invalid hub.mode: {mode}")
        raise WebhookVerificationError(VerificationFailure.BAD_MODE)

    if not expected_token:
        logger.error("STRAVA_WEBHOOK_VERIFY_TOKEN not configured")
        raise WebhookVerificationError(VerificationFailure.NOT_CONFIGURED)

    if verify_token != expected_token:
        logger.error("Invalid webhook verify token")
        raise WebhookVerificationError(VerificationFailure.BAD_TOKEN)

    logger.info("Webhook validation successful, echoing challenge")
    return challenge or ""


def parse_event(payload: Any) -> Optional[InboundWebhookEvent]:
    """Validate an inbound payload. Returns None if it is malformed."""
    try:
        return InboundWebhookEvent.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid webhook event format: {payload!r} ({e.error_count()} errors)")
        return None


async def enqueue_event(
    session_factory: async_sessionmaker[AsyncSession],
    payload: Any
) -> Optional[int]:
    """
    Store an inbound event in the queue.

    Returns:
        Queue row id, or None if the event was dropped
    """
    event = parse_event(payload)
    if event is None:
        return None

    logger.info(
        f"Webhook event received: {event.object_type.value}:{event.aspect_type.value} "
        f"object_id={event.object_id} owner_id={event.owner_id} "
        f"subscription_id={event.subscription_id}"
    )

    try:
        async with session_factory() as db:
            row = await WebhookEventRepository(db).enqueue(event)
            await db.commit()
            logger.info(f"Event {row.id} queued for processing")
            return row.id
    except Exception as e:
        # Strava already has its 200; nothing to hand the error back to
        logger.error(f"Error queueing webhook event: {e}")
        return None
