"""
Push subscription bootstrap.

Strava allows a single push subscription per application. At startup we
create it if it does not exist yet.

Strava validates the callback (GET with hub.challenge) before it answers
the create request, so creation has to wait until this server is
reachable at the callback host. The application runs
subscribe_when_serving() as a background task for that reason.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from fitsync.config import Settings, settings as default_settings
from .client import StravaClient, StravaError

logger = logging.getLogger(__name__)


# Readiness polling of the callback host before creating the subscription
READINESS_ATTEMPTS = 30
READINESS_DELAY_SECONDS = 2.0
READINESS_TIMEOUT_SECONDS = 5.0


def health_url(callback_url: str) -> str:
    """/health on the host serving the callback URL."""
    return str(httpx.URL(callback_url).copy_with(path="/health", query=None, fragment=None))


async def wait_until_serving(
    url: str,
    attempts: int = READINESS_ATTEMPTS,
    delay_seconds: float = READINESS_DELAY_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Poll `url` until it answers 200. Returns False if it never does."""
    async with httpx.AsyncClient(
        transport=transport, timeout=READINESS_TIMEOUT_SECONDS
    ) as client:
        for attempt in range(1, attempts + 1):
            try:
                response = await client.get(url)
                if response.status_code == 200:
                    return True
                logger.debug(f"{url} answered {response.status_code} (attempt {attempt})")
            except httpx.HTTPError as e:
                logger.debug(f"{url} not reachable yet (attempt {attempt}): {e}")
            await asyncio.sleep(delay_seconds)
    return False


async def ensure_webhook_subscription(
    client: StravaClient,
    settings: Settings = default_settings,
    before_create: Optional[Callable[[], Awaitable[bool]]] = None,
) -> Optional[int]:
    """
    Make sure the push subscription exists.

    Args:
        client: Strava API client
        settings: Application settings
        before_create: Awaited before creating a subscription; creation
            is skipped if it returns False

    Returns:
        Subscription id (existing or new), or None if skipped or failed.
        Never raises: a missing subscription is recoverable through the
        admin endpoints.
    """
    if not (
        settings.strava_configured
        and settings.strava_webhook_verify_token
        and settings.strava_webhook_callback_url
    ):
        logger.info("Skipping webhook subscription auto-setup: not configured")
        return None

    try:
        existing = await client.list_subscriptions()
        if existing:
            subscription_id = existing[0].get("id")
            logger.info(f"Webhook subscription already exists: {subscription_id}")
            return subscription_id

        if before_create is not None and not await before_create():
            logger.error(
                "Webhook subscription auto-setup skipped: callback host "
                f"never became reachable ({settings.strava_webhook_callback_url})"
            )
            return None

        logger.info(
            f"Creating webhook subscription with callback: "
            f"{settings.strava_webhook_callback_url}"
        )
        created = await client.create_subscription(
            settings.strava_webhook_callback_url,
            settings.strava_webhook_verify_token,
        )
        logger.info(f"Webhook subscription created: {created.get('id')}")
        return created.get("id")

    except (StravaError, httpx.HTTPError) as e:
        logger.error(f"Webhook subscription auto-setup failed: {e}")
        return None


async def subscribe_when_serving(
    client: StravaClient,
    settings: Settings = default_settings,
    attempts: int = READINESS_ATTEMPTS,
    delay_seconds: float = READINESS_DELAY_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[int]:
    """
    ensure_webhook_subscription() that creates only once the callback host
    answers /health. Meant to run as a task started from the lifespan.
    """
    async def ready() -> bool:
        return await wait_until_serving(
            health_url(settings.strava_webhook_callback_url),
            attempts=attempts,
            delay_seconds=delay_seconds,
            transport=transport,
        )

    return await ensure_webhook_subscription(client, settings, before_create=ready)
