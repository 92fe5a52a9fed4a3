"""
Strava webhook event processor.

Drains the strava_webhook_events queue:

1. Select up to BATCH_SIZE events with processed = false and
   retry_count < MAX_RETRIES, oldest first.
2. Handle each event on its own session:
   - athlete update with authorized=false: disconnect the connection and
     disable auto-sync
   - activity delete: delete the imported progress_tracking row
   - activity create/update: check the read budget, get a valid access
     token (refreshing and persisting a rotated pair if expired), fetch
     the activity and insert/update its progress_tracking row
3. Success marks the event processed right away. Failure increments
   retry_count and stores the error; the event is picked up again by a
   later run until its retries are spent, after which it stays in the
   table as a dead letter.

Benign situations (no active connection, nothing to delete, activity
already imported, Strava 404) count as success. Failures that cannot heal
on retry (undecryptable tokens, unknown event types) are dead-lettered at
once instead of burning retries.

No exception escapes run(): one bad event never blocks the batch.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitsync.features.integrations import (
    STRAVA_PROVIDER,
    AutoSyncRepository,
    IntegrationConnection,
    IntegrationConnectionRepository,
)
from fitsync.features.tracking import ProgressTrackingRepository

from ..client import StravaClient, StravaRateLimitError
from ..encryption import TokenDecryptionError, TokenVault
from ..mapping import to_tracked_activity
from ..models import StravaWebhookEvent
from ..oauth import RefreshedTokens, refresh_strava_token
from ..rate_limit import StravaRateLimiter
from ..repository import WebhookEventRepository
from ..schemas import AspectType, ObjectType
from .config import EventProcessorConfig

logger = logging.getLogger(__name__)


TokenRefresher = Callable[[str], Awaitable[Optional[RefreshedTokens]]]


# =============================================================================
# Exceptions
# =============================================================================

class EventProcessingError(Exception):
    """Event could not be handled; it will be retried."""
    pass


class TokenRefreshError(EventProcessingError):
    """Expired access token could not be refreshed."""
    pass


class PermanentEventError(EventProcessingError):
    """Event can never succeed; it goes straight to the dead-letter state."""
    pass


@dataclass
class RunSummary:
    """Outcome counts of one processor run."""

    selected: int = 0
    processed: int = 0
    failed: int = 0
    dead_lettered: int = 0


def token_expired(expires_at: Optional[datetime], margin_seconds: int = 0) -> bool:
    """
    Check an access token expiry.

    Naive datetimes are read as UTC (SQLite drops tzinfo). A missing
    expiry means the provider issued a non-expiring token.
    """
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= datetime.now(timezone.utc) + timedelta(seconds=margin_seconds)


class WebhookEventProcessor:
    """
    Processes queued Strava webhook events.

    Usage:
        processor = WebhookEventProcessor(
            AsyncSessionLocal, client, rate_limiter, TokenVault.from_settings()
        )
        summary = await processor.run()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: StravaClient,
        rate_limiter: StravaRateLimiter,
        vault: TokenVault,
        refresher: TokenRefresher = refresh_strava_token,
        max_retries: int = EventProcessorConfig.MAX_RETRIES,
        batch_size: int = EventProcessorConfig.BATCH_SIZE,
    ):
        self._session_factory = session_factory
        self.client = client
        self.rate_limiter = rate_limiter
        self.vault = vault
        self.refresher = refresher
        self.max_retries = max_retries
        self.batch_size = batch_size
        self._lock = asyncio.Lock()

    # =========================================================================
    # Run loop
    # =========================================================================

    async def run(self) -> RunSummary:
        """Process one batch of pending events. Never raises."""
        summary = RunSummary()

        if self._lock.locked():
            logger.info("Previous webhook processing run still in progress, skipping")
            return summary

        async with self._lock:
            logger.info("Starting webhook event processing run...")
            try:
                async with self._session_factory() as db:
                    events = await WebhookEventRepository(db).get_pending(
                        self.max_retries, self.batch_size
                    )

                summary.selected = len(events)
                logger.info(f"Found {len(events)} webhook events to process")

                for event in events:
                    outcome = await self._process_event(event)
                    setattr(summary, outcome, getattr(summary, outcome) + 1)

                logger.info(
                    f"Processing run complete: {summary.processed} processed, "
                    f"{summary.failed} failed, {summary.dead_lettered} dead-lettered"
                )
            except Exception as e:
                logger.error(f"Webhook processing run aborted: {e}")

        return summary

    async def _process_event(self, event: StravaWebhookEvent) -> str:
        """Handle one event and record the outcome. Returns a RunSummary field name."""
        logger.info(f"Processing event {event.id}: {event.object_type}:{event.aspect_type}")

        try:
            async with self._session_factory() as db:
                await self._handle(db, event)
                await WebhookEventRepository(db).mark_processed(event.id)
                await db.commit()
        except PermanentEventError as e:
            logger.error(f"Event {event.id} cannot be processed, moving to dead letter: {e}")
            await self._record_failure(event, str(e), permanent=True)
            return "dead_lettered"
        except Exception as e:
            message = str(e) or e.__class__.__name__
            attempts = event.retry_count + 1
            if attempts >= self.max_retries:
                logger.error(
                    f"Event {event.id} failed attempt {attempts}/{self.max_retries}, "
                    f"leaving as dead letter: {message}"
                )
                outcome = "dead_lettered"
            else:
                logger.warning(
                    f"Event {event.id} failed attempt {attempts}/{self.max_retries}: {message}"
                )
                outcome = "failed"
            await self._record_failure(event, message)
            return outcome

        logger.info(f"Event {event.id} processed successfully")
        return "processed"

    async def _record_failure(
        self,
        event: StravaWebhookEvent,
        message: str,
        permanent: bool = False
    ) -> None:
        try:
            async with self._session_factory() as db:
                events = WebhookEventRepository(db)
                if permanent:
                    await events.dead_letter(event.id, self.max_retries, message)
                else:
                    await events.record_failure(event.id, message)
                await db.commit()
        except Exception as e:
            # Event stays eligible with its old retry_count
            logger.error(f"Could not record failure for event {event.id}: {e}")

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _handle(self, db: AsyncSession, event: StravaWebhookEvent) -> None:
        try:
            object_type = ObjectType(event.object_type)
            aspect_type = AspectType(event.aspect_type)
        except ValueError as e:
            raise PermanentEventError(
                f"Unknown event type {event.object_type}:{event.aspect_type}"
            ) from e

        match (object_type, aspect_type):
            case (ObjectType.ATHLETE, _):
                await self._handle_athlete(db, event)
            case (ObjectType.ACTIVITY, AspectType.DELETE):
                await self._handle_activity_delete(db, event)
            case (ObjectType.ACTIVITY, AspectType.CREATE | AspectType.UPDATE):
                await self._handle_activity_upsert(db, event, aspect_type)

    # =========================================================================
    # Athlete events
    # =========================================================================

    async def _handle_athlete(self, db: AsyncSession, event: StravaWebhookEvent) -> None:
        """Deauthorization: disconnect and stop auto-sync. Other updates are ignored."""
        updates = event.updates or {}
        if updates.get("authorized") != "false":
            logger.debug(f"Ignoring athlete update for {event.owner_id}: {updates}")
            return

        logger.info(f"Athlete {event.owner_id} has deauthorized the app")

        connection = await IntegrationConnectionRepository(db).get_by_provider_user(
            STRAVA_PROVIDER, str(event.owner_id)
        )
        if connection is None:
            logger.info(f"No connection found for Strava athlete {event.owner_id}")
            return

        await IntegrationConnectionRepository(db).mark_disconnected(
            connection.user_id, STRAVA_PROVIDER, EventProcessorConfig.DEAUTHORIZED_REASON
        )
        await AutoSyncRepository(db).disable(connection.user_id, STRAVA_PROVIDER)

        logger.info(f"Marked Strava connection as disconnected for user {connection.user_id}")

    # =========================================================================
    # Activity events
    # =========================================================================

    async def _active_connection(
        self,
        db: AsyncSession,
        event: StravaWebhookEvent
    ) -> Optional[IntegrationConnection]:
        connection = await IntegrationConnectionRepository(db).get_active_by_provider_user(
            STRAVA_PROVIDER, str(event.owner_id)
        )
        if connection is None:
            logger.info(f"No active connection found for Strava athlete {event.owner_id}")
        return connection

    async def _handle_activity_delete(self, db: AsyncSession, event: StravaWebhookEvent) -> None:
        connection = await self._active_connection(db, event)
        if connection is None:
            return

        deleted = await ProgressTrackingRepository(db).delete_strava_activity(
            connection.user_id, event.object_id
        )
        if deleted:
            logger.info(f"Deleted activity {event.object_id} for user {connection.user_id}")
        else:
            logger.info(f"Activity {event.object_id} not stored for user {connection.user_id}")

    async def _handle_activity_upsert(
        self,
        db: AsyncSession,
        event: StravaWebhookEvent,
        aspect_type: AspectType
    ) -> None:
        connection = await self._active_connection(db, event)
        if connection is None:
            return

        if not self.rate_limiter.can_make_read_request():
            retry_after = self.rate_limiter.get_retry_after_ms()
            raise StravaRateLimitError(
                f"Rate limit approaching. Retry after {math.ceil(retry_after / 1000)} seconds.",
                retry_after_ms=retry_after,
            )

        access_token = await self._get_access_token(db, connection)

        activity = await self.client.get_activity(access_token, event.object_id)
        if activity is None:
            logger.info(f"Activity {event.object_id} not found on Strava")
            return

        data = to_tracked_activity(activity)
        user_id = connection.user_id
        tracking = ProgressTrackingRepository(db)

        if aspect_type is AspectType.CREATE:
            if await tracking.exists_for_strava_activity(user_id, data.strava_activity_id):
                logger.info(
                    f"Activity {data.strava_activity_id} already exists for user {user_id}"
                )
                return
            await tracking.insert_strava_activity(user_id, **data.as_row())
            logger.info(f"Created activity {data.strava_activity_id} for user {user_id}")
            return

        updated = await tracking.update_strava_activity(user_id, **data.as_row())
        if updated:
            logger.info(f"Updated activity {data.strava_activity_id} for user {user_id}")
        else:
            # Create event was missed; the update carries the full state
            await tracking.insert_strava_activity(user_id, **data.as_row())
            logger.info(
                f"Created activity {data.strava_activity_id} for user {user_id} (via update event)"
            )

    # =========================================================================
    # Tokens
    # =========================================================================

    def _decrypt(self, encrypted: str, label: str) -> str:
        try:
            return self.vault.decrypt_token(encrypted)
        except TokenDecryptionError as e:
            raise PermanentEventError(f"Stored {label} token cannot be decrypted: {e}") from e

    async def _get_access_token(
        self,
        db: AsyncSession,
        connection: IntegrationConnection
    ) -> str:
        """
        Decrypt the access token, refreshing it first if it has expired.

        A rotated pair is committed before it is used: Strava invalidates
        the old refresh token as soon as it hands out a new one.
        """
        access_token = self._decrypt(connection.access_token_encrypted, "access")

        if not token_expired(
            connection.token_expires_at, EventProcessorConfig.TOKEN_EXPIRY_MARGIN_SECONDS
        ):
            return access_token

        if not connection.refresh_token_encrypted:
            raise TokenRefreshError("Access token expired and no refresh token available")

        refresh_token = self._decrypt(connection.refresh_token_encrypted, "refresh")
        logger.info(f"Refreshing Strava token for user {connection.user_id}")

        tokens = await self.refresher(refresh_token)
        if tokens is None:
            raise TokenRefreshError("Failed to refresh access token")

        await IntegrationConnectionRepository(db).update_tokens(
            connection.user_id,
            STRAVA_PROVIDER,
            self.vault.encrypt_token(tokens.access_token),
            self.vault.encrypt_token(tokens.refresh_token),
            tokens.expires_at,
        )
        await db.commit()

        return tokens.access_token
