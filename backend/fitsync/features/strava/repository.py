"""
Webhook event queue repository.

Selection predicate: processed = false AND retry_count < max_retries,
oldest first. Events that reach max_retries stay in the table as dead
letters and simply stop matching.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.shared.repository import BaseRepository
from .models import StravaWebhookEvent
from .schemas import InboundWebhookEvent, QueueStats


class WebhookEventRepository(BaseRepository[StravaWebhookEvent]):
    """Repository for the Strava webhook queue."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, StravaWebhookEvent)

    async def enqueue(self, event: InboundWebhookEvent) -> StravaWebhookEvent:
        """Insert a validated inbound event."""
        return await self.create(
            object_type=event.object_type.value,
            object_id=event.object_id,
            aspect_type=event.aspect_type.value,
            owner_id=event.owner_id,
            subscription_id=event.subscription_id,
            event_time=event.event_datetime,
            updates=event.updates,
        )

    async def get_pending(self, max_retries: int, limit: int) -> list[StravaWebhookEvent]:
        """
        Get unprocessed events that still have retries left.

        Args:
            max_retries: Events with retry_count >= this are dead letters
            limit: Batch size

        Returns:
            Events ordered oldest first
        """
        result = await self.db.execute(
            select(StravaWebhookEvent)
            .where(StravaWebhookEvent.processed.is_(False))
            .where(StravaWebhookEvent.retry_count < max_retries)
            .order_by(StravaWebhookEvent.created_at, StravaWebhookEvent.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_processed(self, event_id: int) -> int:
        return await self.update_where(
            {"id": event_id},
            processed=True,
            processed_at=datetime.utcnow(),
        )

    async def record_failure(self, event_id: int, error_message: str) -> int:
        """Increment retry_count and keep the latest error."""
        result = await self.db.execute(
            update(StravaWebhookEvent)
            .where(StravaWebhookEvent.id == event_id)
            .values(
                retry_count=StravaWebhookEvent.retry_count + 1,
                error_message=error_message,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def dead_letter(self, event_id: int, max_retries: int, error_message: str) -> int:
        """Exhaust the retry budget at once so the event is never selected again."""
        return await self.update_where(
            {"id": event_id},
            retry_count=max_retries,
            error_message=error_message,
        )

    async def get_stats(self, max_retries: int) -> QueueStats:
        """Queue counts for inspection."""
        model = StravaWebhookEvent
        pending = await self.count(
            model.processed.is_(False), model.retry_count < max_retries
        )
        processed = await self.count(model.processed.is_(True))
        dead = await self.count(
            model.processed.is_(False), model.retry_count >= max_retries
        )
        return QueueStats(pending=pending, processed=processed, dead_lettered=dead)
