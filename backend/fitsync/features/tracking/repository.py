"""
Progress tracking repository.

Rows imported from Strava are addressed by (user_id, strava_activity_id),
which is unique per user.
"""

from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.shared.repository import BaseRepository
from .models import ProgressTracking


class ProgressTrackingRepository(BaseRepository[ProgressTracking]):
    """Repository for logged activities."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, ProgressTracking)

    async def exists_for_strava_activity(self, user_id: str, strava_activity_id: int) -> bool:
        return await self.exists(user_id=user_id, strava_activity_id=strava_activity_id)

    async def insert_strava_activity(
        self,
        user_id: str,
        strava_activity_id: int,
        activity_type: str,
        activity_name: str | None,
        activity_date: date,
        timezone: str,
        activity_data: dict[str, Any],
        calories_burned: int | None
    ) -> ProgressTracking:
        """Insert a row for a Strava activity."""
        return await self.create(
            user_id=user_id,
            strava_activity_id=strava_activity_id,
            activity_type=activity_type,
            activity_name=activity_name,
            date=activity_date,
            timezone=timezone,
            activity_data=activity_data,
            calories_burned=calories_burned,
        )

    async def update_strava_activity(
        self,
        user_id: str,
        strava_activity_id: int,
        activity_type: str,
        activity_name: str | None,
        activity_date: date,
        timezone: str,
        activity_data: dict[str, Any],
        calories_burned: int | None
    ) -> int:
        """
        Overwrite a Strava activity row.

        Returns:
            Number of rows updated (0 when the activity was never imported)
        """
        return await self.update_where(
            {"user_id": user_id, "strava_activity_id": strava_activity_id},
            activity_type=activity_type,
            activity_name=activity_name,
            date=activity_date,
            timezone=timezone,
            activity_data=activity_data,
            calories_burned=calories_burned,
            updated_at=datetime.utcnow(),
        )

    async def delete_strava_activity(self, user_id: str, strava_activity_id: int) -> int:
        """Delete a Strava activity row. Returns rows deleted (0 or 1)."""
        return await self.delete_where(user_id=user_id, strava_activity_id=strava_activity_id)
