"""
Strava webhook schemas.

ObjectType / AspectType are the closed vocabularies of the push
subscription. Payloads outside them are rejected at receipt, so the
processor only ever sees known combinations.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt, field_validator


class ObjectType(str, Enum):
    ACTIVITY = "activity"
    ATHLETE = "athlete"


class AspectType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InboundWebhookEvent(BaseModel):
    """Event body posted by Strava."""

    object_type: ObjectType
    object_id: PositiveInt
    aspect_type: AspectType
    owner_id: PositiveInt
    subscription_id: int = 0
    event_time: int = Field(default=0, description="Epoch seconds")
    updates: Optional[dict[str, str]] = None

    @field_validator("updates", mode="before")
    @classmethod
    def stringify_updates(cls, v):
        """Strava sends update values as strings; normalise stray scalars."""
        if isinstance(v, dict):
            return {
                str(key): str(value).lower() if isinstance(value, bool) else str(value)
                for key, value in v.items()
            }
        return v

    @property
    def event_datetime(self) -> datetime:
        """event_time as naive UTC, matching the DateTime column."""
        return datetime.fromtimestamp(self.event_time, tz=timezone.utc).replace(tzinfo=None)


class WebhookSubscriptionCreate(BaseModel):
    callback_url: Optional[str] = None


class QueueStats(BaseModel):
    pending: int
    processed: int
    dead_lettered: int
