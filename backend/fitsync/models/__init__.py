"""
Database Models

Import all models here to ensure they are registered with SQLAlchemy
before metadata is used (create_all, Alembic autogenerate).
"""

from fitsync.db.base import Base
from fitsync.features.users.models import User
from fitsync.features.integrations.models import (
    IntegrationConnection,
    IntegrationAutoSync,
)
from fitsync.features.tracking.models import ProgressTracking
from fitsync.features.strava.models import StravaWebhookEvent

__all__ = [
    "Base",
    "User",
    "IntegrationConnection",
    "IntegrationAutoSync",
    "ProgressTracking",
    "StravaWebhookEvent",
]
