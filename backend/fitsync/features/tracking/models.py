"""
Progress tracking model.

A progress_tracking row is one logged activity. Rows imported from Strava
carry the Strava activity id so webhook events can find them again.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from fitsync.db.base import Base


class ProgressTracking(Base):
    """Logged activity, reconciled from provider state when imported."""

    __tablename__ = "progress_tracking"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "strava_activity_id",
            name="uq_progress_tracking_user_strava_activity",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    activity_type = Column(String(100), nullable=False)  # Running, Cycling, ...
    activity_name = Column(String(255), nullable=True)
    date = Column(Date, nullable=False, index=True)
    timezone = Column(String(64), nullable=False, default="UTC")

    # Source metrics (distance, times, heart rate, ...)
    activity_data = Column(JSON, nullable=True)
    calories_burned = Column(Integer, nullable=True)

    # Null for manually logged activities
    strava_activity_id = Column(BigInteger, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ProgressTracking {self.id} {self.activity_type} {self.date}>"
