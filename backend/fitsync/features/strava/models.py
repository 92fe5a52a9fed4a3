"""
Strava webhook queue model.

strava_webhook_events is an append-only queue and audit trail: the
receiver inserts, the event processor only flips processed / bumps
retry_count / records errors. Rows are never deleted.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from fitsync.db.base import Base


class StravaWebhookEvent(Base):
    """One delivery from the Strava push subscription."""

    __tablename__ = "strava_webhook_events"
    __table_args__ = (
        # Covers the processor's selection predicate and FIFO ordering
        Index("ix_strava_webhook_events_pending", "processed", "retry_count", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    object_type = Column(String(20), nullable=False)   # activity | athlete
    object_id = Column(BigInteger, nullable=False)
    aspect_type = Column(String(20), nullable=False)   # create | update | delete
    owner_id = Column(BigInteger, nullable=False)      # Strava athlete id
    subscription_id = Column(BigInteger, nullable=False, default=0)
    event_time = Column(DateTime, nullable=False)
    updates = Column(JSON, nullable=True)

    # Processing state
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return (
            f"<StravaWebhookEvent {self.id} {self.object_type}:{self.aspect_type} "
            f"object_id={self.object_id} retries={self.retry_count}>"
        )
