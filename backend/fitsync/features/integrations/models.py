"""
Integration models.

Models:
- IntegrationConnection: OAuth link between a user and a provider account
- IntegrationAutoSync: Per-provider automatic sync toggle
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from fitsync.db.base import Base


STRAVA_PROVIDER = "strava"


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class IntegrationConnection(Base):
    """
    Provider connection with encrypted OAuth tokens.

    One row per (user, provider). Tokens are stored encrypted by the
    token vault and never in plain text.
    """

    __tablename__ = "integration_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_integration_connections_user_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)

    # Provider-side account id (Strava athlete id as text)
    provider_user_id = Column(String(64), nullable=False, index=True)

    access_token_encrypted = Column(Text, nullable=False)
    refresh_token_encrypted = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=ConnectionStatus.ACTIVE.value)
    last_error = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE.value

    def __repr__(self):
        return (
            f"<IntegrationConnection user_id={self.user_id} "
            f"provider={self.provider} status={self.status}>"
        )


class IntegrationAutoSync(Base):
    """Automatic sync setting per (user, provider)."""

    __tablename__ = "integration_auto_sync"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_integration_auto_sync_user_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
