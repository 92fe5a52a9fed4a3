"""
User model.

Only the columns the integration pipeline needs; profile, billing and
nutrition data live with their own features.
"""

from datetime import datetime
import uuid

from sqlalchemy import Column, String, DateTime

from fitsync.db.base import Base


class User(Base):
    """Application user owning integration connections and tracked activities."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User {self.id} ({self.name})>"
