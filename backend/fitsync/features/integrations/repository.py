"""
Integration repositories.

Data access for provider connections and auto-sync settings. Every
mutation is a single statement keyed by (user_id, provider).
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.shared.repository import BaseRepository
from .models import ConnectionStatus, IntegrationAutoSync, IntegrationConnection


class IntegrationConnectionRepository(BaseRepository[IntegrationConnection]):
    """Repository for provider connections."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, IntegrationConnection)

    async def get_by_provider_user(
        self,
        provider: str,
        provider_user_id: str
    ) -> IntegrationConnection | None:
        """Get connection by provider account id, whatever its status."""
        return await self.get_by(provider=provider, provider_user_id=provider_user_id)

    async def get_active_by_provider_user(
        self,
        provider: str,
        provider_user_id: str
    ) -> IntegrationConnection | None:
        """Get connection by provider account id if it is active."""
        return await self.get_by(
            provider=provider,
            provider_user_id=provider_user_id,
            status=ConnectionStatus.ACTIVE.value,
        )

    async def update_tokens(
        self,
        user_id: str,
        provider: str,
        access_token_encrypted: str,
        refresh_token_encrypted: str,
        expires_at: datetime
    ) -> int:
        """
        Store a rotated token pair.

        Args:
            user_id: Owner of the connection
            provider: Provider key
            access_token_encrypted: New access token, already encrypted
            refresh_token_encrypted: New refresh token, already encrypted
            expires_at: Access token expiry

        Returns:
            Number of rows updated
        """
        return await self.update_where(
            {"user_id": user_id, "provider": provider},
            access_token_encrypted=access_token_encrypted,
            refresh_token_encrypted=refresh_token_encrypted,
            token_expires_at=expires_at,
            updated_at=datetime.utcnow(),
        )

    async def mark_disconnected(self, user_id: str, provider: str, reason: str) -> int:
        """Set connection status to disconnected and record why."""
        return await self.update_where(
            {"user_id": user_id, "provider": provider},
            status=ConnectionStatus.DISCONNECTED.value,
            last_error=reason,
            updated_at=datetime.utcnow(),
        )


class AutoSyncRepository(BaseRepository[IntegrationAutoSync]):
    """Repository for auto-sync settings."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, IntegrationAutoSync)

    async def disable(self, user_id: str, provider: str) -> int:
        """Turn auto-sync off. Missing setting rows are left absent."""
        return await self.update_where(
            {"user_id": user_id, "provider": provider},
            is_enabled=False,
            updated_at=datetime.utcnow(),
        )
