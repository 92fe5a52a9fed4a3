"""
Provider integration module.

Usage:
    from fitsync.features.integrations import (
        IntegrationConnection,
        IntegrationConnectionRepository,
    )
"""

from .models import (
    STRAVA_PROVIDER,
    ConnectionStatus,
    IntegrationAutoSync,
    IntegrationConnection,
)
from .repository import AutoSyncRepository, IntegrationConnectionRepository

__all__ = [
    # Models
    "STRAVA_PROVIDER",
    "ConnectionStatus",
    "IntegrationAutoSync",
    "IntegrationConnection",
    # Repositories
    "AutoSyncRepository",
    "IntegrationConnectionRepository",
]
