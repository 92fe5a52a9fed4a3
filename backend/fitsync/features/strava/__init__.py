"""
Strava integration module.

Usage:
    from fitsync.features.strava import StravaClient, StravaRateLimiter, TokenVault
    from fitsync.features.strava.events import WebhookEventProcessor

Components:
- webhook: subscription handshake and event intake
- StravaClient: API client (activities, push subscriptions)
- StravaRateLimiter: tracks Strava's 15-minute and daily budgets
- StravaOAuth: access token refresh
- TokenVault: AES-256-GCM encryption of stored tokens
- mapping: Strava activity -> progress_tracking row

Models:
- StravaWebhookEvent: queued webhook events
"""

from .models import StravaWebhookEvent
from .schemas import (
    AspectType,
    InboundWebhookEvent,
    ObjectType,
    QueueStats,
    WebhookSubscriptionCreate,
)
from .client import (
    StravaClient,
    StravaError,
    StravaAPIError,
    StravaAuthError,
    StravaRateLimitError,
)
from .rate_limit import StravaRateLimiter
from .oauth import (
    RefreshedTokens,
    StravaOAuth,
    StravaOAuthError,
    refresh_strava_token,
)
from .encryption import (
    EncryptionNotConfiguredError,
    TokenDecryptionError,
    TokenVault,
)
from .mapping import TrackedActivityData, map_activity_type, to_tracked_activity
from .repository import WebhookEventRepository
from .webhook import (
    EVENT_RECEIVED,
    VerificationFailure,
    WebhookVerificationError,
    enqueue_event,
    verify_subscription,
)
from .subscriptions import ensure_webhook_subscription, subscribe_when_serving

__all__ = [
    # Models
    "StravaWebhookEvent",
    # Schemas
    "AspectType",
    "InboundWebhookEvent",
    "ObjectType",
    "QueueStats",
    "WebhookSubscriptionCreate",
    # Client
    "StravaClient",
    "StravaError",
    "StravaAPIError",
    "StravaAuthError",
    "StravaRateLimitError",
    "StravaRateLimiter",
    # OAuth
    "RefreshedTokens",
    "StravaOAuth",
    "StravaOAuthError",
    "refresh_strava_token",
    # Encryption
    "EncryptionNotConfiguredError",
    "TokenDecryptionError",
    "TokenVault",
    # Mapping
    "TrackedActivityData",
    "map_activity_type",
    "to_tracked_activity",
    # Repositories
    "WebhookEventRepository",
    # Webhook
    "EVENT_RECEIVED",
    "VerificationFailure",
    "WebhookVerificationError",
    "enqueue_event",
    "verify_subscription",
    "ensure_webhook_subscription",
    "subscribe_when_serving",
]
