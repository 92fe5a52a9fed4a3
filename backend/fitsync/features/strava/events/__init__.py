"""
Webhook event processing.

Provides:
- WebhookEventProcessor: drains the webhook event queue
- WebhookEventScheduler: runs the processor on an interval
"""

from .config import EventProcessorConfig
from .processor import (
    EventProcessingError,
    PermanentEventError,
    RunSummary,
    TokenRefreshError,
    WebhookEventProcessor,
    token_expired,
)
from .scheduler import WebhookEventScheduler

__all__ = [
    # Processor
    "WebhookEventProcessor",
    "RunSummary",
    "token_expired",
    # Errors
    "EventProcessingError",
    "TokenRefreshError",
    "PermanentEventError",
    # Scheduler
    "WebhookEventScheduler",
    # Config
    "EventProcessorConfig",
]
