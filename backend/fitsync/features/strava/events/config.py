"""
Webhook event processing configuration constants.
"""


class EventProcessorConfig:
    """Configuration for the webhook event processor."""

    # Attempts per event before it is left in the queue as a dead letter
    MAX_RETRIES = 3

    # Events handled per run, oldest first
    BATCH_SIZE = 10

    # Scheduler interval between runs (seconds); overridable via settings
    DEFAULT_INTERVAL_SECONDS = 30

    # Access tokens expiring within this margin are refreshed before use,
    # so a token stays valid for the whole processing attempt
    TOKEN_EXPIRY_MARGIN_SECONDS = 60

    # Recorded on the connection when Strava reports deauthorization
    DEAUTHORIZED_REASON = "User revoked access via Strava"
