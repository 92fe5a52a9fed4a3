"""
fitsync command line tools.

Usage:
    fitsync process-events
    fitsync queue-stats
    fitsync subscription list
    fitsync subscription create --callback-url https://example.com/api/v1/webhooks/strava
    fitsync subscription delete 12345
    fitsync generate-key
"""

import asyncio
import json
import logging
import sys

import click

from fitsync.config import settings
from fitsync.db.session import AsyncSessionLocal, init_db
from fitsync.features.strava import (
    EncryptionNotConfiguredError,
    StravaClient,
    StravaError,
    StravaRateLimiter,
    TokenVault,
    WebhookEventRepository,
)
from fitsync.features.strava.encryption import generate_key as new_encryption_key
from fitsync.features.strava.events import EventProcessorConfig, WebhookEventProcessor


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level")
def cli(verbose):
    """Strava webhook pipeline tools for fitsync."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )


# =============================================================================
# Queue
# =============================================================================

@cli.command("process-events")
@click.option("--batch-size", default=EventProcessorConfig.BATCH_SIZE, show_default=True)
def process_events(batch_size):
    """Run one pass of the webhook event processor."""
    summary = asyncio.run(_process_events(batch_size))
    click.echo(
        f"Selected {summary.selected}: {summary.processed} processed, "
        f"{summary.failed} failed, {summary.dead_lettered} dead-lettered"
    )


async def _process_events(batch_size: int):
    try:
        vault = TokenVault.from_settings()
    except EncryptionNotConfiguredError as e:
        raise click.ClickException(str(e))

    await init_db()
    rate_limiter = StravaRateLimiter()
    processor = WebhookEventProcessor(
        AsyncSessionLocal,
        StravaClient(rate_limiter),
        rate_limiter,
        vault,
        batch_size=batch_size,
    )
    return await processor.run()


@cli.command("queue-stats")
def queue_stats():
    """Show pending, processed and dead-lettered event counts."""
    stats = asyncio.run(_queue_stats())
    click.echo(f"Pending:       {stats.pending}")
    click.echo(f"Processed:     {stats.processed}")
    click.echo(f"Dead-lettered: {stats.dead_lettered}")


async def _queue_stats():
    await init_db()
    async with AsyncSessionLocal() as db:
        return await WebhookEventRepository(db).get_stats(EventProcessorConfig.MAX_RETRIES)


# =============================================================================
# Push subscription
# =============================================================================

@cli.group()
def subscription():
    """Manage the Strava push subscription."""
    pass


def _client() -> StravaClient:
    if not settings.strava_configured:
        raise click.ClickException("STRAVA_CLIENT_ID / STRAVA_CLIENT_SECRET not configured")
    return StravaClient(StravaRateLimiter())


def _run_strava(coro):
    try:
        return asyncio.run(coro)
    except StravaError as e:
        raise click.ClickException(str(e))


@subscription.command("list")
def subscription_list():
    """Show existing subscriptions."""
    subscriptions = _run_strava(_client().list_subscriptions())
    if not subscriptions:
        click.echo("No subscriptions.")
        return
    click.echo(json.dumps(subscriptions, indent=2))


@subscription.command("create")
@click.option(
    "--callback-url",
    default=lambda: settings.strava_webhook_callback_url,
    help="Public webhook URL (defaults to STRAVA_WEBHOOK_CALLBACK_URL)",
)
def subscription_create(callback_url):
    """Create the subscription."""
    if not callback_url:
        raise click.UsageError("--callback-url is required")
    if not settings.strava_webhook_verify_token:
        raise click.ClickException("STRAVA_WEBHOOK_VERIFY_TOKEN not configured")

    created = _run_strava(
        _client().create_subscription(callback_url, settings.strava_webhook_verify_token)
    )
    click.echo(f"Created subscription {created.get('id')}")


@subscription.command("delete")
@click.argument("subscription_id", type=int)
def subscription_delete(subscription_id):
    """Delete a subscription by id."""
    _run_strava(_client().delete_subscription(subscription_id))
    click.echo(f"Deleted subscription {subscription_id}")


# =============================================================================
# Encryption
# =============================================================================

@cli.command("generate-key")
def generate_key():
    """Print a new INTEGRATION_ENCRYPTION_KEY."""
    click.echo(new_encryption_key())


if __name__ == "__main__":
    cli()
