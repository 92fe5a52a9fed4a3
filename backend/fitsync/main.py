"""
fitsync API

FastAPI application receiving Strava webhooks and reconciling activities.
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fitsync import __version__
from fitsync.config import settings
from fitsync.db.session import init_db, AsyncSessionLocal
from fitsync.api.v1.router import api_router
from fitsync.features.strava import (
    EncryptionNotConfiguredError,
    StravaClient,
    StravaRateLimiter,
    TokenVault,
    subscribe_when_serving,
)
from fitsync.features.strava.events import WebhookEventProcessor, WebhookEventScheduler


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Webhook Processing Setup ===
async def _start_webhook_processing(app: FastAPI):
    """Build the Strava collaborators and start the event scheduler."""
    rate_limiter = StravaRateLimiter()
    client = StravaClient(rate_limiter)
    app.state.rate_limiter = rate_limiter
    app.state.strava_client = client
    app.state.webhook_scheduler = None
    app.state.subscription_task = None

    if settings.strava_webhook_auto_subscribe:
        # Strava calls back into this server before answering, so the
        # setup must not block startup
        app.state.subscription_task = asyncio.create_task(subscribe_when_serving(client))

    if not settings.webhook_processor_enabled:
        logger.info("Webhook event processor disabled")
        return

    try:
        vault = TokenVault.from_settings()
    except EncryptionNotConfiguredError as e:
        logger.warning(f"Webhook event processor not started: {e}")
        return

    processor = WebhookEventProcessor(AsyncSessionLocal, client, rate_limiter, vault)
    scheduler = WebhookEventScheduler(
        processor, interval_seconds=settings.webhook_processor_interval_seconds
    )
    await scheduler.start()
    app.state.webhook_scheduler = scheduler


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Starting fitsync API...")
    await init_db()
    logger.info("Database initialized")

    await _start_webhook_processing(app)

    yield

    # Shutdown
    task = getattr(app.state, "subscription_task", None)
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    scheduler = getattr(app.state, "webhook_scheduler", None)
    if scheduler:
        await scheduler.stop()
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="fitsync API",
    description="Strava webhook ingestion and activity reconciliation",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
