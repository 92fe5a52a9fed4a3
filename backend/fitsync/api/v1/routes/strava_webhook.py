"""
Strava Webhook Routes

Endpoints:
- GET  /webhooks/strava - Subscription handshake
- POST /webhooks/strava - Receive events (queued, processed in background)
- GET/POST/DELETE /webhooks/strava/subscriptions - Subscription management (admin)
- GET  /webhooks/strava/admin/stats - Queue and rate limit status (admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitsync.config import settings
from fitsync.db.session import get_session_factory
from fitsync.features.strava import (
    EVENT_RECEIVED,
    StravaAPIError,
    StravaClient,
    StravaError,
    StravaRateLimiter,
    VerificationFailure,
    WebhookEventRepository,
    WebhookSubscriptionCreate,
    WebhookVerificationError,
    enqueue_event,
    verify_subscription,
)
from fitsync.features.strava.events import EventProcessorConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/strava")


_VERIFICATION_ERRORS = {
    VerificationFailure.BAD_MODE: (400, "Invalid mode"),
    VerificationFailure.NOT_CONFIGURED: (500, "Webhook not configured"),
    VerificationFailure.BAD_TOKEN: (403, "Invalid verify token"),
}


# =============================================================================
# Dependencies
# =============================================================================

async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> str:
    """Verify admin API key."""
    if not settings.admin_api_key:
        raise HTTPException(status_code=503, detail="Admin API not configured")
    if x_api_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


def get_strava_client(request: Request) -> StravaClient:
    client = getattr(request.app.state, "strava_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Strava client not initialized")
    return client


def get_rate_limiter(request: Request) -> StravaRateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise HTTPException(status_code=503, detail="Rate limiter not initialized")
    return limiter


def _strava_error_response(e: StravaError) -> JSONResponse:
    if isinstance(e, StravaAPIError) and e.status_code:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": str(e), "details": e.details},
        )
    return JSONResponse(status_code=500, content={"error": str(e)})


# =============================================================================
# Webhook
# =============================================================================

@router.get("")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
):
    """Echo the challenge back when Strava validates the subscription."""
    try:
        echoed = verify_subscription(
            mode, challenge, verify_token, settings.strava_webhook_verify_token
        )
    except WebhookVerificationError as e:
        status_code, message = _VERIFICATION_ERRORS[e.reason]
        return JSONResponse(status_code=status_code, content={"error": message})

    return {"hub.challenge": echoed}


@router.post("")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Receive a webhook event.

    Strava needs the acknowledgement within two seconds, so the event is
    validated and queued after the response is sent.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Webhook body is not valid JSON: {e}")
        return PlainTextResponse(EVENT_RECEIVED)

    background_tasks.add_task(enqueue_event, session_factory, payload)
    return PlainTextResponse(EVENT_RECEIVED)


# =============================================================================
# Subscription Management (admin)
# =============================================================================

@router.get("/subscriptions", dependencies=[Depends(verify_api_key)])
async def list_subscriptions(client: StravaClient = Depends(get_strava_client)):
    """View the current push subscription."""
    if not settings.strava_configured:
        return JSONResponse(status_code=500, content={"error": "Strava credentials not configured"})

    try:
        subscriptions = await client.list_subscriptions()
    except StravaError as e:
        logger.error(f"Failed to list webhook subscriptions: {e}")
        return _strava_error_response(e)

    return {"subscriptions": subscriptions}


@router.post("/subscriptions", status_code=201, dependencies=[Depends(verify_api_key)])
async def create_subscription(
    body: Optional[WebhookSubscriptionCreate] = None,
    client: StravaClient = Depends(get_strava_client),
):
    """Create the push subscription for a callback URL."""
    if not settings.strava_configured or not settings.strava_webhook_verify_token:
        return JSONResponse(status_code=500, content={"error": "Strava webhook not configured"})

    callback_url = body.callback_url if body else None
    if not callback_url:
        return JSONResponse(status_code=400, content={"error": "callback_url is required"})

    try:
        created = await client.create_subscription(
            callback_url, settings.strava_webhook_verify_token
        )
    except StravaError as e:
        logger.error(f"Failed to create webhook subscription: {e}")
        return _strava_error_response(e)

    logger.info(f"Webhook subscription created: {created.get('id')}")
    return {"success": True, "subscription_id": created.get("id")}


@router.delete("/subscriptions/{subscription_id}", dependencies=[Depends(verify_api_key)])
async def delete_subscription(
    subscription_id: int,
    client: StravaClient = Depends(get_strava_client),
):
    """Delete the push subscription."""
    if not settings.strava_configured:
        return JSONResponse(status_code=500, content={"error": "Strava credentials not configured"})

    try:
        await client.delete_subscription(subscription_id)
    except StravaError as e:
        logger.error(f"Failed to delete webhook subscription {subscription_id}: {e}")
        return _strava_error_response(e)

    logger.info(f"Webhook subscription deleted: {subscription_id}")
    return {"success": True}


# =============================================================================
# Queue Inspection (admin)
# =============================================================================

@router.get("/admin/stats", dependencies=[Depends(verify_api_key)])
async def webhook_stats(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    rate_limiter: StravaRateLimiter = Depends(get_rate_limiter),
):
    """Queue counts and Strava rate limit usage."""
    async with session_factory() as db:
        stats = await WebhookEventRepository(db).get_stats(EventProcessorConfig.MAX_RETRIES)

    return {
        "queue": stats.model_dump(),
        "rate_limits": rate_limiter.get_usage_percentages(),
    }
