"""
API Router v1

Combines all route modules.
"""

from fastapi import APIRouter

from fitsync.api.v1.routes import strava_webhook

api_router = APIRouter()

api_router.include_router(strava_webhook.router, tags=["Strava Webhooks"])
