"""
Strava API client.

Async client for the calls the webhook pipeline makes:
- GET /activities/{id} (bearer auth) to fetch authoritative activity state
- /push_subscriptions (client credentials) to manage the webhook subscription

Every read goes through the rate limiter: the call is refused locally
when the read budget is exhausted and the limiter is updated from the
response headers afterwards.
"""

import logging
import math
from typing import Any, Optional

import httpx

from fitsync.config import settings
from .rate_limit import StravaRateLimiter

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class StravaError(Exception):
    """Base Strava error."""
    pass


class StravaAPIError(StravaError):
    """Strava API returned an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class StravaAuthError(StravaError):
    """Authentication/authorization error."""
    pass


class StravaRateLimitError(StravaError):
    """Rate limit exceeded (locally predicted or reported by Strava)."""

    def __init__(self, message: str, retry_after_ms: int):
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


# =============================================================================
# Strava Client
# =============================================================================

class StravaClient:
    """
    Async client for Strava API.

    Usage:
        client = StravaClient(rate_limiter)
        activity = await client.get_activity(access_token, 12345)
        subscriptions = await client.list_subscriptions()
    """

    API_URL = "https://www.strava.com/api/v3"

    def __init__(
        self,
        rate_limiter: StravaRateLimiter,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.rate_limiter = rate_limiter
        self.client_id = client_id or settings.strava_client_id
        self.client_secret = client_secret or settings.strava_client_secret
        self._transport = transport
        self._timeout = timeout or settings.strava_request_timeout_seconds

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def _credentials(self) -> dict[str, str]:
        if not self.client_id or not self.client_secret:
            raise StravaError("Strava credentials not configured")
        return {"client_id": self.client_id, "client_secret": self.client_secret}

    def _rate_limited(self, message: str) -> StravaRateLimitError:
        retry_after = self.rate_limiter.get_retry_after_ms()
        return StravaRateLimitError(
            f"{message}. Retry after {math.ceil(retry_after / 1000)} seconds.",
            retry_after_ms=retry_after,
        )

    # -------------------------------------------------------------------------
    # Activities
    # -------------------------------------------------------------------------

    async def get_activity(self, access_token: str, activity_id: int) -> Optional[dict[str, Any]]:
        """
        Get detailed activity info.

        Returns:
            Activity JSON, or None if Strava answers 404 (activity gone)

        Raises:
            StravaRateLimitError: Read budget exhausted, or Strava answered 429
            StravaAuthError: Token rejected (401)
            StravaAPIError: Any other non-200 answer
        """
        if not self.rate_limiter.can_make_read_request():
            raise self._rate_limited("Rate limit approaching")

        async with self._http() as client:
            response = await client.get(
                f"{self.API_URL}/activities/{activity_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        self.rate_limiter.update_from_headers(response.headers)

        if response.status_code == 404:
            logger.info(f"Strava activity {activity_id} not found")
            return None
        if response.status_code == 429:
            raise self._rate_limited("Strava rate limit exceeded")
        if response.status_code == 401:
            raise StravaAuthError("Invalid or expired token")
        if response.status_code != 200:
            raise StravaAPIError(
                f"Strava API returned {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )

        return response.json()

    # -------------------------------------------------------------------------
    # Push subscriptions
    # -------------------------------------------------------------------------

    async def list_subscriptions(self) -> list[dict[str, Any]]:
        """List push subscriptions of this application (Strava allows one)."""
        async with self._http() as client:
            response = await client.get(
                f"{self.API_URL}/push_subscriptions",
                params=self._credentials(),
            )

        if response.status_code != 200:
            raise StravaAPIError(
                "Failed to view subscription",
                status_code=response.status_code,
                details=response.text,
            )
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def create_subscription(self, callback_url: str, verify_token: str) -> dict[str, Any]:
        """
        Create the push subscription.

        Strava validates the callback synchronously, calling our GET
        verification endpoint before this request returns.
        """
        async with self._http() as client:
            response = await client.post(
                f"{self.API_URL}/push_subscriptions",
                data={
                    **self._credentials(),
                    "callback_url": callback_url,
                    "verify_token": verify_token,
                },
            )

        if response.status_code not in (200, 201):
            raise StravaAPIError(
                "Failed to create subscription",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()

    async def delete_subscription(self, subscription_id: int | str) -> None:
        async with self._http() as client:
            response = await client.delete(
                f"{self.API_URL}/push_subscriptions/{subscription_id}",
                params=self._credentials(),
            )

        if response.status_code not in (200, 204):
            raise StravaAPIError(
                "Failed to delete subscription",
                status_code=response.status_code,
                details=response.text,
            )
