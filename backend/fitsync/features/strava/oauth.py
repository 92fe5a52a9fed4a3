"""
Strava OAuth token refresh.

Strava access tokens live six hours. The refresh grant returns a new
access token AND may rotate the refresh token, so callers must persist
both values before using the new access token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from fitsync.config import settings

logger = logging.getLogger(__name__)


class StravaOAuthError(Exception):
    """OAuth-related error."""
    pass


@dataclass(frozen=True)
class RefreshedTokens:
    access_token: str
    refresh_token: str
    expires_at: datetime  # aware, UTC


class StravaOAuth:
    """
    Strava OAuth handler.

    Usage:
        oauth = StravaOAuth()
        tokens = await oauth.refresh_token(refresh_token)
    """

    TOKEN_URL = "https://www.strava.com/oauth/token"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.client_id = client_id or settings.strava_client_id
        self.client_secret = client_secret or settings.strava_client_secret
        self._transport = transport
        self._timeout = timeout or settings.strava_request_timeout_seconds

    async def refresh_token(self, refresh_token: str) -> RefreshedTokens:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            StravaOAuthError: If credentials are missing or Strava rejects the refresh
        """
        if not self.client_id or not self.client_secret:
            raise StravaOAuthError("Strava credentials not configured")

        # Not gated by the read limiter
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )

        if response.status_code != 200:
            logger.error(
                f"Strava token refresh failed ({response.status_code}): {response.text}"
            )
            raise StravaOAuthError(f"Token refresh failed: {response.status_code}")

        data = response.json()
        try:
            return RefreshedTokens(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_at=datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StravaOAuthError(f"Malformed token response: {e}") from e


async def refresh_strava_token(
    refresh_token: str,
    oauth: Optional[StravaOAuth] = None,
) -> Optional[RefreshedTokens]:
    """
    Refresh a Strava token pair.

    Returns None on any failure (unconfigured credentials, network error,
    non-200 answer); the reason is logged here.
    """
    oauth = oauth or StravaOAuth()
    try:
        return await oauth.refresh_token(refresh_token)
    except StravaOAuthError as e:
        logger.error(f"Error refreshing Strava token: {e}")
        return None
    except httpx.HTTPError as e:
        logger.error(f"Network error refreshing Strava token: {e}")
        return None
