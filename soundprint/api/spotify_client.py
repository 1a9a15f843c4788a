"""
Spotify Web API Client

Artist catalog collaborator: supplies the ordered list of an artist's top
tracks that the resolution service works through.
"""

import base64
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import structlog

from .base_client import BaseAPIClient
from .exceptions import CatalogUnavailableError, ProviderNotConfiguredError
from .rate_limiter import UnifiedRateLimiter
from .retry import RetryPolicy
from ..models.feature_models import TrackRef

logger = structlog.get_logger(__name__)


class SpotifyClient(BaseAPIClient):
    """
    Spotify Web API client using the client credentials flow.

    Only the catalog lookups the resolver needs are exposed.
    """

    BASE_URL = "https://api.spotify.com/v1"
    AUTH_URL = "https://accounts.spotify.com/api/token"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        market: str = "US",
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
        **kwargs
    ):
        """
        Initialize Spotify client.

        Args:
            client_id: Spotify client ID
            client_secret: Spotify client secret
            market: Market code used for top tracks
            rate_limiter: Rate limiter instance (optional, will create default if not provided)
            retry_policy: Retry/backoff configuration
            clock: Wall-clock source for token expiry
        """
        if rate_limiter is None:
            rate_limiter = UnifiedRateLimiter.for_spotify()

        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter,
            retry_policy=retry_policy,
            service_name="Spotify",
            **kwargs
        )

        self.client_id = client_id
        self.client_secret = client_secret
        self.market = market
        self._clock = clock
        self.access_token: Optional[str] = None
        self.token_expires_at: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _authenticate(self) -> None:
        """Authenticate with Spotify API using client credentials flow."""
        if not self.is_configured:
            raise ProviderNotConfiguredError("Spotify credentials not configured")

        auth_b64 = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        result = await self._request(
            self.AUTH_URL,
            method="POST",
            headers={
                "Authorization": f"Basic {auth_b64}",
                "Content-Type": "application/x-www-form-urlencoded"
            },
            data={"grant_type": "client_credentials"}
        )

        if not result.ok or not isinstance(result.data, dict) or "access_token" not in result.data:
            self.logger.error("Spotify authentication failed", status=result.status)
            raise CatalogUnavailableError("-", f"Spotify auth failed with status {result.status}")

        self.access_token = result.data["access_token"]
        expires_in = result.data.get("expires_in", 3600)
        self.token_expires_at = self._clock() + expires_in - 60  # 1min buffer
        self.logger.info("Spotify authentication successful", expires_in=expires_in)

    async def _ensure_valid_token(self) -> None:
        """Ensure we have a valid access token."""
        if not self.access_token or self._clock() >= self.token_expires_at:
            await self._authenticate()

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None):
        await self._ensure_valid_token()
        return await self._request(
            endpoint,
            params=params,
            headers={"Authorization": f"Bearer {self.access_token}"}
        )

    async def get_artist_top_tracks(self, artist_id: str, market: Optional[str] = None) -> List[TrackRef]:
        """
        Get an artist's top tracks in popularity order.

        Args:
            artist_id: Spotify artist id
            market: Market code (defaults to the client's market)

        Returns:
            Ordered TrackRef list (at most 10, as served by Spotify)

        Raises:
            CatalogUnavailableError: If the track list cannot be obtained
        """
        try:
            result = await self._get(
                f"artists/{quote(artist_id, safe='')}/top-tracks",
                {"market": market or self.market}
            )
        except CatalogUnavailableError as e:
            raise CatalogUnavailableError(artist_id, e.reason) from e

        if not result.ok or not isinstance(result.data, dict):
            raise CatalogUnavailableError(artist_id, f"top tracks request returned status {result.status}")

        tracks: List[TrackRef] = []
        for item in result.data.get("tracks") or []:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            artists = item.get("artists") or []
            artist_name = artists[0].get("name", "") if artists and isinstance(artists[0], dict) else ""
            tracks.append(TrackRef(
                id=item["id"],
                name=item.get("name") or "",
                artist_name=artist_name,
                popularity=item.get("popularity")
            ))

        self.logger.info(
            "Artist top tracks retrieved",
            artist_id=artist_id,
            track_count=len(tracks)
        )
        return tracks
