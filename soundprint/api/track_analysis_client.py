"""
Track Analysis API Client

Secondary, per-track feature source served through RapidAPI. One Spotify
track id per request; payload schemas vary (percentages, letter keys,
"happiness" instead of valence) and are left to the normalizer.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import structlog

from .base_client import BaseAPIClient
from .exceptions import ProviderNotConfiguredError, TransportError
from .rate_limiter import UnifiedRateLimiter
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)


class TrackAnalysisClient(BaseAPIClient):
    """RapidAPI track analysis client keyed by Spotify track id."""

    def __init__(
        self,
        api_key: Optional[str],
        api_host: Optional[str],
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs
    ):
        """
        Initialize track analysis client.

        Args:
            api_key: RapidAPI key
            api_host: RapidAPI host serving the analysis endpoint
            rate_limiter: Rate limiter instance (default created if omitted)
            retry_policy: Retry/backoff configuration
        """
        if rate_limiter is None:
            rate_limiter = UnifiedRateLimiter.for_track_analysis()

        super().__init__(
            base_url=f"https://{api_host}" if api_host else "https://rapidapi.invalid",
            rate_limiter=rate_limiter,
            retry_policy=retry_policy,
            service_name="TrackAnalysis",
            **kwargs
        )
        self.api_key = api_key
        self.api_host = api_host

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_host)

    async def get_track_features(self, track_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the raw feature payload for one track.

        Args:
            track_id: Spotify track id

        Returns:
            Raw feature mapping, or None when the upstream has no usable answer
        """
        if not self.is_configured:
            raise ProviderNotConfiguredError("RapidAPI credentials not configured")

        try:
            result = await self._request(
                f"pktx/spotify/{quote(track_id, safe='')}",
                headers={
                    "x-rapidapi-key": self.api_key,
                    "x-rapidapi-host": self.api_host,
                }
            )
        except TransportError as e:
            self.logger.error("Track analysis request failed", track_id=track_id, error=str(e))
            return None

        if not result.ok:
            self.logger.warning(
                "Track analysis returned error status",
                track_id=track_id,
                status=result.status,
                body_preview=result.text[:200]
            )
            return None

        data = result.data
        if not isinstance(data, dict):
            self.logger.warning("Track analysis payload malformed", track_id=track_id)
            return None

        features = data.get("features") or data.get("analysis") or data
        if not isinstance(features, dict):
            return None
        return features
