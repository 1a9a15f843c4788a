"""
GetSongBPM API Client

Tertiary, heuristic feature source. Searches a tempo/key database by free
text (title plus artist) and returns the first candidate song.
"""

from typing import Any, Dict, List, Optional

import structlog

from .base_client import BaseAPIClient
from .exceptions import ProviderNotConfiguredError, TransportError
from .rate_limiter import UnifiedRateLimiter
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)


class GetSongBPMClient(BaseAPIClient):
    """GetSongBPM search client."""

    BASE_URL = "https://api.getsongbpm.com"

    def __init__(
        self,
        api_key: Optional[str],
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs
    ):
        if rate_limiter is None:
            rate_limiter = UnifiedRateLimiter.for_getsongbpm()

        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter,
            retry_policy=retry_policy,
            service_name="GetSongBPM",
            **kwargs
        )
        self.api_key = api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search_song(self, title: str, artist: str) -> Optional[Dict[str, Any]]:
        """
        Search for a song and return the best (first) candidate.

        Args:
            title: Track title
            artist: Artist display name

        Returns:
            First candidate as a raw mapping, or None
        """
        if not self.is_configured:
            raise ProviderNotConfiguredError("GetSongBPM API key not configured")

        lookup = f"{title} {artist}".strip()
        try:
            result = await self._request(
                "search/",
                params={"api_key": self.api_key, "type": "song", "lookup": lookup}
            )
        except TransportError as e:
            self.logger.error("Song search failed", lookup=lookup, error=str(e))
            return None

        if not result.ok:
            self.logger.warning("Song search returned error status", lookup=lookup, status=result.status)
            return None

        candidates = self._extract_candidates(result.data)
        if not candidates:
            self.logger.info("No song candidates found", lookup=lookup)
            return None

        return candidates[0]

    @staticmethod
    def _extract_candidates(data: Any) -> List[Dict[str, Any]]:
        if not isinstance(data, dict):
            return []
        for key in ("search", "results", "songs"):
            items = data.get(key)
            if isinstance(items, list) and items:
                return [item for item in items if isinstance(item, dict)]
        return []
