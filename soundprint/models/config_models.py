"""
Configuration Models

Pydantic configuration for the feature resolution service, with environment
variable loading for deployment.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ResolverConfig(BaseModel):
    """Overall resolver configuration"""

    # Catalog (Spotify)
    spotify_client_id: Optional[str] = Field(default=None, description="Spotify client ID")
    spotify_client_secret: Optional[str] = Field(default=None, description="Spotify client secret")
    spotify_market: str = Field(default="US", description="Market used for artist top tracks")

    # Feature providers
    reccobeats_base_url: str = Field(default="https://api.reccobeats.com/v1", description="Batch provider base URL")
    rapidapi_key: Optional[str] = Field(default=None, description="RapidAPI key for the track analysis provider")
    rapidapi_host: Optional[str] = Field(default=None, description="RapidAPI host for the track analysis provider")
    getsongbpm_api_key: Optional[str] = Field(default=None, description="GetSongBPM API key")

    # Track subset
    default_track_limit: int = Field(default=8, ge=1, le=10, description="Tracks resolved when no limit is given")
    max_track_limit: int = Field(default=10, ge=1, le=10, description="Hard ceiling on tracks per run")

    # Retry and backoff
    max_retries: int = Field(default=2, ge=0, description="Retries after the first attempt for 429/5xx/transport errors")
    backoff_base_ms: int = Field(default=500, ge=0, description="Base backoff delay in milliseconds")
    request_timeout_seconds: float = Field(default=8.0, gt=0, description="Hard timeout per HTTP attempt")

    # Rate limiting
    reccobeats_calls_per_second: float = Field(default=2.0, gt=0, description="Batch provider requests per second")
    rapidapi_calls_per_second: float = Field(default=1.0, gt=0, description="Track analysis requests per second")
    getsongbpm_calls_per_second: float = Field(default=1.0, gt=0, description="GetSongBPM requests per second")

    # Fallback policy
    resolve_missing_individually: bool = Field(default=True, description="Ask single-track providers for ids the batch omitted")
    single_track_concurrency: int = Field(default=5, ge=1, description="Worker pool size for full single-track fallback")
    enable_heuristic_fallback: bool = Field(default=True, description="Use the title/artist tempo-key lookup")
    heuristic_max_lookups: int = Field(default=3, ge=1, description="Tracks tried against the heuristic provider")
    enable_synthetic_fallback: bool = Field(default=True, description="Generate plausible vectors when every provider failed")

    # Caching
    cache_enabled: bool = Field(default=False, description="Enable caching")
    cache_ttl_hours: int = Field(default=24, description="Aggregate cache TTL in hours")
    track_cache_ttl_days: int = Field(default=7, description="Per-track feature cache TTL in days")
    cache_directory: str = Field(default="data/cache", description="Cache directory path")

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Clamp a requested subset size to [1, max_track_limit]."""
        if limit is None:
            limit = self.default_track_limit
        return max(1, min(int(limit), self.max_track_limit))

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ResolverConfig":
        """
        Build configuration from environment variables.

        Args:
            dotenv: Load a ``.env`` file first

        Returns:
            Populated ResolverConfig
        """
        if dotenv:
            load_dotenv()

        return cls(
            spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID") or None,
            spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET") or None,
            spotify_market=os.getenv("SPOTIFY_MARKET", "US"),
            rapidapi_key=os.getenv("RAPIDAPI_KEY") or None,
            rapidapi_host=os.getenv("RAPIDAPI_HOST") or None,
            getsongbpm_api_key=os.getenv("GETSONGBPM_API_KEY") or None,
            cache_enabled=_env_flag("SOUNDPRINT_CACHE_ENABLED", False),
            cache_directory=os.getenv("SOUNDPRINT_CACHE_DIR", "data/cache"),
        )
