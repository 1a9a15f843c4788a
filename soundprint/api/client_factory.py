"""
API Client Factory

Builds every HTTP client and provider strategy from one ResolverConfig, so
rate limiters and retry policy are shared consistently across the service.
"""

from typing import Any, Dict, List, Optional

import structlog

from .getsongbpm_client import GetSongBPMClient
from .rate_limiter import UnifiedRateLimiter
from .reccobeats_client import ReccoBeatsClient
from .retry import RetryPolicy
from .spotify_client import SpotifyClient
from .track_analysis_client import TrackAnalysisClient
from ..models.config_models import ResolverConfig

logger = structlog.get_logger(__name__)


class APIClientFactory:
    """
    Factory for creating configured API clients.

    Rate limiters are cached per upstream and shared by every client the
    factory creates for it.
    """

    def __init__(self, config: Optional[ResolverConfig] = None):
        """
        Initialize client factory.

        Args:
            config: Resolver configuration (defaults to ResolverConfig())
        """
        self.config = config or ResolverConfig()
        self.logger = logger.bind(service="APIClientFactory")

        self._rate_limiters: Dict[str, UnifiedRateLimiter] = {}

        self.logger.info("API Client Factory initialized")

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base_ms=self.config.backoff_base_ms,
            timeout_seconds=self.config.request_timeout_seconds
        )

    def _rate_limiter(self, key: str, build) -> UnifiedRateLimiter:
        if key not in self._rate_limiters:
            self._rate_limiters[key] = build()
        return self._rate_limiters[key]

    def create_spotify_client(self) -> SpotifyClient:
        """Catalog client for artist top tracks."""
        client = SpotifyClient(
            client_id=self.config.spotify_client_id,
            client_secret=self.config.spotify_client_secret,
            market=self.config.spotify_market,
            rate_limiter=self._rate_limiter("spotify", UnifiedRateLimiter.for_spotify),
            retry_policy=self.retry_policy
        )
        self.logger.info("Spotify client created", configured=client.is_configured)
        return client

    def create_reccobeats_client(self) -> ReccoBeatsClient:
        rate = self.config.reccobeats_calls_per_second
        client = ReccoBeatsClient(
            base_url=self.config.reccobeats_base_url,
            rate_limiter=self._rate_limiter("reccobeats", lambda: UnifiedRateLimiter.for_reccobeats(rate)),
            retry_policy=self.retry_policy
        )
        self.logger.info("ReccoBeats client created", rate_limit=rate)
        return client

    def create_track_analysis_client(self) -> TrackAnalysisClient:
        rate = self.config.rapidapi_calls_per_second
        client = TrackAnalysisClient(
            api_key=self.config.rapidapi_key,
            api_host=self.config.rapidapi_host,
            rate_limiter=self._rate_limiter("track_analysis", lambda: UnifiedRateLimiter.for_track_analysis(rate)),
            retry_policy=self.retry_policy
        )
        self.logger.info("Track analysis client created", rate_limit=rate, configured=client.is_configured)
        return client

    def create_getsongbpm_client(self) -> GetSongBPMClient:
        rate = self.config.getsongbpm_calls_per_second
        client = GetSongBPMClient(
            api_key=self.config.getsongbpm_api_key,
            rate_limiter=self._rate_limiter("getsongbpm", lambda: UnifiedRateLimiter.for_getsongbpm(rate)),
            retry_policy=self.retry_policy
        )
        self.logger.info("GetSongBPM client created", rate_limit=rate, configured=client.is_configured)
        return client

    def build_providers(self) -> List["FeatureProvider"]:
        """
        Provider strategies in priority order.

        Returns:
            Batch, single-track, heuristic and synthetic providers
        """
        from ..services.feature_providers import (
            BatchFeatureProvider,
            HeuristicFeatureProvider,
            SingleTrackFeatureProvider,
            SyntheticFeatureProvider,
        )

        return [
            BatchFeatureProvider(self.create_reccobeats_client()),
            SingleTrackFeatureProvider(
                self.create_track_analysis_client(),
                max_concurrency=self.config.single_track_concurrency
            ),
            HeuristicFeatureProvider(self.create_getsongbpm_client()),
            SyntheticFeatureProvider(),
        ]

    def create_resolution_service(
        self,
        progress_tracker: "ProgressTracker",
        cache_manager: Optional["CacheManager"] = None
    ) -> "FeatureResolutionService":
        """
        Wire the full resolution service.

        Args:
            progress_tracker: Shared progress store
            cache_manager: Optional cache (built from config when caching is enabled)

        Returns:
            FeatureResolutionService (enter it with ``async with`` to open sessions)
        """
        # Import here to avoid circular imports
        from ..services.cache_manager import CacheManager
        from ..services.feature_resolution_service import FeatureResolutionService

        if cache_manager is None and self.config.cache_enabled:
            cache_manager = CacheManager(
                cache_dir=self.config.cache_directory,
                aggregate_ttl=self.config.cache_ttl_hours * 3600,
                track_ttl=self.config.track_cache_ttl_days * 24 * 3600
            )

        return FeatureResolutionService(
            catalog=self.create_spotify_client(),
            providers=self.build_providers(),
            progress_tracker=progress_tracker,
            config=self.config,
            cache_manager=cache_manager
        )

    def get_rate_limiter_stats(self) -> Dict[str, Dict[str, Any]]:
        return {key: limiter.get_current_usage() for key, limiter in self._rate_limiters.items()}
