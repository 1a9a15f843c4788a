"""
Cache Management System

File-based caching with TTL for resolved feature vectors.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from diskcache import Cache

from ..models.feature_models import AggregateResult, AudioFeatureVector

logger = structlog.get_logger(__name__)


class CacheManager:
    """
    diskcache-backed cache for:
    - artist aggregates (default 24 hours)
    - per-track normalized vectors from real providers (default 7 days)
    """

    def __init__(
        self,
        cache_dir: str = "data/cache",
        aggregate_ttl: int = 24 * 3600,
        track_ttl: int = 7 * 24 * 3600
    ):
        """
        Initialize cache manager.

        Args:
            cache_dir: Directory for cache storage
            aggregate_ttl: Aggregate TTL in seconds
            track_ttl: Track feature TTL in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.caches = {
            "aggregates": Cache(str(self.cache_dir / "aggregates")),
            "track_features": Cache(str(self.cache_dir / "track_features")),
        }
        self.default_ttl = {
            "aggregates": aggregate_ttl,
            "track_features": track_ttl,
        }

        logger.info(
            "Cache manager initialized",
            cache_dir=str(self.cache_dir),
            cache_types=list(self.caches.keys())
        )

    def get(self, cache_type: str, key: str, default: Any = None) -> Any:
        if cache_type not in self.caches:
            logger.warning("Invalid cache type", cache_type=cache_type)
            return default

        try:
            value = self.caches[cache_type].get(key, default)
        except Exception as e:
            logger.error("Cache get failed", cache_type=cache_type, key=key, error=str(e))
            return default

        logger.debug(
            "Cache hit" if value is not default else "Cache miss",
            cache_type=cache_type,
            key=key
        )
        return value

    def set(self, cache_type: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if cache_type not in self.caches:
            logger.warning("Invalid cache type", cache_type=cache_type)
            return False

        if ttl is None:
            ttl = self.default_ttl.get(cache_type, 3600)
        try:
            self.caches[cache_type].set(key, value, expire=ttl)
        except Exception as e:
            logger.error("Cache set failed", cache_type=cache_type, key=key, error=str(e))
            return False

        logger.debug("Cache set", cache_type=cache_type, key=key, ttl=ttl)
        return True

    # Typed helpers

    @staticmethod
    def aggregate_key(artist_id: str, track_limit: int) -> str:
        return f"{artist_id}:{track_limit}"

    def get_aggregate(self, artist_id: str, track_limit: int) -> Optional[AggregateResult]:
        data = self.get("aggregates", self.aggregate_key(artist_id, track_limit))
        if not isinstance(data, dict):
            return None
        try:
            result = AggregateResult.from_dict(data)
        except (KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached aggregate", artist_id=artist_id, error=str(e))
            return None
        result.from_cache = True
        return result

    def set_aggregate(self, result: AggregateResult, track_limit: int) -> bool:
        return self.set("aggregates", self.aggregate_key(result.artist_id, track_limit), result.to_dict())

    def get_track_features(self, track_id: str) -> Optional[AudioFeatureVector]:
        data = self.get("track_features", track_id)
        if not isinstance(data, dict):
            return None
        try:
            return AudioFeatureVector(**data)
        except TypeError as e:
            logger.warning("Discarding unreadable cached features", track_id=track_id, error=str(e))
            return None

    def set_track_features(self, track_id: str, vector: AudioFeatureVector) -> bool:
        return self.set("track_features", track_id, vector.to_dict())

    def clear(self, cache_type: Optional[str] = None) -> None:
        targets = [cache_type] if cache_type else list(self.caches)
        for name in targets:
            if name in self.caches:
                self.caches[name].clear()
        logger.info("Cache cleared", cache_types=targets)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {"entries": len(cache), "volume_bytes": cache.volume()}
            for name, cache in self.caches.items()
        }

    def close(self) -> None:
        for cache in self.caches.values():
            cache.close()
