"""
ReccoBeats API Client

Primary batch source of audio features. Accepts up to 40 Spotify track ids
per request and answers with one raw feature object per id it knows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from .base_client import BaseAPIClient
from .exceptions import TransportError
from .rate_limiter import UnifiedRateLimiter
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass
class BatchFeatureResponse:
    """Raw payloads from one batch call, keyed by requested track id."""
    payloads: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    missing_ids: List[str] = field(default_factory=list)
    dropped_ids: List[str] = field(default_factory=list)
    status: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.payloads


class ReccoBeatsClient(BaseAPIClient):
    """
    ReccoBeats audio-features client.

    Never raises for upstream failures: a failing call returns an empty
    BatchFeatureResponse so the caller can fall back to another provider.
    """

    BASE_URL = "https://api.reccobeats.com/v1"
    MAX_IDS_PER_REQUEST = 40

    def __init__(
        self,
        base_url: Optional[str] = None,
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs
    ):
        if rate_limiter is None:
            rate_limiter = UnifiedRateLimiter.for_reccobeats()

        super().__init__(
            base_url=base_url or self.BASE_URL,
            rate_limiter=rate_limiter,
            retry_policy=retry_policy,
            service_name="ReccoBeats",
            **kwargs
        )

    async def get_audio_features(
        self,
        track_ids: List[str],
        track_names: Optional[Dict[str, str]] = None
    ) -> BatchFeatureResponse:
        """
        Get raw audio features for several tracks in one request.

        Args:
            track_ids: Spotify track ids (only the first 40 are sent)
            track_names: Optional id -> display name map, used for logging

        Returns:
            BatchFeatureResponse with payloads for the ids the upstream answered
        """
        track_names = track_names or {}
        if not track_ids:
            self.logger.debug("No track ids provided")
            return BatchFeatureResponse()

        dropped: List[str] = []
        if len(track_ids) > self.MAX_IDS_PER_REQUEST:
            dropped = list(track_ids[self.MAX_IDS_PER_REQUEST:])
            track_ids = list(track_ids[:self.MAX_IDS_PER_REQUEST])
            self.logger.warning(
                "Truncating batch request",
                limit=self.MAX_IDS_PER_REQUEST,
                dropped_ids=dropped
            )

        self.logger.info(
            "Requesting batch audio features",
            track_count=len(track_ids),
            tracks=[track_names.get(tid, tid) for tid in track_ids]
        )

        try:
            result = await self._request(
                "audio-features",
                params=[("ids", tid) for tid in track_ids],
                headers={"Accept": "application/json"}
            )
        except TransportError as e:
            self.logger.error("Batch request failed", error=str(e), track_count=len(track_ids))
            return BatchFeatureResponse(missing_ids=list(track_ids), dropped_ids=dropped)

        if not result.ok:
            self.logger.error(
                "Batch request returned error status",
                status=result.status,
                body_preview=result.text[:200]
            )
            return BatchFeatureResponse(
                missing_ids=list(track_ids),
                dropped_ids=dropped,
                status=result.status
            )

        items = self._extract_items(result.data)
        requested = set(track_ids)
        payloads: Dict[str, Dict[str, Any]] = {}
        for item in items:
            track_id = self._match_track_id(item, requested)
            if track_id and track_id not in payloads:
                payloads[track_id] = item

        missing = [tid for tid in track_ids if tid not in payloads]
        if missing:
            self.logger.warning(
                "Batch response omitted tracks",
                missing=[f"{track_names.get(tid, '?')} ({tid})" for tid in missing]
            )

        self.logger.info(
            "Batch audio features retrieved",
            requested=len(track_ids),
            retrieved=len(payloads)
        )
        return BatchFeatureResponse(
            payloads=payloads,
            missing_ids=missing,
            dropped_ids=dropped,
            status=result.status
        )

    @staticmethod
    def _extract_items(data: Any) -> List[Dict[str, Any]]:
        if isinstance(data, dict):
            data = data.get("content")
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]

    @staticmethod
    def _match_track_id(item: Dict[str, Any], requested: set) -> Optional[str]:
        """
        Map a response item back to the id that was requested.

        Items carry the requested id either as ``id`` or at the end of a
        Spotify ``href``.
        """
        item_id = item.get("id")
        if isinstance(item_id, str) and item_id in requested:
            return item_id
        href = item.get("href")
        if isinstance(href, str) and href:
            candidate = href.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0]
            if candidate in requested:
                return candidate
        return None
