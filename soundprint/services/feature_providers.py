"""
Feature Provider Strategies

Ordered, pluggable sources of per-track audio features. Each strategy wraps
one HTTP client, passes raw payloads through the normalizer and reports
failures as "no data" rather than raising. The resolution service walks a
list of strategies and dispatches on ``kind``.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from ..api.getsongbpm_client import GetSongBPMClient
from ..api.reccobeats_client import ReccoBeatsClient
from ..api.track_analysis_client import TrackAnalysisClient
from ..models.feature_models import AudioFeatureVector, TrackRef
from .normalizer import extract_heuristic_features, normalize_features

logger = structlog.get_logger(__name__)

ResolvedCallback = Callable[[TrackRef, Optional[AudioFeatureVector]], Awaitable[None]]


class ProviderKind(Enum):
    """How a provider is asked for features."""
    BATCH = "batch"
    SINGLE = "single"
    HEURISTIC = "heuristic"
    SYNTHETIC = "synthetic"


@dataclass
class BatchFeatureResult:
    """Normalized vectors from one batch call."""
    vectors: Dict[str, AudioFeatureVector] = field(default_factory=dict)
    missing_ids: List[str] = field(default_factory=list)


class FeatureProvider(ABC):
    """Common surface of all provider strategies."""

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Dispatch tag; subclasses set it as a class attribute."""

    def __init__(self, name: str, client=None):
        self.name = name
        self.client = client
        self.logger = logger.bind(provider=name, kind=self.kind.value)

    def is_available(self) -> bool:
        """False when the provider lacks credentials and must be skipped."""
        if self.client is None:
            return True
        return bool(getattr(self.client, "is_configured", True))


class BatchFeatureProvider(FeatureProvider):
    """Many tracks per call (ReccoBeats)."""

    kind = ProviderKind.BATCH

    def __init__(self, client: ReccoBeatsClient, name: str = "reccobeats"):
        super().__init__(name, client)

    async def fetch_batch(self, tracks: Sequence[TrackRef]) -> BatchFeatureResult:
        """
        Resolve features for a batch of tracks.

        Args:
            tracks: Tracks to resolve

        Returns:
            Vectors for the tracks the upstream answered, plus the missing ids
        """
        if not tracks:
            return BatchFeatureResult()

        try:
            response = await self.client.get_audio_features(
                [t.id for t in tracks],
                track_names={t.id: t.name for t in tracks}
            )
        except Exception as e:
            self.logger.error("Batch provider failed", error=str(e), error_type=type(e).__name__)
            return BatchFeatureResult(missing_ids=[t.id for t in tracks])

        vectors = {tid: normalize_features(payload) for tid, payload in response.payloads.items()}
        missing = [t.id for t in tracks if t.id not in vectors]
        return BatchFeatureResult(vectors=vectors, missing_ids=missing)


class SingleTrackFeatureProvider(FeatureProvider):
    """
    One track per call (RapidAPI track analysis).

    ``fetch_many`` resolves a whole subset through a small worker pool; it is
    meant for the case where no batch endpoint is usable at all.
    """

    kind = ProviderKind.SINGLE

    def __init__(
        self,
        client: TrackAnalysisClient,
        name: str = "track_analysis",
        max_concurrency: int = 5
    ):
        super().__init__(name, client)
        self.max_concurrency = max(1, max_concurrency)

    async def fetch_one(self, track: TrackRef) -> Optional[AudioFeatureVector]:
        try:
            payload = await self.client.get_track_features(track.id)
        except Exception as e:
            self.logger.warning(
                "Single-track provider failed",
                track_id=track.id,
                track_name=track.name,
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        if payload is None:
            return None
        return normalize_features(payload)

    async def fetch_many(
        self,
        tracks: Sequence[TrackRef],
        on_resolved: Optional[ResolvedCallback] = None
    ) -> Dict[str, Optional[AudioFeatureVector]]:
        """
        Resolve several tracks with bounded concurrency.

        Args:
            tracks: Tracks to resolve
            on_resolved: Awaited after each track completes, in completion order

        Returns:
            Mapping of track id to vector (None for failures)
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results: Dict[str, Optional[AudioFeatureVector]] = {}

        async def worker(track: TrackRef) -> None:
            async with semaphore:
                vector = await self.fetch_one(track)
            results[track.id] = vector
            if on_resolved is not None:
                await on_resolved(track, vector)

        await asyncio.gather(*(worker(track) for track in tracks))
        return results


class HeuristicFeatureProvider(FeatureProvider):
    """
    Title/artist lookup against a tempo/key database (GetSongBPM).

    Only tempo, key and mode come back; every other field takes the
    normalizer's defaults.
    """

    kind = ProviderKind.HEURISTIC

    def __init__(self, client: GetSongBPMClient, name: str = "getsongbpm"):
        super().__init__(name, client)

    async def fetch_partial(self, track: TrackRef) -> Optional[AudioFeatureVector]:
        try:
            candidate = await self.client.search_song(track.name, track.artist_name)
        except Exception as e:
            self.logger.warning("Heuristic lookup failed", track_name=track.name, error=str(e))
            return None

        if not candidate:
            return None

        partial = extract_heuristic_features(candidate)
        if "tempo" not in partial and "key" not in partial:
            self.logger.info("Heuristic candidate carried no tempo or key", track_name=track.name)
            return None

        self.logger.info("Heuristic features found", track_name=track.name, **partial)
        return normalize_features(partial)


class SyntheticFeatureProvider(FeatureProvider):
    """
    Last-resort generator of musically plausible random vectors.

    Guarantees that a run always ends with some usable aggregate.
    """

    kind = ProviderKind.SYNTHETIC

    def __init__(self, rng: Optional[random.Random] = None, name: str = "synthetic"):
        super().__init__(name)
        self.rng = rng or random.Random()

    def generate(self, count: int) -> List[AudioFeatureVector]:
        rng = self.rng
        vectors = [
            AudioFeatureVector(
                danceability=0.5 + rng.random() * 0.4,
                energy=0.4 + rng.random() * 0.5,
                key=rng.randint(0, 11),
                loudness=-15 + rng.random() * 10,
                mode=rng.randint(0, 1),
                speechiness=rng.random() * 0.3,
                acousticness=rng.random() * 0.8,
                instrumentalness=rng.random() * 0.5,
                liveness=rng.random() * 0.4,
                valence=0.3 + rng.random() * 0.6,
                tempo=80 + rng.random() * 100,
                duration_ms=180000 + rng.random() * 120000,
                # mostly 4/4, some 3/4
                time_signature=3 if rng.random() > 0.8 else 4,
            )
            for _ in range(max(0, count))
        ]
        self.logger.info("Generated synthetic feature vectors", count=len(vectors))
        return vectors
