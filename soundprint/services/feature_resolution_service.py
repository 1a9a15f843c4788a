"""
Feature Resolution Service

Drives one resolution run end to end:

    idle -> fetching -> analyzing -> averaging -> done
                    \\-> error (track list unavailable)

The artist's top tracks come from the catalog; features are requested from
an ordered list of provider strategies (batch, then single-track, then
heuristic, then synthetic), normalized, averaged and sanitized. Progress is
published to the injected ProgressTracker as each track resolves.
"""

import uuid
from contextlib import AsyncExitStack
from typing import Dict, List, Optional, Protocol, Sequence

import structlog

from ..api.exceptions import CatalogUnavailableError
from ..models.config_models import ResolverConfig
from ..models.feature_models import AggregateResult, AudioFeatureVector, TrackRef
from ..models.progress_models import ResolutionPhase
from .aggregator import FeatureAggregator
from .cache_manager import CacheManager
from .feature_providers import (
    BatchFeatureProvider,
    FeatureProvider,
    HeuristicFeatureProvider,
    ProviderKind,
    SingleTrackFeatureProvider,
    SyntheticFeatureProvider,
)
from .progress_tracker import ProgressTracker

logger = structlog.get_logger(__name__)

CACHE_SOURCE = "cache"


class TrackCatalog(Protocol):
    """Anything that can list an artist's top tracks (SpotifyClient in production)."""

    async def get_artist_top_tracks(self, artist_id: str) -> List[TrackRef]:
        ...


class FeatureResolutionService:
    """
    Resolves the aggregate audio-feature vector for an artist.

    Provides:
    - Provider fallback in priority order, skipping unconfigured providers
    - Sequential per-track resolution with live progress
    - Bounded-concurrency single-track fallback when no batch data exists
    - Averaging over whatever valid vectors were obtained
    """

    def __init__(
        self,
        catalog: TrackCatalog,
        providers: Sequence[FeatureProvider],
        progress_tracker: ProgressTracker,
        config: Optional[ResolverConfig] = None,
        cache_manager: Optional[CacheManager] = None
    ):
        """
        Initialize the resolution service.

        Args:
            catalog: Source of artist top tracks
            providers: Provider strategies in priority order
            progress_tracker: Shared progress store
            config: Resolver configuration
            cache_manager: Optional result cache
        """
        self.catalog = catalog
        self.providers = list(providers)
        self.progress_tracker = progress_tracker
        self.config = config or ResolverConfig()
        self.cache_manager = cache_manager
        self._exit_stack: Optional[AsyncExitStack] = None

        self.logger = logger.bind(service="FeatureResolutionService")
        self.logger.info(
            "Feature resolution service initialized",
            providers=[f"{p.name}:{p.kind.value}" for p in self.providers],
            has_cache=bool(cache_manager)
        )

    async def __aenter__(self):
        """Open HTTP sessions for the catalog and every provider client."""
        stack = AsyncExitStack()
        clients = [self.catalog] + [p.client for p in self.providers if p.client is not None]
        for client in clients:
            if hasattr(client, "__aenter__"):
                await stack.enter_async_context(client)
        self._exit_stack = stack
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self.logger.info("Feature resolution service closed")

    async def get_top_tracks(self, artist_id: str, limit: Optional[int] = None) -> List[TrackRef]:
        """
        Top-track subset the service would resolve for an artist.

        Raises:
            CatalogUnavailableError: If the catalog lookup fails
        """
        try:
            tracks = await self.catalog.get_artist_top_tracks(artist_id)
        except CatalogUnavailableError:
            raise
        except Exception as e:
            raise CatalogUnavailableError(artist_id, str(e)) from e
        return list(tracks)[:self.config.clamp_limit(limit)]

    async def resolve_artist_features(
        self,
        artist_id: str,
        limit: Optional[int] = None,
        force_refresh: bool = False
    ) -> AggregateResult:
        """
        Resolve the averaged feature vector for an artist's top tracks.

        Degraded provider availability never raises: the result falls back
        to heuristic, synthetic or default features.

        Args:
            artist_id: Catalog artist id, also the progress key
            limit: Number of top tracks to use (clamped to [1, 10], default 8)
            force_refresh: Ignore a cached aggregate

        Returns:
            AggregateResult for the run

        Raises:
            CatalogUnavailableError: If the artist's track list cannot be obtained
        """
        run_id = uuid.uuid4().hex
        subset_size = self.config.clamp_limit(limit)
        log = self.logger.bind(artist_id=artist_id, run_id=run_id)

        def update(**changes) -> None:
            self.progress_tracker.set_progress(artist_id, run_id=run_id, **changes)

        update(phase=ResolutionPhase.FETCHING, position=0, total=0, current_track_name=None, message=None)

        if self.cache_manager is not None and not force_refresh:
            cached = self._cached("get_aggregate", artist_id, subset_size)
            if cached is not None:
                log.info("Using cached aggregate")
                update(
                    phase=ResolutionPhase.DONE,
                    position=cached.track_count,
                    total=cached.track_count,
                    message="cached"
                )
                return cached

        try:
            selected = await self.get_top_tracks(artist_id, subset_size)
        except CatalogUnavailableError as e:
            log.error("Track list unavailable", error=e.reason)
            update(phase=ResolutionPhase.ERROR, message=e.reason)
            raise

        if not selected:
            reason = "no tracks with identifiers in catalog response"
            log.error("Track list empty")
            update(phase=ResolutionPhase.ERROR, message=reason)
            raise CatalogUnavailableError(artist_id, reason)

        log.info(
            "Selected top tracks",
            tracks=[{"id": t.id, "name": t.name, "popularity": t.popularity} for t in selected]
        )
        update(phase=ResolutionPhase.ANALYZING, position=0, total=len(selected), current_track_name=None)

        resolved, sources = await self._resolve_tracks(selected, update, log)
        valid = [resolved[t.id] for t in selected if resolved.get(t.id) is not None]

        if not valid and self.config.enable_heuristic_fallback:
            heuristic = await self._resolve_heuristic(selected, update, log)
            if heuristic is not None:
                provider_name, vector = heuristic
                valid = [vector]
                sources[f"heuristic:{selected[0].id}"] = provider_name

        used_synthetic = False
        if not valid and self.config.enable_synthetic_fallback:
            synthetic = self._available(ProviderKind.SYNTHETIC)
            if synthetic:
                provider: SyntheticFeatureProvider = synthetic[0]
                log.warning("Every provider failed; using synthetic features")
                valid = provider.generate(len(selected))
                sources["synthetic"] = provider.name
                used_synthetic = True

        update(phase=ResolutionPhase.AVERAGING, current_track_name=None)

        aggregator = FeatureAggregator()
        for vector in valid:
            aggregator.add(vector)

        result = AggregateResult(
            artist_id=artist_id,
            features=aggregator.result(),
            track_count=len(selected),
            valid_count=aggregator.count,
            sources=list(dict.fromkeys(sources.values())),
            is_default=aggregator.count == 0
        )

        log.info(
            "Aggregate computed",
            valid_count=result.valid_count,
            track_count=result.track_count,
            sources=result.sources,
            is_default=result.is_default,
            tempo=round(result.features.tempo, 1),
            energy=round(result.features.energy, 3),
            danceability=round(result.features.danceability, 3),
            valence=round(result.features.valence, 3),
            key=result.features.key,
            mode=result.features.mode
        )

        update(
            phase=ResolutionPhase.DONE,
            current_track_name=None,
            message="default features" if result.is_default else None
        )

        if self.cache_manager is not None and not result.is_default and not used_synthetic:
            self._cached("set_aggregate", result, subset_size)

        return result

    def _available(self, kind: ProviderKind) -> List[FeatureProvider]:
        available = []
        for provider in self.providers:
            if provider.kind is not kind:
                continue
            if provider.is_available():
                available.append(provider)
            else:
                self.logger.info("Skipping unconfigured provider", provider=provider.name)
        return available

    async def _resolve_tracks(self, selected: List[TrackRef], update, log):
        """
        Resolve per-track vectors through cache, batch and single-track providers.

        Returns:
            (track id -> vector or None, track id -> provider name)
        """
        resolved: Dict[str, Optional[AudioFeatureVector]] = {}
        sources: Dict[str, str] = {}

        if self.cache_manager is not None:
            for track in selected:
                cached = self._cached("get_track_features", track.id)
                if cached is not None:
                    resolved[track.id] = cached
                    sources[track.id] = CACHE_SOURCE

        batch_hits = 0
        for provider in self._available(ProviderKind.BATCH):
            pending = [t for t in selected if resolved.get(t.id) is None]
            if not pending:
                break
            batch: BatchFeatureProvider = provider
            result = await batch.fetch_batch(pending)
            for track_id, vector in result.vectors.items():
                resolved[track_id] = vector
                sources[track_id] = provider.name
                self._remember(track_id, vector)
            batch_hits += len(result.vectors)
            log.info(
                "Batch provider finished",
                provider=provider.name,
                resolved=len(result.vectors),
                missing=len(result.missing_ids)
            )

        singles = self._available(ProviderKind.SINGLE)
        pending = [t for t in selected if resolved.get(t.id) is None]

        if singles and pending and batch_hits == 0:
            log.info("No batch data; resolving tracks through worker pool", track_count=len(pending))
            await self._resolve_with_pool(selected, pending, singles, resolved, sources, update)
        else:
            await self._resolve_sequentially(selected, singles, resolved, sources, update, log)

        return resolved, sources

    async def _resolve_sequentially(self, selected, singles, resolved, sources, update, log) -> None:
        for index, track in enumerate(selected):
            update(position=index + 1, current_track_name=track.name)
            vector = resolved.get(track.id)

            if vector is None and self.config.resolve_missing_individually:
                for provider in singles:
                    single: SingleTrackFeatureProvider = provider
                    vector = await single.fetch_one(track)
                    if vector is not None:
                        resolved[track.id] = vector
                        sources[track.id] = provider.name
                        self._remember(track.id, vector)
                        break

            if vector is None:
                log.info("Track unresolved", track_id=track.id, track_name=track.name, position=index + 1)
            else:
                log.debug(
                    "Track resolved",
                    track_id=track.id,
                    track_name=track.name,
                    position=index + 1,
                    source=sources.get(track.id),
                    tempo=vector.tempo,
                    energy=round(vector.energy, 3),
                    key=vector.key,
                    mode=vector.mode
                )

    async def _resolve_with_pool(self, selected, pending, singles, resolved, sources, update) -> None:
        position = 0

        def advance(track: TrackRef) -> None:
            nonlocal position
            position += 1
            update(position=position, current_track_name=track.name)

        pending_ids = {t.id for t in pending}
        for track in selected:
            if track.id not in pending_ids:
                advance(track)

        for index, provider in enumerate(singles):
            remaining = [t for t in pending if resolved.get(t.id) is None]
            if not remaining:
                break
            is_last = index == len(singles) - 1

            async def on_resolved(track, vector, provider=provider, is_last=is_last):
                if vector is not None:
                    resolved[track.id] = vector
                    sources[track.id] = provider.name
                    self._remember(track.id, vector)
                if vector is not None or is_last:
                    advance(track)

            single: SingleTrackFeatureProvider = provider
            await single.fetch_many(remaining, on_resolved)

    async def _resolve_heuristic(self, selected, update, log):
        for provider in self._available(ProviderKind.HEURISTIC):
            heuristic: HeuristicFeatureProvider = provider
            for track in selected[:self.config.heuristic_max_lookups]:
                update(message=f"heuristic lookup: {track.name}")
                vector = await heuristic.fetch_partial(track)
                if vector is not None:
                    log.info("Using heuristic features", provider=provider.name, track_name=track.name)
                    return provider.name, vector
        return None

    def _remember(self, track_id: str, vector: AudioFeatureVector) -> None:
        if self.cache_manager is not None:
            self._cached("set_track_features", track_id, vector)

    def _cached(self, operation: str, *args):
        """Run a cache operation; a failing cache degrades to uncached resolution."""
        try:
            return getattr(self.cache_manager, operation)(*args)
        except Exception as e:
            self.logger.error("Cache operation failed", operation=operation, error=str(e))
            return None
