"""
Services Module

Normalization, aggregation, progress tracking and the resolution service
that ties the provider strategies together.
"""

from .normalizer import normalize_features, parse_key_string
from .aggregator import FeatureAggregator, aggregate_features, sanitize_features
from .progress_tracker import ProgressTracker
from .cache_manager import CacheManager
from .feature_providers import (
    ProviderKind,
    FeatureProvider,
    BatchFeatureProvider,
    SingleTrackFeatureProvider,
    HeuristicFeatureProvider,
    SyntheticFeatureProvider,
)
from .feature_resolution_service import FeatureResolutionService

__all__ = [
    "normalize_features",
    "parse_key_string",
    "FeatureAggregator",
    "aggregate_features",
    "sanitize_features",
    "ProgressTracker",
    "CacheManager",
    "ProviderKind",
    "FeatureProvider",
    "BatchFeatureProvider",
    "SingleTrackFeatureProvider",
    "HeuristicFeatureProvider",
    "SyntheticFeatureProvider",
    "FeatureResolutionService",
]
