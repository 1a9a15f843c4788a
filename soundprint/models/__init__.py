"""
Models Module

Data models and configuration for the Soundprint feature resolver.
"""

from .feature_models import (
    AudioFeatureVector,
    TrackRef,
    AggregateResult,
    DEFAULT_FEATURE_VECTOR,
    FRACTION_DEFAULTS,
    FRACTION_FIELDS,
)
from .progress_models import ResolutionPhase, ResolutionProgress
from .config_models import ResolverConfig

__all__ = [
    # Feature models
    "AudioFeatureVector",
    "TrackRef",
    "AggregateResult",
    "DEFAULT_FEATURE_VECTOR",
    "FRACTION_DEFAULTS",
    "FRACTION_FIELDS",

    # Progress models
    "ResolutionPhase",
    "ResolutionProgress",

    # Configuration
    "ResolverConfig",
]
