"""
API Module

HTTP clients for the catalog and the feature providers, with shared rate
limiting and retry/backoff.
"""

from .base_client import BaseAPIClient
from .rate_limiter import UnifiedRateLimiter
from .retry import BackoffController, HTTPResult, RetryPolicy
from .exceptions import (
    SoundprintError,
    TransportError,
    ProviderNotConfiguredError,
    CatalogUnavailableError,
)
from .spotify_client import SpotifyClient
from .reccobeats_client import ReccoBeatsClient, BatchFeatureResponse
from .track_analysis_client import TrackAnalysisClient
from .getsongbpm_client import GetSongBPMClient
from .client_factory import APIClientFactory

__all__ = [
    # Base infrastructure
    "BaseAPIClient",
    "UnifiedRateLimiter",
    "BackoffController",
    "HTTPResult",
    "RetryPolicy",

    # Errors
    "SoundprintError",
    "TransportError",
    "ProviderNotConfiguredError",
    "CatalogUnavailableError",

    # Clients
    "SpotifyClient",
    "ReccoBeatsClient",
    "BatchFeatureResponse",
    "TrackAnalysisClient",
    "GetSongBPMClient",

    # Client factory
    "APIClientFactory",
]
