"""
Tests for the diskcache-backed CacheManager.
"""

import pytest

from soundprint.models.feature_models import AggregateResult, DEFAULT_FEATURE_VECTOR
from soundprint.services.cache_manager import CacheManager


@pytest.fixture
def cache(tmp_path):
    manager = CacheManager(cache_dir=str(tmp_path / "cache"))
    yield manager
    manager.close()


def test_aggregate_is_marked_as_cached(cache):
    result = AggregateResult(
        artist_id="artist1",
        features=DEFAULT_FEATURE_VECTOR.with_changes(popularity=61.5),
        track_count=8,
        valid_count=8,
        sources=["reccobeats"]
    )
    cache.set_aggregate(result, 8)

    cached = cache.get_aggregate("artist1", 8)
    assert cached.from_cache is True
    assert cached.features == result.features
    assert cached.sources == ["reccobeats"]
    assert cache.get_aggregate("other", 8) is None
    assert cache.get_aggregate("artist1", 2) is None


def test_track_features_roundtrip(cache):
    vector = DEFAULT_FEATURE_VECTOR.with_changes(tempo=97.0, key=2)
    cache.set_track_features("t1", vector)

    assert cache.get_track_features("t1") == vector
    assert cache.get_track_features("t2") is None


def test_unreadable_entries_are_ignored(cache):
    cache.set("track_features", "t1", {"tempo": 100})
    cache.set("aggregates", "artist1:8", {"features": {}})

    assert cache.get_track_features("t1") is None
    assert cache.get_aggregate("artist1", 8) is None


def test_unknown_cache_type(cache):
    assert cache.set("nope", "k", 1) is False
    assert cache.get("nope", "k", "fallback") == "fallback"


def test_clear_and_stats(cache):
    cache.set_track_features("t1", DEFAULT_FEATURE_VECTOR)
    assert cache.get_stats()["track_features"]["entries"] == 1

    cache.clear("track_features")
    assert cache.get_stats()["track_features"]["entries"] == 0


def test_storage_errors_are_logged_not_raised(cache, monkeypatch):
    def fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(cache.caches["track_features"], "set", fail)
    monkeypatch.setattr(cache.caches["track_features"], "get", fail)

    assert cache.set_track_features("t1", DEFAULT_FEATURE_VECTOR) is False
    assert cache.get_track_features("t1") is None
