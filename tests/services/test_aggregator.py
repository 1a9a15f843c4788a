"""
Tests for the feature aggregator and sanitization.
"""

import pytest

from soundprint.models.feature_models import DEFAULT_FEATURE_VECTOR
from soundprint.services.aggregator import FeatureAggregator, aggregate_features, sanitize_features
from soundprint.services.normalizer import normalize_features


def make_vector(**overrides):
    payload = {
        "acousticness": 0.2,
        "danceability": 0.6,
        "energy": 0.5,
        "instrumentalness": 0.0,
        "liveness": 0.1,
        "loudness": -6.0,
        "speechiness": 0.05,
        "tempo": 120.0,
        "valence": 0.5,
        "key": 5,
        "mode": 1,
        "time_signature": 4,
    }
    payload.update(overrides)
    return normalize_features(payload)


def test_empty_aggregate_is_default_vector():
    assert FeatureAggregator().result() == DEFAULT_FEATURE_VECTOR
    assert aggregate_features([]) == DEFAULT_FEATURE_VECTOR
    assert aggregate_features([None, None]) == DEFAULT_FEATURE_VECTOR


def test_energy_is_averaged():
    vectors = [make_vector(energy=e) for e in (0.2, 0.4, 0.6)]
    result = aggregate_features(vectors)
    assert result.energy == pytest.approx(0.4, abs=1e-9)


def test_none_entries_are_skipped():
    vectors = [make_vector(tempo=100.0), None, make_vector(tempo=140.0)]
    assert aggregate_features(vectors).tempo == pytest.approx(120.0)


def test_count_tracks_contributors():
    aggregator = FeatureAggregator()
    aggregator.add(make_vector())
    aggregator.add(make_vector())
    assert aggregator.count == 2
    assert aggregator.field_count("energy") == 2
    assert aggregator.field_count("popularity") == 0


def test_extras_averaged_only_over_contributors():
    aggregator = FeatureAggregator()
    aggregator.add(make_vector(popularity=80))
    aggregator.add(make_vector())
    aggregator.add(make_vector(popularity=60))

    result = aggregator.result()
    assert result.popularity == pytest.approx(70.0)
    assert result.duration_ms is None
    assert aggregator.field_count("popularity") == 2


def test_averaged_key_and_mode_snap_to_valid_values():
    result = aggregate_features([make_vector(key=2, mode=1), make_vector(key=5, mode=0)])
    # mean key 3.5 rounds half-up, mean mode 0.5 counts as major
    assert result.key == 4
    assert result.mode == 1


def test_sanitize_clamps_key():
    assert sanitize_features(DEFAULT_FEATURE_VECTOR.with_changes(key=11.6)).key == 11
    assert sanitize_features(DEFAULT_FEATURE_VECTOR.with_changes(key=-0.7)).key == 0


@pytest.mark.parametrize("averaged,expected", [(3.6, 4), (3.4, 3), (3.0, 3), (4.0, 4), (5.0, 4)])
def test_sanitize_time_signature(averaged, expected):
    assert sanitize_features(DEFAULT_FEATURE_VECTOR.with_changes(time_signature=averaged)).time_signature == expected


def test_sanitize_mode_threshold():
    assert sanitize_features(DEFAULT_FEATURE_VECTOR.with_changes(mode=0.49)).mode == 0
    assert sanitize_features(DEFAULT_FEATURE_VECTOR.with_changes(mode=0.5)).mode == 1


def test_sanitize_fractions_and_tempo():
    vector = DEFAULT_FEATURE_VECTOR.with_changes(energy=1.3, valence=-0.1, tempo=0.0, popularity=130.0)
    result = sanitize_features(vector)
    assert result.energy == 1.0
    assert result.valence == 0.0
    assert result.tempo == 120.0
    assert result.popularity == 100.0


def test_mixed_time_signatures_average_to_default():
    result = aggregate_features([make_vector(time_signature=3), make_vector(time_signature=4)])
    # 3.5 rounds to 4
    assert result.time_signature == 4
