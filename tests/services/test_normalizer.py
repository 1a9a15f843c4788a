"""
Tests for the feature normalizer.

Covers percentage handling, key/mode/tempo/loudness parsing, idempotence on
canonical vectors and the heuristic key-string parser.
"""

import pytest

from soundprint.models.feature_models import AudioFeatureVector, FRACTION_DEFAULTS
from soundprint.services.normalizer import (
    extract_heuristic_features,
    from_percent,
    normalize_features,
    parse_key,
    parse_key_string,
    parse_loudness,
    parse_mode,
    parse_tempo,
    parse_time_signature,
    round_half_up,
)


@pytest.fixture
def canonical_vector():
    """A vector already in canonical ranges."""
    return AudioFeatureVector(
        acousticness=0.12,
        danceability=0.81,
        energy=0.64,
        instrumentalness=0.0,
        liveness=0.09,
        loudness=-5.3,
        speechiness=0.05,
        tempo=124.0,
        valence=0.71,
        key=7,
        mode=0,
        time_signature=3,
        popularity=72.0,
        duration_ms=215000.0
    )


def test_normalizing_canonical_vector_is_identity(canonical_vector):
    assert normalize_features(canonical_vector.to_dict()) == canonical_vector


def test_normalizing_canonical_vector_without_extras_is_identity(canonical_vector):
    vector = canonical_vector.with_changes(popularity=None, duration_ms=None)
    assert normalize_features(vector.to_dict()) == vector


@pytest.mark.parametrize("raw,expected", [(65, 0.65), (0.65, 0.65), ("65", 0.65), (1, 1.0), (0, 0.0)])
def test_percent_conversion(raw, expected):
    assert normalize_features({"energy": raw}).energy == pytest.approx(expected)


def test_percent_values_above_hundred_clamp():
    assert from_percent(250, 0.5) == 1.0
    assert from_percent(-0.2, 0.5) == 0.0


@pytest.mark.parametrize("raw,expected", [("F#", 6), ("Bb", 10), ("C", 0), ("B", 11), ("H", 0), ("", 0)])
def test_key_letter_mapping(raw, expected):
    assert parse_key(raw) == expected


@pytest.mark.parametrize("raw,expected", [(5, 5), (5.4, 5), ("9", 9), (12, 0), (-1, 0), (None, 0)])
def test_key_numeric(raw, expected):
    assert parse_key(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("major", 1), ("Minor", 0), (1, 1), (0, 0), (0.7, 1), (0.2, 0), (3, 1), (None, 1), ("dorian", 1)
])
def test_mode_parsing(raw, expected):
    assert parse_mode(raw) == expected


@pytest.mark.parametrize("raw,expected", [(128.5, 128.5), ("96", 96.0), (0, 120.0), (-4, 120.0), (None, 120.0)])
def test_tempo_parsing(raw, expected):
    assert parse_tempo(raw) == expected


@pytest.mark.parametrize("raw,expected", [(-6.2, -6.2), ("-7.5 dB", -7.5), ("-3dB", -3.0), ("loud", -8.0), (None, -8.0)])
def test_loudness_parsing(raw, expected):
    assert parse_loudness(raw) == expected


@pytest.mark.parametrize("raw,expected", [(3, 3), (4, 4), (5, 4), (7, 4), (None, 4), (3.4, 3)])
def test_time_signature_parsing(raw, expected):
    assert parse_time_signature(raw) == expected


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(-0.5) == 0
    assert round_half_up(11.6) == 12


def test_missing_fields_take_defaults():
    vector = normalize_features({})

    for name, default in FRACTION_DEFAULTS.items():
        assert getattr(vector, name) == default
    assert vector.tempo == 120.0
    assert vector.loudness == -8.0
    assert vector.key == 0
    assert vector.mode == 1
    assert vector.time_signature == 4
    assert vector.popularity is None
    assert vector.duration_ms is None


def test_non_mapping_payload_yields_defaults():
    assert normalize_features(None) == normalize_features({})
    assert normalize_features(["not", "a", "dict"]) == normalize_features({})


def test_happiness_is_used_for_missing_valence():
    assert normalize_features({"happiness": 80}).valence == pytest.approx(0.8)
    assert normalize_features({"valence": 0.3, "happiness": 80}).valence == pytest.approx(0.3)


def test_booleans_are_not_numbers():
    assert normalize_features({"energy": True}).energy == FRACTION_DEFAULTS["energy"]


def test_extras_are_kept_when_valid():
    vector = normalize_features({"popularity": 140, "duration_ms": "201000"})
    assert vector.popularity == 100.0
    assert vector.duration_ms == 201000.0

    assert normalize_features({"duration_ms": 0}).duration_ms is None


@pytest.mark.parametrize("text,expected", [
    ("C Major", (0, 1)),
    ("A minor", (9, 0)),
    ("F#m", (6, 0)),
    ("Bb maj", (10, 1)),
    ("E♭ minor", (3, 0)),
    ("G", (7, None)),
    ("Am", (9, 0)),
    ("unknown", (None, None)),
])
def test_parse_key_string(text, expected):
    assert parse_key_string(text) == expected


def test_extract_heuristic_features_reads_bpm_and_key():
    partial = extract_heuristic_features({"title": "Song", "bpm": "98", "key_of": "D minor"})
    assert partial == {"time_signature": 4, "tempo": 98.0, "key": 2, "mode": 0}


def test_extract_heuristic_features_without_data():
    assert extract_heuristic_features({"title": "Song"}) == {"time_signature": 4}


def test_heuristic_partial_normalizes_with_defaults():
    vector = normalize_features(extract_heuristic_features({"tempo": 140, "key": "E major"}))
    assert vector.tempo == 140.0
    assert vector.key == 4
    assert vector.mode == 1
    assert vector.energy == FRACTION_DEFAULTS["energy"]
