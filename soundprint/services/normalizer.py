"""
Feature Normalizer

Pure functions turning one provider's raw payload into an AudioFeatureVector.
Providers disagree on scale (fractions vs percentages), on key notation
(pitch-class number vs letter name) and on field names; every variant is
mapped onto the canonical model here, and nothing in this module raises.
"""

import math
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from ..models.feature_models import (
    AudioFeatureVector,
    DEFAULT_KEY,
    DEFAULT_LOUDNESS,
    DEFAULT_MODE,
    DEFAULT_TEMPO,
    DEFAULT_TIME_SIGNATURE,
    FRACTION_DEFAULTS,
    VALID_TIME_SIGNATURES,
)

PITCH_CLASSES: Dict[str, int] = {
    "C": 0,
    "C#": 1, "Db": 1,
    "D": 2,
    "D#": 3, "Eb": 3,
    "E": 4,
    "F": 5,
    "F#": 6, "Gb": 6,
    "G": 7,
    "G#": 8, "Ab": 8,
    "A": 9,
    "A#": 10, "Bb": 10,
    "B": 11,
}

_LOUDNESS_UNIT = re.compile(r"\s*db\s*$", re.IGNORECASE)
_NOTE = re.compile(r"([A-G](?:#|b)?)")
_MINOR = re.compile(r"minor|\bm\b|min", re.IGNORECASE)
_MAJOR = re.compile(r"major|\bmaj\b", re.IGNORECASE)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings to a finite float."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def from_percent(value: Any, default: float) -> float:
    """
    Read a fraction that may be expressed as a percentage.

    Values up to 1 are taken as fractions, larger values as percentages.
    """
    num = to_number(value)
    if num is None:
        return default
    if num > 1:
        num = num / 100
    return clamp(num, 0.0, 1.0)


def parse_key(value: Any) -> int:
    """Letter name ("F#", "Bb") or pitch class number; anything else is C."""
    if isinstance(value, str):
        letter = PITCH_CLASSES.get(value.strip())
        if letter is not None:
            return letter
    num = to_number(value)
    if num is None:
        return DEFAULT_KEY
    key = round_half_up(num)
    return key if 0 <= key <= 11 else DEFAULT_KEY


def parse_mode(value: Any) -> int:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "major":
            return 1
        if lowered == "minor":
            return 0
    num = to_number(value)
    if num is None:
        return DEFAULT_MODE
    return int(clamp(round_half_up(num), 0, 1))


def parse_tempo(value: Any) -> float:
    num = to_number(value)
    if num is None or num <= 0:
        return DEFAULT_TEMPO
    return num


def parse_loudness(value: Any) -> float:
    if isinstance(value, str):
        value = _LOUDNESS_UNIT.sub("", value)
    num = to_number(value)
    return DEFAULT_LOUDNESS if num is None else num


def parse_time_signature(value: Any) -> int:
    num = to_number(value)
    if num is None:
        return DEFAULT_TIME_SIGNATURE
    rounded = round_half_up(num)
    return rounded if rounded in VALID_TIME_SIGNATURES else DEFAULT_TIME_SIGNATURE


def _optional_popularity(value: Any) -> Optional[float]:
    num = to_number(value)
    return None if num is None else clamp(num, 0.0, 100.0)


def _optional_duration(value: Any) -> Optional[float]:
    num = to_number(value)
    return num if num is not None and num > 0 else None


def normalize_features(payload: Any) -> AudioFeatureVector:
    """
    Convert a raw provider payload into a complete AudioFeatureVector.

    Unrecognised or missing fields fall back to their documented defaults,
    so the result is always fully populated.

    Args:
        payload: Raw key/value mapping from exactly one provider

    Returns:
        Normalized feature vector
    """
    if not isinstance(payload, Mapping):
        payload = {}

    # Some providers say "happiness" instead of valence
    valence_source = payload.get("valence")
    if valence_source is None:
        valence_source = payload.get("happiness")

    return AudioFeatureVector(
        acousticness=from_percent(payload.get("acousticness"), FRACTION_DEFAULTS["acousticness"]),
        danceability=from_percent(payload.get("danceability"), FRACTION_DEFAULTS["danceability"]),
        energy=from_percent(payload.get("energy"), FRACTION_DEFAULTS["energy"]),
        instrumentalness=from_percent(payload.get("instrumentalness"), FRACTION_DEFAULTS["instrumentalness"]),
        liveness=from_percent(payload.get("liveness"), FRACTION_DEFAULTS["liveness"]),
        loudness=parse_loudness(payload.get("loudness")),
        speechiness=from_percent(payload.get("speechiness"), FRACTION_DEFAULTS["speechiness"]),
        tempo=parse_tempo(payload.get("tempo")),
        valence=from_percent(valence_source, FRACTION_DEFAULTS["valence"]),
        key=parse_key(payload.get("key")),
        mode=parse_mode(payload.get("mode")),
        time_signature=parse_time_signature(payload.get("time_signature")),
        popularity=_optional_popularity(payload.get("popularity")),
        duration_ms=_optional_duration(payload.get("duration_ms")),
    )


def parse_key_string(text: str) -> Tuple[Optional[int], Optional[int]]:
    """
    Parse free-form key notation such as "C Major", "A minor", "F#m" or "Bb maj".

    Returns:
        (pitch class, mode); either may be None when not recognisable
    """
    cleaned = text.strip().replace("♯", "#").replace("♭", "b")
    match = _NOTE.search(cleaned)
    key = PITCH_CLASSES.get(match.group(1)) if match else None

    # The note letter itself must not be read as a mode marker
    remainder = cleaned[match.end():] if match else cleaned
    if _MINOR.search(remainder) or remainder.startswith("m") and not remainder.startswith("maj"):
        mode: Optional[int] = 0
    elif _MAJOR.search(remainder):
        mode = 1
    else:
        mode = None
    return key, mode


def extract_heuristic_features(candidate: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Pull the partial payload (tempo, key, mode) out of a song search candidate.

    The result is meant for normalize_features, which fills every other field
    with defaults.
    """
    partial: Dict[str, Any] = {"time_signature": DEFAULT_TIME_SIGNATURE}

    for field_name in ("tempo", "bpm", "Tempo"):
        tempo = to_number(candidate.get(field_name))
        if tempo is not None:
            partial["tempo"] = tempo
            break

    for field_name in ("key", "key_name", "music_key", "key_of"):
        key_text = candidate.get(field_name)
        if isinstance(key_text, str) and key_text.strip():
            key, mode = parse_key_string(key_text)
            if key is not None:
                partial["key"] = key
            if mode is not None:
                partial["mode"] = mode
            break

    return partial
