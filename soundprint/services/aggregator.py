"""
Feature Aggregator

Incremental averaging of per-track feature vectors into the single vector
that represents an artist, followed by domain-range sanitization.
"""

from dataclasses import fields
from typing import Dict, Iterable, Optional

import structlog

from ..models.feature_models import (
    AudioFeatureVector,
    CORE_FIELDS,
    DEFAULT_FEATURE_VECTOR,
    DEFAULT_TEMPO,
    DEFAULT_TIME_SIGNATURE,
    EXTRA_FIELDS,
    FRACTION_FIELDS,
    VALID_TIME_SIGNATURES,
)
from .normalizer import clamp, round_half_up

logger = structlog.get_logger(__name__)

_FIELD_NAMES = tuple(f.name for f in fields(AudioFeatureVector))


def sanitize_features(vector: AudioFeatureVector) -> AudioFeatureVector:
    """
    Snap an (averaged) vector back into valid domains.

    - fractions clamped to [0, 1]
    - key = clamp(round(key), 0, 11)
    - mode = 1 if mode >= 0.5 else 0
    - time_signature = round(ts) when that is 3 or 4, else 4
    - non-positive tempo replaced with the default tempo
    """
    changes: Dict[str, object] = {
        name: clamp(float(getattr(vector, name)), 0.0, 1.0) for name in FRACTION_FIELDS
    }
    changes["key"] = int(clamp(round_half_up(vector.key), 0, 11))
    changes["mode"] = 1 if vector.mode >= 0.5 else 0

    time_signature = round_half_up(vector.time_signature)
    changes["time_signature"] = time_signature if time_signature in VALID_TIME_SIGNATURES else DEFAULT_TIME_SIGNATURE

    changes["tempo"] = vector.tempo if vector.tempo > 0 else DEFAULT_TEMPO
    if vector.popularity is not None:
        changes["popularity"] = clamp(vector.popularity, 0.0, 100.0)

    return vector.with_changes(**changes)


class FeatureAggregator:
    """
    Running mean over feature vectors.

    Every field keeps its own contributor count, so optional extras
    (popularity, duration) are averaged only over the vectors that supplied
    them and never dragged toward zero by the ones that did not.
    """

    def __init__(self):
        self._means: Dict[str, float] = {}
        self._counts: Dict[str, int] = {}
        self.count = 0

    def add(self, vector: AudioFeatureVector) -> None:
        """Fold one vector into the running means."""
        for name in _FIELD_NAMES:
            value = getattr(vector, name)
            if value is None:
                continue
            n = self._counts.get(name, 0)
            self._means[name] = (self._means.get(name, 0.0) * n + float(value)) / (n + 1)
            self._counts[name] = n + 1
        self.count += 1

    def field_count(self, name: str) -> int:
        return self._counts.get(name, 0)

    def result(self) -> AudioFeatureVector:
        """
        Sanitized mean of everything added so far.

        Returns:
            Averaged vector, or the sanitized default vector when nothing was added
        """
        if self.count == 0:
            return sanitize_features(DEFAULT_FEATURE_VECTOR)

        values = {}
        for name in CORE_FIELDS:
            values[name] = self._means.get(name, getattr(DEFAULT_FEATURE_VECTOR, name))
        for name in EXTRA_FIELDS:
            values[name] = self._means.get(name)

        averaged = AudioFeatureVector(**values)
        return sanitize_features(averaged)


def aggregate_features(vectors: Iterable[Optional[AudioFeatureVector]]) -> AudioFeatureVector:
    """
    Average the non-None vectors of an iterable.

    Args:
        vectors: Per-track vectors; failed tracks may appear as None

    Returns:
        Sanitized aggregate vector
    """
    aggregator = FeatureAggregator()
    for vector in vectors:
        if vector is not None:
            aggregator.add(vector)

    logger.debug("Aggregated feature vectors", valid_count=aggregator.count)
    return aggregator.result()
