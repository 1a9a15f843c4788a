"""
Audio Feature Models

Domain models for per-track audio features, catalog track references and
the aggregate vector that characterises an artist's sound.
"""

from dataclasses import dataclass, asdict, field, replace
from typing import Dict, List, Optional, Any


# Descriptors expressed as fractions in [0, 1]
FRACTION_FIELDS = (
    "acousticness",
    "danceability",
    "energy",
    "instrumentalness",
    "liveness",
    "speechiness",
    "valence",
)

# Fallback used by the normalizer when a provider omits a fraction.
# Together they describe a generic mid-energy pop track.
FRACTION_DEFAULTS: Dict[str, float] = {
    "acousticness": 0.3,
    "danceability": 0.6,
    "energy": 0.6,
    "instrumentalness": 0.1,
    "liveness": 0.2,
    "speechiness": 0.15,
    "valence": 0.55,
}

DEFAULT_TEMPO = 120.0
DEFAULT_LOUDNESS = -8.0
DEFAULT_KEY = 0
DEFAULT_MODE = 1
DEFAULT_TIME_SIGNATURE = 4
VALID_TIME_SIGNATURES = (3, 4)

CORE_FIELDS = FRACTION_FIELDS + ("loudness", "tempo", "key", "mode", "time_signature")
EXTRA_FIELDS = ("popularity", "duration_ms")

PITCH_CLASS_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


@dataclass(frozen=True)
class AudioFeatureVector:
    """Musical descriptors of one track (or the average of several)."""
    acousticness: float
    danceability: float
    energy: float
    instrumentalness: float
    liveness: float
    loudness: float
    speechiness: float
    tempo: float
    valence: float
    key: int
    mode: int
    time_signature: int
    popularity: Optional[float] = None
    duration_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_changes(self, **changes: Any) -> "AudioFeatureVector":
        return replace(self, **changes)

    @property
    def key_name(self) -> str:
        return PITCH_CLASS_NAMES[self.key % 12]

    @property
    def mode_name(self) -> str:
        return "major" if self.mode == 1 else "minor"


# Returned when no track produced usable features
DEFAULT_FEATURE_VECTOR = AudioFeatureVector(
    acousticness=0.5,
    danceability=0.7,
    energy=0.6,
    instrumentalness=0.1,
    liveness=0.2,
    loudness=-8.0,
    speechiness=0.1,
    tempo=120.0,
    valence=0.6,
    key=5,
    mode=1,
    time_signature=4,
)


@dataclass(frozen=True)
class TrackRef:
    """A track as supplied by the artist catalog."""
    id: str
    name: str
    artist_name: str
    popularity: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AggregateResult:
    """
    Outcome of one resolution run.

    ``features`` is the averaged, sanitized vector; the remaining fields
    describe how it was obtained.
    """
    artist_id: str
    features: AudioFeatureVector
    track_count: int = 0
    valid_count: int = 0
    sources: List[str] = field(default_factory=list)
    is_default: bool = False
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artist_id": self.artist_id,
            "features": self.features.to_dict(),
            "track_count": self.track_count,
            "valid_count": self.valid_count,
            "sources": list(self.sources),
            "is_default": self.is_default,
            "from_cache": self.from_cache,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateResult":
        return cls(
            artist_id=data["artist_id"],
            features=AudioFeatureVector(**data["features"]),
            track_count=data.get("track_count", 0),
            valid_count=data.get("valid_count", 0),
            sources=list(data.get("sources", [])),
            is_default=data.get("is_default", False),
            from_cache=data.get("from_cache", False),
        )
