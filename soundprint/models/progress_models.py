"""
Resolution Progress Models

Pydantic models describing where a feature resolution run currently is.
Records are advisory state for UI polling, keyed by artist id.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ResolutionPhase(str, Enum):
    """Coarse phase of a resolution run."""
    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    AVERAGING = "averaging"
    DONE = "done"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResolutionProgress(BaseModel):
    """Pollable progress record for one artist."""

    phase: ResolutionPhase = Field(default=ResolutionPhase.IDLE, description="Current phase of the run")
    position: int = Field(default=0, ge=0, description="1-based index of the track being resolved")
    total: int = Field(default=0, ge=0, description="Number of tracks in the subset")
    current_track_name: Optional[str] = Field(default=None, description="Display name of the track in flight")
    updated_at: datetime = Field(default_factory=_utcnow, description="Time of the last update")
    message: Optional[str] = Field(default=None, description="Optional human readable detail")
    run_id: Optional[str] = Field(default=None, description="Identifier of the run that wrote this record")
