"""
Progress Tracker

Keyed store of resolution progress, one record per artist id. Created once
per process and handed to the resolution service; read by pollers.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict

import structlog

from ..models.progress_models import ResolutionPhase, ResolutionProgress

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressTracker:
    """
    Advisory progress state for UI polling.

    Each update is an atomic field-level merge. Records are never deleted;
    a fresh run for the same artist simply overwrites the previous one.
    Overlapping runs for one artist are not serialized and their writes may
    interleave (last writer wins); ``run_id`` tells them apart.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._records: Dict[str, ResolutionProgress] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.logger = logger.bind(component="ProgressTracker")

    def set_progress(self, artist_id: str, **changes: Any) -> ResolutionProgress:
        """
        Merge the given fields into the artist's record.

        A missing record starts as ``idle/0/0``. ``updated_at`` is always
        refreshed.

        Args:
            artist_id: Artist the run is for
            **changes: ResolutionProgress fields to overwrite

        Returns:
            The merged record
        """
        with self._lock:
            previous = self._records.get(artist_id) or ResolutionProgress(updated_at=self._clock())
            merged = {**previous.model_dump(), **changes, "updated_at": self._clock()}
            record = ResolutionProgress(**merged)
            self._records[artist_id] = record

        self.logger.debug(
            "Progress updated",
            artist_id=artist_id,
            phase=record.phase.value,
            position=record.position,
            total=record.total
        )
        return record.model_copy()

    def get_progress(self, artist_id: str) -> ResolutionProgress:
        """
        Current record for an artist, or a default ``idle/0/0`` record.

        Args:
            artist_id: Artist to look up

        Returns:
            A copy of the record; mutating it does not affect the store
        """
        with self._lock:
            record = self._records.get(artist_id)
            if record is None:
                return ResolutionProgress(phase=ResolutionPhase.IDLE, position=0, total=0, updated_at=self._clock())
            return record.model_copy()
