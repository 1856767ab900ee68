"""
Trail Recorder Module
=====================

Records the dead-reckoned path walked during a visit.

Design:
- One session per visit (per place, visits may overlap)
- Points buffered in memory and flushed in batches to reduce write I/O
- Storage delegated to a TrailSink (the place repository)
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from typing import Dict, List, Protocol


logger = logging.getLogger(__name__)

BATCH_SIZE = 10


@dataclass(frozen=True)
class TrailPoint:
    """One recorded position sample."""
    lat: float
    lng: float
    heading: float
    is_stationary: bool
    step_count: int
    timestamp: int

    def to_dict(self) -> dict:
        return asdict(self)


class TrailSink(Protocol):
    """Persistence side of the recorder."""

    def start_trail_session(
        self, session_id: str, place_id: str, anchor_lat: float, anchor_lng: float, started_at: int
    ) -> None: ...

    def append_trail_points(self, session_id: str, points: List[TrailPoint]) -> None: ...

    def end_trail_session(self, session_id: str, ended_at: int, reason: str) -> None: ...


class TrailRecorder:
    """
    Buffers trail points per visit and flushes them in batches.

    Usage:
        recorder = TrailRecorder(sink=repository)
        session_id = recorder.start_session("mosque", anchor_lat, anchor_lng, now_ms)
        recorder.record_point("mosque", point)
        recorder.end_session("mosque", now_ms, reason="exited")
    """

    def __init__(self, sink: TrailSink, batch_size: int = BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.sink = sink
        self.batch_size = batch_size
        self._sessions: Dict[str, str] = {}  # place_id -> session_id
        self._buffers: Dict[str, List[TrailPoint]] = {}  # session_id -> points

    def start_session(self, place_id: str, anchor_lat: float, anchor_lng: float, started_at: int) -> str:
        """Open a session for a visit; an open session for the same place is closed first."""
        if place_id in self._sessions:
            self.end_session(place_id, started_at, reason="superseded")

        session_id = str(uuid.uuid4())
        self._sessions[place_id] = session_id
        self._buffers[session_id] = []
        self.sink.start_trail_session(session_id, place_id, anchor_lat, anchor_lng, started_at)

        logger.debug(f"Trail session started: {session_id} (place={place_id})")
        return session_id

    def record_point(self, place_id: str, point: TrailPoint) -> bool:
        """
        Buffer a point for the place's open session.

        Returns:
            False if the place has no open session (point ignored)
        """
        session_id = self._sessions.get(place_id)
        if session_id is None:
            return False

        buffer = self._buffers[session_id]
        buffer.append(point)
        if len(buffer) >= self.batch_size:
            self._flush(session_id)
        return True

    def end_session(self, place_id: str, ended_at: int, reason: str = "unknown") -> None:
        """Flush and close the place's open session (no-op if none)."""
        session_id = self._sessions.pop(place_id, None)
        if session_id is None:
            return

        self._flush(session_id)
        del self._buffers[session_id]
        self.sink.end_trail_session(session_id, ended_at, reason)
        logger.debug(f"Trail session ended: {session_id} (reason={reason})")

    def end_all(self, ended_at: int, reason: str) -> None:
        for place_id in list(self._sessions):
            self.end_session(place_id, ended_at, reason)

    def has_session(self, place_id: str) -> bool:
        return place_id in self._sessions

    def _flush(self, session_id: str) -> None:
        points = self._buffers.get(session_id)
        if not points:
            return
        # Swap before writing so a failing sink does not re-send the batch
        self._buffers[session_id] = []
        self.sink.append_trail_points(session_id, points)

    def __len__(self) -> int:
        """Number of open sessions."""
        return len(self._sessions)
