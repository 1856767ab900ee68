"""
External interfaces of the tracking core.

Protocols for the collaborators the orchestrator is constructed with,
plus the in-memory place repository used by the service and the tests.

    PlaceRepository   places, visit history (check-ins) and trail sessions
    LocationProvider  one-shot absolute position fixes
    RingerController  silence / restore the device ringer
    SensorProvider    see silentzone_zone.analytics.motion
"""

import logging
import threading
import uuid
from typing import Dict, List, Optional, Protocol

from silentzone_zone.analytics.trail import TrailPoint

from .models import CheckInRecord, Place, PositionFix


logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    """Platform location service."""

    async def get_current_position(
        self,
        high_accuracy: bool,
        timeout_s: float,
        maximum_age_s: float,
    ) -> PositionFix:
        """
        Request one position fix.

        Raises:
            Exception: Any failure (services disabled, timeout, permission)
        """
        ...


class RingerController(Protocol):
    """Device ringer mode."""

    async def silence(self) -> None: ...

    async def restore(self) -> None: ...


class PlaceRepository(Protocol):
    """Place storage and visit history."""

    def get_places(self) -> List[Place]: ...

    def get_place(self, place_id: str) -> Optional[Place]: ...

    def set_place_enabled(self, place_id: str, enabled: bool) -> Optional[Place]: ...

    def delete_place(self, place_id: str) -> bool: ...

    def log_check_in(self, place_id: str, at_ms: int) -> CheckInRecord: ...

    def log_check_out(self, place_id: str, at_ms: int, reason: str) -> Optional[CheckInRecord]: ...

    def get_active_check_ins(self) -> List[CheckInRecord]: ...

    def start_trail_session(
        self, session_id: str, place_id: str, anchor_lat: float, anchor_lng: float, started_at: int
    ) -> None: ...

    def append_trail_points(self, session_id: str, points: List[TrailPoint]) -> None: ...

    def end_trail_session(self, session_id: str, ended_at: int, reason: str) -> None: ...


class InMemoryPlaceRepository:
    """
    Thread-safe in-memory PlaceRepository.

    Visit history keeps at most one open check-in per place; a second
    check-in for a place that is already open returns the open record.

    Usage:
        repo = InMemoryPlaceRepository([Place("home", "Home", 30.0444, 31.2357, 50)])
        record = repo.log_check_in("home", now_ms)
        repo.log_check_out("home", later_ms, reason="exited")
    """

    def __init__(self, places: Optional[List[Place]] = None):
        self._lock = threading.Lock()
        self._places: Dict[str, Place] = {}
        self._check_ins: List[CheckInRecord] = []
        self._open: Dict[str, int] = {}  # place_id -> index into _check_ins
        self._trail_sessions: Dict[str, dict] = {}
        self._trail_points: Dict[str, List[TrailPoint]] = {}

        for place in places or []:
            self.add_place(place)

    # ===== Places =====

    def add_place(self, place: Place) -> None:
        with self._lock:
            self._places[place.id] = place

    def get_places(self) -> List[Place]:
        with self._lock:
            return list(self._places.values())

    def get_place(self, place_id: str) -> Optional[Place]:
        with self._lock:
            return self._places.get(place_id)

    def set_place_enabled(self, place_id: str, enabled: bool) -> Optional[Place]:
        with self._lock:
            place = self._places.get(place_id)
            if place is None:
                return None
            place = place.with_enabled(enabled)
            self._places[place_id] = place
            return place

    def delete_place(self, place_id: str) -> bool:
        with self._lock:
            return self._places.pop(place_id, None) is not None

    # ===== Visit history =====

    def log_check_in(self, place_id: str, at_ms: int) -> CheckInRecord:
        with self._lock:
            index = self._open.get(place_id)
            if index is not None:
                return self._check_ins[index]

            record = CheckInRecord(id=str(uuid.uuid4()), place_id=place_id, check_in_at=at_ms)
            self._open[place_id] = len(self._check_ins)
            self._check_ins.append(record)
            return record

    def log_check_out(self, place_id: str, at_ms: int, reason: str) -> Optional[CheckInRecord]:
        with self._lock:
            index = self._open.pop(place_id, None)
            if index is None:
                return None

            open_record = self._check_ins[index]
            closed = CheckInRecord(
                id=open_record.id,
                place_id=place_id,
                check_in_at=open_record.check_in_at,
                check_out_at=at_ms,
                duration_ms=max(0, at_ms - open_record.check_in_at),
                reason=reason,
            )
            self._check_ins[index] = closed
            return closed

    def get_active_check_ins(self) -> List[CheckInRecord]:
        with self._lock:
            return [self._check_ins[i] for i in self._open.values()]

    def get_check_in_history(self, place_id: Optional[str] = None) -> List[CheckInRecord]:
        with self._lock:
            return [r for r in self._check_ins if place_id is None or r.place_id == place_id]

    # ===== Trails =====

    def start_trail_session(
        self, session_id: str, place_id: str, anchor_lat: float, anchor_lng: float, started_at: int
    ) -> None:
        with self._lock:
            self._trail_sessions[session_id] = {
                "place_id": place_id,
                "anchor_lat": anchor_lat,
                "anchor_lng": anchor_lng,
                "started_at": started_at,
                "ended_at": None,
                "end_reason": None,
            }
            self._trail_points[session_id] = []

    def append_trail_points(self, session_id: str, points: List[TrailPoint]) -> None:
        with self._lock:
            self._trail_points.setdefault(session_id, []).extend(points)

    def end_trail_session(self, session_id: str, ended_at: int, reason: str) -> None:
        with self._lock:
            session = self._trail_sessions.get(session_id)
            if session is None:
                logger.warning(f"⚠️ Ending unknown trail session: {session_id}")
                return
            session["ended_at"] = ended_at
            session["end_reason"] = reason

    def get_trail(self, session_id: str) -> List[TrailPoint]:
        with self._lock:
            return list(self._trail_points.get(session_id, []))

    def get_trail_sessions(self) -> Dict[str, dict]:
        with self._lock:
            return {k: dict(v) for k, v in self._trail_sessions.items()}


class NullRingerController:
    """RingerController that only logs (no device attached)."""

    async def silence(self) -> None:
        logger.info("🔕 Ringer silenced")

    async def restore(self) -> None:
        logger.info("🔔 Ringer restored")
