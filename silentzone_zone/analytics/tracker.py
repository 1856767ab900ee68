"""
Place Tracking State Module
===========================

Per-place geofence state machine (OUTSIDE -> INSIDE -> OUTSIDE ...).

Design:
- Encapsulates one place's tracking state (inside flag, check-in, drift)
- Pure transition logic: apply() returns a Transition, no I/O
- UNKNOWN until the first determinate containment result
- INDETERMINATE containment (grid miss) never changes state

Transitions:
    UNKNOWN  + INSIDE  -> INSIDE   (ENTERED)
    OUTSIDE  + INSIDE  -> INSIDE   (ENTERED)
    INSIDE   + OUTSIDE -> OUTSIDE  (EXITED)
    UNKNOWN  + OUTSIDE -> OUTSIDE  (silent)
    any      + INDETERMINATE -> unchanged
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GeofenceState(str, Enum):
    """Tracking state of one place."""
    UNKNOWN = "unknown"
    OUTSIDE = "outside"
    INSIDE = "inside"


class Containment(str, Enum):
    """Result of testing a position against a place grid."""
    INSIDE = "inside"
    OUTSIDE = "outside"
    INDETERMINATE = "indeterminate"


class TransitionKind(str, Enum):
    """Observable state change."""
    ENTERED = "entered"
    EXITED = "exited"


@dataclass(frozen=True)
class Transition:
    """
    One state change of one place.

    Attributes:
        place_id: Place that changed
        kind: ENTERED or EXITED
        at_ms: Epoch milliseconds of the tick that observed it
        duration_ms: Time spent inside (EXITED only)
    """

    place_id: str
    kind: TransitionKind
    at_ms: int
    duration_ms: Optional[int] = None


class PlaceTrackingState:
    """
    Mutable tracking state for one monitored place.

    Attributes:
        place_id: Place identifier
        state: Current GeofenceState
        cumulative_distance_since_anchor: Dead-reckoned meters since last anchor
        last_check_in_at: Epoch ms of the current visit's check-in (None when outside)
        last_step_count: Step counter total at the last tick

    Usage:
        state = PlaceTrackingState("mosque")
        transition = state.apply(Containment.INSIDE, now_ms)
        if transition and transition.kind == TransitionKind.ENTERED:
            ...
    """

    def __init__(self, place_id: str, last_step_count: Optional[int] = None):
        self.place_id = place_id
        self.state = GeofenceState.UNKNOWN
        self.cumulative_distance_since_anchor = 0.0
        self.last_check_in_at: Optional[int] = None
        self.last_step_count = last_step_count

    @property
    def is_inside(self) -> bool:
        return self.state == GeofenceState.INSIDE

    def record_movement(self, distance_meters: float, step_count: Optional[int]) -> None:
        """Accumulate travelled distance and remember the step counter."""
        self.cumulative_distance_since_anchor += distance_meters
        if step_count is not None:
            self.last_step_count = step_count

    def reset_drift(self) -> None:
        """Called on re-anchor."""
        self.cumulative_distance_since_anchor = 0.0

    def apply(self, containment: Containment, now_ms: int) -> Optional[Transition]:
        """
        Apply a containment result.

        Args:
            containment: INSIDE / OUTSIDE / INDETERMINATE
            now_ms: Current epoch milliseconds

        Returns:
            Transition if the state changed observably, else None
        """
        if containment == Containment.INDETERMINATE:
            return None

        if containment == Containment.INSIDE:
            if self.state == GeofenceState.INSIDE:
                return None
            self.state = GeofenceState.INSIDE
            self.last_check_in_at = now_ms
            return Transition(self.place_id, TransitionKind.ENTERED, now_ms)

        # OUTSIDE
        if self.state == GeofenceState.INSIDE:
            checked_in_at = self.last_check_in_at if self.last_check_in_at is not None else now_ms
            self.state = GeofenceState.OUTSIDE
            self.last_check_in_at = None
            return Transition(
                self.place_id,
                TransitionKind.EXITED,
                now_ms,
                duration_ms=max(0, now_ms - checked_in_at),
            )

        self.state = GeofenceState.OUTSIDE
        return None

    def to_dict(self) -> dict:
        """Snapshot for status reporting."""
        return {
            "place_id": self.place_id,
            "state": self.state.value,
            "cumulative_distance_since_anchor": round(self.cumulative_distance_since_anchor, 2),
            "last_check_in_at": self.last_check_in_at,
            "last_step_count": self.last_step_count,
        }

    def __repr__(self) -> str:
        return f"PlaceTrackingState(place_id={self.place_id!r}, state={self.state.value})"
