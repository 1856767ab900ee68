"""
Analytics Layer
===============

Bounded Context: Motion inference and per-place tracking state.

Responsibilities:
- Motion classification from pedometer + accelerometer samples
- Per-place geofence state machine (stateful, pure transitions)
- Visit trail recording (buffered)
"""

from silentzone_zone.analytics.motion import (
    MotionReading,
    MotionState,
    SensorProvider,
    classify_motion,
    detect_current_motion,
    get_estimated_speed,
    get_stride_length,
)
from silentzone_zone.analytics.tracker import (
    Containment,
    GeofenceState,
    PlaceTrackingState,
    Transition,
    TransitionKind,
)
from silentzone_zone.analytics.trail import TrailPoint, TrailRecorder, TrailSink

__all__ = [
    "MotionReading",
    "MotionState",
    "SensorProvider",
    "classify_motion",
    "detect_current_motion",
    "get_estimated_speed",
    "get_stride_length",
    "Containment",
    "GeofenceState",
    "PlaceTrackingState",
    "Transition",
    "TransitionKind",
    "TrailPoint",
    "TrailRecorder",
    "TrailSink",
]
