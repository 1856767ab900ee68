"""
SilentZone Zone Engine
======================

Bounded Context: Low-power position estimation and zone containment.

Design Philosophy:
- Separation of Concerns: Geometry and Analytics separated
- Deterministic formulas over statistical filters (predictable, cheap)
- Pragmatismo > Purismo: numpy for the grid, plain math for scalars

Architecture:

    silentzone_zone/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── spherical.py   # Dead reckoning: destination point, haversine, heading mean
    │   └── grid.py        # Containment grid + nearest-cell lookup
    │
    └── analytics/         # Motion & tracking (stateful)
        ├── motion.py      # MotionState, classify_motion, detect_current_motion
        ├── tracker.py     # PlaceTrackingState (per-place state machine)
        └── trail.py       # TrailRecorder (visit path, batched writes)

Usage:

    from silentzone_zone import generate_grid, get_cell_for_position, calculate_new_position

    grid = generate_grid(center_lat, center_lng, radius_meters=50)
    position = calculate_new_position(anchor, steps=12, heading_degrees=90, stride_length_meters=0.76)
    cell = get_cell_for_position(grid, position.lat, position.lng)
    inside = cell is not None and cell.is_inside
"""

# Geometry Layer (immutable, stateless)
from silentzone_zone.geometry import (
    Coordinate,
    Grid,
    GridCell,
    calculate_new_position,
    generate_grid,
    get_cell_for_position,
    haversine_distance,
    is_inside_radius,
    smooth_heading,
)

# Analytics Layer (stateful)
from silentzone_zone.analytics import (
    Containment,
    GeofenceState,
    MotionReading,
    MotionState,
    PlaceTrackingState,
    TrailPoint,
    TrailRecorder,
    Transition,
    TransitionKind,
    classify_motion,
    detect_current_motion,
    get_estimated_speed,
    get_stride_length,
)

__all__ = [
    # Geometry
    "Coordinate",
    "Grid",
    "GridCell",
    "calculate_new_position",
    "generate_grid",
    "get_cell_for_position",
    "haversine_distance",
    "is_inside_radius",
    "smooth_heading",
    # Analytics
    "Containment",
    "GeofenceState",
    "MotionReading",
    "MotionState",
    "PlaceTrackingState",
    "TrailPoint",
    "TrailRecorder",
    "Transition",
    "TransitionKind",
    "classify_motion",
    "detect_current_motion",
    "get_estimated_speed",
    "get_stride_length",
]

__version__ = "1.0.0"
