"""
Geometry Layer
==============

Bounded Context: Pure spherical math and spatial containment queries.

Responsibilities:
- Dead reckoning (destination point, haversine, heading smoothing)
- Containment grid construction and nearest-cell lookups
- NO state, NO tracking, NO notifications

Design Philosophy:
- Pure functions where possible
- Immutable data structures
- Fail-fast validation
- Zero side effects
"""

from silentzone_zone.geometry.spherical import (
    EARTH_RADIUS_METERS,
    Coordinate,
    calculate_new_position,
    haversine_distance,
    haversine_distance_array,
    smooth_heading,
)
from silentzone_zone.geometry.grid import (
    Grid,
    GridCell,
    generate_grid,
    get_cell_for_position,
    is_inside_radius,
)

__all__ = [
    "EARTH_RADIUS_METERS",
    "Coordinate",
    "calculate_new_position",
    "haversine_distance",
    "haversine_distance_array",
    "smooth_heading",
    "Grid",
    "GridCell",
    "generate_grid",
    "get_cell_for_position",
    "is_inside_radius",
]
