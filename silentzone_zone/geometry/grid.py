"""
Containment Grid Module
=======================

Precomputed per-place grid of cells flagged inside/outside the radius.

Design:
- Grid built once per place (O(N^2) construction), cheap lookups after
- numpy arrays for cell coordinates, inside mask and distances
- Immutable after construction (frozen dataclass + read-only arrays)
- Deterministic: identical inputs produce identical cell placement

Layout:
    Row k sits at latitude  center_lat + (k - N // 2) * cell / 111320
    Col k sits at longitude center_lng + (k - N // 2) * cell / (111320 * cos(lat))

    The center is always a cell node. For even N the extra row and column
    fall on the south/west side.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np

from silentzone_zone.geometry.spherical import haversine_distance_array


METERS_PER_DEGREE_LAT = 111_320.0
DEFAULT_CELL_SIZE_METERS = 5.0


@dataclass(frozen=True)
class GridCell:
    """
    Immutable view of one grid cell.

    Attributes:
        row: Row index (south to north)
        col: Column index (west to east)
        lat: Cell latitude in degrees
        lng: Cell longitude in degrees
        is_inside: True if the cell lies within the place radius
        distance_from_center: Haversine distance to the place center (meters)
    """

    row: int
    col: int
    lat: float
    lng: float
    is_inside: bool
    distance_from_center: float


@dataclass(frozen=True)
class Grid:
    """
    Square containment grid anchored on one place center.

    Attributes:
        center_lat: Place center latitude
        center_lng: Place center longitude
        radius_meters: Place radius the inside flags were computed against
        cell_size_meters: Cell spacing in meters
        row_lats: (N,) latitude per row
        col_lngs: (N,) longitude per column
        inside_mask: (N, N) boolean mask, True = inside radius
        distances: (N, N) haversine distance to center in meters
    """

    center_lat: float
    center_lng: float
    radius_meters: float
    cell_size_meters: float
    row_lats: np.ndarray
    col_lngs: np.ndarray
    inside_mask: np.ndarray
    distances: np.ndarray

    def __post_init__(self):
        """Make arrays read-only."""
        for array in (self.row_lats, self.col_lngs, self.inside_mask, self.distances):
            array.flags.writeable = False

    @property
    def size(self) -> int:
        """Side length in cells (N)."""
        return len(self.row_lats)

    @property
    def shape(self) -> Tuple[int, int]:
        """(rows, cols)."""
        return self.inside_mask.shape

    @property
    def inside_count(self) -> int:
        """Number of cells flagged inside."""
        return int(self.inside_mask.sum())

    def cell(self, row: int, col: int) -> GridCell:
        """Build the GridCell view for (row, col)."""
        return GridCell(
            row=int(row),
            col=int(col),
            lat=float(self.row_lats[row]),
            lng=float(self.col_lngs[col]),
            is_inside=bool(self.inside_mask[row, col]),
            distance_from_center=float(self.distances[row, col]),
        )

    def cells(self) -> Iterator[GridCell]:
        """Iterate all cells row by row."""
        for row in range(self.size):
            for col in range(self.size):
                yield self.cell(row, col)

    def matches(self, center_lat: float, center_lng: float, radius_meters: float) -> bool:
        """True if the grid was built for this center and radius."""
        return (
            self.center_lat == center_lat
            and self.center_lng == center_lng
            and self.radius_meters == radius_meters
        )

    def __len__(self) -> int:
        return self.size * self.size

    def __repr__(self) -> str:
        return (
            f"Grid(size={self.size}x{self.size}, cell={self.cell_size_meters}m, "
            f"radius={self.radius_meters}m, inside={self.inside_count})"
        )


def _meters_per_degree_lng(center_lat: float) -> float:
    return METERS_PER_DEGREE_LAT * math.cos(math.radians(center_lat))


def generate_grid(
    center_lat: float,
    center_lng: float,
    radius_meters: float,
    cell_size_meters: float = DEFAULT_CELL_SIZE_METERS,
) -> Grid:
    """
    Build the containment grid for a circular place.

    The grid spans 2 * (radius + cell) per side (one cell of buffer beyond
    the radius), i.e. N = ceil(bounding / cell) cells per side.

    Args:
        center_lat: Place center latitude (degrees)
        center_lng: Place center longitude (degrees)
        radius_meters: Place radius in meters
        cell_size_meters: Cell spacing in meters (default 5m)

    Returns:
        Immutable Grid

    Raises:
        ValueError: If radius or cell size is not positive
    """
    if radius_meters <= 0:
        raise ValueError(f"radius_meters must be > 0, got {radius_meters}")
    if cell_size_meters <= 0:
        raise ValueError(f"cell_size_meters must be > 0, got {cell_size_meters}")

    bounding_size = 2 * (radius_meters + cell_size_meters)
    num_cells = math.ceil(bounding_size / cell_size_meters)

    offsets = (np.arange(num_cells, dtype=np.float64) - num_cells // 2) * cell_size_meters
    row_lats = center_lat + offsets / METERS_PER_DEGREE_LAT
    col_lngs = center_lng + offsets / _meters_per_degree_lng(center_lat)

    lat_mesh, lng_mesh = np.meshgrid(row_lats, col_lngs, indexing="ij")
    distances = haversine_distance_array(center_lat, center_lng, lat_mesh, lng_mesh)
    inside_mask = distances <= radius_meters

    return Grid(
        center_lat=center_lat,
        center_lng=center_lng,
        radius_meters=radius_meters,
        cell_size_meters=cell_size_meters,
        row_lats=row_lats,
        col_lngs=col_lngs,
        inside_mask=inside_mask,
        distances=distances,
    )


def get_cell_for_position(grid: Grid, lat: float, lng: float) -> Optional[GridCell]:
    """
    Find the grid cell nearest to a position.

    Scans every cell for the minimum planar squared distance (meters,
    equirectangular). A position whose nearest cell is farther than one
    cell half-diagonal lies outside the grid extent: that is "indeterminate",
    not "outside the radius".

    Args:
        grid: Grid from generate_grid()
        lat: Latitude to look up
        lng: Longitude to look up

    Returns:
        Nearest GridCell, or None if the position is beyond the grid
    """
    if grid.size == 0:
        return None

    dy = (grid.row_lats - lat) * METERS_PER_DEGREE_LAT
    dx = (grid.col_lngs - lng) * _meters_per_degree_lng(grid.center_lat)
    dist_sq = dy[:, np.newaxis] ** 2 + dx[np.newaxis, :] ** 2

    flat_index = int(np.argmin(dist_sq))
    row, col = np.unravel_index(flat_index, dist_sq.shape)

    half_diagonal_sq = 0.5 * grid.cell_size_meters ** 2
    if dist_sq[row, col] > half_diagonal_sq + 1e-9:
        return None

    return grid.cell(row, col)


def is_inside_radius(cell: GridCell) -> bool:
    """Return the cell's precomputed inside flag."""
    return cell.is_inside
