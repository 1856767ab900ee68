"""
Place Grid Registry - Thread-safe active place management.

Holds, for every active (enabled) place, its containment grid and its
tracking state. Places are synced from the repository; a grid is only
regenerated when the place's center or radius actually changed.

Thread Safety:
- Uses threading.Lock for protecting the place dict
- Snapshot pattern for evaluate() to minimize lock holding time
- Grids are immutable (frozen dataclass, read-only arrays)
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from silentzone_zone.analytics.tracker import Containment, PlaceTrackingState
from silentzone_zone.geometry.grid import (
    DEFAULT_CELL_SIZE_METERS,
    Grid,
    generate_grid,
    get_cell_for_position,
    is_inside_radius,
)
from silentzone_zone.geometry.spherical import haversine_distance

from .models import Place


logger = logging.getLogger(__name__)


@dataclass
class ManagedPlace:
    """
    Place geometry plus its tracking state.

    Design:
    - grid is replaced (never mutated) when the place moves or resizes
    - state survives grid regeneration
    """

    place: Place
    grid: Grid
    state: PlaceTrackingState

    @property
    def place_id(self) -> str:
        return self.place.id

    def containment(self, lat: float, lng: float, absolute: bool = False) -> Containment:
        """
        Test a position against this place's grid.

        Args:
            lat: Position latitude
            lng: Position longitude
            absolute: True for a fresh anchor fix. A fix beyond the grid
                extent is then determinately OUTSIDE; a dead-reckoned
                position beyond it is INDETERMINATE.
        """
        cell = get_cell_for_position(self.grid, lat, lng)
        if cell is None:
            return Containment.OUTSIDE if absolute else Containment.INDETERMINATE
        return Containment.INSIDE if is_inside_radius(cell) else Containment.OUTSIDE


class PlaceGridRegistry:
    """
    Thread-safe registry of active places.

    Usage:
        registry = PlaceGridRegistry(cell_size_meters=5.0)
        registry.sync(repository.get_places())

        results = registry.evaluate(lat, lng)
        # {"home": Containment.INSIDE, "mosque": Containment.INDETERMINATE}
    """

    def __init__(self, cell_size_meters: float = DEFAULT_CELL_SIZE_METERS):
        if cell_size_meters <= 0:
            raise ValueError(f"cell_size_meters must be positive, got {cell_size_meters}")
        self.cell_size_meters = cell_size_meters
        self._managed: Dict[str, ManagedPlace] = {}
        self._lock = threading.Lock()
        self._grid_builds = 0

    def upsert_place(self, place: Place) -> ManagedPlace:
        """
        Add a place or refresh an existing one.

        Regenerates the grid only when center or radius changed; the
        tracking state is kept either way.
        """
        with self._lock:
            managed = self._managed.get(place.id)
            if managed is not None and managed.grid.matches(place.lat, place.lng, place.radius_meters):
                managed.place = place
                return managed

        grid = generate_grid(place.lat, place.lng, place.radius_meters, self.cell_size_meters)

        with self._lock:
            self._grid_builds += 1
            managed = self._managed.get(place.id)
            if managed is None:
                managed = ManagedPlace(place=place, grid=grid, state=PlaceTrackingState(place.id))
                self._managed[place.id] = managed
                logger.debug(f"Grid built for {place.id}: {grid!r}")
            else:
                managed.place = place
                managed.grid = grid
                logger.debug(f"Grid regenerated for {place.id}: {grid!r}")
            return managed

    def remove_place(self, place_id: str) -> Optional[ManagedPlace]:
        """Remove a place; returns what was removed (None if unknown)."""
        with self._lock:
            return self._managed.pop(place_id, None)

    def sync(self, places: Iterable[Place]) -> List[str]:
        """
        Make the registry match the enabled subset of places.

        Returns:
            Ids of places that were removed (disabled or deleted)
        """
        enabled = {p.id: p for p in places if p.enabled}

        with self._lock:
            stale = [place_id for place_id in self._managed if place_id not in enabled]
            for place_id in stale:
                del self._managed[place_id]

        for place in enabled.values():
            self.upsert_place(place)
        return stale

    def get(self, place_id: str) -> Optional[ManagedPlace]:
        with self._lock:
            return self._managed.get(place_id)

    def snapshot(self) -> List[ManagedPlace]:
        """Current managed places (list copy)."""
        with self._lock:
            return list(self._managed.values())

    def evaluate(self, lat: float, lng: float, absolute: bool = False) -> Dict[str, Containment]:
        """Containment of one position for every active place."""
        return {
            managed.place_id: managed.containment(lat, lng, absolute=absolute)
            for managed in self.snapshot()
        }

    def nearest_distance(self, lat: float, lng: float) -> Optional[float]:
        """Meters from a position to the nearest place edge (0 when inside)."""
        distances = [
            max(0.0, haversine_distance(lat, lng, m.place.lat, m.place.lng) - m.place.radius_meters)
            for m in self.snapshot()
        ]
        return min(distances) if distances else None

    def list_places(self) -> Dict[str, dict]:
        with self._lock:
            return {
                place_id: {
                    "name": managed.place.name,
                    "radius_meters": managed.place.radius_meters,
                    "grid_size": managed.grid.size,
                    "state": managed.state.state.value,
                }
                for place_id, managed in self._managed.items()
            }

    @property
    def grid_builds(self) -> int:
        """Total number of grids generated (for diagnostics)."""
        return self._grid_builds

    def clear(self) -> None:
        with self._lock:
            self._managed.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._managed)
