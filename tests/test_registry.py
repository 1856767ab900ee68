"""
Place grid registry tests.
"""

import pytest

from silentzone_tracker import Place, PlaceGridRegistry
from silentzone_zone.analytics.tracker import Containment, GeofenceState

from conftest import HOME_LAT, HOME_LNG, offset_north


def test_sync_builds_grids_for_enabled_places(home, mosque):
    registry = PlaceGridRegistry()
    office = Place("office", "Office", 30.0626, 31.2497, 80, enabled=False)

    removed = registry.sync([home, mosque, office])

    assert removed == []
    assert registry.count() == 2
    assert registry.grid_builds == 2
    assert registry.get("office") is None


def test_unchanged_place_keeps_grid_and_state(home):
    registry = PlaceGridRegistry()
    managed = registry.upsert_place(home)
    grid = managed.grid
    managed.state.apply(Containment.INSIDE, 1000)

    renamed = Place(home.id, "Casa", home.lat, home.lng, home.radius_meters)
    again = registry.upsert_place(renamed)

    assert again.grid is grid
    assert again.place.name == "Casa"
    assert again.state.state == GeofenceState.INSIDE
    assert registry.grid_builds == 1


def test_resized_place_regenerates_grid_keeps_state(home):
    registry = PlaceGridRegistry()
    managed = registry.upsert_place(home)
    managed.state.apply(Containment.INSIDE, 1000)

    bigger = Place(home.id, home.name, home.lat, home.lng, 120)
    again = registry.upsert_place(bigger)

    assert again.grid.radius_meters == 120
    assert again.state.is_inside
    assert registry.grid_builds == 2


def test_sync_removes_disabled_and_deleted(home, mosque):
    registry = PlaceGridRegistry()
    registry.sync([home, mosque])

    removed = registry.sync([home.with_enabled(False)])

    assert sorted(removed) == ["home", "mosque"]
    assert registry.count() == 0


def test_evaluate_dead_reckoned_vs_absolute(home, mosque):
    registry = PlaceGridRegistry()
    registry.sync([home, mosque])

    at_home = registry.evaluate(HOME_LAT, HOME_LNG)
    assert at_home == {"home": Containment.INSIDE, "mosque": Containment.INDETERMINATE}

    absolute = registry.evaluate(HOME_LAT, HOME_LNG, absolute=True)
    assert absolute == {"home": Containment.INSIDE, "mosque": Containment.OUTSIDE}

    ring = registry.evaluate(offset_north(HOME_LAT, -54), HOME_LNG)
    assert ring["home"] == Containment.OUTSIDE


def test_nearest_distance_to_edge(home):
    registry = PlaceGridRegistry()
    assert registry.nearest_distance(HOME_LAT, HOME_LNG) is None

    registry.upsert_place(home)
    assert registry.nearest_distance(HOME_LAT, HOME_LNG) == 0.0
    assert registry.nearest_distance(offset_north(HOME_LAT, 250), HOME_LNG) == pytest.approx(200, abs=1)


def test_list_places_and_clear(home):
    registry = PlaceGridRegistry()
    registry.upsert_place(home)
    listing = registry.list_places()
    assert listing["home"]["grid_size"] == 22
    assert listing["home"]["state"] == "unknown"

    registry.clear()
    assert registry.count() == 0


def test_invalid_cell_size():
    with pytest.raises(ValueError):
        PlaceGridRegistry(cell_size_meters=0)
