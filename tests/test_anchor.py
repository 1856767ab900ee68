"""
Anchor manager tests: network fixes, home snapping, rejection, escalation.
"""

import asyncio

import pytest

from silentzone_tracker import AnchorManager, AnchorSource
from silentzone_tracker.anchor import HOME_ACCURACY_M

from conftest import HOME_LAT, HOME_LNG, FakeLocation, offset_north


def manager(location, clock, **kwargs):
    return AnchorManager(location=location, clock=clock, **kwargs)


def test_network_fix_far_from_places_is_kept(clock, home, make_fix):
    fix = make_fix(offset_north(HOME_LAT, 500), HOME_LNG, accuracy=35)
    anchor = asyncio.run(manager(FakeLocation(fix), clock).get_initial_anchor([home]))

    assert anchor.source == AnchorSource.NETWORK
    assert anchor.lat == fix.lat
    assert anchor.accuracy_meters == 35
    assert anchor.timestamp == fix.timestamp


def test_fix_near_place_snaps_to_center(clock, home, mosque, make_fix):
    fix = make_fix(offset_north(HOME_LAT, 60), HOME_LNG, accuracy=45)
    anchor = asyncio.run(manager(FakeLocation(fix), clock).get_initial_anchor([mosque, home]))

    assert anchor.source == AnchorSource.HOME
    assert (anchor.lat, anchor.lng) == (home.lat, home.lng)
    assert anchor.accuracy_meters == HOME_ACCURACY_M


def test_snap_distance_boundary(clock, home, make_fix):
    fix = make_fix(offset_north(HOME_LAT, 150), HOME_LNG)
    location = FakeLocation(fix)

    assert asyncio.run(manager(location, clock).get_initial_anchor([home])).source == AnchorSource.NETWORK
    snapped = asyncio.run(
        manager(location, clock, home_snap_distance_m=200).get_initial_anchor([home])
    )
    assert snapped.source == AnchorSource.HOME


def test_no_places_means_no_snap(clock, make_fix):
    fix = make_fix(HOME_LAT, HOME_LNG)
    anchor = asyncio.run(manager(FakeLocation(fix), clock).get_initial_anchor([]))
    assert anchor.source == AnchorSource.NETWORK


def test_acquire_then_snap_against_later_places(clock, home, mosque, make_fix):
    fix = make_fix(offset_north(HOME_LAT, 60), HOME_LNG)
    anchors = manager(FakeLocation(fix), clock)

    raw = asyncio.run(anchors.acquire_anchor())
    assert raw.source == AnchorSource.NETWORK
    assert raw.lat == fix.lat

    assert anchors.snap_to_place(raw, [mosque]) is raw
    assert anchors.snap_to_place(raw, [mosque, home]).source == AnchorSource.HOME


def test_provider_error_yields_none(clock, home):
    location = FakeLocation(error=RuntimeError("location services disabled"))
    assert asyncio.run(manager(location, clock).get_initial_anchor([home])) is None
    assert location.calls == [False]


def test_stale_fix_is_rejected(clock, home, make_fix):
    fix = make_fix(HOME_LAT, HOME_LNG, age_ms=181_000)
    assert asyncio.run(manager(FakeLocation(fix), clock).get_initial_anchor([home])) is None


def test_inaccurate_fix_is_rejected(clock, home, make_fix):
    fix = make_fix(HOME_LAT, HOME_LNG, accuracy=2500)
    assert asyncio.run(manager(FakeLocation(fix), clock).get_initial_anchor([home])) is None


def test_timeout_yields_none(clock, home, make_fix):
    location = FakeLocation(make_fix(HOME_LAT, HOME_LNG))

    async def run():
        location.block = asyncio.Event()
        return await manager(location, clock, timeout_s=0.01).get_initial_anchor([home])

    assert asyncio.run(run()) is None


def test_gps_escalation_is_opt_in(clock, home, make_fix):
    location = FakeLocation(error=RuntimeError("no network fix"))
    location.gps_fix = make_fix(offset_north(HOME_LAT, 1000), HOME_LNG, accuracy=8)

    assert asyncio.run(manager(location, clock).get_initial_anchor([home])) is None
    assert location.calls == [False]

    location.calls.clear()
    anchor = asyncio.run(manager(location, clock, escalate_to_gps=True).get_initial_anchor([home]))
    assert location.calls == [False, True]
    assert anchor.source == AnchorSource.GPS
    assert anchor.accuracy_meters == 8


def test_request_network_anchor_raises_when_unavailable(clock):
    from silentzone_tracker import PositionUnavailable

    location = FakeLocation(error=OSError("boom"))
    with pytest.raises(PositionUnavailable):
        asyncio.run(manager(location, clock).request_network_anchor())


def test_re_anchor_threshold(clock):
    anchors = manager(FakeLocation(), clock)
    assert not anchors.should_re_anchor(0)
    assert not anchors.should_re_anchor(299.9)
    assert anchors.should_re_anchor(300)
    assert anchors.should_re_anchor(1000)
