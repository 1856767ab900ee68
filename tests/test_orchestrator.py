"""
TrackingOrchestrator tests.

Ticks are stepped by hand (enable_tracking(start_loop=False)) except in
the cancellation tests, which need the background loop running.

Geometry used below (home radius 50 m, 5 m cells): the home grid reaches
55 m south of the center, so 70 steps south (53.2 m) lands in the buffer
ring (OUTSIDE) while 200 steps (152 m) leaves the grid (INDETERMINATE),
which forces an absolute re-anchor while the person is still inside.
"""

import asyncio
import logging
from typing import Optional

import pytest

from silentzone_notify import NotificationEventType
from silentzone_tracker import AnchorSource, Place, TrackerConfig
from silentzone_tracker.config import AnchorConfig
from silentzone_zone.analytics.tracker import GeofenceState

from conftest import HOME_LAT, HOME_LNG, FakeRinger, RecordingChannel, offset_north


SOUTH = 180.0


async def start_at_home(h):
    """Enable tracking, anchor at home and take the step baseline."""
    h.fix_at(HOME_LAT, HOME_LNG)
    await h.orchestrator.enable_tracking(start_loop=False)
    assert await h.orchestrator.tick()


def test_home_anchor_enters_and_silences(harness, home, mosque):
    h = harness([home, mosque])

    async def run():
        await start_at_home(h)

    asyncio.run(run())

    orch = h.orchestrator
    assert orch.anchor.source == AnchorSource.HOME
    assert orch.registry.get("home").state.state == GeofenceState.INSIDE
    assert orch.registry.get("mosque").state.state == GeofenceState.OUTSIDE
    assert h.ringer.calls == ["silence"]
    assert orch.silencing_place_id == "home"
    assert h.channel.titles == ["Entered Silent Zone"]
    assert [r.place_id for r in h.repository.get_active_check_ins()] == ["home"]


def test_walking_out_exits_and_restores(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.clock.advance(60_000)
        h.walk(70, SOUTH)
        await h.orchestrator.tick()

    asyncio.run(run())

    assert h.orchestrator.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert h.channel.titles == ["Entered Silent Zone", "Exited Silent Zone", "Sound Restored"]
    assert h.ringer.calls == ["silence", "restore"]
    assert h.orchestrator.silencing_place_id is None

    [visit] = h.repository.get_check_in_history("home")
    assert visit.reason == "exited"
    assert visit.duration_ms == 60_000
    assert h.repository.get_active_check_ins() == []


def test_leaving_the_grid_while_inside_re_anchors_and_exits(harness, home):
    h = harness([home])
    fix_lat = offset_north(HOME_LAT, -152)

    async def run():
        await start_at_home(h)
        h.fix_at(fix_lat, HOME_LNG)
        h.walk(200, SOUTH)
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert h.location.calls == [False, False]
    assert orch.anchor.source == AnchorSource.NETWORK
    assert orch.anchor.lat == fix_lat
    assert orch.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert h.channel.titles == ["Entered Silent Zone", "Exited Silent Zone", "Sound Restored"]
    assert h.ringer.calls == ["silence", "restore"]


def test_leaving_the_grid_when_re_anchor_fails_stays_inside(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.location.error = RuntimeError("no fix")
        h.walk(200, SOUTH)
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert orch.registry.get("home").state.is_inside
    assert h.channel.titles == ["Entered Silent Zone"]
    assert h.ringer.calls == ["silence"]
    assert orch.cumulative_distance == pytest.approx(152.0)
    assert orch.status()["anchor"]["source"] == "HOME"


def test_walking_off_the_grid_near_home_is_not_snapped_back(harness, home):
    h = harness([home])
    fix_lat = offset_north(HOME_LAT, 76)

    async def run():
        await start_at_home(h)
        h.fix_at(fix_lat, HOME_LNG)
        for _ in range(4):  # 60.8 m north, past the 50 m edge node
            h.walk(20, 0.0)
            await h.orchestrator.tick()
        for _ in range(10):
            h.clock.advance(15_000)
            await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert h.location.calls == [False, False]
    assert orch.anchor.source == AnchorSource.NETWORK
    assert orch.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert h.ringer.calls == ["silence", "restore"]
    assert orch.silencing_place_id is None
    assert h.repository.get_active_check_ins() == []


def test_no_heading_means_no_displacement(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.sensors.fail = True
        await h.orchestrator.tick()

    asyncio.run(run())

    estimate = h.orchestrator.estimate
    assert (estimate.lat, estimate.lng) == (HOME_LAT, HOME_LNG)
    assert h.orchestrator.registry.get("home").state.is_inside


def test_drift_budget_forces_re_anchor(harness, home):
    h = harness([home])
    far_lat = offset_north(HOME_LAT, -1000)

    async def run():
        await start_at_home(h)
        h.fix_at(far_lat, HOME_LNG)
        h.walk(400, SOUTH)  # 304 m
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert h.location.calls == [False, False]
    assert orch.anchor.source == AnchorSource.NETWORK
    assert orch.anchor.lat == far_lat
    assert orch.cumulative_distance == 0.0
    # absolute fix beyond the grid is a determinate exit
    assert orch.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert h.channel.titles[-2:] == ["Exited Silent Zone", "Sound Restored"]


def test_vehicle_motion_only_grows_drift(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.sensors.magnitude = 11.0  # car
        h.clock.advance(10_000)
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert (orch.estimate.lat, orch.estimate.lng) == (HOME_LAT, HOME_LNG)
    assert orch.cumulative_distance == pytest.approx(110.0)
    assert orch.registry.get("home").state.cumulative_distance_since_anchor == pytest.approx(110.0)


def test_overlapping_places_hand_over_silencing(harness, home):
    garden = Place("garden", "Garden", offset_north(HOME_LAT, -30), HOME_LNG, 50)
    h = harness([home, garden])

    async def run():
        await start_at_home(h)
        h.walk(70, SOUTH)
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert orch.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert orch.registry.get("garden").state.is_inside
    assert orch.silencing_place_id == "garden"
    assert h.ringer.calls == ["silence"]
    assert "Sound Restored" not in h.channel.titles
    assert h.channel.titles.count("Entered Silent Zone") == 2


def test_moving_between_places_processes_exit_first(harness, home, mosque):
    h = harness([home, mosque])

    async def run():
        await start_at_home(h)
        grids_before = h.orchestrator.registry.grid_builds
        h.fix_at(mosque.lat, mosque.lng)
        await h.orchestrator.resync()
        return grids_before

    grids_before = asyncio.run(run())

    orch = h.orchestrator
    assert orch.registry.grid_builds == grids_before
    assert orch.anchor.lat == mosque.lat
    assert h.channel.titles == ["Entered Silent Zone", "Exited Silent Zone", "Entered Silent Zone"]
    assert h.ringer.calls == ["silence"]
    assert orch.silencing_place_id == "mosque"


def test_failed_anchor_waits_for_retry_interval(harness, home):
    config = TrackerConfig(service_id="test", anchor=AnchorConfig(retry_interval_s=60))
    h = harness([home], config)
    h.location.error = RuntimeError("no fix")

    async def run():
        await h.orchestrator.enable_tracking(start_loop=False)
        await h.orchestrator.tick()
        await h.orchestrator.tick()
        assert h.location.calls == [False]

        h.clock.advance(60_000)
        h.location.error = None
        h.fix_at(HOME_LAT, HOME_LNG)
        await h.orchestrator.tick()

    asyncio.run(run())

    assert h.location.calls == [False, False]
    assert h.orchestrator.anchor is not None


def test_anchor_backoff_skip_is_logged(harness, home, caplog):
    config = TrackerConfig(service_id="test", anchor=AnchorConfig(retry_interval_s=60))
    h = harness([home], config)
    h.location.error = RuntimeError("no fix")
    caplog.set_level(logging.DEBUG, logger="silentzone_tracker.service")

    async def run():
        await h.orchestrator.enable_tracking(start_loop=False)
        await h.orchestrator.tick()
        h.clock.advance(20_000)
        await h.orchestrator.tick()

    asyncio.run(run())

    assert h.location.calls == [False]
    assert any("retry backoff for another 40s" in r.getMessage() for r in caplog.records)


def test_tick_is_single_flight(harness, home):
    h = harness([home])

    async def run():
        h.fix_at(HOME_LAT, HOME_LNG)
        h.location.block = asyncio.Event()
        await h.orchestrator.enable_tracking(start_loop=False)

        first = asyncio.ensure_future(h.orchestrator.tick())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        second = await h.orchestrator.tick()

        h.location.block.set()
        return second, await first

    second, first = asyncio.run(run())
    assert second is False
    assert first is True
    assert h.location.calls == [False]


def test_tick_skipped_without_active_places(harness, home):
    h = harness([home.with_enabled(False)])

    async def run():
        await h.orchestrator.enable_tracking(start_loop=False)
        return await h.orchestrator.tick()

    assert asyncio.run(run()) is False
    assert h.location.calls == []


def test_purge_cancels_in_flight_anchor(harness, home):
    h = harness([home])

    async def run():
        h.fix_at(HOME_LAT, HOME_LNG)
        h.location.block = asyncio.Event()
        await h.orchestrator.enable_tracking()
        while not h.location.calls:
            await asyncio.sleep(0)

        await h.orchestrator.purge_all()

    asyncio.run(run())

    orch = h.orchestrator
    assert h.location.cancelled
    assert not orch.is_enabled
    assert orch.anchor is None
    assert orch.registry.count() == 0
    assert h.channel.shown == []
    assert h.ringer.calls == []


def test_purge_while_inside_closes_visits_silently(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.clock.advance(5_000)
        await h.orchestrator.purge_all(reason="permission_revoked")

    asyncio.run(run())

    [visit] = h.repository.get_check_in_history("home")
    assert visit.reason == "permission_revoked"
    assert visit.duration_ms == 5_000
    assert h.ringer.calls == ["silence", "restore"]
    assert h.channel.titles == ["Entered Silent Zone"]
    assert len(h.bus) == 0
    assert all(s["end_reason"] == "permission_revoked" for s in h.repository.get_trail_sessions().values())


def test_disable_tracking_stops_loop(harness, home):
    h = harness([home])

    async def run():
        h.fix_at(HOME_LAT, HOME_LNG)
        await h.orchestrator.enable_tracking()
        while h.orchestrator.anchor is None:
            await asyncio.sleep(0)
        await h.orchestrator.disable_tracking()
        assert await h.orchestrator.tick() is False

    asyncio.run(run())

    assert not h.orchestrator.is_enabled
    assert h.ringer.calls == ["silence", "restore"]
    assert h.repository.get_active_check_ins() == []


def test_disabling_place_while_inside_restores_ringer(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        return await h.orchestrator.set_place_enabled("home", False)

    assert asyncio.run(run()) is True
    assert h.orchestrator.registry.get("home") is None
    assert h.ringer.calls == ["silence", "restore"]
    assert h.channel.titles[-1] == "Sound Restored"
    assert h.repository.get_check_in_history("home")[0].reason == "place_disabled"


def test_enable_unknown_place(harness, home):
    h = harness([home])
    assert asyncio.run(h.orchestrator.set_place_enabled("nowhere", True)) is False


def test_delete_place(harness, home, mosque):
    h = harness([home, mosque])

    async def run():
        await start_at_home(h)
        return await h.orchestrator.delete_place("mosque")

    assert asyncio.run(run()) is True
    assert h.repository.get_place("mosque") is None
    assert h.orchestrator.registry.get("mosque") is None
    assert h.ringer.calls == ["silence"]


class SlowRinger(FakeRinger):
    """Ringer whose silence() waits until the test releases it."""

    def __init__(self):
        super().__init__()
        self.release: Optional[asyncio.Event] = None

    async def silence(self):
        self.calls.append("silence")
        await self.release.wait()


def test_delete_during_slow_silence_restores_ringer(harness, home):
    h = harness([home])
    ringer = SlowRinger()
    h.orchestrator.ringer = ringer

    async def run():
        ringer.release = asyncio.Event()
        h.fix_at(HOME_LAT, HOME_LNG)
        await h.orchestrator.enable_tracking(start_loop=False)

        ticking = asyncio.ensure_future(h.orchestrator.tick())
        while not ringer.calls:
            await asyncio.sleep(0)

        deleting = asyncio.ensure_future(h.orchestrator.delete_place("home"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert not deleting.done()

        ringer.release.set()
        await ticking
        return await deleting

    assert asyncio.run(run()) is True

    orch = h.orchestrator
    assert ringer.calls == ["silence", "restore"]
    assert orch.silencing_place_id is None
    assert orch.registry.get("home") is None
    assert h.channel.titles == ["Entered Silent Zone", "Sound Restored"]
    assert h.repository.get_active_check_ins() == []


class ExitFailingChannel(RecordingChannel):
    def show_notification(self, title, body, notification_id, silent=False, grouped=True):
        if title == "Exited Silent Zone":
            raise ConnectionError("notification service gone")
        super().show_notification(title, body, notification_id, silent=silent, grouped=grouped)


def test_channel_error_on_exit_still_restores_ringer(harness, home):
    h = harness([home])
    channel = ExitFailingChannel()
    h.bus.channel = channel

    async def run():
        await start_at_home(h)
        h.walk(70, SOUTH)
        await h.orchestrator.tick()

    asyncio.run(run())

    assert h.orchestrator.registry.get("home").state.state == GeofenceState.OUTSIDE
    assert h.ringer.calls == ["silence", "restore"]
    assert h.orchestrator.silencing_place_id is None
    assert channel.titles == ["Entered Silent Zone", "Sound Restored"]
    assert h.repository.get_check_in_history("home")[0].reason == "exited"


def test_anchor_snaps_only_to_places_tracked_when_fix_arrives(harness, home):
    h = harness([home])

    async def run():
        h.fix_at(offset_north(HOME_LAT, 60), HOME_LNG)
        h.location.block = asyncio.Event()
        await h.orchestrator.enable_tracking(start_loop=False)

        ticking = asyncio.ensure_future(h.orchestrator.tick())
        while not h.location.calls:
            await asyncio.sleep(0)

        h.orchestrator.registry.remove_place("home")
        h.location.block.set()
        await ticking

    asyncio.run(run())

    orch = h.orchestrator
    assert orch.anchor.source == AnchorSource.NETWORK
    assert orch.anchor.lat == offset_north(HOME_LAT, 60)
    assert h.ringer.calls == []
    assert h.channel.shown == []


def test_schedule_events(harness, home):
    h = harness([home])
    orch = h.orchestrator

    assert orch.handle_schedule_event(NotificationEventType.SCHEDULE_START, "home") is True
    assert orch.handle_schedule_event("SCHEDULE_START", "home") is False
    assert orch.handle_schedule_event("SCHEDULE_APPROACHING", "home", source="timer") is True
    assert orch.handle_schedule_event("SCHEDULE_END", "nowhere") is False
    with pytest.raises(ValueError):
        orch.handle_schedule_event(NotificationEventType.PLACE_ENTERED, "home")

    assert h.channel.titles == ["Silent Zone Active", "Upcoming Schedule"]
    assert h.ringer.calls == []


def test_next_interval_by_distance(harness, home):
    h = harness([home])
    orch = h.orchestrator
    assert orch.next_interval() == 15

    async def run():
        h.fix_at(offset_north(HOME_LAT, 5000), HOME_LNG)
        await orch.enable_tracking(start_loop=False)
        await orch.tick()

    asyncio.run(run())
    assert orch.next_interval() == 300


def test_status_snapshot(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)

    asyncio.run(run())
    status = h.orchestrator.status()

    assert status["tracking_enabled"] is True
    assert status["anchor"]["source"] == "HOME"
    assert status["places"]["home"]["state"] == "inside"
    assert status["silencing_place_id"] == "home"
    assert status["notifications"]["dispatched"] == 1


def test_few_steps_from_home_stays_inside(harness, home):
    h = harness([home])

    async def run():
        await start_at_home(h)
        h.walk(10, 90.0)  # 7.6 m east
        await h.orchestrator.tick()

    asyncio.run(run())

    orch = h.orchestrator
    assert orch.estimate.lng > HOME_LNG
    assert orch.registry.get("home").state.is_inside
    assert h.channel.titles == ["Entered Silent Zone"]
    assert orch.cumulative_distance == pytest.approx(7.6)
