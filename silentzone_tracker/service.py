"""
Tracking Orchestrator - Low-power geofence tracking loop.

This module provides the TrackingOrchestrator which decides, tick by
tick, whether the device is inside any active place: it anchors on a
coarse network fix, dead-reckons from pedometer steps and compass
heading, tests the estimate against each place's grid, and turns state
changes into check-ins, ringer changes and notifications.

Architecture:
- One asyncio task runs the tick loop (adaptive interval)
- tick() is single-flight: a concurrent call returns immediately
- Anchor requests run as their own task so purge_all can cancel them
- Control Plane handlers (paho thread) submit coroutines to the loop

Tick:
    1. No anchor (or forced re-anchor) -> anchor cycle, evaluated absolutely
    2. Motion + heading -> projected estimate, travelled distance
    3. Grid lookup per active place -> INSIDE / OUTSIDE / INDETERMINATE
    4. Transitions -> check-in/out, ringer, trail, notifications
    5. Drift budget exhausted -> re-anchor

Threading Model:
- Event loop: tick loop, lifecycle hooks, all state mutation
- paho-mqtt thread: command decoding only (run_coroutine_threadsafe)
"""

import asyncio
import contextlib
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

from silentzone_notify import (
    LogEvent,
    NotificationEvent,
    NotificationEventBus,
    NotificationEventType,
    NotificationSource,
    StructuredLogger,
    create_logger,
    epoch_ms,
)
from silentzone_zone.analytics.motion import (
    MotionState,
    SensorProvider,
    detect_current_motion,
    get_estimated_speed,
    get_stride_length,
)
from silentzone_zone.analytics.tracker import Containment, Transition, TransitionKind
from silentzone_zone.analytics.trail import TrailPoint, TrailRecorder
from silentzone_zone.geometry.spherical import Coordinate, calculate_new_position, smooth_heading

from .anchor import AnchorManager
from .config import TrackerConfig
from .models import AnchorPosition, Place
from .providers import LocationProvider, PlaceRepository, RingerController
from .registry import ManagedPlace, PlaceGridRegistry

logger = logging.getLogger(__name__)

SCHEDULE_EVENT_TYPES = {
    NotificationEventType.SCHEDULE_START,
    NotificationEventType.SCHEDULE_END,
    NotificationEventType.SCHEDULE_APPROACHING,
}


class TrackingOrchestrator:
    """
    Main tracking service.

    Thread Safety:
    - Not thread-safe: every method runs on the event loop. Commands from
      the MQTT thread go through setup_control_handlers().
    - registry: Protected by internal lock (snapshots)

    Usage:
        orchestrator = TrackingOrchestrator(
            repository=repository,
            sensors=sensors,
            location=location,
            bus=NotificationEventBus(channel=publisher),
            ringer=ringer,
            config=TrackerConfig.from_yaml("config/tracker_config.yaml"),
        )
        await orchestrator.enable_tracking()
        ...
        await orchestrator.disable_tracking()
    """

    def __init__(
        self,
        repository: PlaceRepository,
        sensors: SensorProvider,
        location: LocationProvider,
        bus: NotificationEventBus,
        ringer: Optional[RingerController] = None,
        config: Optional[TrackerConfig] = None,
        anchor_manager: Optional[AnchorManager] = None,
        events_logger: Optional[StructuredLogger] = None,
        clock=epoch_ms,
    ):
        """
        Initialize tracking orchestrator.

        Args:
            repository: Place storage and visit history
            sensors: Pedometer / accelerometer / compass bridge
            location: Position fix provider
            bus: Notification bus
            ringer: Ringer controller (optional)
            config: Tracker configuration (defaults when omitted)
            anchor_manager: Custom anchor manager (built from config when omitted)
            events_logger: Structured logger for zone transitions
            clock: Epoch milliseconds clock
        """
        self.config = config or TrackerConfig(service_id="silentzone")
        self.repository = repository
        self.sensors = sensors
        self.bus = bus
        self.ringer = ringer
        self._clock = clock

        anchor_cfg = self.config.anchor
        self.anchor_manager = anchor_manager or AnchorManager(
            location=location,
            timeout_s=anchor_cfg.timeout_s,
            maximum_age_s=anchor_cfg.maximum_age_s,
            home_snap_distance_m=anchor_cfg.home_snap_distance_m,
            re_anchor_distance_m=anchor_cfg.re_anchor_distance_m,
            max_fix_age_s=anchor_cfg.max_fix_age_s,
            max_acceptable_accuracy_m=anchor_cfg.max_acceptable_accuracy_m,
            escalate_to_gps=anchor_cfg.escalate_to_gps,
            clock=clock,
        )
        self.events_logger = events_logger or create_logger("tracker")

        self.registry = PlaceGridRegistry(cell_size_meters=self.config.grid.cell_size_meters)
        self.trail = TrailRecorder(sink=repository)

        # Position state (one anchor per session)
        self.anchor: Optional[AnchorPosition] = None
        self.estimate: Optional[Coordinate] = None
        self.cumulative_distance = 0.0
        self._last_step_count: Optional[int] = None
        self._headings: Deque[float] = deque(maxlen=self.config.motion.heading_window)
        self._last_motion: Optional[MotionState] = None
        self._last_tick_at: Optional[int] = None
        self._force_re_anchor = False
        self._anchor_retry_at: Optional[int] = None
        self._snap_next_anchor = True
        self._silencing_place_id: Optional[str] = None

        # Lifecycle state
        self._enabled = False
        self._tick_in_progress = False
        self._tick_count = 0
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._anchor_task: Optional[asyncio.Task] = None
        # Created on first use so it binds to the running loop
        self._state_lock: Optional[asyncio.Lock] = None

        logger.info(f"TrackingOrchestrator initialized for service_id={self.config.service_id}")

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def silencing_place_id(self) -> Optional[str]:
        return self._silencing_place_id

    # ─────────────────────────────────────────────────────────────────────
    # Tick
    # ─────────────────────────────────────────────────────────────────────

    async def tick(self) -> bool:
        """
        Run one tracking step.

        Returns:
            False when skipped (already running, disabled or no active place)
        """
        if self._tick_in_progress:
            logger.debug("Tick already in progress, skipping")
            return False
        if not self._enabled or self.registry.count() == 0:
            return False

        self._tick_in_progress = True
        self._tick_task = asyncio.current_task()
        try:
            async with self._lock():
                if not self._enabled or self.registry.count() == 0:
                    return False
                await self._tick(self._clock())
                self._tick_count += 1
        finally:
            self._tick_in_progress = False
            self._tick_task = None
        return True

    def _lock(self) -> asyncio.Lock:
        """Serializes ticks with the lifecycle hooks that mutate place state."""
        if self._state_lock is None:
            self._state_lock = asyncio.Lock()
        return self._state_lock

    async def _tick(self, now: int) -> None:
        if self.anchor is None or self._force_re_anchor:
            if not await self._anchor_cycle(now):
                if self.anchor is None:
                    return

        if self._last_step_count is None:
            await self._establish_step_baseline()
            self._last_tick_at = now
            return

        reading = await detect_current_motion(
            self.sensors,
            self._last_step_count,
            timeout_s=self.config.motion.sensor_timeout_s,
        )
        self._last_motion = reading.state
        heading = await self._sample_heading()

        stride = get_stride_length(reading.state)
        walked = reading.step_delta * stride
        if walked > 0 and heading is not None:
            self.estimate = calculate_new_position(
                self.estimate, reading.step_delta, heading, stride
            )

        elapsed_s = 0.0 if self._last_tick_at is None else max(0.0, (now - self._last_tick_at) / 1000.0)
        travelled = walked + get_estimated_speed(reading.state) * elapsed_s
        self.cumulative_distance += travelled
        self._last_step_count = reading.current_steps
        self._last_tick_at = now

        for managed in self.registry.snapshot():
            managed.state.record_movement(travelled, reading.current_steps)

        results = self.registry.evaluate(self.estimate.lat, self.estimate.lng)
        await self._apply_containment(results, now, NotificationSource.GEOFENCE)
        self._record_trail(reading.state, heading, reading.current_steps, now)

        unresolved = self._inside_but_indeterminate(results)
        if unresolved:
            # Raw fix, no snap: it alone decides containment
            logger.info(f"📍 Estimate left the grid of {', '.join(unresolved)} while inside, re-anchoring")
            self._force_re_anchor = True
            self._snap_next_anchor = False
            await self._anchor_cycle(now)
        elif self.anchor_manager.should_re_anchor(self.cumulative_distance):
            logger.info(f"📍 Drift budget reached ({self.cumulative_distance:.0f} m), re-anchoring")
            await self._anchor_cycle(now)

    def _inside_but_indeterminate(self, results: Dict[str, Containment]) -> List[str]:
        unresolved = []
        for place_id, containment in results.items():
            if containment != Containment.INDETERMINATE:
                continue
            managed = self.registry.get(place_id)
            if managed is not None and managed.state.is_inside:
                unresolved.append(place_id)
        return unresolved

    async def _anchor_cycle(self, now: int) -> bool:
        """
        Acquire a fresh anchor and evaluate it absolutely.

        Returns:
            True if a new anchor was installed
        """
        if self._anchor_retry_at is not None and now < self._anchor_retry_at:
            logger.debug(
                f"Anchor cycle skipped, retry backoff for another "
                f"{(self._anchor_retry_at - now) / 1000:.0f}s"
            )
            return False

        self._anchor_task = asyncio.ensure_future(self.anchor_manager.acquire_anchor())
        try:
            anchor = await self._anchor_task
        finally:
            self._anchor_task = None

        if anchor is None:
            self._anchor_retry_at = now + int(self.config.anchor.retry_interval_s * 1000)
            logger.warning("⚠️ Anchor cycle failed, keeping current estimate")
            return False

        if self._snap_next_anchor:
            # Places may have changed while the fix was pending
            places = [managed.place for managed in self.registry.snapshot()]
            anchor = self.anchor_manager.snap_to_place(anchor, places)

        self.anchor = anchor
        self.estimate = Coordinate(anchor.lat, anchor.lng)
        self.cumulative_distance = 0.0
        self._force_re_anchor = False
        self._snap_next_anchor = True
        self._anchor_retry_at = None
        for managed in self.registry.snapshot():
            managed.state.reset_drift()

        logger.info(
            f"📍 Anchored at ({anchor.lat:.6f}, {anchor.lng:.6f}) "
            f"source={anchor.source.value} accuracy={anchor.accuracy_meters:.0f}m"
        )
        results = self.registry.evaluate(anchor.lat, anchor.lng, absolute=True)
        await self._apply_containment(results, now, NotificationSource.GEOFENCE)
        return True

    async def _establish_step_baseline(self) -> None:
        try:
            data = await asyncio.wait_for(
                self.sensors.get_step_count(),
                timeout=self.config.motion.sensor_timeout_s,
            )
            self._last_step_count = int(data["steps"])
        except Exception as e:
            logger.warning(f"⚠️ Step baseline unavailable: {e!r}")

    async def _sample_heading(self) -> Optional[float]:
        """Add one compass sample to the window; smoothed heading or None."""
        try:
            data = await asyncio.wait_for(
                self.sensors.get_magnetic_heading(),
                timeout=self.config.motion.sensor_timeout_s,
            )
            self._headings.append(float(data["heading"]))
        except Exception as e:
            logger.debug(f"Heading read failed, reusing window: {e!r}")

        if not self._headings:
            return None
        return smooth_heading(list(self._headings))

    def _record_trail(
        self, state: MotionState, heading: Optional[float], steps: int, now: int
    ) -> None:
        point = TrailPoint(
            lat=self.estimate.lat,
            lng=self.estimate.lng,
            heading=heading if heading is not None else 0.0,
            is_stationary=state == MotionState.STATIONARY,
            step_count=steps,
            timestamp=now,
        )
        for managed in self.registry.snapshot():
            if managed.state.is_inside:
                self.trail.record_point(managed.place_id, point)

    # ─────────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────────

    async def _apply_containment(
        self,
        results: Dict[str, Containment],
        now: int,
        source: NotificationSource,
    ) -> List[Transition]:
        """Apply containment to every place, then handle exits before entries."""
        transitions = []
        for place_id, containment in results.items():
            managed = self.registry.get(place_id)
            if managed is None:
                continue
            transition = managed.state.apply(containment, now)
            if transition is not None:
                transitions.append((managed, transition))

        for managed, transition in transitions:
            if transition.kind == TransitionKind.EXITED:
                await self._on_exited(managed, transition, source)
        for managed, transition in transitions:
            if transition.kind == TransitionKind.ENTERED:
                await self._on_entered(managed, transition, source)

        return [t for _, t in transitions]

    async def _on_entered(
        self, managed: ManagedPlace, transition: Transition, source: NotificationSource
    ) -> None:
        place = managed.place
        self.repository.log_check_in(place.id, transition.at_ms)

        if self._silencing_place_id is None:
            await self._set_ringer(silent=True)
            self._silencing_place_id = place.id

        self.trail.start_session(place.id, self.estimate.lat, self.estimate.lng, transition.at_ms)

        self.events_logger.info(
            event=LogEvent.ZONE_ENTERED,
            message=f"Entered {place.name}",
            metadata={'place_id': place.id, 'anchor_source': self.anchor.source.value if self.anchor else None}
        )
        self._emit(NotificationEventType.PLACE_ENTERED, place, transition.at_ms, source)

    async def _on_exited(
        self, managed: ManagedPlace, transition: Transition, source: NotificationSource
    ) -> None:
        place = managed.place
        self.repository.log_check_out(place.id, transition.at_ms, reason="exited")
        self.trail.end_session(place.id, transition.at_ms, reason="exited")

        self.events_logger.info(
            event=LogEvent.ZONE_EXITED,
            message=f"Exited {place.name}",
            metadata={'place_id': place.id, 'duration_ms': transition.duration_ms}
        )
        self._emit(NotificationEventType.PLACE_EXITED, place, transition.at_ms, source)

        await self._release_silence(place, transition.at_ms, source)

    async def _release_silence(self, place: Place, now: int, source: NotificationSource) -> None:
        """Hand silencing to another inside place, or restore the ringer."""
        if self._silencing_place_id != place.id:
            return

        others = [
            m for m in self.registry.snapshot()
            if m.state.is_inside and m.place_id != place.id
        ]
        if others:
            self._silencing_place_id = others[0].place_id
            logger.info(f"🔕 Ringer stays silenced by {others[0].place_id}")
            return

        self._silencing_place_id = None
        await self._set_ringer(silent=False)
        self._emit(NotificationEventType.SOUND_RESTORED, place, now, source)

    async def _set_ringer(self, silent: bool) -> None:
        if self.ringer is None:
            return
        try:
            if silent:
                await self.ringer.silence()
            else:
                await self.ringer.restore()
        except Exception as e:
            logger.error(f"❌ Ringer {'silence' if silent else 'restore'} failed: {e}", exc_info=True)

    def _emit(
        self,
        event_type: NotificationEventType,
        place: Place,
        now: int,
        source: NotificationSource,
    ) -> bool:
        return self.bus.emit(NotificationEvent(
            type=event_type,
            place_id=place.id,
            place_name=place.name,
            timestamp=now,
            source=source,
        ))

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle hooks
    # ─────────────────────────────────────────────────────────────────────

    async def enable_tracking(self, start_loop: bool = True) -> None:
        """
        Load enabled places and start the tick loop.

        Args:
            start_loop: False leaves ticking to the caller (manual stepping)
        """
        if self._enabled:
            logger.warning("Tracking already enabled")
            return

        self.registry.sync(self.repository.get_places())
        self._enabled = True
        if start_loop:
            self._loop_task = asyncio.get_running_loop().create_task(self._run_loop())
        logger.info(f"✅ Tracking enabled ({self.registry.count()} active places)")

    async def disable_tracking(self) -> None:
        """Stop the loop, close open visits and restore the ringer."""
        if not self._enabled:
            logger.warning("Tracking not enabled")
            return
        await self._shutdown(reason="tracking_disabled")
        logger.info("✅ Tracking disabled")

    async def purge_all(self, reason: str = "permission_revoked") -> None:
        """
        Stop everything and drop all tracking state.

        Returns only after the loop and any in-flight anchor or sensor
        request have been cancelled. No notifications are raised.
        """
        await self._shutdown(reason=reason)
        self.bus.clear()
        logger.info(f"🧹 Tracking state purged (reason={reason})")

    async def _shutdown(self, reason: str) -> None:
        self._enabled = False
        await self._cancel_tasks()

        async with self._lock():
            now = self._clock()
            for record in self.repository.get_active_check_ins():
                self.repository.log_check_out(record.place_id, now, reason=reason)
            self.trail.end_all(now, reason=reason)

            if self._silencing_place_id is not None:
                self._silencing_place_id = None
                await self._set_ringer(silent=False)

            self.registry.clear()
            self._reset_position()

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = {self._loop_task, self._tick_task, self._anchor_task}
        tasks = [t for t in tasks if t is not None and t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._loop_task = None
        self._tick_task = None
        self._anchor_task = None
        self._tick_in_progress = False

    def _reset_position(self) -> None:
        self.anchor = None
        self.estimate = None
        self.cumulative_distance = 0.0
        self._last_step_count = None
        self._headings.clear()
        self._last_motion = None
        self._last_tick_at = None
        self._force_re_anchor = False
        self._anchor_retry_at = None
        self._snap_next_anchor = True

    async def set_place_enabled(self, place_id: str, enabled: bool) -> bool:
        """
        Enable or disable one place.

        Returns:
            False if the place does not exist
        """
        async with self._lock():
            place = self.repository.set_place_enabled(place_id, enabled)
            if place is None:
                logger.warning(f"⚠️ Unknown place: {place_id}")
                return False

            if enabled:
                if self._enabled:
                    self.registry.upsert_place(place)
            else:
                await self._deactivate_place(place_id, reason="place_disabled")
        logger.info(f"Place {'enabled' if enabled else 'disabled'}: {place_id}")
        return True

    async def delete_place(self, place_id: str) -> bool:
        """Stop tracking a place and delete it from the repository."""
        async with self._lock():
            await self._deactivate_place(place_id, reason="place_deleted")
            deleted = self.repository.delete_place(place_id)
        logger.info(f"Place deleted: {place_id}" if deleted else f"⚠️ Unknown place: {place_id}")
        return deleted

    async def _deactivate_place(self, place_id: str, reason: str) -> None:
        managed = self.registry.remove_place(place_id)
        if managed is None or not managed.state.is_inside:
            return

        now = self._clock()
        self.repository.log_check_out(place_id, now, reason=reason)
        self.trail.end_session(place_id, now, reason=reason)
        await self._release_silence(managed.place, now, NotificationSource.MANUAL)

    async def resync(self) -> None:
        """Reload places, rebuild changed grids and force a re-anchor."""
        async with self._lock():
            places = self.repository.get_places()
            enabled = {p.id: p for p in places if p.enabled}

            for managed in self.registry.snapshot():
                if managed.place_id not in enabled:
                    await self._deactivate_place(managed.place_id, reason="place_removed")

            if self._enabled:
                for place in enabled.values():
                    self.registry.upsert_place(place)

            self._force_re_anchor = True
            self._anchor_retry_at = None
        logger.info(f"🔄 Resynced {len(enabled)} enabled places, re-anchor scheduled")

        if self._enabled:
            await self.tick()

    def handle_schedule_event(
        self,
        event_type: Union[NotificationEventType, str],
        place_id: str,
        source: Union[NotificationSource, str] = NotificationSource.ALARM,
    ) -> bool:
        """
        Raise a schedule notification for a place.

        Returns:
            True if dispatched, False if de-duplicated or the place is unknown

        Raises:
            ValueError: If event_type is not a schedule event
        """
        event_type = NotificationEventType(event_type)
        if event_type not in SCHEDULE_EVENT_TYPES:
            raise ValueError(f"{event_type.value} is not a schedule event")

        place = self.repository.get_place(place_id)
        if place is None:
            logger.warning(f"⚠️ Schedule event for unknown place: {place_id}")
            return False

        return self._emit(event_type, place, self._clock(), NotificationSource(source))

    # ─────────────────────────────────────────────────────────────────────
    # Loop
    # ─────────────────────────────────────────────────────────────────────

    def next_interval(self) -> float:
        """Seconds until the next tick (adaptive by distance to nearest place)."""
        intervals = self.config.intervals
        if self.estimate is None:
            return intervals.very_close_s
        if any(m.state.is_inside for m in self.registry.snapshot()):
            return intervals.very_close_s
        return intervals.for_distance(self.registry.nearest_distance(self.estimate.lat, self.estimate.lng))

    async def _run_loop(self) -> None:
        logger.info("▶️ Tracking loop started")
        try:
            while self._enabled:
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"❌ Tick failed: {e}", exc_info=True)
                await asyncio.sleep(self.next_interval())
        except asyncio.CancelledError:
            logger.debug("Tracking loop cancelled")
            raise
        logger.info("⏹️ Tracking loop stopped")

    # ─────────────────────────────────────────────────────────────────────
    # Status
    # ─────────────────────────────────────────────────────────────────────

    def status(self) -> Dict[str, Any]:
        """Snapshot of the tracking state."""
        return {
            "service_id": self.config.service_id,
            "tracking_enabled": self._enabled,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "estimate": self.estimate.to_dict() if self.estimate else None,
            "cumulative_distance_m": round(self.cumulative_distance, 2),
            "motion": self._last_motion.value if self._last_motion else None,
            "silencing_place_id": self._silencing_place_id,
            "tick_count": self._tick_count,
            "next_interval_s": self.next_interval(),
            "places": {m.place_id: m.state.to_dict() for m in self.registry.snapshot()},
            "notifications": self.bus.get_stats(),
        }

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (called by Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def setup_control_handlers(self, control_plane, loop: asyncio.AbstractEventLoop) -> None:
        """
        Register tracking commands with the control plane.

        Handlers run in the paho-mqtt thread; each one submits a coroutine
        to the event loop and publishes the outcome as a status message
        once it completes.
        """
        registry = control_plane.command_registry

        def submit(coro, status: str, data: Optional[Dict[str, Any]] = None, result_key: Optional[str] = None):
            future = asyncio.run_coroutine_threadsafe(coro, loop)

            def done(f):
                if f.cancelled():
                    control_plane.publish_status("command_cancelled", {"status": status})
                    return
                error = f.exception()
                if error is not None:
                    logger.error(f"❌ Command '{status}' failed: {error}")
                    control_plane.publish_status("command_failed", {"status": status, "error": str(error)})
                    return
                payload = dict(data or {})
                if result_key is not None:
                    payload[result_key] = f.result()
                control_plane.publish_status(status, payload)

            future.add_done_callback(done)
            return future

        async def call(fn, *args):
            return fn(*args)

        registry.register(
            "enable_tracking",
            lambda command=None: submit(self.enable_tracking(), "tracking_enabled"),
            "Start tracking enabled places",
        )
        registry.register(
            "disable_tracking",
            lambda command=None: submit(self.disable_tracking(), "tracking_disabled"),
            "Stop tracking and restore the ringer",
        )
        registry.register(
            "enable_place",
            lambda command: submit(
                self.set_place_enabled(command["place_id"], True),
                "place_enabled", {"place_id": command["place_id"]}, result_key="found",
            ),
            "Enable one place",
            required_fields=("place_id",),
        )
        registry.register(
            "disable_place",
            lambda command: submit(
                self.set_place_enabled(command["place_id"], False),
                "place_disabled", {"place_id": command["place_id"]}, result_key="found",
            ),
            "Disable one place",
            required_fields=("place_id",),
        )
        registry.register(
            "delete_place",
            lambda command: submit(
                self.delete_place(command["place_id"]),
                "place_deleted", {"place_id": command["place_id"]}, result_key="found",
            ),
            "Delete one place",
            required_fields=("place_id",),
        )
        registry.register(
            "resync",
            lambda command=None: submit(self.resync(), "resynced"),
            "Reload places and force a re-anchor",
        )
        registry.register(
            "purge_all",
            lambda command=None: submit(
                self.purge_all((command or {}).get("reason", "permission_revoked")), "purged"
            ),
            "Cancel everything and drop all tracking state",
        )
        registry.register(
            "schedule_event",
            lambda command: submit(
                call(
                    self.handle_schedule_event,
                    command["event_type"],
                    command["place_id"],
                    command.get("source", NotificationSource.ALARM.value),
                ),
                "schedule_event",
                {"event_type": command["event_type"], "place_id": command["place_id"]},
                result_key="dispatched",
            ),
            "Raise a schedule notification",
            required_fields=("event_type", "place_id"),
        )
        registry.register(
            "status",
            lambda command=None: submit(call(self.status), "status", result_key="tracker"),
            "Publish the tracking state",
        )
        registry.register(
            "list_places",
            lambda command=None: submit(
                call(lambda: [p.to_dict() for p in self.repository.get_places()]),
                "places_list", result_key="places",
            ),
            "Publish all places",
        )

        logger.info("Control handlers registered")
