"""
Anchor Manager
==============

Bounded Context: Absolute position fixes

Obtains the trusted absolute positions that dead reckoning projects from.
Uses the coarse, low-power network fix by default; snaps onto a saved
place when the fix lands close to one, so a user at home starts from the
exact home coordinates instead of a 40 m network guess.

Design:
- One-shot requests only (no continuous location subscription)
- Failure is explicit (PositionUnavailable), never a stale/default fix
- Stale or wildly inaccurate fixes are rejected like failures
- GPS escalation is opt-in (escalate_to_gps)

Constants:
    NETWORK_TIMEOUT_S = 15          provider timeout for one fix
    NETWORK_MAXIMUM_AGE_S = 10      accept a cached fix up to this age
    HOME_SNAP_DISTANCE_M = 100      snap onto a place within this distance
    HOME_ACCURACY_M = 5             accuracy assigned to a snapped anchor
    RE_ANCHOR_DISTANCE_M = 300      dead-reckoned distance that forces a new fix
"""

import asyncio
import time
from typing import Callable, Optional, Sequence

from silentzone_notify.logging import LogEvent, StructuredLogger, create_logger
from silentzone_zone.geometry.spherical import haversine_distance

from .models import AnchorPosition, AnchorSource, Place, PositionFix
from .providers import LocationProvider


NETWORK_TIMEOUT_S = 15.0
NETWORK_MAXIMUM_AGE_S = 10.0
GPS_TIMEOUT_S = 30.0
HOME_SNAP_DISTANCE_M = 100.0
HOME_ACCURACY_M = 5.0
RE_ANCHOR_DISTANCE_M = 300.0
MAX_FIX_AGE_S = 180.0
MAX_ACCEPTABLE_ACCURACY_M = 2000.0


class PositionUnavailable(Exception):
    """No usable position fix could be obtained."""
    pass


def _now_ms() -> int:
    return int(time.time() * 1000)


class AnchorManager:
    """
    Produces AnchorPositions from the location provider.

    Attributes:
        location: Location provider
        timeout_s: Network fix timeout
        maximum_age_s: Accept cached fixes up to this age
        home_snap_distance_m: Snap radius around saved places
        re_anchor_distance_m: Dead-reckoning distance that forces a re-anchor
        max_fix_age_s: Reject fixes older than this
        max_acceptable_accuracy_m: Reject fixes less accurate than this
        escalate_to_gps: Try a high-accuracy fix when the network fix fails

    Example:
        >>> manager = AnchorManager(location=provider)
        >>> anchor = await manager.get_initial_anchor(places)
        >>> if anchor is None:
        ...     ...  # skip this tick, retry later
    """

    def __init__(
        self,
        location: LocationProvider,
        logger: Optional[StructuredLogger] = None,
        timeout_s: float = NETWORK_TIMEOUT_S,
        maximum_age_s: float = NETWORK_MAXIMUM_AGE_S,
        home_snap_distance_m: float = HOME_SNAP_DISTANCE_M,
        re_anchor_distance_m: float = RE_ANCHOR_DISTANCE_M,
        max_fix_age_s: float = MAX_FIX_AGE_S,
        max_acceptable_accuracy_m: float = MAX_ACCEPTABLE_ACCURACY_M,
        escalate_to_gps: bool = False,
        gps_timeout_s: float = GPS_TIMEOUT_S,
        clock: Callable[[], int] = _now_ms,
    ):
        self.location = location
        self.logger = logger or create_logger("anchor")
        self.timeout_s = timeout_s
        self.maximum_age_s = maximum_age_s
        self.home_snap_distance_m = home_snap_distance_m
        self.re_anchor_distance_m = re_anchor_distance_m
        self.max_fix_age_s = max_fix_age_s
        self.max_acceptable_accuracy_m = max_acceptable_accuracy_m
        self.escalate_to_gps = escalate_to_gps
        self.gps_timeout_s = gps_timeout_s
        self._clock = clock

    async def _request_fix(self, high_accuracy: bool, timeout_s: float) -> PositionFix:
        """One provider request, bounded by timeout_s and validated."""
        try:
            fix = await asyncio.wait_for(
                self.location.get_current_position(
                    high_accuracy=high_accuracy,
                    timeout_s=timeout_s,
                    maximum_age_s=self.maximum_age_s,
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            raise PositionUnavailable(f"No position fix within {timeout_s}s")
        except Exception as e:
            raise PositionUnavailable(f"Location provider failed: {e}") from e

        self._validate(fix)
        return fix

    def _validate(self, fix: PositionFix) -> None:
        """
        Raises:
            PositionUnavailable: If the fix is too old or too inaccurate
        """
        age_s = (self._clock() - fix.timestamp) / 1000.0
        if age_s > self.max_fix_age_s:
            self.logger.warning(
                event=LogEvent.ANCHOR_REJECTED,
                message="Rejected stale fix",
                metadata={'age_s': round(age_s, 1), 'max_age_s': self.max_fix_age_s}
            )
            raise PositionUnavailable(f"Fix is {age_s:.0f}s old (max {self.max_fix_age_s:.0f}s)")

        if fix.accuracy_meters > self.max_acceptable_accuracy_m:
            self.logger.warning(
                event=LogEvent.ANCHOR_REJECTED,
                message="Rejected inaccurate fix",
                metadata={
                    'accuracy_m': fix.accuracy_meters,
                    'max_accuracy_m': self.max_acceptable_accuracy_m,
                }
            )
            raise PositionUnavailable(
                f"Fix accuracy {fix.accuracy_meters:.0f}m exceeds "
                f"{self.max_acceptable_accuracy_m:.0f}m"
            )

    async def request_network_anchor(self) -> AnchorPosition:
        """
        Request one low-power (network) fix.

        Returns:
            AnchorPosition with source NETWORK

        Raises:
            PositionUnavailable: On provider error, timeout or rejected fix
        """
        fix = await self._request_fix(high_accuracy=False, timeout_s=self.timeout_s)
        anchor = AnchorPosition(
            lat=fix.lat,
            lng=fix.lng,
            timestamp=fix.timestamp,
            accuracy_meters=fix.accuracy_meters,
            source=AnchorSource.NETWORK,
        )
        self.logger.info(
            event=LogEvent.ANCHOR_ACQUIRED,
            message="Network fix acquired",
            metadata={'accuracy_m': fix.accuracy_meters}
        )
        return anchor

    async def request_gps_anchor(self) -> AnchorPosition:
        """
        Request one high-accuracy (GPS) fix.

        Raises:
            PositionUnavailable: On provider error, timeout or rejected fix
        """
        fix = await self._request_fix(high_accuracy=True, timeout_s=self.gps_timeout_s)
        self.logger.info(
            event=LogEvent.ANCHOR_ACQUIRED,
            message="GPS fix acquired",
            metadata={'accuracy_m': fix.accuracy_meters}
        )
        return AnchorPosition(
            lat=fix.lat,
            lng=fix.lng,
            timestamp=fix.timestamp,
            accuracy_meters=fix.accuracy_meters,
            source=AnchorSource.GPS,
        )

    async def get_initial_anchor(self, places: Sequence[Place]) -> Optional[AnchorPosition]:
        """
        Acquire an anchor, snapping onto the nearest place when close enough.

        Args:
            places: Candidate places for snapping

        Returns:
            AnchorPosition, or None when no fix could be obtained
        """
        anchor = await self.acquire_anchor()
        if anchor is None:
            return None
        return self.snap_to_place(anchor, places)

    async def acquire_anchor(self) -> Optional[AnchorPosition]:
        """Network fix, escalating to GPS only when enabled; None on failure."""
        try:
            return await self.request_network_anchor()
        except PositionUnavailable as e:
            if not self.escalate_to_gps:
                self.logger.warning(
                    event=LogEvent.ANCHOR_UNAVAILABLE,
                    message="No anchor available",
                    metadata={'reason': str(e)}
                )
                return None

        try:
            return await self.request_gps_anchor()
        except PositionUnavailable as gps_error:
            self.logger.warning(
                event=LogEvent.ANCHOR_UNAVAILABLE,
                message="No anchor available (network and GPS)",
                metadata={'reason': str(gps_error)}
            )
            return None

    def snap_to_place(self, anchor: AnchorPosition, places: Sequence[Place]) -> AnchorPosition:
        """The nearest place's exact center (source HOME) when within home_snap_distance_m."""
        nearest: Optional[Place] = None
        nearest_distance = float("inf")
        for place in places:
            distance = haversine_distance(anchor.lat, anchor.lng, place.lat, place.lng)
            if distance < nearest_distance:
                nearest, nearest_distance = place, distance

        if nearest is None or nearest_distance > self.home_snap_distance_m:
            return anchor

        self.logger.info(
            event=LogEvent.ANCHOR_SNAPPED,
            message=f"Snapped to {nearest.name}",
            metadata={'place_id': nearest.id, 'distance_m': round(nearest_distance, 1)}
        )
        return AnchorPosition(
            lat=nearest.lat,
            lng=nearest.lng,
            timestamp=anchor.timestamp,
            accuracy_meters=HOME_ACCURACY_M,
            source=AnchorSource.HOME,
        )

    def should_re_anchor(self, cumulative_distance_meters: float) -> bool:
        """True once the dead-reckoned distance reaches the re-anchor threshold."""
        return cumulative_distance_meters >= self.re_anchor_distance_m
