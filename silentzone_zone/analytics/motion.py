"""
Motion Classifier Module
========================

Samples the pedometer and accelerometer and infers a discrete motion mode.

Design:
- Threshold-based classification (deterministic, cheap)
- Pedometer evidence wins over accelerometer noise
- Sensor reads are async and fallible; failures degrade to STATIONARY
- Only WALKING is dead-reckoned from steps

Thresholds (deviation of |a| from standard gravity):
    <= 0.5 m/s^2   STATIONARY
    <= 2.0 m/s^2   VEHICLE_CAR
    >  2.0 m/s^2   VEHICLE_BIKE
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Protocol


logger = logging.getLogger(__name__)

GRAVITY = 9.8
STATIONARY_ACCEL_THRESHOLD = 0.5
VEHICLE_ACCEL_THRESHOLD = 2.0

STRIDE_LENGTH_WALKING = 0.76
DEFAULT_SENSOR_TIMEOUT_S = 5.0


class MotionState(str, Enum):
    """Discrete motion mode."""
    STATIONARY = "STATIONARY"
    WALKING = "WALKING"
    VEHICLE_CAR = "VEHICLE_CAR"
    VEHICLE_BIKE = "VEHICLE_BIKE"


class SensorProvider(Protocol):
    """
    Platform sensor bridge (interface).

    All reads are one-shot, asynchronous and may raise.
    """

    async def get_step_count(self) -> Dict[str, Any]:
        """Total steps since boot: {"steps": int}."""
        ...

    async def get_acceleration(self) -> Dict[str, Any]:
        """Instantaneous acceleration: {"magnitude": float} in m/s^2 (gravity included)."""
        ...

    async def get_magnetic_heading(self) -> Dict[str, Any]:
        """Compass heading: {"heading": float} in degrees, 0 = North."""
        ...


@dataclass(frozen=True)
class MotionReading:
    """
    Result of one motion sample.

    Attributes:
        state: Classified motion state
        current_steps: Step counter total at sample time
        step_delta: Steps since the previous sample (never negative)
    """

    state: MotionState
    current_steps: int
    step_delta: int


def classify_motion(step_delta: int, accel_magnitude: float) -> MotionState:
    """
    Classify the motion mode from step delta and acceleration magnitude.

    Args:
        step_delta: Steps detected since the last check
        accel_magnitude: Accelerometer magnitude including gravity (m/s^2)

    Returns:
        MotionState

    Example:
        >>> classify_motion(0, 10.4)
        <MotionState.VEHICLE_CAR: 'VEHICLE_CAR'>
    """
    if step_delta > 0:
        return MotionState.WALKING

    deviation = abs(accel_magnitude - GRAVITY)

    if deviation <= STATIONARY_ACCEL_THRESHOLD:
        return MotionState.STATIONARY
    if deviation <= VEHICLE_ACCEL_THRESHOLD:
        return MotionState.VEHICLE_CAR
    return MotionState.VEHICLE_BIKE


def get_stride_length(state: MotionState) -> float:
    """Stride length in meters for a motion state (0 for non-walking states)."""
    if state == MotionState.WALKING:
        return STRIDE_LENGTH_WALKING
    return 0.0


def get_estimated_speed(state: MotionState) -> float:
    """
    Rough travel speed for vehicle states (m/s).

    Only used to grow the drift budget that triggers a re-anchor; vehicle
    displacement is never projected from it.
    """
    if state == MotionState.VEHICLE_BIKE:
        return 4.0  # ~15 km/h
    if state == MotionState.VEHICLE_CAR:
        return 11.0  # ~40 km/h
    return 0.0


async def detect_current_motion(
    sensors: SensorProvider,
    last_step_count: int,
    timeout_s: float = DEFAULT_SENSOR_TIMEOUT_S,
) -> MotionReading:
    """
    Read step counter and accelerometer, then classify.

    Never raises on sensor failure: returns
    (STATIONARY, last_step_count, 0) so a flaky sensor cannot produce a
    spurious displacement. Cancellation still propagates.

    Args:
        sensors: Sensor provider
        last_step_count: Step counter total from the previous sample
        timeout_s: Upper bound for both reads together

    Returns:
        MotionReading
    """
    try:
        step_data, accel_data = await asyncio.wait_for(
            asyncio.gather(sensors.get_step_count(), sensors.get_acceleration()),
            timeout=timeout_s,
        )

        current_steps = int(step_data["steps"])
        # Counter resets on reboot
        step_delta = max(0, current_steps - last_step_count)
        state = classify_motion(step_delta, float(accel_data["magnitude"]))

        return MotionReading(state=state, current_steps=current_steps, step_delta=step_delta)

    except Exception as e:
        logger.warning(f"⚠️ Sensor read failed, assuming stationary: {e!r}")
        return MotionReading(
            state=MotionState.STATIONARY,
            current_steps=last_step_count,
            step_delta=0,
        )
