"""
Motion classification tests.
"""

import asyncio

import pytest

from silentzone_zone.analytics.motion import (
    MotionState,
    classify_motion,
    detect_current_motion,
    get_estimated_speed,
    get_stride_length,
)

from conftest import FakeSensors


@pytest.mark.parametrize("step_delta,magnitude,expected", [
    (5, 9.8, MotionState.WALKING),
    (1, 30.0, MotionState.WALKING),
    (0, 9.8, MotionState.STATIONARY),
    (0, 10.2, MotionState.STATIONARY),
    (0, 9.4, MotionState.STATIONARY),
    (0, 10.4, MotionState.VEHICLE_CAR),
    (0, 11.5, MotionState.VEHICLE_CAR),
    (0, 8.0, MotionState.VEHICLE_CAR),
    (0, 12.0, MotionState.VEHICLE_BIKE),
    (0, 12.5, MotionState.VEHICLE_BIKE),
    (0, 5.0, MotionState.VEHICLE_BIKE),
])
def test_classify_motion(step_delta, magnitude, expected):
    assert classify_motion(step_delta, magnitude) == expected


def test_only_walking_has_a_stride():
    assert get_stride_length(MotionState.WALKING) == pytest.approx(0.76)
    for state in (MotionState.STATIONARY, MotionState.VEHICLE_CAR, MotionState.VEHICLE_BIKE):
        assert get_stride_length(state) == 0.0


def test_estimated_speed_only_for_vehicles():
    assert get_estimated_speed(MotionState.VEHICLE_CAR) > get_estimated_speed(MotionState.VEHICLE_BIKE) > 0
    assert get_estimated_speed(MotionState.WALKING) == 0.0
    assert get_estimated_speed(MotionState.STATIONARY) == 0.0


def test_detect_walking():
    sensors = FakeSensors(steps=120)
    reading = asyncio.run(detect_current_motion(sensors, last_step_count=100))
    assert reading.state == MotionState.WALKING
    assert reading.current_steps == 120
    assert reading.step_delta == 20


def test_counter_reset_never_goes_negative():
    sensors = FakeSensors(steps=3, magnitude=9.8)
    reading = asyncio.run(detect_current_motion(sensors, last_step_count=5000))
    assert reading.step_delta == 0
    assert reading.state == MotionState.STATIONARY
    assert reading.current_steps == 3


def test_sensor_failure_degrades_to_stationary():
    sensors = FakeSensors(steps=500)
    sensors.fail = True
    reading = asyncio.run(detect_current_motion(sensors, last_step_count=42))
    assert reading.state == MotionState.STATIONARY
    assert reading.current_steps == 42
    assert reading.step_delta == 0


def test_sensor_timeout_degrades_to_stationary():
    class SlowSensors(FakeSensors):
        async def get_step_count(self):
            await asyncio.sleep(10)
            return {"steps": 1}

    reading = asyncio.run(detect_current_motion(SlowSensors(), last_step_count=7, timeout_s=0.01))
    assert reading.state == MotionState.STATIONARY
    assert reading.current_steps == 7
