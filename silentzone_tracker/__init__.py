"""
silentzone_tracker - Low-power geofence tracking service

This package decides whether the device is inside one of the user's
places by fusing occasional coarse position fixes with pedometer dead
reckoning, and drives check-ins, the ringer and notifications from the
resulting state changes.

Architecture:
- TrackingOrchestrator: Main orchestrator (asyncio tick loop)
- AnchorManager: Network / GPS fixes, home snapping, re-anchor threshold
- PlaceGridRegistry: Thread-safe per-place grids and tracking state
- InMemoryPlaceRepository: Places, visit history, trail sessions
- MQTTDeviceBridge: Sensors, fixes and ringer over MQTT
- TrackerConfig: Configuration management

Threading Model:
- Event loop (tick loop, lifecycle hooks)
- Control Plane Thread (paho-mqtt internal for commands)
- Device Bridge Thread (paho-mqtt internal for sensor traffic)
"""

from silentzone_tracker.anchor import AnchorManager, PositionUnavailable
from silentzone_tracker.bridge import DeviceUnavailableError, MQTTDeviceBridge
from silentzone_tracker.config import TrackerConfig
from silentzone_tracker.models import AnchorPosition, AnchorSource, CheckInRecord, Place, PositionFix
from silentzone_tracker.providers import InMemoryPlaceRepository, NullRingerController
from silentzone_tracker.registry import PlaceGridRegistry
from silentzone_tracker.service import TrackingOrchestrator

__all__ = [
    "AnchorManager",
    "PositionUnavailable",
    "DeviceUnavailableError",
    "MQTTDeviceBridge",
    "TrackerConfig",
    "AnchorPosition",
    "AnchorSource",
    "CheckInRecord",
    "Place",
    "PositionFix",
    "InMemoryPlaceRepository",
    "NullRingerController",
    "PlaceGridRegistry",
    "TrackingOrchestrator",
]
