"""
silentzone_control - Control Plane for the tracking service

Bounded Context: MQTT-based command-and-control
Responsibilities:
  - MQTT connection management (Control Plane)
  - Command registration and payload validation
  - Command execution delegation

Architecture:
  - CommandRegistry: Explicit registration pattern
  - MQTTControlPlane: MQTT client + command reception
  - QoS 1 for control commands (at-least-once delivery)

Commands are the single way outer surfaces (UI, schedule alarms,
permission monitor) reach the tracking core: enable_tracking,
disable_tracking, enable_place, disable_place, delete_place, resync,
purge_all, schedule_event, status, list_places.
"""

from .registry import CommandRegistry, CommandNotAvailableError, InvalidCommandError
from .plane import MQTTControlPlane

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "InvalidCommandError",
    "MQTTControlPlane",
]
