"""
Configuration schema for the tracking service.

This module defines the configuration structure for the tracker: anchor
acquisition, grid resolution, motion sampling, adaptive tick intervals,
notification de-duplication, MQTT settings and the seed places.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import yaml

from .anchor import (
    HOME_SNAP_DISTANCE_M,
    MAX_ACCEPTABLE_ACCURACY_M,
    MAX_FIX_AGE_S,
    NETWORK_MAXIMUM_AGE_S,
    NETWORK_TIMEOUT_S,
    RE_ANCHOR_DISTANCE_M,
)
from .models import Place


@dataclass(frozen=True)
class AnchorConfig:
    """Absolute fix acquisition."""

    timeout_s: float = NETWORK_TIMEOUT_S
    maximum_age_s: float = NETWORK_MAXIMUM_AGE_S
    home_snap_distance_m: float = HOME_SNAP_DISTANCE_M
    re_anchor_distance_m: float = RE_ANCHOR_DISTANCE_M
    max_fix_age_s: float = MAX_FIX_AGE_S
    max_acceptable_accuracy_m: float = MAX_ACCEPTABLE_ACCURACY_M
    escalate_to_gps: bool = False
    retry_interval_s: float = 60.0

    def __post_init__(self):
        """Validate anchor configuration."""
        for name in ("timeout_s", "home_snap_distance_m", "re_anchor_distance_m",
                     "max_fix_age_s", "max_acceptable_accuracy_m"):
            if getattr(self, name) <= 0:
                raise ValueError(f"anchor.{name} must be positive, got {getattr(self, name)}")

        if self.maximum_age_s < 0:
            raise ValueError(f"anchor.maximum_age_s must be >= 0, got {self.maximum_age_s}")

        if self.retry_interval_s < 0:
            raise ValueError(f"anchor.retry_interval_s must be >= 0, got {self.retry_interval_s}")


@dataclass(frozen=True)
class GridConfig:
    """Containment grid resolution."""

    cell_size_meters: float = 5.0

    def __post_init__(self):
        if not 0.5 <= self.cell_size_meters <= 100.0:
            raise ValueError(
                f"grid.cell_size_meters must be in [0.5, 100], got {self.cell_size_meters}"
            )


@dataclass(frozen=True)
class MotionConfig:
    """Sensor sampling."""

    sensor_timeout_s: float = 5.0
    heading_window: int = 5

    def __post_init__(self):
        if self.sensor_timeout_s <= 0:
            raise ValueError(f"motion.sensor_timeout_s must be positive, got {self.sensor_timeout_s}")
        if self.heading_window < 1:
            raise ValueError(f"motion.heading_window must be >= 1, got {self.heading_window}")


@dataclass(frozen=True)
class IntervalConfig:
    """
    Adaptive tick cadence by distance to the nearest active place.

    Within very_close_distance_m the loop ticks every very_close_s, and
    so on outward; beyond near_distance_m it ticks every far_s.
    """

    very_close_distance_m: float = 100.0
    close_distance_m: float = 500.0
    near_distance_m: float = 2000.0
    very_close_s: float = 15.0
    close_s: float = 45.0
    near_s: float = 180.0
    far_s: float = 300.0

    def __post_init__(self):
        if not 0 < self.very_close_distance_m < self.close_distance_m < self.near_distance_m:
            raise ValueError(
                "intervals distances must satisfy 0 < very_close < close < near, got "
                f"{self.very_close_distance_m}, {self.close_distance_m}, {self.near_distance_m}"
            )
        for name in ("very_close_s", "close_s", "near_s", "far_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"intervals.{name} must be positive, got {getattr(self, name)}")

    def for_distance(self, distance_m: Optional[float]) -> float:
        """Tick interval for a distance to the nearest place (None = no anchor)."""
        if distance_m is None or distance_m <= self.very_close_distance_m:
            return self.very_close_s
        if distance_m <= self.close_distance_m:
            return self.close_s
        if distance_m <= self.near_distance_m:
            return self.near_s
        return self.far_s


@dataclass(frozen=True)
class NotificationConfig:
    """Notification de-duplication."""

    dedupe_window_ms: int = 30_000

    def __post_init__(self):
        if self.dedupe_window_ms < 0:
            raise ValueError(
                f"notifications.dedupe_window_ms must be >= 0, got {self.dedupe_window_ms}"
            )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1

    notification_topic: str = "silentzone/notifications/{service_id}"
    command_topic: str = "silentzone/control/{service_id}/commands"
    status_topic: str = "silentzone/control/{service_id}/status"
    device_topic: str = "silentzone/device/{service_id}"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("mqtt.broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(f"MQTT port must be in [1, 65535], got {self.port}")

        if self.qos not in {0, 1, 2}:
            raise ValueError(f"MQTT QoS must be 0, 1, or 2, got {self.qos}")

    def topics_for(self, service_id: str) -> "MQTTConfig":
        """Copy with {service_id} placeholders filled in."""
        return MQTTConfig(
            broker=self.broker,
            port=self.port,
            username=self.username,
            password=self.password,
            qos=self.qos,
            notification_topic=self.notification_topic.format(service_id=service_id),
            command_topic=self.command_topic.format(service_id=service_id),
            status_topic=self.status_topic.format(service_id=service_id),
            device_topic=self.device_topic.format(service_id=service_id),
        )


@dataclass(frozen=True)
class TrackerConfig:
    """
    Main configuration for the tracking service.

    Loaded from YAML and validated at startup. Immutable after
    construction (frozen dataclass).
    """

    service_id: str
    anchor: AnchorConfig = field(default_factory=AnchorConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    intervals: IntervalConfig = field(default_factory=IntervalConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    places: List[Place] = field(default_factory=list)
    tracking_enabled: bool = True

    def __post_init__(self):
        """Validate tracker configuration."""
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

        ids = [p.id for p in self.places]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate place ids: {', '.join(duplicates)}")

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TrackerConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "phone_01"
            tracking_enabled: true

            anchor:
              timeout_s: 15
              escalate_to_gps: false

            grid:
              cell_size_meters: 5

            notifications:
              dedupe_window_ms: 30000

            mqtt:
              broker: "localhost"
              port: 1883

            places:
              - id: "home"
                name: "Home"
                lat: 30.0444
                lng: 31.2357
                radius_meters: 50
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if "service_id" not in data:
            raise ValueError(f"{yaml_path}: missing required key 'service_id'")

        try:
            return cls(
                service_id=str(data["service_id"]),
                anchor=AnchorConfig(**(data.get("anchor") or {})),
                grid=GridConfig(**(data.get("grid") or {})),
                motion=MotionConfig(**(data.get("motion") or {})),
                intervals=IntervalConfig(**(data.get("intervals") or {})),
                notifications=NotificationConfig(**(data.get("notifications") or {})),
                mqtt=MQTTConfig(**(data.get("mqtt") or {})),
                places=[Place.from_dict(p) for p in data.get("places") or []],
                tracking_enabled=bool(data.get("tracking_enabled", True)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"{yaml_path}: invalid configuration ({e})") from e
