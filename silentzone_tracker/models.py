"""
Tracking domain model.

Value types shared by the anchor manager, the orchestrator and the place
repository. All frozen: an anchor is superseded by a new one, never
mutated; places are read-only to the tracking core.
"""

from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Dict, Optional


class AnchorSource(str, Enum):
    """Where an anchor fix came from."""
    HOME = "HOME"
    NETWORK = "NETWORK"
    GPS = "GPS"


@dataclass(frozen=True)
class PositionFix:
    """Raw result of one location provider request."""

    lat: float
    lng: float
    accuracy_meters: float
    timestamp: int  # epoch ms when the fix was taken

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"lat must be in [-90, 90], got {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"lng must be in [-180, 180], got {self.lng}")
        if self.accuracy_meters < 0:
            raise ValueError(f"accuracy_meters must be >= 0, got {self.accuracy_meters}")


@dataclass(frozen=True)
class AnchorPosition:
    """
    Trusted absolute position that dead reckoning projects from.

    Attributes:
        lat: Latitude in degrees
        lng: Longitude in degrees
        timestamp: Epoch milliseconds
        accuracy_meters: Estimated accuracy radius
        source: HOME (snapped onto a place), NETWORK or GPS
    """

    lat: float
    lng: float
    timestamp: int
    accuracy_meters: float
    source: AnchorSource

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data


@dataclass(frozen=True)
class Place:
    """
    User-defined circular zone.

    Attributes:
        id: Stable identifier
        name: Display name
        lat: Center latitude
        lng: Center longitude
        radius_meters: Zone radius (> 0)
        enabled: Whether the place is monitored
    """

    id: str
    name: str
    lat: float
    lng: float
    radius_meters: float
    enabled: bool = True

    def __post_init__(self):
        if not self.id:
            raise ValueError("Place id cannot be empty")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Place '{self.id}' lat must be in [-90, 90], got {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Place '{self.id}' lng must be in [-180, 180], got {self.lng}")
        if self.radius_meters <= 0:
            raise ValueError(
                f"Place '{self.id}' radius_meters must be positive, got {self.radius_meters}"
            )

    def with_enabled(self, enabled: bool) -> "Place":
        return replace(self, enabled=enabled)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Place":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            radius_meters=float(data["radius_meters"]),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass(frozen=True)
class CheckInRecord:
    """One visit to a place, as persisted by the repository."""

    id: str
    place_id: str
    check_in_at: int
    check_out_at: Optional[int] = None
    duration_ms: Optional[int] = None
    reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.check_out_at is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
