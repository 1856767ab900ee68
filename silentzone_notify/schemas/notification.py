"""
Notification Event Schema
=========================

Bounded Context: User-facing notification events

This module defines the closed set of notification events the tracking
core can raise, and the mapping from event type to displayed content.

Design:
- NotificationEventType / NotificationSource: closed enums (no open strings)
- NotificationEvent: immutable event, transient (lives for dispatch only)
- NOTIFICATION_TEMPLATES: exhaustive type -> (title, body) mapping

Message Flow:
    TrackingOrchestrator -> NotificationEvent -> NotificationEventBus
        -> NotificationChannel (log / MQTT display service)
"""

from dataclasses import dataclass
from typing import Dict, Any, Tuple
from enum import Enum


class NotificationEventType(str, Enum):
    """Notification event type enumeration."""
    SCHEDULE_START = "SCHEDULE_START"
    SCHEDULE_END = "SCHEDULE_END"
    SCHEDULE_APPROACHING = "SCHEDULE_APPROACHING"
    PLACE_ENTERED = "PLACE_ENTERED"
    PLACE_EXITED = "PLACE_EXITED"
    SOUND_RESTORED = "SOUND_RESTORED"


class NotificationSource(str, Enum):
    """Subsystem that raised the event."""
    ALARM = "alarm"
    GEOFENCE = "geofence"
    TIMER = "timer"
    MANUAL = "manual"


# (title, body template); body is formatted with place_name
NOTIFICATION_TEMPLATES: Dict[NotificationEventType, Tuple[str, str]] = {
    NotificationEventType.SCHEDULE_START: ("Silent Zone Active", "Activated for {place_name}"),
    NotificationEventType.SCHEDULE_END: ("Schedule Ended", "Schedule finished for {place_name}"),
    NotificationEventType.SCHEDULE_APPROACHING: ("Upcoming Schedule", "{place_name} starting in 15 minutes"),
    NotificationEventType.PLACE_ENTERED: ("Entered Silent Zone", "{place_name}"),
    NotificationEventType.PLACE_EXITED: ("Exited Silent Zone", "{place_name}"),
    NotificationEventType.SOUND_RESTORED: ("Sound Restored", "Ringer restored after leaving {place_name}"),
}


@dataclass(frozen=True)
class NotificationContent:
    """
    Rendered notification, ready for a display channel.

    Attributes:
        title: Notification title
        body: Notification body
        notification_id: Unique id (type-place-timestamp)
        silent: Suppress sound/vibration
        grouped: Group with other SilentZone notifications
    """
    title: str
    body: str
    notification_id: str
    silent: bool = False
    grouped: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'body': self.body,
            'notification_id': self.notification_id,
            'silent': self.silent,
            'grouped': self.grouped,
        }


@dataclass(frozen=True)
class NotificationEvent:
    """
    One notification-worthy event.

    Attributes:
        type: Event type
        place_id: Place the event refers to
        place_name: Display name of the place
        timestamp: Epoch milliseconds when the event was raised
        source: Raising subsystem

    Invariants:
        - place_id is non-empty

    Example:
        >>> event = NotificationEvent(
        ...     type=NotificationEventType.PLACE_ENTERED,
        ...     place_id="mosque",
        ...     place_name="Central Mosque",
        ...     timestamp=1_700_000_000_000,
        ...     source=NotificationSource.GEOFENCE,
        ... )
        >>> event.dedup_key
        ('PLACE_ENTERED', 'mosque')
    """
    type: NotificationEventType
    place_id: str
    place_name: str
    timestamp: int
    source: NotificationSource

    def __post_init__(self):
        """Validate invariants."""
        if not self.place_id:
            raise ValueError("NotificationEvent place_id cannot be empty")

    @property
    def dedup_key(self) -> Tuple[str, str]:
        """Events sharing this key are de-duplicated together."""
        return (self.type.value, self.place_id)

    @property
    def notification_id(self) -> str:
        return f"{self.type.value.lower()}-{self.place_id}-{self.timestamp}"

    def render(self) -> NotificationContent:
        """Map the event to its displayed title and body."""
        title, body = NOTIFICATION_TEMPLATES[self.type]
        return NotificationContent(
            title=title,
            body=body.format(place_name=self.place_name),
            notification_id=self.notification_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'type': self.type.value,
            'place_id': self.place_id,
            'place_name': self.place_name,
            'timestamp': self.timestamp,
            'source': self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NotificationEvent':
        """Deserialize from dict.

        Raises:
            ValueError: If required keys missing or values invalid
        """
        try:
            return cls(
                type=NotificationEventType(data['type']),
                place_id=str(data['place_id']),
                place_name=str(data.get('place_name', data['place_id'])),
                timestamp=int(data['timestamp']),
                source=NotificationSource(data['source']),
            )
        except KeyError as e:
            raise ValueError(f"Missing required NotificationEvent field: {e}")
