"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Elasticsearch, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, anchor, notification, zone, device, error
    category: connected, publish, dispatched
    action: success, failed, updated

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.place_id
    | filter event = "notification.deduplicated"
    | stats count() by bin(1h)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - anchor.*: Position fixes and place snapping
    - notification.*: Notification bus dispatch/dedup
    - zone.*: Geofence transitions
    - device.*: Device bridge traffic
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Anchor Events ==========
    ANCHOR_ACQUIRED = "anchor.acquired"
    """Fresh position fix accepted as anchor."""

    ANCHOR_SNAPPED = "anchor.snapped"
    """Fix snapped onto a saved place's exact coordinates."""

    ANCHOR_REJECTED = "anchor.rejected"
    """Fix failed quality validation (too old / too inaccurate)."""

    ANCHOR_UNAVAILABLE = "anchor.unavailable"
    """No fix could be obtained (error, timeout, services off)."""

    # ========== Notification Events ==========
    NOTIFICATION_DISPATCHED = "notification.dispatched"
    """Notification handed to the display channel."""

    NOTIFICATION_DEDUPLICATED = "notification.deduplicated"
    """Repeat event suppressed inside the dedup window."""

    NOTIFICATION_PURGED = "notification.purged"
    """Old dedup entries removed."""

    NOTIFICATION_CLEARED = "notification.cleared"
    """All dedup state reset."""

    # ========== Zone Events ==========
    ZONE_ENTERED = "zone.entered"
    """Place transitioned to INSIDE."""

    ZONE_EXITED = "zone.exited"
    """Place transitioned to OUTSIDE."""

    # ========== Device Events ==========
    DEVICE_READING_RECEIVED = "device.reading.received"
    """Sensor reading cached from the device bridge."""

    DEVICE_FIX_RECEIVED = "device.fix.received"
    """Position fix answered by the device."""

    DEVICE_RINGER_SET = "device.ringer.set"
    """Ringer mode command sent to the device."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    NOTIFICATION_DISPATCH_ERROR = "error.notification_dispatch"
    """Display channel failed to show a notification."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to decode or validate an incoming message."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

ANCHOR_EVENTS = {
    LogEvent.ANCHOR_ACQUIRED,
    LogEvent.ANCHOR_SNAPPED,
    LogEvent.ANCHOR_REJECTED,
    LogEvent.ANCHOR_UNAVAILABLE,
}

NOTIFICATION_EVENTS = {
    LogEvent.NOTIFICATION_DISPATCHED,
    LogEvent.NOTIFICATION_DEDUPLICATED,
    LogEvent.NOTIFICATION_PURGED,
    LogEvent.NOTIFICATION_CLEARED,
}

ZONE_EVENTS = {
    LogEvent.ZONE_ENTERED,
    LogEvent.ZONE_EXITED,
}

DEVICE_EVENTS = {
    LogEvent.DEVICE_READING_RECEIVED,
    LogEvent.DEVICE_FIX_RECEIVED,
    LogEvent.DEVICE_RINGER_SET,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.NOTIFICATION_DISPATCH_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
}
