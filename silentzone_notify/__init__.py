"""
SilentZone Notifications
========================

Bounded Context: User notifications and observability

Public API
----------
Bus:
    NotificationEventBus: de-duplicating dispatcher

Channels:
    NotificationChannel (protocol), NotificationDispatchError
    LoggingNotificationChannel
    NotificationPublisher (MQTT)

Schemas:
    NotificationEvent, NotificationEventType, NotificationSource
    NotificationContent, Timestamp, epoch_ms

Logging:
    StructuredLogger, LogEvent, create_logger

Architecture:
    TrackingOrchestrator ─┐
    control commands ─────┼─> NotificationEventBus ─> NotificationChannel
    schedule alarms ──────┘        (dedup 30 s)          ├─ log
                                                         └─ MQTT
"""

from .bus import NotificationEventBus, DEFAULT_DEDUPE_WINDOW_MS
from .channels import (
    LoggingNotificationChannel,
    NotificationChannel,
    NotificationDispatchError,
)
from .logging import LogEvent, StructuredLogger, create_logger
from .publishers import BasePublisher, NotificationPublisher
from .schemas import (
    NotificationContent,
    NotificationEvent,
    NotificationEventType,
    NotificationSource,
    Timestamp,
    epoch_ms,
)

__version__ = "1.0.0"

__all__ = [
    'NotificationEventBus',
    'DEFAULT_DEDUPE_WINDOW_MS',
    'LoggingNotificationChannel',
    'NotificationChannel',
    'NotificationDispatchError',
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'BasePublisher',
    'NotificationPublisher',
    'NotificationContent',
    'NotificationEvent',
    'NotificationEventType',
    'NotificationSource',
    'Timestamp',
    'epoch_ms',
]
