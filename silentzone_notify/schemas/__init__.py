"""
Notification Schemas
====================

Bounded Context: Message Data Structures

Public API
----------
Common:
    Timestamp, epoch_ms

Notification:
    NotificationEventType, NotificationSource
    NotificationEvent, NotificationContent
    NOTIFICATION_TEMPLATES
"""

from .common import Timestamp, epoch_ms
from .notification import (
    NOTIFICATION_TEMPLATES,
    NotificationContent,
    NotificationEvent,
    NotificationEventType,
    NotificationSource,
)

__all__ = [
    'Timestamp',
    'epoch_ms',
    'NOTIFICATION_TEMPLATES',
    'NotificationContent',
    'NotificationEvent',
    'NotificationEventType',
    'NotificationSource',
]
