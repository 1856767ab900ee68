"""
MQTT Publishers
==============

Bounded Context: Message Production

Shared MQTT connection lifecycle and the notification publisher.

Public API
----------
    BasePublisher: Abstract publisher (also the base of the device bridge)
    NotificationPublisher: NotificationChannel backed by MQTT

Example:
    >>> from silentzone_notify.publishers import NotificationPublisher
    >>> from silentzone_notify.logging import create_logger
    >>>
    >>> publisher = NotificationPublisher(
    ...     broker_host="localhost",
    ...     topic="silentzone/notifications",
    ...     logger=create_logger("notifications"),
    ... )
    >>> publisher.connect()
"""

from .base import BasePublisher
from .notification import NotificationPublisher

__all__ = [
    'BasePublisher',
    'NotificationPublisher',
]
