"""
Notification Channels
=====================

Bounded Context: Notification Display Boundary

A channel is whatever actually shows a notification to the user. The
tracking core only knows the NotificationChannel protocol; the bus hands
it a rendered title/body and the channel either displays it or raises.

Implementations:
    LoggingNotificationChannel: writes notifications to the log (dev, headless)
    NotificationPublisher: forwards to a display service over MQTT
        (see silentzone_notify.publishers)
"""

import logging
from typing import List, Protocol, runtime_checkable

from .schemas import NotificationContent


logger = logging.getLogger(__name__)


class NotificationDispatchError(Exception):
    """Raised by a channel that could not show a notification."""
    pass


@runtime_checkable
class NotificationChannel(Protocol):
    """Anything that can display a rendered notification."""

    def show_notification(
        self,
        title: str,
        body: str,
        notification_id: str,
        silent: bool = False,
        grouped: bool = True,
    ) -> None:
        """
        Display one notification.

        Raises:
            NotificationDispatchError: If the notification could not be shown
        """
        ...


class LoggingNotificationChannel:
    """
    Channel that logs notifications instead of displaying them.

    Keeps the shown notifications in memory so callers (and tests) can
    inspect what would have been displayed.
    """

    def __init__(self, max_history: int = 100):
        self.max_history = max_history
        self.shown: List[NotificationContent] = []

    def show_notification(
        self,
        title: str,
        body: str,
        notification_id: str,
        silent: bool = False,
        grouped: bool = True,
    ) -> None:
        logger.info(f"🔔 {title}: {body} [{notification_id}]")
        self.shown.append(NotificationContent(
            title=title,
            body=body,
            notification_id=notification_id,
            silent=silent,
            grouped=grouped,
        ))
        if len(self.shown) > self.max_history:
            del self.shown[0]
