"""
Notification Publisher
======================

Bounded Context: Notification Message Production

Forwards rendered notifications to a display service over MQTT. The
publisher is a NotificationChannel, so the bus can use it directly.

Design:
- Inherits from BasePublisher (connection management)
- QoS 1: a notification that is dropped is never re-raised
- Publish failure surfaces as NotificationDispatchError

Message Flow:
    NotificationEventBus -> NotificationContent -> NotificationPublisher
        -> MQTT Broker -> display service

Wire format:
    {
        "schema_version": "1.0",
        "timestamp": "2025-10-24T15:30:45.123456+00:00",
        "title": "Entered Silent Zone",
        "body": "Central Mosque",
        "notification_id": "place_entered-mosque-1729783845123",
        "silent": false,
        "grouped": true
    }
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..channels import NotificationDispatchError
from ..schemas import NotificationContent, Timestamp
from ..logging import StructuredLogger


class NotificationPublisher(BasePublisher):
    """
    MQTT-backed notification channel.

    Example:
        >>> publisher = NotificationPublisher(
        ...     broker_host="localhost",
        ...     topic="silentzone/notifications",
        ...     logger=create_logger("notifications"),
        ... )
        >>> publisher.connect()
        >>> bus = NotificationEventBus(channel=publisher)
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "silentzone_notification_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.schema_version = "1.0"

    def format_message(self, content: NotificationContent) -> Dict[str, Any]:
        """Wrap rendered content with schema version and send time."""
        message = {
            'schema_version': self.schema_version,
            'timestamp': Timestamp.now().to_dict(),
        }
        message.update(content.to_dict())
        return message

    def show_notification(
        self,
        title: str,
        body: str,
        notification_id: str,
        silent: bool = False,
        grouped: bool = True,
    ) -> None:
        """
        Publish one notification to the display service.

        Raises:
            NotificationDispatchError: If the broker did not accept the message
        """
        content = NotificationContent(
            title=title,
            body=body,
            notification_id=notification_id,
            silent=silent,
            grouped=grouped,
        )
        if not self.publish(self.format_message(content)):
            raise NotificationDispatchError(
                f"Could not publish notification {notification_id} to {self.topic}"
            )
