"""
Base MQTT Publisher
===================

Bounded Context: MQTT Infrastructure

Connection lifecycle and JSON publishing shared by every SilentZone MQTT
producer: the notification publisher and the device bridge.

Design:
- paho-mqtt v2 callback API, network loop on paho's thread
- Connected state is a threading.Event (set in on_connect)
- Subclasses subscribe in _on_connected() so subscriptions survive reconnects
- publish() never raises; it reports success as a bool

Architecture:
    BasePublisher (abstract)
        ├── NotificationPublisher   (silentzone_notify.publishers)
        └── MQTTDeviceBridge        (silentzone_tracker.bridge)
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from ..logging import LogEvent, StructuredLogger


class BasePublisher(ABC):
    """
    MQTT producer with a default topic.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        topic: Default publish topic
        client_id: MQTT client identifier
        qos: Publish QoS
        logger: Structured logger
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._message_count = 0
        self._stats_lock = threading.Lock()

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': self.broker, 'client_id': self.client_id}
            )
            return

        self._on_connected(client)
        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={'broker': self.broker, 'client_id': self.client_id}
        )

    def _on_connected(self, client) -> None:
        """Hook for subscriptions; runs on every (re)connect."""

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Lost MQTT broker connection",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop.

        Returns:
            True once the broker acknowledged within timeout
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except OSError as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Broker unreachable",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="No CONNACK within timeout",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from broker",
            metadata={'message_count': self._message_count}
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-ready payload for one message."""
        raise NotImplementedError

    def publish(
        self,
        message_data: Dict[str, Any],
        retain: bool = False,
        topic: Optional[str] = None
    ) -> bool:
        """
        Serialize and publish one message.

        Args:
            message_data: Formatted message
            retain: MQTT retain flag
            topic: Override for the default topic

        Returns:
            True if paho queued the message, False otherwise
        """
        topic = topic or self.topic

        if not self._connected.is_set():
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Not connected, message dropped",
                metadata={'topic': topic}
            )
            return False

        try:
            payload = json.dumps(message_data)
        except (TypeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Message is not JSON serializable",
                exc_info=e,
                metadata={'topic': topic}
            )
            return False

        result = self.client.publish(topic=topic, payload=payload, qos=self.qos, retain=retain)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message=f"Publish failed (rc={result.rc})",
                metadata={'topic': topic}
            )
            return False

        with self._stats_lock:
            self._message_count += 1
            count = self._message_count

        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'topic': topic, 'message_count': count, 'qos': self.qos}
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'message_count': self._message_count,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker
            }
