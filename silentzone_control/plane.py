"""
MQTTControlPlane - MQTT Control Plane for the tracking service

Bounded Context: MQTT connection management + command reception
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Command message reception (subscribe to command topic)
  - Status publishing (publish to status topic)
  - Command delegation to CommandRegistry

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - MQTT client runs own background thread (loop_start/loop_stop)
  - Callbacks (_on_connect, _on_message) run in MQTT thread
  - Handlers must not block: tracking handlers schedule coroutines on the
    service event loop and return immediately
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandRegistry, CommandNotAvailableError, InvalidCommandError

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    MQTT Control Plane for receiving commands and publishing status.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="silentzone/control/commands",
            status_topic="silentzone/control/status",
            client_id="silentzone_tracker",
        )
        control_plane.command_registry.register('resync', handler.resync, "Re-anchor")

        if control_plane.connect(timeout=5.0):
            ...
        control_plane.disconnect()
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            logger.info(f"🔌 Control plane -> {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
        except OSError as e:
            logger.error(f"❌ Control plane broker unreachable: {e}")
            return False

        self.client.loop_start()
        self._running = True

        if self._connected.wait(timeout=timeout):
            logger.info(f"✅ Listening for commands on {self.command_topic}")
            return True

        logger.error(f"❌ No CONNACK within {timeout}s")
        return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if self._running:
            logger.info("🔌 Control plane shutting down")
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()
            logger.info("✅ Control plane offline")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def publish_status(self, status: str, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish status update to status topic (QoS 1, retained).

        Args:
            status: Status string (e.g., "tracking", "idle", "purged")
            data: Optional status payload merged into the message
        """
        message: Dict[str, Any] = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if data:
            message["data"] = data

        result = self.client.publish(
            self.status_topic,
            json.dumps(message, default=str),
            qos=1,
            retain=True,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"⚠️ Status '{status}' not published (rc={result.rc})")
            return
        logger.debug(f"📤 Status published: {status}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"❌ Connection failed ({reason_code})")
            self._connected.clear()
            return

        logger.info(f"✅ Connected to broker ({reason_code})")
        client.subscribe(self.command_topic, qos=1)
        logger.info(f"📥 Subscribed to: {self.command_topic} (QoS 1)")
        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"⚠️ Unexpected disconnection ({reason_code})")
        else:
            logger.info("✅ Disconnected from broker")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        """Decode one command payload and dispatch it through the registry."""
        try:
            command_data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"❌ Error decoding command: {msg.payload!r} ({e})")
            return

        if not isinstance(command_data, dict):
            logger.warning(f"⚠️ Command payload is not an object: {command_data!r}")
            return

        command = str(command_data.get('command', '')).lower()
        if not command:
            logger.warning("⚠️ Empty command received")
            return

        logger.info(f"🎯 Executing command: {command}")
        try:
            self.command_registry.execute(command, command_data)
        except CommandNotAvailableError as e:
            logger.warning(f"⚠️ {e}")
        except InvalidCommandError as e:
            logger.warning(f"⚠️ {e}")
        except Exception as e:
            logger.error(f"❌ Error executing '{command}': {e}", exc_info=True)
