"""
MQTT Device Bridge
==================

Bounded Context: Device I/O over MQTT

Connects the tracking service to the phone that carries the sensors.
The device pushes sensor readings and answers position requests; the
service pushes ringer commands. One bridge implements SensorProvider,
LocationProvider and RingerController.

Topics (base = mqtt.device_topic):
    <base>/sensors              device -> service  {"steps", "magnitude", "heading"} (any subset)
    <base>/location/request     service -> device  {"request_id", "high_accuracy", "timeout_s", "maximum_age_s"}
    <base>/location/response    device -> service  {"request_id", "lat", "lng", "accuracy_meters", "timestamp"}
                                                   or {"request_id", "error"}
    <base>/ringer               service -> device  {"mode": "silent" | "normal"}

Threading:
    paho callbacks run in the MQTT thread. Sensor values are cached under
    a lock; position responses resolve asyncio futures through
    loop.call_soon_threadsafe.
"""

import asyncio
import json
import threading
import uuid
from typing import Any, Dict, Optional, Tuple

from silentzone_notify.logging import LogEvent, StructuredLogger
from silentzone_notify.publishers import BasePublisher
from silentzone_notify.schemas import epoch_ms

from .models import PositionFix


SENSOR_KEYS = ("steps", "magnitude", "heading")


class DeviceUnavailableError(Exception):
    """Device reading or command could not be delivered."""
    pass


class MQTTDeviceBridge(BasePublisher):
    """
    SensorProvider + LocationProvider + RingerController backed by MQTT.

    Attributes:
        base_topic: Device topic prefix
        sensor_max_age_s: Cached readings older than this are refused

    Example:
        >>> bridge = MQTTDeviceBridge(
        ...     broker_host="localhost",
        ...     base_topic="silentzone/device/phone_01",
        ...     logger=create_logger("device"),
        ... )
        >>> bridge.connect()
        >>> fix = await bridge.get_current_position(False, 15, 10)
    """

    def __init__(
        self,
        broker_host: str,
        base_topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "silentzone_device_bridge",
        username: Optional[str] = None,
        password: Optional[str] = None,
        sensor_max_age_s: float = 30.0,
        clock=epoch_ms,
    ):
        self.base_topic = base_topic.rstrip("/")
        self.sensors_topic = f"{self.base_topic}/sensors"
        self.request_topic = f"{self.base_topic}/location/request"
        self.response_topic = f"{self.base_topic}/location/response"
        self.ringer_topic = f"{self.base_topic}/ringer"

        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=self.request_topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=1
        )
        self.client.on_message = self._on_message

        self.sensor_max_age_s = sensor_max_age_s
        self._clock = clock
        self._lock = threading.Lock()
        self._readings: Dict[str, Tuple[float, int]] = {}  # key -> (value, received_at_ms)
        self._pending: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = {}

    def _on_connected(self, client) -> None:
        client.subscribe(self.sensors_topic, qos=0)
        client.subscribe(self.response_topic, qos=1)

    def format_message(self, **fields) -> Dict[str, Any]:
        """Stamp a device command with the send time (epoch ms)."""
        message = dict(fields)
        message['timestamp'] = self._clock()
        return message

    def _on_message(self, client, userdata, msg) -> None:
        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode device message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        if not isinstance(data, dict):
            self.logger.warning(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Device message is not an object",
                metadata={'topic': msg.topic}
            )
            return

        if msg.topic == self.sensors_topic:
            self.handle_sensor_message(data)
        elif msg.topic == self.response_topic:
            self.handle_location_response(data)

    # ===== Sensors =====

    def handle_sensor_message(self, data: Dict[str, Any]) -> None:
        """Cache every known sensor value in a device message."""
        now = self._clock()
        received = {}
        for key in SENSOR_KEYS:
            if key not in data:
                continue
            try:
                received[key] = (float(data[key]), now)
            except (TypeError, ValueError):
                self.logger.warning(
                    event=LogEvent.DESERIALIZATION_ERROR,
                    message=f"Invalid sensor value for {key}",
                    metadata={'value': data[key]}
                )

        with self._lock:
            self._readings.update(received)

        if received:
            self.logger.debug(
                event=LogEvent.DEVICE_READING_RECEIVED,
                message="Sensor reading cached",
                metadata={k: v for k, (v, _) in received.items()}
            )

    def _read(self, key: str) -> float:
        """
        Latest cached value for a sensor.

        Raises:
            DeviceUnavailableError: If nothing fresh has been received
        """
        with self._lock:
            reading = self._readings.get(key)

        if reading is None:
            raise DeviceUnavailableError(f"No {key} reading received yet")

        value, received_at = reading
        age_s = (self._clock() - received_at) / 1000.0
        if age_s > self.sensor_max_age_s:
            raise DeviceUnavailableError(f"{key} reading is {age_s:.0f}s old")
        return value

    async def get_step_count(self) -> Dict[str, Any]:
        return {"steps": int(self._read("steps"))}

    async def get_acceleration(self) -> Dict[str, Any]:
        return {"magnitude": self._read("magnitude")}

    async def get_magnetic_heading(self) -> Dict[str, Any]:
        return {"heading": self._read("heading")}

    # ===== Location =====

    async def get_current_position(
        self,
        high_accuracy: bool,
        timeout_s: float,
        maximum_age_s: float,
    ) -> PositionFix:
        """
        Ask the device for one fix and wait for its answer.

        Raises:
            DeviceUnavailableError: If the request could not be published
                or the device answered with an error
            asyncio.TimeoutError: If no answer arrived within timeout_s
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        request_id = uuid.uuid4().hex

        with self._lock:
            self._pending[request_id] = (loop, future)

        try:
            self._send(self.request_topic, self.format_message(
                request_id=request_id,
                high_accuracy=high_accuracy,
                timeout_s=timeout_s,
                maximum_age_s=maximum_age_s,
            ))
            return await asyncio.wait_for(future, timeout=timeout_s)
        finally:
            with self._lock:
                self._pending.pop(request_id, None)

    def handle_location_response(self, data: Dict[str, Any]) -> None:
        """Resolve the pending request a device response answers."""
        request_id = data.get("request_id")
        with self._lock:
            pending = self._pending.get(request_id)

        if pending is None:
            self.logger.debug(
                event=LogEvent.DEVICE_FIX_RECEIVED,
                message="Late or unknown location response ignored",
                metadata={'request_id': request_id}
            )
            return

        loop, future = pending
        loop.call_soon_threadsafe(self._resolve, future, data)

    def _resolve(self, future: asyncio.Future, data: Dict[str, Any]) -> None:
        if future.done():
            return

        if "error" in data:
            future.set_exception(DeviceUnavailableError(f"Device location error: {data['error']}"))
            return

        try:
            fix = PositionFix(
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                accuracy_meters=float(data["accuracy_meters"]),
                timestamp=int(data.get("timestamp", self._clock())),
            )
        except (KeyError, TypeError, ValueError) as e:
            future.set_exception(DeviceUnavailableError(f"Invalid location response: {e}"))
            return

        self.logger.info(
            event=LogEvent.DEVICE_FIX_RECEIVED,
            message="Position fix received",
            metadata={'accuracy_m': fix.accuracy_meters}
        )
        future.set_result(fix)

    # ===== Ringer =====

    async def silence(self) -> None:
        self._set_ringer("silent")

    async def restore(self) -> None:
        self._set_ringer("normal")

    def _set_ringer(self, mode: str) -> None:
        self._send(self.ringer_topic, self.format_message(mode=mode))
        self.logger.info(
            event=LogEvent.DEVICE_RINGER_SET,
            message=f"Ringer set to {mode}",
        )

    def _send(self, topic: str, message: Dict[str, Any]) -> None:
        """
        Raises:
            DeviceUnavailableError: If the broker did not accept the message
        """
        if not self.is_connected():
            raise DeviceUnavailableError("Device bridge not connected")
        if not self.publish(message, topic=topic):
            raise DeviceUnavailableError(f"Could not publish to {topic}")
