"""
Control plane tests: command decoding, status publishing and the tracking
command handlers (broker-free).
"""

import asyncio
import json

import paho.mqtt.client as mqtt

from silentzone_control import MQTTControlPlane


class PublishResult:
    def __init__(self, rc=mqtt.MQTT_ERR_SUCCESS):
        self.rc = rc


class Message:
    def __init__(self, payload, topic="silentzone/control/test/commands"):
        self.payload = payload if isinstance(payload, bytes) else json.dumps(payload).encode('utf-8')
        self.topic = topic


def make_plane():
    plane = MQTTControlPlane(
        broker_host="localhost",
        broker_port=1883,
        command_topic="silentzone/control/test/commands",
        status_topic="silentzone/control/test/status",
        client_id="tracker_test",
    )
    statuses = []

    def publish(topic, payload, qos=0, retain=False):
        statuses.append(json.loads(payload))
        return PublishResult()

    plane.client.publish = publish
    return plane, statuses


async def wait_for_status(statuses, name, attempts=100):
    for _ in range(attempts):
        for status in statuses:
            if status["status"] == name:
                return status
        await asyncio.sleep(0.01)
    raise AssertionError(f"status {name!r} never published: {statuses}")


def test_publish_status_is_retained_json():
    plane, statuses = make_plane()
    plane.publish_status("running", {"places": 2})
    assert statuses[0]["status"] == "running"
    assert statuses[0]["client_id"] == "tracker_test"
    assert statuses[0]["data"] == {"places": 2}


def test_message_dispatches_through_registry():
    plane, _ = make_plane()
    received = []
    plane.command_registry.register("ping", received.append, "Ping")

    plane._on_message(plane.client, None, Message({"command": "PING", "n": 1}))
    assert received == [{"command": "PING", "n": 1}]


def test_bad_messages_are_dropped():
    plane, _ = make_plane()
    received = []
    plane.command_registry.register("ping", received.append, "Ping")

    plane._on_message(plane.client, None, Message(b"\xff\xfe"))
    plane._on_message(plane.client, None, Message(b"not json"))
    plane._on_message(plane.client, None, Message([1, 2]))
    plane._on_message(plane.client, None, Message({"command": ""}))
    plane._on_message(plane.client, None, Message({"command": "unknown"}))
    assert received == []


def test_failing_handler_does_not_escape():
    plane, _ = make_plane()

    def boom(command):
        raise RuntimeError("handler failed")

    plane.command_registry.register("boom", boom, "Fails")
    plane._on_message(plane.client, None, Message({"command": "boom"}))


def test_tracking_commands_publish_outcomes(harness, home, mosque):
    h = harness([home, mosque])
    plane, statuses = make_plane()

    async def run():
        h.orchestrator.setup_control_handlers(plane, asyncio.get_running_loop())

        plane._on_message(plane.client, None, Message({"command": "list_places"}))
        places = await wait_for_status(statuses, "places_list")

        plane._on_message(plane.client, None, Message({"command": "disable_place", "place_id": "mosque"}))
        disabled = await wait_for_status(statuses, "place_disabled")

        plane._on_message(plane.client, None, Message({
            "command": "schedule_event",
            "event_type": "SCHEDULE_START",
            "place_id": "home",
        }))
        scheduled = await wait_for_status(statuses, "schedule_event")
        return places, disabled, scheduled

    places, disabled, scheduled = asyncio.run(run())

    assert {p["id"] for p in places["data"]["places"]} == {"home", "mosque"}
    assert disabled["data"] == {"place_id": "mosque", "found": True}
    assert scheduled["data"]["dispatched"] is True
    assert h.channel.titles == ["Silent Zone Active"]


def test_command_missing_field_is_rejected(harness, home):
    h = harness([home])
    plane, statuses = make_plane()

    async def run():
        h.orchestrator.setup_control_handlers(plane, asyncio.get_running_loop())
        plane._on_message(plane.client, None, Message({"command": "enable_place"}))
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert statuses == []
