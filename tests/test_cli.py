"""
CLI argument -> command payload tests (no broker involved).
"""

import pytest

from silentzone_cli.cli import build_command, build_parser


def payload(*argv):
    return build_command(build_parser().parse_args(list(argv)))


def test_simple_commands():
    assert payload("enable-tracking") == {"command": "enable_tracking"}
    assert payload("disable-tracking") == {"command": "disable_tracking"}
    assert payload("resync") == {"command": "resync"}
    assert payload("status") == {"command": "status"}
    assert payload("list-places") == {"command": "list_places"}


def test_place_commands():
    assert payload("enable-place", "home") == {"command": "enable_place", "place_id": "home"}
    assert payload("disable-place", "mosque") == {"command": "disable_place", "place_id": "mosque"}
    assert payload("delete-place", "office") == {"command": "delete_place", "place_id": "office"}


def test_purge_all_reason():
    assert payload("purge-all") == {"command": "purge_all", "reason": "permission_revoked"}
    assert payload("purge-all", "--reason", "user_request")["reason"] == "user_request"


def test_schedule_event():
    assert payload("schedule-event", "SCHEDULE_START", "mosque") == {
        "command": "schedule_event",
        "event_type": "SCHEDULE_START",
        "place_id": "mosque",
        "source": "alarm",
    }


def test_schedule_event_rejects_non_schedule_type():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["schedule-event", "PLACE_ENTERED", "mosque"])


def test_global_options():
    args = build_parser().parse_args(["--service-id", "tablet", "--port", "1884", "status"])
    assert args.service_id == "tablet"
    assert args.port == 1884
