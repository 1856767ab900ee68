"""
SilentZone CLI - Main entry point.

Provides command-line interface for sending MQTT commands to the tracking service.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from .mqtt_client import MQTTCommandClient


SCHEDULE_EVENTS = ["SCHEDULE_START", "SCHEDULE_END", "SCHEDULE_APPROACHING"]
SIMPLE_COMMANDS = ["enable-tracking", "disable-tracking", "resync", "status", "list-places"]
PLACE_COMMANDS = ["enable-place", "disable-place", "delete-place"]


def send_command(
    command: Dict[str, Any],
    service_id: str = "phone_01",
    broker: str = "localhost",
    port: int = 1883
) -> None:
    """
    Send command to the tracking service via MQTT.

    Args:
        command: Command dictionary
        service_id: Target service ID
        broker: MQTT broker host
        port: MQTT broker port
    """
    topic = f"silentzone/control/{service_id}/commands"

    client = MQTTCommandClient(broker=broker, port=port)
    client.send_command(topic, command, qos=1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="silentzone-cli",
        description="SilentZone CLI - Send MQTT commands to the tracking service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start / stop tracking
  silentzone-cli enable-tracking
  silentzone-cli disable-tracking

  # Place management
  silentzone-cli enable-place home
  silentzone-cli disable-place mosque
  silentzone-cli delete-place office

  # Schedule alarm fired
  silentzone-cli schedule-event SCHEDULE_START mosque

  # Permission revoked
  silentzone-cli purge-all --reason permission_revoked

  # Simple commands (no arguments)
  silentzone-cli resync
  silentzone-cli status
  silentzone-cli list-places
"""
    )

    parser.add_argument(
        "--service-id",
        default="phone_01",
        help="Target service ID (default: phone_01)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    for name in PLACE_COMMANDS:
        sub = subparsers.add_parser(name, help=f"{name.split('-')[0].capitalize()} place by ID")
        sub.add_argument('place_id', help='Place ID')

    purge = subparsers.add_parser('purge-all', help='Cancel tracking and drop all state')
    purge.add_argument('--reason', default='permission_revoked', help='Reason recorded on check-outs')

    schedule = subparsers.add_parser('schedule-event', help='Raise a schedule notification')
    schedule.add_argument('event_type', choices=SCHEDULE_EVENTS, help='Schedule event type')
    schedule.add_argument('place_id', help='Place ID')
    schedule.add_argument('--source', default='alarm', choices=['alarm', 'timer', 'manual'])

    subparsers.add_parser('enable-tracking', help='Start tracking enabled places')
    subparsers.add_parser('disable-tracking', help='Stop tracking and restore the ringer')
    subparsers.add_parser('resync', help='Reload places and force a re-anchor')
    subparsers.add_parser('status', help='Query tracking status')
    subparsers.add_parser('list-places', help='List all places')

    return parser


def build_command(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed arguments into the JSON command payload."""
    name = args.command.replace('-', '_')

    if args.command in PLACE_COMMANDS:
        return {'command': name, 'place_id': args.place_id}

    if args.command == 'purge-all':
        return {'command': name, 'reason': args.reason}

    if args.command == 'schedule-event':
        return {
            'command': name,
            'event_type': args.event_type,
            'place_id': args.place_id,
            'source': args.source,
        }

    if args.command in SIMPLE_COMMANDS:
        return {'command': name}

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        send_command(build_command(args), args.service_id, args.broker, args.port)
    except (ConnectionError, ValueError, RuntimeError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
