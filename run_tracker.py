#!/usr/bin/env python3
"""
SilentZone Tracker Service - Entry Point
========================================

This script starts the SilentZone tracking service, which:
- Anchors on coarse network fixes requested from the device
- Dead-reckons from pedometer and compass readings
- Detects place entries/exits against per-place grids
- Silences / restores the ringer and publishes notifications to MQTT
- Responds to control commands via MQTT control plane

Usage:
    python run_tracker.py --config config/tracker_config.yaml

Architecture:
    - TrackingOrchestrator: Main orchestrator (silentzone_tracker)
    - MQTTDeviceBridge: Sensors, fixes, ringer (silentzone_tracker)
    - MQTTControlPlane: Command handler (silentzone_control)
    - NotificationPublisher: Notification display channel (silentzone_notify)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create control plane, device bridge and notification publisher
    4. Create TrackingOrchestrator and register command handlers
    5. Enable tracking (if configured)
    6. Wait for stop signal (Ctrl+C or SIGTERM)
    7. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/tracker.log (INFO level)
"""

import argparse
import asyncio
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from silentzone_control import MQTTControlPlane
from silentzone_notify import NotificationEventBus, NotificationPublisher, create_logger
from silentzone_tracker import (
    InMemoryPlaceRepository,
    MQTTDeviceBridge,
    TrackerConfig,
    TrackingOrchestrator,
)


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the tracker service.

    Args:
        log_file: Optional path to log file (default: logs/tracker.log)

    Returns:
        Logger instance for the tracker
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TrackerApp:
    """
    Main application wrapper for TrackingOrchestrator.

    Handles:
    - Configuration loading
    - Component initialization (control plane, device bridge, publisher)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[TrackerConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.device: Optional[MQTTDeviceBridge] = None
        self.publisher: Optional[NotificationPublisher] = None
        self.orchestrator: Optional[TrackingOrchestrator] = None

        self._stop_event: Optional[asyncio.Event] = None
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create control plane
        3. Create device bridge and notification publisher
        4. Create TrackingOrchestrator
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 SilentZone Tracker - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = TrackerConfig.from_yaml(self.config_path)
        mqtt_config = self.config.mqtt.topics_for(self.config.service_id)
        self.logger.info(f"✅ Configuration loaded (service_id={self.config.service_id})")

        self.logger.info("🔌 Creating MQTT control plane")
        self.control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            command_topic=mqtt_config.command_topic,
            status_topic=mqtt_config.status_topic,
            client_id=f"tracker_{self.config.service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.logger.info("📱 Creating device bridge")
        self.device = MQTTDeviceBridge(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            base_topic=mqtt_config.device_topic,
            logger=create_logger(component="device"),
            client_id=f"device_{self.config.service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.logger.info("📤 Creating notification publisher")
        self.publisher = NotificationPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=mqtt_config.notification_topic,
            logger=create_logger(component="mqtt_publisher"),
            client_id=f"notifications_{self.config.service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.logger.info(f"  - Command topic: {mqtt_config.command_topic}")
        self.logger.info(f"  - Device topic: {mqtt_config.device_topic}")
        self.logger.info(f"  - Notification topic: {mqtt_config.notification_topic}")

        self.logger.info("🏗️  Creating tracking orchestrator")
        bus = NotificationEventBus(
            channel=self.publisher,
            logger=create_logger(component="notification_bus"),
            dedupe_window_ms=self.config.notifications.dedupe_window_ms,
        )
        self.orchestrator = TrackingOrchestrator(
            repository=InMemoryPlaceRepository(self.config.places),
            sensors=self.device,
            location=self.device,
            bus=bus,
            ringer=self.device,
            config=self.config,
        )
        self.logger.info(f"✅ Orchestrator created ({len(self.config.places)} places)")
        self.logger.info("=" * 80)

    async def run(self):
        """
        Run the tracker service.

        Blocks until shutdown is requested via signal.
        """
        if not self.orchestrator:
            raise RuntimeError("Service not initialized. Call setup() first.")

        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._signal_handler, signum)

        self.orchestrator.setup_control_handlers(self.control_plane, loop)

        if not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")
        if not self.device.connect():
            raise RuntimeError("Failed to connect to MQTT broker (device bridge)")
        if not self.publisher.connect():
            self.logger.warning("⚠️  Notification publisher offline, notifications will be logged only")

        try:
            if self.config.tracking_enabled:
                await self.orchestrator.enable_tracking()
            self.control_plane.publish_status("running", self.orchestrator.status())

            self.logger.info("✅ Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            await self._stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Stop tracking (cancel loop, close visits, restore ringer)
        2. Disconnect publisher and device bridge
        3. Disconnect control plane
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return
        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down tracker service")
        self.logger.info("=" * 80)

        if self.orchestrator and self.orchestrator.is_enabled:
            await self.orchestrator.disable_tracking()
            self.logger.info("✅ Tracking stopped")

        if self.publisher:
            self.publisher.disconnect()
        if self.device:
            self.device.disconnect()

        if self.control_plane:
            self.control_plane.publish_status("stopped")
            self.control_plane.disconnect()
            self.logger.info("✅ Control plane disconnected")

        self.logger.info("=" * 80)
        self.logger.info("✅ Shutdown complete")
        self.logger.info("=" * 80)

    def _signal_handler(self, signum):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"⚠️  Received signal {signal_name} ({signum})")
        if self._stop_event is not None:
            self._stop_event.set()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="SilentZone Tracker - low-power geofencing + MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_tracker.py --config config/tracker_config.yaml

  # Start with custom log file
  python run_tracker.py --config config/tracker_config.yaml --log-file logs/custom.log

  # Start without file logging (console only)
  python run_tracker.py --config config/tracker_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to tracker configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/tracker.log'),
        help='Path to log file (default: logs/tracker.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args(argv)


def main():
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments
    2. Create TrackerApp
    3. Setup components
    4. Run service (blocks until stopped)
    """
    args = parse_args()
    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TrackerApp(config_path=args.config, log_file=log_file)

    try:
        app.setup()
        asyncio.run(app.run())
    except (OSError, ValueError, RuntimeError) as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
