"""
SilentZone CLI - Command-line interface for tracking service control.

This package provides a CLI for sending MQTT commands to the tracking
service without manually writing JSON.

Usage:
    silentzone-cli enable-tracking
    silentzone-cli disable-place mosque
    silentzone-cli schedule-event SCHEDULE_START mosque
    silentzone-cli purge-all --reason permission_revoked
    silentzone-cli status
"""

__version__ = "1.0.0"
