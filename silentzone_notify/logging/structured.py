"""
Structured JSON Logger
======================

Bounded Context: Observability Infrastructure

One JSON line per tracking decision: anchor fixes, notification
dispatch/dedup decisions, device traffic and MQTT connection changes.

Design:
- StructuredLogger attaches event / component / metadata to the LogRecord
  (logging "extra"); JSONFormatter renders the record
- Records below the logger level are dropped before any rendering
- Thread-safe (standard logging module)

Example:
    >>> logger = create_logger("notification_bus")
    >>> logger.info(
    ...     event=LogEvent.NOTIFICATION_DISPATCHED,
    ...     message="Showing PLACE_ENTERED",
    ...     metadata={'place_id': 'mosque', 'source': 'geofence'}
    ... )

Output:
    {"timestamp": "2025-10-24T15:30:45.123456+00:00", "level": "INFO",
     "component": "notification_bus", "event": "notification.dispatched",
     "message": "Showing PLACE_ENTERED",
     "metadata": {"place_id": "mosque", "source": "geofence"}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .events import LogEvent


class JSONFormatter(logging.Formatter):
    """Render a StructuredLogger record as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'component': getattr(record, 'component', record.name),
            'event': getattr(record, 'event', None),
            'message': record.getMessage(),
        }

        metadata = getattr(record, 'metadata', None)
        if metadata:
            entry['metadata'] = metadata

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry['exception'] = {
                'type': type(error).__name__,
                'message': str(error),
                'traceback': self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    Logger whose every call carries a typed LogEvent.

    Attributes:
        component: Component name (e.g., "anchor", "notification_bus")
        logger: Underlying Python logger (silentzone.<component>)
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None
    ):
        self.component = component
        self.logger = logging.getLogger(logger_name or f"silentzone.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={
                'component': self.component,
                'event': event.value,
                'metadata': metadata,
            },
        )

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log an ERROR; exc_info adds type, message and traceback.

        Example:
            >>> try:
            ...     channel.show_notification(...)
            ... except NotificationDispatchError as e:
            ...     logger.error(
            ...         event=LogEvent.NOTIFICATION_DISPATCH_ERROR,
            ...         message="Display channel unavailable",
            ...         exc_info=e,
            ...     )
        """
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    """Factory for a StructuredLogger on silentzone.<component>."""
    return StructuredLogger(component=component, level=level)
