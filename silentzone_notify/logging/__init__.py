"""
Structured Logging for SilentZone
=================================

Bounded Context: Observability

JSON-structured logging with a typed event taxonomy.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from silentzone_notify.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="anchor")
    >>> logger.info(
    ...     event=LogEvent.ANCHOR_ACQUIRED,
    ...     message="Network fix acquired",
    ...     metadata={'accuracy_m': 35.0}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
