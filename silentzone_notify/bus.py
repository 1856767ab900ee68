"""
Notification Event Bus
======================

Bounded Context: Notification Dispatch

Single entry point for every user-facing notification the tracking core
raises. The bus drops repeats of the same (type, place) within a short
window, renders the event and hands it to one NotificationChannel.

Design:
- Explicitly constructed and injected (no module-level singleton)
- Dedup state is a dict of key -> last dispatch time (epoch ms)
- Dispatch failure is logged, never re-raised, never retried
- Injectable clock for deterministic tests

Example:
    >>> bus = NotificationEventBus(channel=LoggingNotificationChannel())
    >>> bus.emit(NotificationEvent(
    ...     type=NotificationEventType.PLACE_ENTERED,
    ...     place_id="mosque",
    ...     place_name="Central Mosque",
    ...     timestamp=epoch_ms(),
    ...     source=NotificationSource.GEOFENCE,
    ... ))
    True
"""

import threading
from typing import Callable, Dict, Optional, Tuple

from .channels import NotificationChannel, NotificationDispatchError
from .logging import LogEvent, StructuredLogger, create_logger
from .schemas import NotificationEvent, epoch_ms


DEFAULT_DEDUPE_WINDOW_MS = 30_000


class NotificationEventBus:
    """
    De-duplicating notification dispatcher.

    Attributes:
        channel: Display channel
        dedupe_window_ms: Repeats of a key inside this window are dropped
        logger: Structured logger

    Thread Safety:
        emit() and clear() are guarded by a lock (MQTT thread and event
        loop may both raise events).
    """

    def __init__(
        self,
        channel: NotificationChannel,
        logger: Optional[StructuredLogger] = None,
        dedupe_window_ms: int = DEFAULT_DEDUPE_WINDOW_MS,
        clock: Callable[[], int] = epoch_ms,
    ):
        if dedupe_window_ms < 0:
            raise ValueError(f"dedupe_window_ms must be >= 0, got {dedupe_window_ms}")

        self.channel = channel
        self.logger = logger or create_logger("notification_bus")
        self.dedupe_window_ms = dedupe_window_ms
        self._clock = clock
        self._last_emitted: Dict[Tuple[str, str], int] = {}
        self._lock = threading.Lock()
        self._dispatched_count = 0
        self._deduplicated_count = 0

    def emit(self, event: NotificationEvent) -> bool:
        """
        Dispatch an event unless it repeats a recent one.

        Args:
            event: Event to show

        Returns:
            True if the event was handed to the channel (even if the
            channel then failed), False if it was de-duplicated.
        """
        key = event.dedup_key
        now = self._clock()

        with self._lock:
            last = self._last_emitted.get(key)
            if last is not None and now - last < self.dedupe_window_ms:
                self._deduplicated_count += 1
                self.logger.debug(
                    event=LogEvent.NOTIFICATION_DEDUPLICATED,
                    message=f"Dropped repeated {event.type.value}",
                    metadata={
                        'place_id': event.place_id,
                        'since_last_ms': now - last,
                    }
                )
                return False

            self._last_emitted[key] = now
            self._dispatched_count += 1
            self._purge(now)

        content = event.render()
        try:
            self.channel.show_notification(
                content.title,
                content.body,
                content.notification_id,
                silent=content.silent,
                grouped=content.grouped,
            )
        except NotificationDispatchError as e:
            self.logger.error(
                event=LogEvent.NOTIFICATION_DISPATCH_ERROR,
                message=f"Channel failed to show {event.type.value}",
                metadata={'place_id': event.place_id},
                exc_info=e,
            )
            return True
        except Exception as e:
            self.logger.error(
                event=LogEvent.NOTIFICATION_DISPATCH_ERROR,
                message=f"Unexpected channel error showing {event.type.value}",
                metadata={'place_id': event.place_id, 'error_type': type(e).__name__},
                exc_info=e,
            )
            return True

        self.logger.info(
            event=LogEvent.NOTIFICATION_DISPATCHED,
            message=f"Showing {event.type.value}",
            metadata={
                'place_id': event.place_id,
                'source': event.source.value,
                'notification_id': content.notification_id,
            }
        )
        return True

    def _purge(self, now: int) -> None:
        """Drop dedup entries older than twice the window. Caller holds the lock."""
        horizon = 2 * self.dedupe_window_ms
        stale = [k for k, t in self._last_emitted.items() if now - t > horizon]
        for k in stale:
            del self._last_emitted[k]
        if stale:
            self.logger.debug(
                event=LogEvent.NOTIFICATION_PURGED,
                message=f"Purged {len(stale)} dedup entries",
            )

    def clear(self) -> None:
        """Reset dedup state."""
        with self._lock:
            self._last_emitted.clear()
        self.logger.debug(
            event=LogEvent.NOTIFICATION_CLEARED,
            message="Dedup state cleared",
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_emitted)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                'dispatched': self._dispatched_count,
                'deduplicated': self._deduplicated_count,
                'tracked_keys': len(self._last_emitted),
            }
