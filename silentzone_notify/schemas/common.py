"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Time helpers shared by the notification messages and the tracking core.

Design Principles:
- Domain timestamps are integer epoch milliseconds
- ISO 8601 strings only at the serialization edge
- Immutability: frozen=True prevents accidental mutation
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds (default clock)."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string (UTC)

    Example:
        >>> Timestamp.from_epoch_ms(0).value
        '1970-01-01T00:00:00+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_epoch_ms(cls, ms: int) -> 'Timestamp':
        """Create timestamp from epoch milliseconds."""
        return cls(value=datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
