"""
Observability hook for the gateway.

The gateway reports what it did as events instead of writing to the
console, so it stays testable without capturing output. The default sink
turns events into log records.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

from .models import Tier

logger = logging.getLogger(__name__)


class Outcome(Enum):
    SUCCESS = "success"
    REJECTED = "rejected"  # failed validation, backend never contacted
    FAILED = "failed"      # backend reported an error


@dataclass(frozen=True)
class GatewayEvent:
    """One gateway operation and how it ended."""
    operation: str
    outcome: Outcome
    tier: Optional[Tier] = None
    key: Optional[str] = None
    detail: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventSink(Protocol):
    """Anything that can receive gateway events."""

    def emit(self, event: GatewayEvent) -> None:
        ...


class LoggingEventSink:
    """Writes events to the standard logging module."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._logger = log or logger

    def emit(self, event: GatewayEvent) -> None:
        extra = {
            "operation": event.operation,
            "outcome": event.outcome.value,
            "tier": event.tier.value if event.tier else None,
            "key": event.key,
            **event.detail,
        }

        if event.outcome is Outcome.SUCCESS:
            self._logger.info(f"Storage {event.operation} succeeded", extra=extra)
        elif event.outcome is Outcome.REJECTED:
            self._logger.warning(f"Storage {event.operation} rejected", extra=extra)
        else:
            self._logger.error(f"Storage {event.operation} failed", extra=extra)


class RecordingEventSink:
    """Keeps events in memory. Handy in tests."""

    def __init__(self) -> None:
        self.events: list[GatewayEvent] = []

    def emit(self, event: GatewayEvent) -> None:
        self.events.append(event)

    def operations(self) -> list[str]:
        return [e.operation for e in self.events]

    def last(self) -> GatewayEvent:
        return self.events[-1]
