"""Progress and diagnostic events published by the installer."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

logger = logging.getLogger(__name__)

EventType = Literal[
    "operation_start",
    "operation_complete",
    "operation_error",
    "planning_started",
    "planning_warning",
    "conflict_detected",
    "conflict_resolved",
    "operation_applied",
    "backup_created",
    "rollback",
    "verification_start",
    "verification_complete",
    "state_changed",
]


def _empty_data() -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class FileSystemEvent:
    """A single event. ``data`` holds event-specific fields (paths, counts, state)."""

    type: EventType
    data: dict[str, Any] = field(default_factory=_empty_data)
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


EventListener = Callable[[FileSystemEvent], None]


class EventBus:
    """Synchronous fan-out of events to subscribed listeners.

    Listeners are called in subscription order. A listener that raises is logged
    and skipped; it never interrupts the publisher or the other listeners.
    """

    def __init__(self, listeners: list[EventListener] | None = None) -> None:
        self._listeners: list[EventListener] = list(listeners or [])

    @property
    def listeners(self) -> list[EventListener]:
        return list(self._listeners)

    def subscribe(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: FileSystemEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Event listener failed on {event.type}: {e}")

    def emit(self, event_type: EventType, error: str | None = None, **data: Any) -> None:
        """Build and publish an event in one call. ``error`` goes to ``event.error``, not data."""
        self.publish(FileSystemEvent(type=event_type, data=data, error=error))
