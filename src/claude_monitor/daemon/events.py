"""
Bounded, newest-first history of session events.
"""

from typing import Callable

from claude_monitor.models import Session, SessionEvent, SessionEventType
from claude_monitor.utils import now_ms, random_suffix

MAX_EVENTS = 100


class EventLog:
    """Append-only event history that keeps only the most recent entries."""

    def __init__(
        self, capacity: int = MAX_EVENTS, clock: Callable[[], int] = now_ms
    ):
        if capacity < 1:
            raise ValueError("Event log capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._events: list[SessionEvent] = []

    def append(self, event_type: SessionEventType, session: Session) -> SessionEvent:
        """
        Record an event for ``session`` and evict the oldest beyond capacity.

        Args:
            event_type: What happened to the session.
            session: The session as it is at the time of the event.

        Returns:
            The newly created event.
        """
        timestamp = self._clock()
        event = SessionEvent(
            id=f"{session.pid}-{timestamp}-{random_suffix(8)}",
            type=event_type,
            pid=session.pid,
            project=session.project,
            timestamp=timestamp,
            message=session.message,
        )
        self._events.insert(0, event)
        del self._events[self.capacity :]
        return event

    def all(self) -> list[SessionEvent]:
        """All retained events, newest first."""
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
