"""
Database Health - Events.

Observability sink for freshly computed load samples. Every
cache miss emits a `database_health.load_pct` event carrying
the database name, load_pct and raw active session count.

Subscribers are plain callables. A failing subscriber is
logged and never changes what the health check returns.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List
import logging


logger = logging.getLogger(__name__)


LOAD_PCT_EVENT = "database_health.load_pct"


@dataclass(frozen=True)
class LoadPctEvent:
    """A load sample as published to subscribers."""
    database_name: str
    load_pct: float
    active_sessions: int
    name: str = LOAD_PCT_EVENT
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event": self.name,
            "database_name": self.database_name,
            "load_pct": self.load_pct,
            "active_sessions": self.active_sessions,
            "occurred_at": self.occurred_at.isoformat(),
        }


EventCallback = Callable[[LoadPctEvent], None]


class EventBus:
    """In-process publisher for load events."""

    def __init__(self) -> None:
        self._subscribers: List[EventCallback] = []
        self._lock = threading.RLock()

    def subscribe(self, callback: EventCallback) -> EventCallback:
        """
        Register a subscriber.

        Returns the callback so this can be used as a decorator.
        """
        with self._lock:
            self._subscribers = self._subscribers + [callback]
        return callback

    def unsubscribe(self, callback: EventCallback) -> bool:
        """Remove a subscriber. Returns False if it was not registered."""
        with self._lock:
            if callback not in self._subscribers:
                return False
            self._subscribers = [s for s in self._subscribers if s != callback]
            return True

    @property
    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def emit(self, event: LoadPctEvent) -> None:
        """Deliver an event to every subscriber."""
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Load event subscriber failed: {e}")

    def clear(self) -> None:
        with self._lock:
            self._subscribers = []
