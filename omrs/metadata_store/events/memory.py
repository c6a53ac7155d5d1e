"""
In-memory event sink.

Collects published events in order for:
- Unit and integration tests
- Local development without a change-propagation bus

Invariants:
    - All data is lost on process exit
    - Events are kept in publish order
    - Thread-safe for concurrent publishers
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .base import InstanceEvent, InstanceEventKind

logger = logging.getLogger(__name__)


class InMemoryEventSink:
    """EventSink that keeps every event in a list.

    Example:
        >>> sink = InMemoryEventSink()
        >>> store = InstanceStore(registry, config, sinks=[sink])
        >>> entity = store.add_entity("alice", "Topic", {"qualifiedName": "t1"})
        >>> [e.kind for e in sink.events_for(entity.guid)]
        [<InstanceEventKind.CREATED: 'created'>]
    """

    def __init__(self, max_events: Optional[int] = None) -> None:
        """Initialize the sink.

        Args:
            max_events: Keep only the newest events once this many are held
        """
        self.max_events = max_events
        self._events: List[InstanceEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: InstanceEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self.max_events is not None and len(self._events) > self.max_events:
                del self._events[: len(self._events) - self.max_events]
        logger.debug(f"Collected {event}")

    @property
    def events(self) -> List[InstanceEvent]:
        """Snapshot of all collected events."""
        with self._lock:
            return list(self._events)

    def events_for(self, guid: str) -> List[InstanceEvent]:
        with self._lock:
            return [e for e in self._events if e.guid == guid]

    def events_of_kind(self, kind: InstanceEventKind) -> List[InstanceEvent]:
        with self._lock:
            return [e for e in self._events if e.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
