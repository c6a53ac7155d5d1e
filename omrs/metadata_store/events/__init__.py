"""
Instance change events.

The store publishes an InstanceEvent to each registered EventSink after
every successful commit. Delivery to other repositories is the job of
the sink implementation, not of the engine.
"""

from .base import EventSink, InstanceCategory, InstanceEvent, InstanceEventKind
from .memory import InMemoryEventSink

__all__ = [
    "EventSink",
    "InstanceCategory",
    "InstanceEvent",
    "InstanceEventKind",
    "InMemoryEventSink",
]
