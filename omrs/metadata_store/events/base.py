"""
Base protocol and types for instance change events.

The store publishes one InstanceEvent to every registered sink after each
successful commit. Sinks forward events to whatever change-propagation
bus the deployment uses; the engine only depends on the EventSink protocol.

Invariants:
    - Events are published only after the commit they describe
    - Events for one GUID are published in version order
    - A failing sink never undoes a commit

How to change safely:
    - Add event kinds at the end of InstanceEventKind
    - Keep to_dict() keys stable; consumers parse them
"""

from __future__ import annotations

import json
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from ..instances.models import Instance, InstanceType
from ..typedefs.types import InstanceStatus


class InstanceCategory(Enum):
    ENTITY = "entity"
    RELATIONSHIP = "relationship"


class InstanceEventKind(Enum):
    """What happened to the instance."""

    CREATED = "created"
    STATUS_UPDATED = "status_updated"
    PROPERTIES_UPDATED = "properties_updated"
    UPDATE_UNDONE = "update_undone"
    CLASSIFIED = "classified"
    RECLASSIFIED = "reclassified"
    DECLASSIFIED = "declassified"
    DELETED = "deleted"
    RESTORED = "restored"
    PURGED = "purged"
    REFERENCE_COPY_SAVED = "reference_copy_saved"

    @property
    def is_transition(self) -> bool:
        """Whether the event marks a delete, restore or purge transition."""
        return self in (
            InstanceEventKind.DELETED,
            InstanceEventKind.RESTORED,
            InstanceEventKind.PURGED,
        )


@dataclass(frozen=True)
class InstanceEvent:
    """A committed change to one instance.

    Attributes:
        kind: What happened
        category: Entity or relationship
        guid: Instance GUID
        type: Instance type reference
        version: Version after the change (last version for purges)
        status: Status after the change (last status for purges)
        metadata_collection_id: Home repository of the instance
        user_id: User that made the change
        ts_ms: Commit time (Unix ms)
        classification_name: Classification involved, for classification events
    """

    kind: InstanceEventKind
    category: InstanceCategory
    guid: str
    type: InstanceType
    version: int
    status: InstanceStatus
    metadata_collection_id: str
    user_id: str
    ts_ms: int
    classification_name: Optional[str] = None

    @classmethod
    def for_instance(
        cls,
        kind: InstanceEventKind,
        category: InstanceCategory,
        instance: Instance,
        user_id: str,
        ts_ms: int,
        classification_name: Optional[str] = None,
    ) -> InstanceEvent:
        header = instance.header
        return cls(
            kind=kind,
            category=category,
            guid=header.guid,
            type=header.type,
            version=header.version,
            status=header.status,
            metadata_collection_id=header.metadata_collection_id,
            user_id=user_id,
            ts_ms=ts_ms,
            classification_name=classification_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "category": self.category.value,
            "guid": self.guid,
            "type": self.type.to_dict(),
            "version": self.version,
            "status": self.status.value,
            "metadata_collection_id": self.metadata_collection_id,
            "user_id": self.user_id,
            "ts_ms": self.ts_ms,
        }
        if self.classification_name:
            result["classification_name"] = self.classification_name
        return result

    def to_json(self) -> bytes:
        """Encode as UTF-8 JSON, the form buses carry."""
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> InstanceEvent:
        return cls(
            kind=InstanceEventKind(data["kind"]),
            category=InstanceCategory(data["category"]),
            guid=data["guid"],
            type=InstanceType.from_dict(data["type"]),
            version=data["version"],
            status=InstanceStatus(data["status"]),
            metadata_collection_id=data["metadata_collection_id"],
            user_id=data["user_id"],
            ts_ms=data["ts_ms"],
            classification_name=data.get("classification_name"),
        )

    def __str__(self) -> str:
        return f"InstanceEvent({self.kind.value} {self.category.value} {self.guid} v{self.version})"


@runtime_checkable
class EventSink(Protocol):
    """Protocol for receivers of committed instance events.

    Implementations must be safe to call from concurrent request threads.
    publish() is called after the commit, while the instance is still held
    against further commits, so a slow sink delays the next change to that
    instance. Sinks may read the store but must not mutate it from publish().
    Raising from publish() is logged by the store and does not affect the
    caller's result.
    """

    @abstractmethod
    def publish(self, event: InstanceEvent) -> None:
        """Deliver one event."""
        ...
