"""
Version ledger for metadata instances.

The ledger owns version stamping and the prior-property snapshot used
by undo. It never touches storage: it turns one InstanceRecord into the
next, and the arena commits the result.

Invariants:
    - A new instance starts at version 1
    - Every committed mutation produces version + 1, never more, never less
    - updated_by / update_time are stamped on every mutation;
      created_by / create_time never change
    - At most one prior property snapshot is held per instance
    - Undo is a forward mutation: a new, higher version carrying the
      older properties; version numbers are never rewound

How to change safely:
    - Keep retention at one step unless undo semantics change with it
    - Any new mutation kind must go through advance() so the version rule holds
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from ..instances.models import (
    EntityDetail,
    Instance,
    InstanceHeader,
    InstanceProvenance,
    InstanceType,
    freeze_properties,
)
from ..typedefs.types import InstanceStatus

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class InstanceRecord:
    """What the arena holds for one GUID.

    Attributes:
        instance: Current EntityDetail or Relationship
        prior_properties: Properties held before the last property update,
            or None when there is nothing to undo
    """

    instance: Instance
    prior_properties: Optional[Mapping[str, Any]] = None

    @property
    def guid(self) -> str:
        return self.instance.header.guid

    @property
    def version(self) -> int:
        return self.instance.header.version

    @property
    def header(self) -> InstanceHeader:
        return self.instance.header

    @property
    def can_undo(self) -> bool:
        return self.prior_properties is not None


class VersionLedger:
    """Stamps versions and keeps the one-step undo snapshot.

    Attributes:
        retain_history: Whether prior property snapshots are kept. When
            False, undo is not available for any instance.

    Example:
        >>> ledger = VersionLedger()
        >>> header = ledger.first_header("guid-1", topic_type, InstanceStatus.ACTIVE,
        ...                              "collection-1", "alice")
        >>> header.version
        1
    """

    def __init__(
        self,
        retain_history: bool = True,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            retain_history: Keep one prior property snapshot per instance
            clock: Returns the current time in Unix ms (for tests)
        """
        self.retain_history = retain_history
        self._clock = clock or _now_ms

    def now(self) -> int:
        return self._clock()

    def first_header(
        self,
        guid: str,
        instance_type: InstanceType,
        status: InstanceStatus,
        metadata_collection_id: str,
        user_id: str,
    ) -> InstanceHeader:
        """Header for a locally created instance at version 1.

        updated_by / update_time stay empty until the first mutation.
        """
        return InstanceHeader(
            guid=guid,
            type=instance_type,
            status=status,
            version=1,
            metadata_collection_id=metadata_collection_id,
            provenance=InstanceProvenance.LOCAL_COHORT,
            created_by=user_id,
            create_time=self._clock(),
        )

    def advance(self, header: InstanceHeader, user_id: str, **changes: Any) -> InstanceHeader:
        """Next header: version + 1, update stamps, plus any status changes.

        Args:
            header: Header of the currently committed version
            user_id: User making the mutation
            **changes: Header fields to change (status, status_on_delete)
        """
        for immutable in ("guid", "type", "metadata_collection_id", "created_by", "create_time"):
            if immutable in changes:
                raise ValueError(f"Instance header field '{immutable}' is immutable")
        return replace(
            header,
            version=header.version + 1,
            updated_by=user_id,
            update_time=self._clock(),
            **changes,
        )

    def new_record(self, instance: Instance) -> InstanceRecord:
        return InstanceRecord(instance=instance)

    def with_status(
        self,
        record: InstanceRecord,
        user_id: str,
        status: InstanceStatus,
        status_on_delete: Optional[InstanceStatus] = None,
    ) -> InstanceRecord:
        """Record for a status-only mutation; the undo snapshot is kept."""
        header = self.advance(
            record.header, user_id, status=status, status_on_delete=status_on_delete
        )
        return replace(record, instance=record.instance.with_header(header))

    def with_properties(
        self,
        record: InstanceRecord,
        user_id: str,
        properties: Optional[Mapping[str, Any]],
    ) -> InstanceRecord:
        """Record for a whole-bag property replacement.

        The properties being replaced become the undo snapshot.
        """
        header = self.advance(record.header, user_id)
        prior = record.instance.properties if self.retain_history else None
        return InstanceRecord(
            instance=record.instance.with_header(header, properties=properties or {}),
            prior_properties=prior,
        )

    def undone(self, record: InstanceRecord, user_id: str) -> InstanceRecord:
        """Record with the prior snapshot restored at a new, higher version.

        The snapshot is consumed, so undo reaches back one step only.
        """
        if record.prior_properties is None:
            raise ValueError(f"No prior properties held for instance {record.guid}")
        header = self.advance(record.header, user_id)
        logger.debug(
            "Restoring prior properties",
            extra={"guid": record.guid, "from_version": record.version},
        )
        return InstanceRecord(
            instance=record.instance.with_header(
                header, properties=freeze_properties(record.prior_properties)
            ),
            prior_properties=None,
        )

    def with_entity_changes(
        self,
        record: InstanceRecord,
        user_id: str,
        **changes: Any,
    ) -> InstanceRecord:
        """Record for an entity change that leaves properties alone (classifications)."""
        if not isinstance(record.instance, EntityDetail):
            raise TypeError("Entity changes apply to entities only")
        header = self.advance(record.header, user_id)
        return replace(record, instance=record.instance.with_header(header, **changes))
