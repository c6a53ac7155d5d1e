"""
Lifecycle state machine for metadata instances.

States:
    ACTIVE(status)  any valid status of the type other than DELETED
    DELETED         soft-deleted tombstone, reachable by restore and purge only
    PURGED          absence; modelled by the arena, not stored

Transition table (source state -> allowed transitions):
    ACTIVE   create*, update_status, update_properties, undo, delete,
             classify, reclassify, declassify, purge**
    DELETED  restore, purge

    *  create is the only way into ACTIVE for a new GUID
    ** purge from ACTIVE only where soft delete is unavailable

Invariants:
    - DELETED is never reachable through update_status, whatever the
      type's valid-status list says
    - A rejected transition leaves the instance untouched
    - Soft delete and undo are capabilities: available only when both the
      type and the store support them

How to change safely:
    - Add transitions to _ALLOWED_FROM and give them a check method
    - Keep capability checks ahead of state changes so unsupported calls
      never produce a new version
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import (
    FunctionNotSupportedError,
    InvalidTransitionError,
    NotKnownError,
    StatusNotSupportedError,
)
from ..instances.models import InstanceHeader
from ..typedefs.types import InstanceStatus, TypeDef
from .ledger import InstanceRecord

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class Transition(Enum):
    """Mutations an instance can go through."""

    CREATE = "create"
    UPDATE_STATUS = "update_status"
    UPDATE_PROPERTIES = "update_properties"
    UNDO = "undo"
    DELETE = "delete"
    RESTORE = "restore"
    PURGE = "purge"
    CLASSIFY = "classify"
    RECLASSIFY = "reclassify"
    DECLASSIFY = "declassify"


_ALLOWED_FROM: dict[LifecycleState, frozenset[Transition]] = {
    LifecycleState.ACTIVE: frozenset(
        {
            Transition.UPDATE_STATUS,
            Transition.UPDATE_PROPERTIES,
            Transition.UNDO,
            Transition.DELETE,
            Transition.CLASSIFY,
            Transition.RECLASSIFY,
            Transition.DECLASSIFY,
            Transition.PURGE,
        }
    ),
    LifecycleState.DELETED: frozenset({Transition.RESTORE, Transition.PURGE}),
}


@dataclass(frozen=True)
class Capabilities:
    """Lifecycle capabilities available for one type in one store.

    Callers branch on these to discover what a heterogeneous repository
    supports without provoking FunctionNotSupportedError.
    """

    soft_delete: bool
    undo: bool


def state_of(header: InstanceHeader) -> LifecycleState:
    return LifecycleState.DELETED if header.is_deleted else LifecycleState.ACTIVE


class LifecycleStateMachine:
    """Decides whether a requested transition is legal.

    The state machine is pure: it inspects headers and records and
    raises on illegal requests. It never builds the next version.

    Attributes:
        soft_delete_enabled: Store-level soft delete support
        retain_history: Store-level undo support
    """

    def __init__(self, soft_delete_enabled: bool = True, retain_history: bool = True) -> None:
        self.soft_delete_enabled = soft_delete_enabled
        self.retain_history = retain_history

    def capabilities(self, typedef: TypeDef) -> Capabilities:
        return Capabilities(
            soft_delete=self.soft_delete_enabled and typedef.supports_soft_delete,
            undo=self.retain_history and typedef.supports_undo,
        )

    def initial_status(self, typedef: TypeDef) -> InstanceStatus:
        return typedef.initial_status

    def check(self, header: InstanceHeader, transition: Transition, category: str) -> None:
        """Check the transition is allowed from the instance's current state.

        Raises:
            NotKnownError: Normal mutation addressed to a tombstone
            InvalidTransitionError: Restore of an instance that is not deleted
        """
        state = state_of(header)
        if transition in _ALLOWED_FROM[state]:
            return
        if state == LifecycleState.DELETED:
            # Tombstones are invisible to everything but restore and purge
            raise NotKnownError(header.guid, category, header.metadata_collection_id)
        self._reject(header, transition, "instance is not deleted")

    def check_status_update(
        self,
        header: InstanceHeader,
        typedef: TypeDef,
        target: InstanceStatus,
        category: str,
    ) -> None:
        """Check a generic status update.

        DELETED is rejected whatever state the instance is in, tombstones
        included; other targets need a live instance.

        Raises:
            StatusNotSupportedError: Target is DELETED or not a valid status
            NotKnownError: Instance is soft-deleted
        """
        if target != InstanceStatus.DELETED:
            self.check(header, Transition.UPDATE_STATUS, category)
        if target == InstanceStatus.DELETED or target not in typedef.valid_statuses:
            logger.info(
                "Rejected status update",
                extra={
                    "guid": header.guid,
                    "requested_status": target.value,
                    "current_status": header.status.value,
                },
            )
            raise StatusNotSupportedError(
                header.guid, target.value, typedef.name, header.status.value
            )

    def check_undo(self, record: InstanceRecord, typedef: TypeDef, function: str, category: str) -> None:
        """Check an undo of the last property update.

        Raises:
            NotKnownError: Instance is soft-deleted
            FunctionNotSupportedError: Type or store keeps no history
            InvalidTransitionError: No prior snapshot is held
        """
        self.check(record.header, Transition.UNDO, category)
        if not self.capabilities(typedef).undo:
            raise FunctionNotSupportedError(
                function, record.guid, self._missing_reason(typedef, "undo")
            )
        if not record.can_undo:
            self._reject(record.header, Transition.UNDO, "no prior version is held")

    def check_delete(self, header: InstanceHeader, typedef: TypeDef, function: str, category: str) -> None:
        """Check a soft delete.

        Raises:
            NotKnownError: Instance is already soft-deleted
            FunctionNotSupportedError: Type or store has no soft delete
        """
        self.check(header, Transition.DELETE, category)
        if not self.capabilities(typedef).soft_delete:
            raise FunctionNotSupportedError(
                function, header.guid, self._missing_reason(typedef, "soft delete")
            )

    def check_restore(self, header: InstanceHeader, category: str) -> None:
        """Check a restore of a tombstone.

        Raises:
            InvalidTransitionError: Instance is not deleted
        """
        self.check(header, Transition.RESTORE, category)

    def check_purge(self, header: InstanceHeader, typedef: TypeDef, category: str) -> None:
        """Check a purge.

        Where soft delete is available the instance must be deleted first;
        otherwise an active instance may be purged directly.

        Raises:
            InvalidTransitionError: Active instance whose type supports soft delete
        """
        self.check(header, Transition.PURGE, category)
        if state_of(header) == LifecycleState.ACTIVE and self.capabilities(typedef).soft_delete:
            self._reject(header, Transition.PURGE, "instance must be deleted before it is purged")

    def restored_status(self, header: InstanceHeader, typedef: TypeDef) -> InstanceStatus:
        """Status a tombstone returns to on restore."""
        return header.status_on_delete or typedef.initial_status

    def _missing_reason(self, typedef: TypeDef, capability: str) -> str:
        if capability == "undo":
            store_has = self.retain_history
            type_has = typedef.supports_undo
        else:
            store_has = self.soft_delete_enabled
            type_has = typedef.supports_soft_delete
        if not store_has:
            return f"this repository does not support {capability}"
        if not type_has:
            return f"type {typedef.name} does not support {capability}"
        return f"{capability} is not available"

    def _reject(self, header: InstanceHeader, transition: Transition, reason: str) -> None:
        logger.info(
            "Rejected lifecycle transition",
            extra={
                "guid": header.guid,
                "transition": transition.value,
                "current_status": header.status.value,
                "reason": reason,
            },
        )
        raise InvalidTransitionError(header.guid, transition.value, header.status.value, reason)
