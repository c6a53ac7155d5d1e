"""
Instance arena: the GUID to record mapping the store commits into.

Each GUID owns a slot holding the current InstanceRecord and a lock of
its own. The arena lock guards only slot insertion and removal, so
mutations of different GUIDs never contend.

Invariants:
    - At most one committed record per GUID at any instant
    - A commit succeeds only if the slot still holds the version the
      caller read (compare-and-set); otherwise nothing changes
    - A purged local GUID is remembered and can never be re-inserted
    - Records are immutable; readers get the committed record itself
    - on_commit callbacks run while the slot is still locked, so for one
      GUID they see commits in version order

How to change safely:
    - Never wait on a slot lock that may be held while holding the arena
      lock; the arena lock is only ever taken briefly inside a slot lock
    - Keep compare-and-set the only way to replace a record
    - Keep on_commit work short: the next commit of that GUID waits for it
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Set

from ..errors import ConcurrentModificationError, InvalidInstanceError
from ..lifecycle.ledger import InstanceRecord

logger = logging.getLogger(__name__)

CommitCallback = Callable[[InstanceRecord], None]


class _Slot:
    """One GUID's committed record and its lock."""

    __slots__ = ("lock", "record", "removed")

    def __init__(self, record: InstanceRecord) -> None:
        # Reentrant so an on_commit callback may read its own GUID
        self.lock = threading.RLock()
        self.record = record
        self.removed = False


class InstanceArena:
    """Thread-safe GUID to InstanceRecord mapping with per-slot commits.

    Example:
        >>> arena = InstanceArena()
        >>> arena.insert(record)
        >>> arena.compare_and_set(record.guid, 1, next_record, on_commit=notify)
    """

    def __init__(self) -> None:
        self._slots: Dict[str, _Slot] = {}
        self._purged: Set[str] = set()
        self._lock = threading.Lock()

    def insert(self, record: InstanceRecord, on_commit: Optional[CommitCallback] = None) -> None:
        """Add the first record for a GUID.

        Args:
            on_commit: Called with the record before any later commit of
                the GUID can proceed

        Raises:
            InvalidInstanceError: GUID already held or previously purged
        """
        guid = record.guid
        with self._lock:
            if guid in self._purged:
                raise InvalidInstanceError(guid, "guid belongs to a purged instance")
            if guid in self._slots:
                raise InvalidInstanceError(guid, "guid is already in use")
            slot = _Slot(record)
            slot.lock.acquire()
            self._slots[guid] = slot
        try:
            logger.debug("Inserted record", extra={"guid": guid, "version": record.version})
            if on_commit is not None:
                on_commit(record)
        finally:
            slot.lock.release()

    def get(self, guid: str) -> Optional[InstanceRecord]:
        """Current committed record, or None if absent or purged."""
        slot = self._slots.get(guid)
        if slot is None:
            return None
        with slot.lock:
            return None if slot.removed else slot.record

    def compare_and_set(
        self,
        guid: str,
        expected_version: int,
        new_record: InstanceRecord,
        transition: Optional[str] = None,
        on_commit: Optional[CommitCallback] = None,
    ) -> InstanceRecord:
        """Replace the record if it is still at the expected version.

        Args:
            on_commit: Called with new_record before the slot is released

        Raises:
            ConcurrentModificationError: Another commit won, or the GUID vanished
        """
        slot = self._slots.get(guid)
        if slot is None:
            raise ConcurrentModificationError(guid, expected_version, None, transition)
        with slot.lock:
            if slot.removed:
                raise ConcurrentModificationError(guid, expected_version, None, transition)
            actual = slot.record.version
            if actual != expected_version:
                logger.info(
                    "Lost compare-and-set",
                    extra={
                        "guid": guid,
                        "expected_version": expected_version,
                        "actual_version": actual,
                    },
                )
                raise ConcurrentModificationError(guid, expected_version, actual, transition)
            slot.record = new_record
            logger.debug(
                "Committed record",
                extra={"guid": guid, "version": new_record.version, "transition": transition},
            )
            if on_commit is not None:
                on_commit(new_record)
        return new_record

    def remove(
        self,
        guid: str,
        expected_version: int,
        transition: Optional[str] = None,
        remember: bool = True,
        on_commit: Optional[CommitCallback] = None,
    ) -> InstanceRecord:
        """Remove a record if it is still at the expected version.

        Args:
            remember: Block the GUID from ever being inserted again. Off for
                reference copies, whose home repository may send a newer copy.
            on_commit: Called with the removed record before the slot is released

        Raises:
            ConcurrentModificationError: Another commit won, or the GUID vanished
        """
        slot = self._slots.get(guid)
        if slot is None:
            raise ConcurrentModificationError(guid, expected_version, None, transition)
        with slot.lock:
            actual = None if slot.removed else slot.record.version
            if actual != expected_version:
                raise ConcurrentModificationError(guid, expected_version, actual, transition)
            slot.removed = True
            record = slot.record
            with self._lock:
                del self._slots[guid]
                if remember:
                    self._purged.add(guid)
            logger.debug("Removed record", extra={"guid": guid, "version": record.version})
            if on_commit is not None:
                on_commit(record)
        return record

    def was_purged(self, guid: str) -> bool:
        with self._lock:
            return guid in self._purged

    def records(self) -> List[InstanceRecord]:
        """Snapshot of every committed record."""
        with self._lock:
            slots = list(self._slots.values())
        result = []
        for slot in slots:
            with slot.lock:
                if not slot.removed:
                    result.append(slot.record)
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, guid: str) -> bool:
        return self.get(guid) is not None
