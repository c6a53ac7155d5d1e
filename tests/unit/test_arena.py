"""
Unit tests for the instance arena.

Tests cover:
- Insert / get
- Compare-and-set commits and lost races
- Remove, purged GUID memory, reference copy removal
- Concurrent compare-and-set on one GUID
- on_commit callbacks run in version order before the slot is released
"""

import threading

import pytest

from omrs.metadata_store.errors import ConcurrentModificationError, InvalidInstanceError
from omrs.metadata_store.instances.models import EntityDetail, InstanceType
from omrs.metadata_store.lifecycle.ledger import VersionLedger
from omrs.metadata_store.store.arena import InstanceArena
from omrs.metadata_store.typedefs.types import InstanceStatus


@pytest.fixture
def ledger():
    return VersionLedger()


@pytest.fixture
def record(ledger):
    header = ledger.first_header(
        "guid-1", InstanceType("e-topic", "Topic"), InstanceStatus.ACTIVE, "c-1", "alice"
    )
    return ledger.new_record(EntityDetail(header=header))


@pytest.fixture
def arena(record):
    arena = InstanceArena()
    arena.insert(record)
    return arena


class TestInsertAndGet:
    def test_get(self, arena, record):
        assert arena.get("guid-1") is record
        assert "guid-1" in arena
        assert len(arena) == 1
        assert arena.get("missing") is None

    def test_duplicate_insert_rejected(self, arena, record):
        with pytest.raises(InvalidInstanceError, match="already in use"):
            arena.insert(record)

    def test_records_snapshot(self, arena, record):
        assert arena.records() == [record]


class TestCompareAndSet:
    def test_commit(self, arena, record, ledger):
        next_record = ledger.with_status(record, "bob", InstanceStatus.ACTIVE)

        arena.compare_and_set("guid-1", 1, next_record)

        assert arena.get("guid-1").version == 2

    def test_stale_version_rejected(self, arena, record, ledger):
        second = ledger.with_status(record, "bob", InstanceStatus.ACTIVE)
        arena.compare_and_set("guid-1", 1, second)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            arena.compare_and_set("guid-1", 1, second)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert arena.get("guid-1") is second

    def test_missing_guid(self, arena, record):
        with pytest.raises(ConcurrentModificationError) as exc_info:
            arena.compare_and_set("missing", 1, record)

        assert exc_info.value.actual_version is None

    def test_only_one_concurrent_writer_wins(self, arena, record, ledger):
        candidates = [ledger.with_status(record, f"user-{i}", InstanceStatus.ACTIVE) for i in range(8)]
        barrier = threading.Barrier(len(candidates))
        outcomes = []

        def commit(candidate):
            barrier.wait()
            try:
                arena.compare_and_set("guid-1", 1, candidate)
                outcomes.append("won")
            except ConcurrentModificationError:
                outcomes.append("lost")

        threads = [threading.Thread(target=commit, args=(c,)) for c in candidates]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("won") == 1
        assert outcomes.count("lost") == 7
        assert arena.get("guid-1").version == 2


class TestRemove:
    def test_remove_remembers_guid(self, arena, record):
        removed = arena.remove("guid-1", 1)

        assert removed is record
        assert arena.get("guid-1") is None
        assert arena.was_purged("guid-1")
        with pytest.raises(InvalidInstanceError, match="purged"):
            arena.insert(record)

    def test_remove_stale_version_rejected(self, arena):
        with pytest.raises(ConcurrentModificationError):
            arena.remove("guid-1", 5)

        assert arena.get("guid-1") is not None

    def test_remove_without_memory(self, arena, record):
        arena.remove("guid-1", 1, remember=False)

        assert not arena.was_purged("guid-1")
        arena.insert(record)
        assert arena.get("guid-1") is record

    def test_commit_after_remove_rejected(self, arena, record, ledger):
        arena.remove("guid-1", 1)

        with pytest.raises(ConcurrentModificationError):
            arena.compare_and_set("guid-1", 1, ledger.with_status(record, "bob", InstanceStatus.ACTIVE))


class TestOnCommit:
    def test_callbacks_see_each_record(self, ledger, record):
        arena = InstanceArena()
        seen = []

        arena.insert(record, on_commit=seen.append)
        next_record = ledger.with_status(record, "bob", InstanceStatus.ACTIVE)
        arena.compare_and_set("guid-1", 1, next_record, on_commit=seen.append)
        arena.remove("guid-1", 2, on_commit=seen.append)

        assert seen == [record, next_record, next_record]

    def test_callback_may_read_its_guid(self, arena, record, ledger):
        next_record = ledger.with_status(record, "bob", InstanceStatus.ACTIVE)
        seen = []

        arena.compare_and_set(
            "guid-1", 1, next_record, on_commit=lambda r: seen.append(arena.get(r.guid))
        )

        assert seen == [next_record]

    def test_lost_race_skips_callback(self, arena, record, ledger):
        seen = []

        with pytest.raises(ConcurrentModificationError):
            arena.compare_and_set("guid-1", 5, record, on_commit=seen.append)

        assert seen == []

    def test_next_commit_waits_for_callback(self, arena, record, ledger):
        v2 = ledger.with_status(record, "bob", InstanceStatus.ACTIVE)
        v3 = ledger.with_status(v2, "carol", InstanceStatus.ACTIVE)
        entered = threading.Event()
        release = threading.Event()
        order = []

        def slow(r):
            entered.set()
            release.wait(timeout=5)
            order.append(r.version)

        first = threading.Thread(
            target=arena.compare_and_set, args=("guid-1", 1, v2), kwargs={"on_commit": slow}
        )
        first.start()
        assert entered.wait(timeout=5)

        second = threading.Thread(
            target=arena.compare_and_set,
            args=("guid-1", 2, v3),
            kwargs={"on_commit": lambda r: order.append(r.version)},
        )
        second.start()
        second.join(timeout=0.2)
        assert second.is_alive()

        release.set()
        first.join()
        second.join()

        assert order == [2, 3]
