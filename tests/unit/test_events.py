"""
Unit tests for instance events and the in-memory sink.

Tests cover:
- Building events from instances
- Serialization
- Sink protocol conformance
- In-memory sink collection, filtering and bounds
"""

import json

from omrs.metadata_store.events import (
    EventSink,
    InMemoryEventSink,
    InstanceCategory,
    InstanceEvent,
    InstanceEventKind,
)
from omrs.metadata_store.instances.models import EntityDetail, InstanceType
from omrs.metadata_store.lifecycle.ledger import VersionLedger
from omrs.metadata_store.typedefs.types import InstanceStatus


def _entity(guid="guid-1"):
    header = VersionLedger().first_header(
        guid, InstanceType("e-topic", "Topic"), InstanceStatus.ACTIVE, "c-1", "alice"
    )
    return EntityDetail(header=header)


def _event(guid="guid-1", kind=InstanceEventKind.CREATED):
    return InstanceEvent.for_instance(kind, InstanceCategory.ENTITY, _entity(guid), "alice", 1_000)


class TestInstanceEvent:
    def test_for_instance(self):
        event = _event()

        assert event.guid == "guid-1"
        assert event.version == 1
        assert event.status == InstanceStatus.ACTIVE
        assert event.type.type_def_name == "Topic"
        assert event.metadata_collection_id == "c-1"
        assert event.user_id == "alice"
        assert event.ts_ms == 1_000

    def test_to_json(self):
        data = json.loads(_event().to_json())

        assert data["kind"] == "created"
        assert data["category"] == "entity"
        assert data["status"] == "ACTIVE"
        assert "classification_name" not in data

    def test_round_trip(self):
        event = InstanceEvent.for_instance(
            InstanceEventKind.CLASSIFIED,
            InstanceCategory.ENTITY,
            _entity(),
            "alice",
            2_000,
            classification_name="Confidentiality",
        )

        assert InstanceEvent.from_dict(event.to_dict()) == event

    def test_transition_kinds(self):
        assert InstanceEventKind.DELETED.is_transition
        assert InstanceEventKind.PURGED.is_transition
        assert not InstanceEventKind.STATUS_UPDATED.is_transition


class TestInMemoryEventSink:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryEventSink(), EventSink)

    def test_collects_in_order(self):
        sink = InMemoryEventSink()

        sink.publish(_event("a"))
        sink.publish(_event("b"))
        sink.publish(_event("a", InstanceEventKind.DELETED))

        assert [e.guid for e in sink.events] == ["a", "b", "a"]
        assert [e.kind for e in sink.events_for("a")] == [
            InstanceEventKind.CREATED,
            InstanceEventKind.DELETED,
        ]
        assert len(sink.events_of_kind(InstanceEventKind.CREATED)) == 2
        assert len(sink) == 3

    def test_max_events_keeps_newest(self):
        sink = InMemoryEventSink(max_events=2)

        for guid in ("a", "b", "c"):
            sink.publish(_event(guid))

        assert [e.guid for e in sink.events] == ["b", "c"]

    def test_clear(self):
        sink = InMemoryEventSink()
        sink.publish(_event())

        sink.clear()

        assert sink.events == []
