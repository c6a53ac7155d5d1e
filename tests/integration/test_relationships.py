"""
Integration tests for relationships through InstanceStore.

Tests cover:
- Creating relationships from local GUIDs and remote proxies
- End type conformance
- Relationship lifecycle
- Navigation from an entity: filters, paging, tombstones
"""

import itertools

import pytest

from omrs.metadata_store.config import StoreConfig
from omrs.metadata_store.errors import (
    FunctionNotSupportedError,
    InvalidTransitionError,
    NotKnownError,
    StatusNotSupportedError,
    TypeConformanceError,
    TypeDefNotKnownError,
)
from omrs.metadata_store.instances.models import EndOrdinal, EntityProxy, InstanceType
from omrs.metadata_store.store import InstanceStore
from omrs.metadata_store.typedefs import InstanceStatus

USER = "alice"
TOPIC_GUID = "29100f49-338e-4361-b05d-7e4e8e818325"


@pytest.fixture
def ticking_store(registry):
    """Store whose clock advances on every read so creation order is total."""
    ticks = itertools.count(1_000, 10)
    return InstanceStore(
        registry,
        StoreConfig(metadata_collection_id="local-collection-0001"),
        clock=lambda: next(ticks),
    )


def _topic(store, name="t1"):
    return store.add_entity(USER, "Topic", {"qualifiedName": name}).guid


def _subscribers(store, name="s1"):
    return store.add_entity(USER, "SubscriberList", {"qualifiedName": name, "displayName": "Subs"}).guid


def _remote_topic_proxy(guid="remote-topic-1", type_name="Topic", super_types=("Referenceable",)):
    return EntityProxy(
        guid=guid,
        type=InstanceType(TOPIC_GUID, type_name, super_type_names=super_types),
        metadata_collection_id="remote-collection",
        unique_properties={"qualifiedName": "remote"},
    )


class TestAddRelationship:
    def test_from_local_guids(self, store):
        topic = _topic(store)
        subscribers = _subscribers(store)

        relationship = store.add_relationship(
            USER, "TopicSubscribers", subscribers, topic, {"since": 1_546_300_800_000}
        )

        assert relationship.version == 1
        assert relationship.status == InstanceStatus.ACTIVE
        assert relationship.end_one.proxy.guid == subscribers
        assert relationship.end_one.proxy_name == "subscribers"
        assert relationship.end_one.ordinal == EndOrdinal.ONE
        assert relationship.end_two.proxy.guid == topic
        assert relationship.end_two.proxy_name == "topics"
        assert store.get_relationship(USER, relationship.guid) == relationship

    def test_proxy_carries_unique_properties_only(self, store):
        relationship = store.add_relationship(
            USER, "TopicSubscribers", _subscribers(store), _topic(store)
        )

        assert dict(relationship.end_one.proxy.unique_properties) == {"qualifiedName": "s1"}
        assert relationship.end_two.proxy.metadata_collection_id == store.metadata_collection_id

    def test_remote_proxy_end(self, store):
        proxy = _remote_topic_proxy()

        relationship = store.add_relationship(USER, "TopicSubscribers", _subscribers(store), proxy)

        assert relationship.end_two.proxy == proxy
        assert store.is_entity_known(USER, proxy.guid) is None

    def test_remote_proxy_of_unregistered_subtype(self, store):
        proxy = _remote_topic_proxy(type_name="KafkaTopic", super_types=("Topic", "Referenceable"))

        relationship = store.add_relationship(USER, "TopicSubscribers", _subscribers(store), proxy)

        assert relationship.end_two.proxy.type.type_def_name == "KafkaTopic"

    def test_ends_swapped(self, store):
        with pytest.raises(TypeConformanceError) as exc_info:
            store.add_relationship(USER, "TopicSubscribers", _topic(store), _subscribers(store))

        assert len(exc_info.value.errors) == 2

    def test_unknown_end_guid(self, store):
        with pytest.raises(NotKnownError):
            store.add_relationship(USER, "TopicSubscribers", _subscribers(store), "missing")

    def test_tombstoned_end_is_accepted(self, store):
        topic = _topic(store)
        store.delete_entity(USER, topic)

        relationship = store.add_relationship(USER, "TopicSubscribers", _subscribers(store), topic)

        assert relationship.end_two.proxy.guid == topic

    def test_unknown_type(self, store):
        with pytest.raises(TypeDefNotKnownError):
            store.add_relationship(USER, "Topic", _subscribers(store), _topic(store))

    def test_bad_properties(self, store):
        with pytest.raises(TypeConformanceError):
            store.add_relationship(
                USER, "TopicSubscribers", _subscribers(store), _topic(store), {"since": "yesterday"}
            )


class TestRelationshipLifecycle:
    @pytest.fixture
    def guid(self, store):
        return store.add_relationship(USER, "TopicSubscribers", _subscribers(store), _topic(store)).guid

    def test_full_walk(self, store, guid):
        assert store.update_relationship_status(USER, guid, InstanceStatus.STANDBY).version == 2
        assert store.update_relationship_properties(USER, guid, {"since": 5}).version == 3

        undone = store.undo_relationship_update(USER, guid)
        assert undone.version == 4
        assert dict(undone.properties) == {}

        assert store.delete_relationship(USER, guid).version == 5
        with pytest.raises(NotKnownError):
            store.get_relationship(USER, guid)
        assert store.is_relationship_known(USER, guid).status == InstanceStatus.DELETED

        restored = store.restore_relationship(USER, guid)
        assert restored.version == 6
        assert restored.status == InstanceStatus.STANDBY

        store.delete_relationship(USER, guid)
        store.purge_relationship(USER, guid)
        assert store.is_relationship_known(USER, guid) is None

    def test_deleted_status_rejected(self, store, guid):
        with pytest.raises(StatusNotSupportedError):
            store.update_relationship_status(USER, guid, InstanceStatus.DELETED)

        assert store.get_relationship(USER, guid).version == 1

    def test_purge_active_rejected(self, store, guid):
        with pytest.raises(InvalidTransitionError):
            store.purge_relationship(USER, guid)

    def test_bare_store_has_no_soft_delete(self, bare_store):
        guid = bare_store.add_relationship(
            USER, "TopicSubscribers", _subscribers(bare_store), _topic(bare_store)
        ).guid

        with pytest.raises(FunctionNotSupportedError):
            bare_store.delete_relationship(USER, guid)

        bare_store.purge_relationship(USER, guid)
        assert bare_store.is_relationship_known(USER, guid) is None

    def test_categories_do_not_mix(self, store, guid):
        topic = _topic(store)

        assert store.is_relationship_known(USER, topic) is None
        assert store.is_entity_known(USER, guid) is None
        with pytest.raises(NotKnownError):
            store.get_relationship(USER, topic)
        with pytest.raises(NotKnownError):
            store.get_entity_detail(USER, guid)

    def test_entity_delete_leaves_relationships(self, store):
        topic = _topic(store)
        relationship = store.add_relationship(USER, "TopicSubscribers", _subscribers(store), topic)

        store.delete_entity(USER, topic)

        assert store.get_relationship(USER, relationship.guid).version == 1
        assert store.get_relationships_for_entity(USER, topic) == [relationship]


class TestRelationshipsForEntity:
    @pytest.fixture
    def topic(self, ticking_store):
        return _topic(ticking_store)

    @pytest.fixture
    def relationships(self, ticking_store, topic):
        return [
            ticking_store.add_relationship(
                USER, "TopicSubscribers", _subscribers(ticking_store, f"s{i}"), topic
            )
            for i in range(5)
        ]

    def test_creation_order(self, ticking_store, topic, relationships):
        found = ticking_store.get_relationships_for_entity(USER, topic)

        assert [r.guid for r in found] == [r.guid for r in relationships]

    def test_from_either_end(self, ticking_store, relationships):
        subscribers = relationships[2].end_one.proxy.guid

        assert ticking_store.get_relationships_for_entity(USER, subscribers) == [relationships[2]]

    def test_paging(self, ticking_store, topic, relationships):
        page = ticking_store.get_relationships_for_entity(USER, topic, from_index=1, page_size=2)

        assert page == relationships[1:3]
        assert ticking_store.get_relationships_for_entity(USER, topic, from_index=5) is None

    def test_negative_paging_rejected(self, ticking_store, topic):
        with pytest.raises(ValueError):
            ticking_store.get_relationships_for_entity(USER, topic, page_size=-1)

    def test_status_filter(self, ticking_store, topic, relationships):
        standby = ticking_store.update_relationship_status(
            USER, relationships[3].guid, InstanceStatus.STANDBY
        )

        found = ticking_store.get_relationships_for_entity(
            USER, topic, limit_to_statuses=[InstanceStatus.STANDBY]
        )

        assert found == [standby]

    def test_type_filter(self, ticking_store, topic, relationships):
        assert len(ticking_store.get_relationships_for_entity(USER, topic, "TopicSubscribers")) == 5
        with pytest.raises(TypeDefNotKnownError):
            ticking_store.get_relationships_for_entity(USER, topic, "NoSuchRelationship")

    def test_tombstones_excluded(self, ticking_store, topic, relationships):
        ticking_store.delete_relationship(USER, relationships[0].guid)

        found = ticking_store.get_relationships_for_entity(USER, topic)

        assert relationships[0].guid not in [r.guid for r in found]
        assert len(found) == 4

    def test_no_relationships(self, ticking_store):
        lonely = _topic(ticking_store, "lonely")

        assert ticking_store.get_relationships_for_entity(USER, lonely) is None

    def test_unknown_entity(self, ticking_store):
        with pytest.raises(NotKnownError):
            ticking_store.get_relationships_for_entity(USER, "missing")
