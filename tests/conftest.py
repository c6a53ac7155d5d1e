"""
Shared fixtures: a small type system and a store over it.

Types:
    Referenceable        entity, qualifiedName (unique, mandatory)
    Topic                entity, subtype of Referenceable, several statuses
    SubscriberList       entity
    AuditLog             entity without soft delete or undo
    TopicSubscribers     relationship SubscriberList <-> Topic
    Confidentiality      classification for Referenceable and subtypes
"""

import pytest

from omrs.metadata_store.config import StoreConfig
from omrs.metadata_store.events import InMemoryEventSink
from omrs.metadata_store.store import InstanceStore
from omrs.metadata_store.typedefs import (
    ClassificationDef,
    EntityDef,
    InstanceStatus,
    RelationshipDef,
    RelationshipEndDef,
    TypeDefRegistry,
    attribute,
)

LOCAL_COLLECTION = "local-collection-0001"


def build_registry() -> TypeDefRegistry:
    registry = TypeDefRegistry()
    registry.register_entity_def(
        EntityDef(
            guid="a32316b8-dc8c-48c5-b12b-71c1b2a080bf",
            name="Referenceable",
            attributes=(
                attribute("qualifiedName", "string", cardinality="ONE_ONLY", unique=True),
            ),
        )
    )
    registry.register_entity_def(
        EntityDef(
            guid="29100f49-338e-4361-b05d-7e4e8e818325",
            name="Topic",
            super_type="Referenceable",
            attributes=(
                attribute("qualifiedName", "string", cardinality="ONE_ONLY", unique=True),
                attribute("topicType", "string"),
                attribute("priority", "int"),
                attribute("labels", "map", map_value_kind="string"),
                attribute("keywords", "string", cardinality="ANY_NUMBER"),
            ),
            valid_statuses=(
                InstanceStatus.DRAFT,
                InstanceStatus.ACTIVE,
                InstanceStatus.DEPRECATED,
                InstanceStatus.DELETED,
            ),
        )
    )
    registry.register_entity_def(
        EntityDef(
            guid="69751093-35f9-42b1-944b-ba6251ff513d",
            name="SubscriberList",
            attributes=(
                attribute("qualifiedName", "string", cardinality="ONE_ONLY", unique=True),
                attribute("displayName", "string"),
            ),
        )
    )
    registry.register_entity_def(
        EntityDef(
            guid="e7d63a2c-1a54-4b0e-9a32-5d3c0e8f4b11",
            name="AuditLog",
            attributes=(attribute("entry", "string"),),
            supports_soft_delete=False,
            supports_undo=False,
        )
    )
    registry.register_relationship_def(
        RelationshipDef(
            guid="bc63ac45-b4d0-4fba-b583-92859de77dd8",
            name="TopicSubscribers",
            end_one=RelationshipEndDef("SubscriberList", "subscribers"),
            end_two=RelationshipEndDef("Topic", "topics"),
            attributes=(attribute("since", "date"),),
            valid_statuses=(InstanceStatus.ACTIVE, InstanceStatus.STANDBY, InstanceStatus.DELETED),
        )
    )
    registry.register_classification_def(
        ClassificationDef(
            guid="742ddb7d-9a4a-4eb5-8ac2-1d69953bd2b6",
            name="Confidentiality",
            attributes=(attribute("level", "int"),),
            valid_entity_types=("Referenceable",),
        )
    )
    registry.freeze()
    return registry


@pytest.fixture
def registry():
    """Frozen registry with the sample type system."""
    return build_registry()


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def store(registry, sink):
    """Store with soft delete and history enabled."""
    config = StoreConfig(metadata_collection_id=LOCAL_COLLECTION)
    return InstanceStore(registry, config, sinks=[sink])


@pytest.fixture
def bare_store(registry):
    """Store with soft delete and history switched off."""
    config = StoreConfig(
        metadata_collection_id=LOCAL_COLLECTION,
        soft_delete_enabled=False,
        retain_history=False,
    )
    return InstanceStore(registry, config)
