"""
Instance store: the public lifecycle API of the metadata repository.

Every mutation follows the same path:

    read record -> validate -> state machine check -> ledger builds the
    next record -> arena compare-and-set (event published before the
    slot is released) -> return

Invariants:
    - A rejected mutation leaves the instance exactly as it was
    - A committed mutation produces exactly version + 1
    - A GUID is created once and, once purged, never comes back
    - Soft-deleted instances are reachable only through restore, purge,
      is_*_known, get_entity_summary and relationship navigation
    - Reference copies keep the version and provenance stamped by their
      home repository and can only be replaced by a newer copy or purged
    - The store never retries; ConcurrentModificationError goes to the caller
    - Events for one GUID reach every sink in version order

How to change safely:
    - New mutations must go through _mutate() so the version rule, the
      compare-and-set and the event all apply
    - Keep read paths free of locks beyond the arena's own
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import StoreConfig
from ..errors import (
    InvalidInstanceError,
    InvalidTransitionError,
    NotKnownError,
    TypeDefNotKnownError,
)
from ..events.base import EventSink, InstanceCategory, InstanceEvent, InstanceEventKind
from ..instances.models import (
    Classification,
    EndOrdinal,
    EntityDetail,
    EntityProxy,
    EntitySummary,
    Instance,
    InstanceHeader,
    InstanceType,
    Relationship,
    RelationshipEnd,
)
from ..lifecycle.ledger import InstanceRecord, VersionLedger
from ..lifecycle.state_machine import Capabilities, LifecycleStateMachine, Transition
from ..lifecycle.validator import (
    validate_classification_target,
    validate_properties,
    validate_relationship_ends,
)
from ..typedefs.registry import TypeDefRegistry
from ..typedefs.types import (
    ClassificationDef,
    EntityDef,
    InstanceStatus,
    RelationshipDef,
    TypeDef,
    TypeDefCategory,
)
from .arena import InstanceArena

logger = logging.getLogger(__name__)

EntityEnd = Union[str, EntityProxy]

_ENTITY = InstanceCategory.ENTITY
_RELATIONSHIP = InstanceCategory.RELATIONSHIP


class InstanceStore:
    """In-memory metadata repository for entities and relationships.

    Thread-safety:
        - All operations may be called from concurrent threads
        - Mutations of one GUID are serialized by compare-and-set; the
          loser of a race gets ConcurrentModificationError
        - Mutations of different GUIDs never contend

    Example:
        >>> store = InstanceStore(registry, StoreConfig(metadata_collection_id="c1"))
        >>> topic = store.add_entity("alice", "Topic", {"qualifiedName": "t1"})
        >>> topic.version
        1
        >>> store.update_entity_status("alice", topic.guid, InstanceStatus.DRAFT).version
        2
    """

    def __init__(
        self,
        registry: TypeDefRegistry,
        config: Optional[StoreConfig] = None,
        sinks: Optional[Iterable[EventSink]] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """Initialize the store.

        Args:
            registry: Type definitions; should be frozen before serving
            config: Store configuration (collection identity, capabilities)
            sinks: Event sinks notified after every commit
            clock: Returns the current time in Unix ms (for tests)
        """
        self.registry = registry
        self.config = config or StoreConfig()
        self.ledger = VersionLedger(retain_history=self.config.retain_history, clock=clock)
        self.state_machine = LifecycleStateMachine(
            soft_delete_enabled=self.config.soft_delete_enabled,
            retain_history=self.config.retain_history,
        )
        self.arena = InstanceArena()
        self._sinks: List[EventSink] = list(sinks or [])
        if not registry.frozen:
            logger.warning("Instance store created over an unfrozen type registry")

    @property
    def metadata_collection_id(self) -> str:
        return self.config.metadata_collection_id

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def capabilities(self, type_def: str) -> Capabilities:
        """Soft delete / undo support actually available for a type here.

        Raises:
            TypeDefNotKnownError: No type with this GUID or name
        """
        typedef = self.registry.get_type_def(type_def)
        if typedef is None:
            raise TypeDefNotKnownError(type_def, "type")
        return self.state_machine.capabilities(typedef)

    # =========================================================================
    # Entities
    # =========================================================================

    def add_entity(
        self,
        user_id: str,
        type_def: str,
        properties: Optional[Mapping[str, Any]] = None,
        classifications: Optional[Mapping[str, Optional[Mapping[str, Any]]]] = None,
    ) -> EntityDetail:
        """Create a new entity at version 1.

        Args:
            user_id: Calling user
            type_def: Entity type GUID or name
            properties: Initial property bag
            classifications: Classification name -> properties to attach

        Raises:
            TypeDefNotKnownError: Type is not a registered entity type
            TypeConformanceError: Properties or classifications do not conform
        """
        entity_def = self._entity_def(type_def)
        validate_properties(entity_def, properties, registry=self.registry)
        attached = tuple(
            self._new_classification(user_id, entity_def, name, props)
            for name, props in (classifications or {}).items()
        )

        header = self.ledger.first_header(
            str(uuid.uuid4()),
            self._instance_type(entity_def),
            self.state_machine.initial_status(entity_def),
            self.metadata_collection_id,
            user_id,
        )
        entity = EntityDetail(header=header, properties=properties or {}, classifications=attached)
        self.arena.insert(
            self.ledger.new_record(entity),
            on_commit=self._publisher(InstanceEventKind.CREATED, _ENTITY, user_id),
        )

        logger.debug(f"Created entity {entity.guid} of type {entity_def.name}")
        return entity

    def is_entity_known(self, user_id: str, guid: str) -> Optional[EntityDetail]:
        """The entity, soft-deleted or not, or None if it is not held."""
        record = self.arena.get(guid)
        if record is None or not isinstance(record.instance, EntityDetail):
            return None
        return record.instance

    def get_entity_summary(self, user_id: str, guid: str) -> EntitySummary:
        """Summary of an entity; soft-deleted entities are included.

        Raises:
            NotKnownError: Entity is absent or purged
        """
        return self._record(guid, _ENTITY).instance.summary()

    def get_entity_detail(self, user_id: str, guid: str) -> EntityDetail:
        """Full entity.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
        """
        return self._live_instance(guid, _ENTITY)

    def get_relationships_for_entity(
        self,
        user_id: str,
        entity_guid: str,
        relationship_type: Optional[str] = None,
        from_index: int = 0,
        limit_to_statuses: Optional[Sequence[InstanceStatus]] = None,
        page_size: int = 0,
    ) -> Optional[List[Relationship]]:
        """Relationships with either end proxying the entity.

        Soft-deleted relationships are never returned. Results are ordered
        by creation time, then GUID, so paging is stable.

        Args:
            user_id: Calling user
            entity_guid: Entity GUID; soft-deleted entities are accepted
            relationship_type: Only this relationship type (GUID or name)
            from_index: Index of the first result to return
            limit_to_statuses: Only relationships in one of these statuses
            page_size: Maximum results to return (0 for all)

        Returns:
            Matching relationships, or None when there are none

        Raises:
            NotKnownError: Entity is absent or purged
            TypeDefNotKnownError: relationship_type is not registered
            ValueError: Negative from_index or page_size
        """
        if from_index < 0 or page_size < 0:
            raise ValueError("from_index and page_size must not be negative")
        self._record(entity_guid, _ENTITY)
        relationship_def = (
            self._relationship_def(relationship_type) if relationship_type else None
        )
        statuses = set(limit_to_statuses) if limit_to_statuses else None

        matches = []
        for record in self.arena.records():
            relationship = record.instance
            if not isinstance(relationship, Relationship):
                continue
            if relationship.header.is_deleted or not relationship.references(entity_guid):
                continue
            if relationship_def and relationship.type.type_def_guid != relationship_def.guid:
                continue
            if statuses is not None and relationship.status not in statuses:
                continue
            matches.append(relationship)

        matches.sort(key=lambda r: (r.header.create_time, r.guid))
        page = matches[from_index:]
        if page_size:
            page = page[:page_size]
        return page or None

    def update_entity_status(
        self, user_id: str, guid: str, new_status: InstanceStatus
    ) -> EntityDetail:
        """Move an entity to another valid status.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            StatusNotSupportedError: Status is DELETED or not valid for the type
        """
        return self._update_status(user_id, guid, new_status, _ENTITY, "update_entity_status")

    def update_entity_properties(
        self, user_id: str, guid: str, properties: Optional[Mapping[str, Any]]
    ) -> EntityDetail:
        """Replace the whole property bag; an empty bag clears it.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            TypeConformanceError: Properties do not conform to the type
        """
        return self._update_properties(
            user_id, guid, properties, _ENTITY, "update_entity_properties"
        )

    def undo_entity_update(self, user_id: str, guid: str) -> EntityDetail:
        """Restore the properties held before the last property update.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            FunctionNotSupportedError: Type or store keeps no history
            InvalidTransitionError: There is no update to undo
        """
        return self._undo(user_id, guid, _ENTITY, "undo_entity_update")

    def delete_entity(self, user_id: str, guid: str) -> EntityDetail:
        """Soft delete: the entity becomes a tombstone.

        Relationships of the entity are left as they are.

        Raises:
            NotKnownError: Entity is absent, purged or already soft-deleted
            FunctionNotSupportedError: Type or store has no soft delete
        """
        return self._delete(user_id, guid, _ENTITY, "delete_entity")

    def restore_entity(self, user_id: str, guid: str) -> EntityDetail:
        """Bring a soft-deleted entity back in its status before deletion.

        Raises:
            NotKnownError: Entity is absent or purged
            InvalidTransitionError: Entity is not soft-deleted
        """
        return self._restore(user_id, guid, _ENTITY, "restore_entity")

    def purge_entity(self, user_id: str, guid: str) -> None:
        """Remove an entity for good.

        Raises:
            NotKnownError: Entity is absent or already purged
            InvalidTransitionError: Entity is active and could be soft-deleted
        """
        self._purge(user_id, guid, _ENTITY)

    def classify_entity(
        self,
        user_id: str,
        guid: str,
        classification_name: str,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> EntityDetail:
        """Attach a classification to an entity.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            TypeDefNotKnownError: Classification type is not registered
            TypeConformanceError: Entity type or properties do not fit
            InvalidTransitionError: Entity already has the classification
        """
        record = self._record(guid, _ENTITY)
        entity_def = self._typedef_of(record, _ENTITY)
        self._check_home(record, "classify_entity")
        self.state_machine.check(record.header, Transition.CLASSIFY, _ENTITY.value)
        entity = record.instance
        if entity.get_classification(classification_name) is not None:
            raise InvalidTransitionError(
                guid,
                Transition.CLASSIFY.value,
                entity.status.value,
                f"entity is already classified as {classification_name}",
            )
        classification = self._new_classification(
            user_id, entity_def, classification_name, properties, guid
        )
        new_record = self.ledger.with_entity_changes(
            record, user_id, classifications=entity.classifications + (classification,)
        )
        return self._mutate(
            record,
            new_record,
            Transition.CLASSIFY,
            InstanceEventKind.CLASSIFIED,
            _ENTITY,
            user_id,
            classification.name,
        )

    def update_entity_classification(
        self,
        user_id: str,
        guid: str,
        classification_name: str,
        properties: Optional[Mapping[str, Any]],
    ) -> EntityDetail:
        """Replace the properties of an attached classification.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            TypeConformanceError: Properties do not conform
            InvalidTransitionError: Entity does not have the classification
        """
        record = self._record(guid, _ENTITY)
        self._check_home(record, "update_entity_classification")
        self.state_machine.check(record.header, Transition.RECLASSIFY, _ENTITY.value)
        existing = self._attached(record, classification_name, Transition.RECLASSIFY)
        classification_def = self._classification_def(classification_name)
        validate_properties(classification_def, properties, guid)

        updated = replace(
            existing,
            properties=properties or {},
            version=existing.version + 1,
            updated_by=user_id,
            update_time=self.ledger.now(),
        )
        classifications = tuple(
            updated if c.name == existing.name else c for c in record.instance.classifications
        )
        new_record = self.ledger.with_entity_changes(
            record, user_id, classifications=classifications
        )
        return self._mutate(
            record,
            new_record,
            Transition.RECLASSIFY,
            InstanceEventKind.RECLASSIFIED,
            _ENTITY,
            user_id,
            existing.name,
        )

    def declassify_entity(
        self, user_id: str, guid: str, classification_name: str
    ) -> EntityDetail:
        """Remove a classification from an entity.

        Raises:
            NotKnownError: Entity is absent, purged or soft-deleted
            InvalidTransitionError: Entity does not have the classification
        """
        record = self._record(guid, _ENTITY)
        self._check_home(record, "declassify_entity")
        self.state_machine.check(record.header, Transition.DECLASSIFY, _ENTITY.value)
        existing = self._attached(record, classification_name, Transition.DECLASSIFY)
        classifications = tuple(
            c for c in record.instance.classifications if c.name != existing.name
        )
        new_record = self.ledger.with_entity_changes(
            record, user_id, classifications=classifications
        )
        return self._mutate(
            record,
            new_record,
            Transition.DECLASSIFY,
            InstanceEventKind.DECLASSIFIED,
            _ENTITY,
            user_id,
            existing.name,
        )

    def save_entity_reference_copy(self, user_id: str, entity: EntityDetail) -> None:
        """Store a replica of an entity owned by another metadata collection.

        The copy keeps its home version, provenance and stamps. An equal
        version replaces the held copy; an older one is rejected.

        Raises:
            InvalidInstanceError: Entity is owned here, or is older than the held copy
            TypeDefNotKnownError: Entity type is not registered
            TypeConformanceError: Properties do not conform to the type
        """
        guid = entity.guid
        if entity.header.metadata_collection_id == self.metadata_collection_id:
            raise InvalidInstanceError(
                guid, "reference copies must be owned by another metadata collection"
            )
        entity_def = self._entity_def(entity.type.type_def_guid)
        validate_properties(entity_def, entity.properties, guid, self.registry)

        new_record = InstanceRecord(instance=entity)
        publish = self._publisher(InstanceEventKind.REFERENCE_COPY_SAVED, _ENTITY, user_id)
        held = self.arena.get(guid)
        if held is None:
            self.arena.insert(new_record, on_commit=publish)
        else:
            if not isinstance(held.instance, EntityDetail):
                raise InvalidInstanceError(guid, "guid is held by a relationship")
            if self._is_home(held.header):
                raise InvalidInstanceError(guid, "guid is owned by this metadata collection")
            if entity.version < held.version:
                raise InvalidInstanceError(
                    guid,
                    f"reference copy version {entity.version} is older than "
                    f"held version {held.version}",
                )
            self.arena.compare_and_set(
                guid, held.version, new_record, "save_reference_copy", on_commit=publish
            )

        logger.debug(
            f"Saved reference copy of entity {guid} v{entity.version}",
            extra={"home_collection": entity.header.metadata_collection_id},
        )

    # =========================================================================
    # Relationships
    # =========================================================================

    def add_relationship(
        self,
        user_id: str,
        type_def: str,
        end_one: EntityEnd,
        end_two: EntityEnd,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> Relationship:
        """Create a relationship between two entities at version 1.

        An end is either the GUID of an entity held here, from which a
        proxy is built, or an EntityProxy for an entity held elsewhere.

        Raises:
            TypeDefNotKnownError: Type is not a registered relationship type
            NotKnownError: An end GUID is not held here
            TypeConformanceError: End types or properties do not conform
        """
        relationship_def = self._relationship_def(type_def)
        proxy_one = self._proxy_for(end_one)
        proxy_two = self._proxy_for(end_two)
        validate_relationship_ends(relationship_def, proxy_one, proxy_two, self.registry)
        validate_properties(relationship_def, properties)

        header = self.ledger.first_header(
            str(uuid.uuid4()),
            self._instance_type(relationship_def),
            self.state_machine.initial_status(relationship_def),
            self.metadata_collection_id,
            user_id,
        )
        relationship = Relationship(
            header=header,
            end_one=RelationshipEnd(
                proxy_one, relationship_def.end_one.attribute_name, EndOrdinal.ONE
            ),
            end_two=RelationshipEnd(
                proxy_two, relationship_def.end_two.attribute_name, EndOrdinal.TWO
            ),
            properties=properties or {},
        )
        self.arena.insert(
            self.ledger.new_record(relationship),
            on_commit=self._publisher(InstanceEventKind.CREATED, _RELATIONSHIP, user_id),
        )

        logger.debug(
            f"Created relationship {relationship.guid} of type {relationship_def.name} "
            f"between {proxy_one.guid} and {proxy_two.guid}"
        )
        return relationship

    def is_relationship_known(self, user_id: str, guid: str) -> Optional[Relationship]:
        """The relationship, soft-deleted or not, or None if it is not held."""
        record = self.arena.get(guid)
        if record is None or not isinstance(record.instance, Relationship):
            return None
        return record.instance

    def get_relationship(self, user_id: str, guid: str) -> Relationship:
        """Raises NotKnownError if the relationship is absent, purged or soft-deleted."""
        return self._live_instance(guid, _RELATIONSHIP)

    def update_relationship_status(
        self, user_id: str, guid: str, new_status: InstanceStatus
    ) -> Relationship:
        return self._update_status(
            user_id, guid, new_status, _RELATIONSHIP, "update_relationship_status"
        )

    def update_relationship_properties(
        self, user_id: str, guid: str, properties: Optional[Mapping[str, Any]]
    ) -> Relationship:
        return self._update_properties(
            user_id, guid, properties, _RELATIONSHIP, "update_relationship_properties"
        )

    def undo_relationship_update(self, user_id: str, guid: str) -> Relationship:
        return self._undo(user_id, guid, _RELATIONSHIP, "undo_relationship_update")

    def delete_relationship(self, user_id: str, guid: str) -> Relationship:
        return self._delete(user_id, guid, _RELATIONSHIP, "delete_relationship")

    def restore_relationship(self, user_id: str, guid: str) -> Relationship:
        return self._restore(user_id, guid, _RELATIONSHIP, "restore_relationship")

    def purge_relationship(self, user_id: str, guid: str) -> None:
        self._purge(user_id, guid, _RELATIONSHIP)

    # =========================================================================
    # Shared lifecycle paths
    # =========================================================================

    def _update_status(
        self,
        user_id: str,
        guid: str,
        new_status: InstanceStatus,
        category: InstanceCategory,
        function: str,
    ) -> Instance:
        record = self._record(guid, category)
        typedef = self._typedef_of(record, category)
        self._check_home(record, function)
        self.state_machine.check_status_update(record.header, typedef, new_status, category.value)
        new_record = self.ledger.with_status(record, user_id, new_status)
        return self._mutate(
            record,
            new_record,
            Transition.UPDATE_STATUS,
            InstanceEventKind.STATUS_UPDATED,
            category,
            user_id,
        )

    def _update_properties(
        self,
        user_id: str,
        guid: str,
        properties: Optional[Mapping[str, Any]],
        category: InstanceCategory,
        function: str,
    ) -> Instance:
        record = self._record(guid, category)
        typedef = self._typedef_of(record, category)
        self._check_home(record, function)
        self.state_machine.check(record.header, Transition.UPDATE_PROPERTIES, category.value)
        validate_properties(typedef, properties, guid, self.registry)
        new_record = self.ledger.with_properties(record, user_id, properties)
        return self._mutate(
            record,
            new_record,
            Transition.UPDATE_PROPERTIES,
            InstanceEventKind.PROPERTIES_UPDATED,
            category,
            user_id,
        )

    def _undo(
        self, user_id: str, guid: str, category: InstanceCategory, function: str
    ) -> Instance:
        record = self._record(guid, category)
        typedef = self._typedef_of(record, category)
        self._check_home(record, function)
        self.state_machine.check_undo(record, typedef, function, category.value)
        new_record = self.ledger.undone(record, user_id)
        return self._mutate(
            record, new_record, Transition.UNDO, InstanceEventKind.UPDATE_UNDONE, category, user_id
        )

    def _delete(
        self, user_id: str, guid: str, category: InstanceCategory, function: str
    ) -> Instance:
        record = self._record(guid, category)
        typedef = self._typedef_of(record, category)
        self._check_home(record, function)
        self.state_machine.check_delete(record.header, typedef, function, category.value)
        new_record = self.ledger.with_status(
            record, user_id, InstanceStatus.DELETED, status_on_delete=record.header.status
        )
        return self._mutate(
            record, new_record, Transition.DELETE, InstanceEventKind.DELETED, category, user_id
        )

    def _restore(
        self, user_id: str, guid: str, category: InstanceCategory, function: str
    ) -> Instance:
        record = self._record(guid, category)
        typedef = self._typedef_of(record, category)
        self._check_home(record, function)
        self.state_machine.check_restore(record.header, category.value)
        status = self.state_machine.restored_status(record.header, typedef)
        new_record = self.ledger.with_status(record, user_id, status)
        return self._mutate(
            record, new_record, Transition.RESTORE, InstanceEventKind.RESTORED, category, user_id
        )

    def _purge(self, user_id: str, guid: str, category: InstanceCategory) -> None:
        record = self._record(guid, category)
        home = self._is_home(record.header)
        if home:
            typedef = self._typedef_of(record, category)
            self.state_machine.check_purge(record.header, typedef, category.value)
        self.arena.remove(
            guid,
            record.version,
            Transition.PURGE.value,
            remember=home,
            on_commit=self._publisher(InstanceEventKind.PURGED, category, user_id),
        )

        logger.debug(f"Purged {category.value} {guid} at v{record.version}")

    def _mutate(
        self,
        record: InstanceRecord,
        new_record: InstanceRecord,
        transition: Transition,
        kind: InstanceEventKind,
        category: InstanceCategory,
        user_id: str,
        classification_name: Optional[str] = None,
    ) -> Instance:
        """Commit new_record over record, publishing the event before the slot is released."""
        self.arena.compare_and_set(
            record.guid,
            record.version,
            new_record,
            transition.value,
            on_commit=self._publisher(kind, category, user_id, classification_name),
        )
        return new_record.instance

    def _publisher(
        self,
        kind: InstanceEventKind,
        category: InstanceCategory,
        user_id: str,
        classification_name: Optional[str] = None,
    ) -> Callable[[InstanceRecord], None]:
        def publish(record: InstanceRecord) -> None:
            self._publish(kind, category, record.instance, user_id, classification_name)

        return publish

    def _publish(
        self,
        kind: InstanceEventKind,
        category: InstanceCategory,
        instance: Instance,
        user_id: str,
        classification_name: Optional[str] = None,
    ) -> None:
        if not self._sinks:
            return
        event = InstanceEvent.for_instance(
            kind, category, instance, user_id, self.ledger.now(), classification_name
        )
        for sink in self._sinks:
            try:
                sink.publish(event)
            except Exception as e:
                logger.warning(
                    f"Event sink {type(sink).__name__} failed for {event}: {e}",
                    extra={"guid": event.guid, "version": event.version},
                    exc_info=True,
                )

    # =========================================================================
    # Lookups
    # =========================================================================

    def _record(self, guid: str, category: InstanceCategory) -> InstanceRecord:
        record = self.arena.get(guid)
        expected = EntityDetail if category == _ENTITY else Relationship
        if record is None or not isinstance(record.instance, expected):
            raise NotKnownError(guid, category.value, self.metadata_collection_id)
        return record

    def _live_instance(self, guid: str, category: InstanceCategory) -> Any:
        record = self._record(guid, category)
        if record.header.is_deleted:
            raise NotKnownError(guid, category.value, self.metadata_collection_id)
        return record.instance

    def _typedef_of(self, record: InstanceRecord, category: InstanceCategory) -> TypeDef:
        type_guid = record.header.type.type_def_guid
        typedef = self.registry.get_type_def(type_guid)
        if typedef is None:
            raise TypeDefNotKnownError(type_guid, category.value)
        return typedef

    def _entity_def(self, type_def: str) -> EntityDef:
        entity_def = self.registry.get_entity_def(type_def)
        if entity_def is None:
            raise TypeDefNotKnownError(type_def, TypeDefCategory.ENTITY.value)
        return entity_def

    def _relationship_def(self, type_def: str) -> RelationshipDef:
        relationship_def = self.registry.get_relationship_def(type_def)
        if relationship_def is None:
            raise TypeDefNotKnownError(type_def, TypeDefCategory.RELATIONSHIP.value)
        return relationship_def

    def _classification_def(self, type_def: str) -> ClassificationDef:
        classification_def = self.registry.get_classification_def(type_def)
        if classification_def is None:
            raise TypeDefNotKnownError(type_def, TypeDefCategory.CLASSIFICATION.value)
        return classification_def

    def _instance_type(self, typedef: TypeDef) -> InstanceType:
        super_types: tuple = ()
        if isinstance(typedef, EntityDef):
            super_types = tuple(self.registry.super_type_names(typedef.name))
        return InstanceType(
            type_def_guid=typedef.guid,
            type_def_name=typedef.name,
            category=typedef.category,
            super_type_names=super_types,
        )

    def _new_classification(
        self,
        user_id: str,
        entity_def: EntityDef,
        name: str,
        properties: Optional[Mapping[str, Any]],
        guid: Optional[str] = None,
    ) -> Classification:
        classification_def = self._classification_def(name)
        validate_classification_target(classification_def, entity_def, self.registry)
        validate_properties(classification_def, properties, guid)
        return Classification(
            name=classification_def.name,
            type=self._instance_type(classification_def),
            created_by=user_id,
            create_time=self.ledger.now(),
            properties=properties or {},
        )

    def _attached(
        self, record: InstanceRecord, name: str, transition: Transition
    ) -> Classification:
        classification = record.instance.get_classification(name)
        if classification is None:
            raise InvalidTransitionError(
                record.guid,
                transition.value,
                record.header.status.value,
                f"entity is not classified as {name}",
            )
        return classification

    def _proxy_for(self, end: EntityEnd) -> EntityProxy:
        if isinstance(end, EntityProxy):
            return end
        entity = self._record(end, _ENTITY).instance
        entity_def = self.registry.get_entity_def(entity.type.type_def_guid)
        unique_names = (
            [a.name for a in self.registry.all_attributes(entity_def) if a.unique]
            if entity_def
            else []
        )
        return EntityProxy.from_entity(entity, unique_names)

    def _is_home(self, header: InstanceHeader) -> bool:
        return header.metadata_collection_id == self.metadata_collection_id

    def _check_home(self, record: InstanceRecord, function: str) -> None:
        if not self._is_home(record.header):
            raise InvalidInstanceError(
                record.guid,
                f"{function} is not permitted on a reference copy owned by "
                f"metadata collection {record.header.metadata_collection_id}",
            )
