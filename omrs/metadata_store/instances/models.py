"""
Instance data shapes for the metadata store.

Every instance embeds one InstanceHeader by value:

    EntitySummary  = header + classifications
    EntityDetail   = header + properties + classifications
    Relationship   = header + properties + end_one + end_two

Invariants:
    - guid, type, metadata_collection_id, created_by and create_time never
      change after creation
    - All shapes are frozen; property bags are read-only mappings copied on
      construction, so a caller's dict can never alias stored state
    - An EntityProxy has no version lifecycle of its own

How to change safely:
    - Add header fields with defaults so reference copies from older
      repositories still load
    - Keep to_dict()/from_dict() symmetric
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from ..typedefs.types import InstanceStatus, TypeDefCategory


class InstanceProvenance(Enum):
    """Where an instance came from."""

    LOCAL_COHORT = "LOCAL_COHORT"
    EXPORT_ARCHIVE = "EXPORT_ARCHIVE"
    CONTENT_PACK = "CONTENT_PACK"
    DEREGISTERED_REPOSITORY = "DEREGISTERED_REPOSITORY"
    CONFIGURATION = "CONFIGURATION"
    EXTERNAL_SOURCE = "EXTERNAL_SOURCE"


class EndOrdinal(Enum):
    """Position of a relationship end."""

    ONE = 1
    TWO = 2


def freeze_properties(properties: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Copy a property bag into a read-only mapping."""
    return MappingProxyType(copy.deepcopy(dict(properties or {})))


def _thaw(properties: Mapping[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(dict(properties))


@dataclass(frozen=True)
class InstanceType:
    """Reference from an instance to its type definition.

    Attributes:
        type_def_guid: GUID of the type definition
        type_def_name: Name of the type definition
        category: Entity, relationship or classification
        super_type_names: Supertype names, nearest first
    """

    type_def_guid: str
    type_def_name: str
    category: TypeDefCategory = TypeDefCategory.ENTITY
    super_type_names: tuple[str, ...] = ()

    def is_type_of(self, type_name: str) -> bool:
        return type_name == self.type_def_name or type_name in self.super_type_names

    def to_dict(self) -> dict[str, Any]:
        return {
            "type_def_guid": self.type_def_guid,
            "type_def_name": self.type_def_name,
            "category": self.category.value,
            "super_type_names": list(self.super_type_names),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstanceType:
        return cls(
            type_def_guid=data["type_def_guid"],
            type_def_name=data["type_def_name"],
            category=TypeDefCategory(data.get("category", "entity")),
            super_type_names=tuple(data.get("super_type_names", ())),
        )


@dataclass(frozen=True)
class InstanceHeader:
    """Identity, status and version stamps shared by every instance.

    Attributes:
        guid: Globally unique identity, never reused
        type: Type the instance was created with
        status: Current status (DELETED while tombstoned)
        version: Starts at 1, +1 on every committed mutation
        metadata_collection_id: Owning (home) repository
        provenance: Origin of the instance
        created_by: User that created the instance
        create_time: Creation time (Unix ms)
        updated_by: User of the latest mutation
        update_time: Time of the latest mutation (Unix ms)
        status_on_delete: Status held before soft delete (tombstones only)
    """

    guid: str
    type: InstanceType
    status: InstanceStatus
    version: int
    metadata_collection_id: str
    provenance: InstanceProvenance
    created_by: str
    create_time: int
    updated_by: str | None = None
    update_time: int | None = None
    status_on_delete: InstanceStatus | None = None

    def __post_init__(self) -> None:
        if not self.guid:
            raise ValueError("Instance guid cannot be empty")
        if self.version < 1:
            raise ValueError(f"Instance version must be >= 1, got {self.version}")

    @property
    def is_deleted(self) -> bool:
        return self.status == InstanceStatus.DELETED

    @property
    def is_local(self) -> bool:
        return self.provenance == InstanceProvenance.LOCAL_COHORT

    def to_dict(self) -> dict[str, Any]:
        return {
            "guid": self.guid,
            "type": self.type.to_dict(),
            "status": self.status.value,
            "version": self.version,
            "metadata_collection_id": self.metadata_collection_id,
            "provenance": self.provenance.value,
            "created_by": self.created_by,
            "create_time": self.create_time,
            "updated_by": self.updated_by,
            "update_time": self.update_time,
            "status_on_delete": self.status_on_delete.value if self.status_on_delete else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstanceHeader:
        status_on_delete = data.get("status_on_delete")
        return cls(
            guid=data["guid"],
            type=InstanceType.from_dict(data["type"]),
            status=InstanceStatus(data["status"]),
            version=data["version"],
            metadata_collection_id=data["metadata_collection_id"],
            provenance=InstanceProvenance(data["provenance"]),
            created_by=data["created_by"],
            create_time=data["create_time"],
            updated_by=data.get("updated_by"),
            update_time=data.get("update_time"),
            status_on_delete=InstanceStatus(status_on_delete) if status_on_delete else None,
        )


@dataclass(frozen=True)
class Classification:
    """A classification attached to an entity, with its own version."""

    name: str
    type: InstanceType
    created_by: str
    create_time: int
    properties: Mapping[str, Any] = field(default_factory=dict)
    version: int = 1
    updated_by: str | None = None
    update_time: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", freeze_properties(self.properties))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.to_dict(),
            "properties": _thaw(self.properties),
            "version": self.version,
            "created_by": self.created_by,
            "create_time": self.create_time,
            "updated_by": self.updated_by,
            "update_time": self.update_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Classification:
        return cls(
            name=data["name"],
            type=InstanceType.from_dict(data["type"]),
            properties=data.get("properties") or {},
            version=data.get("version", 1),
            created_by=data["created_by"],
            create_time=data["create_time"],
            updated_by=data.get("updated_by"),
            update_time=data.get("update_time"),
        )


@dataclass(frozen=True)
class EntitySummary:
    """Lightweight projection of an entity without its property bag."""

    header: InstanceHeader
    classifications: tuple[Classification, ...] = ()

    @property
    def guid(self) -> str:
        return self.header.guid

    @property
    def version(self) -> int:
        return self.header.version

    @property
    def status(self) -> InstanceStatus:
        return self.header.status


@dataclass(frozen=True)
class EntityDetail:
    """Full entity: header, property bag and classifications.

    Example:
        >>> entity.header.version
        1
        >>> entity.properties["qualifiedName"]
        't1'
    """

    header: InstanceHeader
    properties: Mapping[str, Any] = field(default_factory=dict)
    classifications: tuple[Classification, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", freeze_properties(self.properties))

    @property
    def guid(self) -> str:
        return self.header.guid

    @property
    def version(self) -> int:
        return self.header.version

    @property
    def status(self) -> InstanceStatus:
        return self.header.status

    @property
    def type(self) -> InstanceType:
        return self.header.type

    def summary(self) -> EntitySummary:
        return EntitySummary(header=self.header, classifications=self.classifications)

    def get_classification(self, name: str) -> Classification | None:
        for classification in self.classifications:
            if classification.name == name:
                return classification
        return None

    def with_header(self, header: InstanceHeader, **changes: Any) -> EntityDetail:
        return replace(self, header=header, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "properties": _thaw(self.properties),
            "classifications": [c.to_dict() for c in self.classifications],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityDetail:
        return cls(
            header=InstanceHeader.from_dict(data["header"]),
            properties=data.get("properties") or {},
            classifications=tuple(
                Classification.from_dict(c) for c in data.get("classifications", [])
            ),
        )


@dataclass(frozen=True)
class EntityProxy:
    """Stand-in for an entity referenced by a relationship.

    Carries only what is needed to identify the entity, so the entity
    itself may live in another repository.
    """

    guid: str
    type: InstanceType
    metadata_collection_id: str
    unique_properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.guid:
            raise ValueError("Entity proxy guid cannot be empty")
        object.__setattr__(self, "unique_properties", freeze_properties(self.unique_properties))

    @classmethod
    def from_entity(cls, entity: EntityDetail, unique_attribute_names: list[str]) -> EntityProxy:
        """Build a proxy for a locally held entity."""
        return cls(
            guid=entity.guid,
            type=entity.type,
            metadata_collection_id=entity.header.metadata_collection_id,
            unique_properties={
                name: entity.properties[name]
                for name in unique_attribute_names
                if name in entity.properties
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "guid": self.guid,
            "type": self.type.to_dict(),
            "metadata_collection_id": self.metadata_collection_id,
            "unique_properties": _thaw(self.unique_properties),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityProxy:
        return cls(
            guid=data["guid"],
            type=InstanceType.from_dict(data["type"]),
            metadata_collection_id=data["metadata_collection_id"],
            unique_properties=data.get("unique_properties") or {},
        )


@dataclass(frozen=True)
class RelationshipEnd:
    """An entity proxy in its role at one end of a relationship."""

    proxy: EntityProxy
    proxy_name: str
    ordinal: EndOrdinal

    def to_dict(self) -> dict[str, Any]:
        return {
            "proxy": self.proxy.to_dict(),
            "proxy_name": self.proxy_name,
            "ordinal": self.ordinal.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipEnd:
        return cls(
            proxy=EntityProxy.from_dict(data["proxy"]),
            proxy_name=data["proxy_name"],
            ordinal=EndOrdinal(data["ordinal"]),
        )


@dataclass(frozen=True)
class Relationship:
    """A typed link between two entity proxies."""

    header: InstanceHeader
    end_one: RelationshipEnd
    end_two: RelationshipEnd
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.end_one.ordinal != EndOrdinal.ONE or self.end_two.ordinal != EndOrdinal.TWO:
            raise ValueError("Relationship ends must be ordered ONE, TWO")
        object.__setattr__(self, "properties", freeze_properties(self.properties))

    @property
    def guid(self) -> str:
        return self.header.guid

    @property
    def version(self) -> int:
        return self.header.version

    @property
    def status(self) -> InstanceStatus:
        return self.header.status

    @property
    def type(self) -> InstanceType:
        return self.header.type

    def references(self, entity_guid: str) -> bool:
        """Whether either end proxies the given entity."""
        return entity_guid in (self.end_one.proxy.guid, self.end_two.proxy.guid)

    def with_header(self, header: InstanceHeader, **changes: Any) -> Relationship:
        return replace(self, header=header, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "properties": _thaw(self.properties),
            "end_one": self.end_one.to_dict(),
            "end_two": self.end_two.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relationship:
        return cls(
            header=InstanceHeader.from_dict(data["header"]),
            properties=data.get("properties") or {},
            end_one=RelationshipEnd.from_dict(data["end_one"]),
            end_two=RelationshipEnd.from_dict(data["end_two"]),
        )


Instance = EntityDetail | Relationship
