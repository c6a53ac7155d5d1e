"""
Core type definitions for the metadata store.

This module defines the type metadata that governs instances:
- AttributeDef: a single attribute declared by a type
- EntityDef: definition of an entity type
- RelationshipDef: definition of a relationship type and its two ends
- ClassificationDef: definition of a classification type
- InstanceStatus: lifecycle statuses an instance can hold

Invariants:
    - guid and name are both required and immutable once registered
    - initial_status is always one of valid_statuses
    - DELETED is a reserved status; it may appear in valid_statuses but
      can never be the initial status
    - enum_symbols are append-only once defined

How to change safely:
    - Add new attributes as optional (AT_MOST_ONE / ANY_NUMBER)
    - Never reorder or remove enum symbols
    - Capability flags (supports_soft_delete, supports_undo) can only be
      relaxed, not tightened, while instances of the type exist

Example:
    >>> from omrs.metadata_store.typedefs.types import EntityDef, attribute
    >>> Topic = EntityDef(
    ...     guid="29100f49-338e-4361-b05d-7e4e8e818325",
    ...     name="Topic",
    ...     attributes=(
    ...         attribute("qualifiedName", "string", cardinality="ONE_ONLY", unique=True),
    ...         attribute("topicType", "enum", enum_symbols=("PUB_SUB", "QUEUE")),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any


class InstanceStatus(Enum):
    """Lifecycle statuses of an instance.

    DELETED is reserved for soft-deleted (tombstoned) instances and is
    only ever set by the dedicated delete operation.
    """

    UNKNOWN = "UNKNOWN"
    DRAFT = "DRAFT"
    PREPARED = "PREPARED"
    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    APPROVED_CONCEPT = "APPROVED_CONCEPT"
    UNDER_DEVELOPMENT = "UNDER_DEVELOPMENT"
    DEVELOPMENT_COMPLETE = "DEVELOPMENT_COMPLETE"
    APPROVED_FOR_DEPLOYMENT = "APPROVED_FOR_DEPLOYMENT"
    STANDBY = "STANDBY"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"
    DISABLED = "DISABLED"
    COMPLETE = "COMPLETE"
    DEPRECATED = "DEPRECATED"
    OTHER = "OTHER"
    DELETED = "DELETED"


class TypeDefCategory(Enum):
    """Kind of type a definition describes."""

    ENTITY = "entity"
    RELATIONSHIP = "relationship"
    CLASSIFICATION = "classification"


class AttributeKind(Enum):
    """Value kinds an attribute can declare."""

    PRIMITIVE = "primitive"
    ENUM = "enum"
    MAP = "map"


class PrimitiveKind(Enum):
    """Primitive subtypes for PRIMITIVE attributes and MAP values."""

    STRING = "string"
    INT = "int"
    LONG = "long"
    SHORT = "short"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    CHAR = "char"
    DATE = "date"  # Unix milliseconds

    @classmethod
    def from_str(cls, value: str) -> PrimitiveKind:
        """Convert string representation to PrimitiveKind.

        Raises:
            ValueError: If value is not a valid primitive kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid primitive kind '{value}'. Valid kinds: {valid}")

    def accepts(self, value: Any) -> bool:
        """Whether a Python value is a legal value of this primitive kind."""
        if self is PrimitiveKind.STRING:
            return isinstance(value, str)
        if self is PrimitiveKind.CHAR:
            return isinstance(value, str) and len(value) == 1
        if self is PrimitiveKind.BOOLEAN:
            return isinstance(value, bool)
        if self in (PrimitiveKind.FLOAT, PrimitiveKind.DOUBLE):
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is PrimitiveKind.DATE:
            return isinstance(value, int) and not isinstance(value, bool) and value >= 0
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        if self is PrimitiveKind.SHORT:
            return -(2**15) <= value < 2**15
        if self is PrimitiveKind.INT:
            return -(2**31) <= value < 2**31
        return -(2**63) <= value < 2**63


class Cardinality(Enum):
    """Attribute cardinality.

    ONE_ONLY and AT_LEAST_ONE make the attribute mandatory;
    AT_LEAST_ONE and ANY_NUMBER make it multi-valued (a list).
    """

    AT_MOST_ONE = "AT_MOST_ONE"
    ONE_ONLY = "ONE_ONLY"
    AT_LEAST_ONE = "AT_LEAST_ONE"
    ANY_NUMBER = "ANY_NUMBER"

    @property
    def mandatory(self) -> bool:
        return self in (Cardinality.ONE_ONLY, Cardinality.AT_LEAST_ONE)

    @property
    def multi_valued(self) -> bool:
        return self in (Cardinality.AT_LEAST_ONE, Cardinality.ANY_NUMBER)


@dataclass(frozen=True)
class AttributeDef:
    """Definition of a single attribute within a type.

    Attributes:
        name: Attribute name as used in property bags
        kind: PRIMITIVE, ENUM or MAP
        primitive: Primitive subtype (PRIMITIVE attributes only)
        enum_symbols: Legal symbols (ENUM attributes only, append-only)
        map_value_kind: Primitive kind of map values (MAP attributes only)
        cardinality: How many values the attribute holds
        unique: Whether the attribute identifies an instance (copied to proxies)
        description: Human-readable description

    Invariants:
        - name must be unique within the containing type
        - kind cannot change after definition
    """

    name: str
    kind: AttributeKind
    primitive: PrimitiveKind | None = None
    enum_symbols: tuple[str, ...] | None = None
    map_value_kind: PrimitiveKind | None = None
    cardinality: Cardinality = Cardinality.AT_MOST_ONE
    unique: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        """Validate attribute definition."""
        if not self.name:
            raise ValueError("Attribute name cannot be empty")
        if self.kind == AttributeKind.PRIMITIVE and self.primitive is None:
            raise ValueError(f"primitive kind required for attribute '{self.name}'")
        if self.kind == AttributeKind.ENUM and not self.enum_symbols:
            raise ValueError(f"enum_symbols required for ENUM attribute '{self.name}'")
        if self.kind == AttributeKind.MAP and self.map_value_kind is None:
            raise ValueError(f"map_value_kind required for MAP attribute '{self.name}'")

    @property
    def mandatory(self) -> bool:
        """Whether a non-empty property bag must carry this attribute."""
        return self.cardinality.mandatory

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this attribute definition.

        Args:
            value: The value to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.mandatory:
                return False, f"Attribute '{self.name}' is mandatory"
            return True, None

        if self.cardinality.multi_valued:
            if not isinstance(value, list):
                return (
                    False,
                    f"Attribute '{self.name}' must be a list, got {type(value).__name__}",
                )
            if self.cardinality == Cardinality.AT_LEAST_ONE and not value:
                return False, f"Attribute '{self.name}' needs at least one value"
            for i, item in enumerate(value):
                error = self._check_single(item)
                if error:
                    return False, f"{error} (item {i})"
            return True, None

        error = self._check_single(value)
        if error:
            return False, error
        return True, None

    def _check_single(self, value: Any) -> str | None:
        if self.kind == AttributeKind.ENUM:
            if not isinstance(value, str):
                return f"Attribute '{self.name}' must be an enum symbol, got {type(value).__name__}"
            if self.enum_symbols and value not in self.enum_symbols:
                return f"Attribute '{self.name}' must be one of {self.enum_symbols}, got '{value}'"
            return None

        if self.kind == AttributeKind.MAP:
            if not isinstance(value, dict):
                return f"Attribute '{self.name}' must be a map, got {type(value).__name__}"
            if self.map_value_kind is None:
                return f"Attribute '{self.name}' has no map value kind"
            for key, item in value.items():
                if not isinstance(key, str):
                    return f"Attribute '{self.name}' map keys must be strings"
                if not self.map_value_kind.accepts(item):
                    return (
                        f"Attribute '{self.name}' map value for '{key}' "
                        f"is not a {self.map_value_kind.value}"
                    )
            return None

        if self.primitive is None:
            return f"Attribute '{self.name}' has no primitive kind"
        if not self.primitive.accepts(value):
            return (
                f"Attribute '{self.name}' has invalid type for {self.primitive.value}, "
                f"got {type(value).__name__}"
            )
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "cardinality": self.cardinality.value,
        }
        if self.primitive is not None:
            result["primitive"] = self.primitive.value
        if self.enum_symbols:
            result["enum_symbols"] = list(self.enum_symbols)
        if self.map_value_kind is not None:
            result["map_value_kind"] = self.map_value_kind.value
        if self.unique:
            result["unique"] = True
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributeDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            kind=AttributeKind(data["kind"]),
            primitive=PrimitiveKind.from_str(data["primitive"]) if data.get("primitive") else None,
            enum_symbols=tuple(data["enum_symbols"]) if data.get("enum_symbols") else None,
            map_value_kind=PrimitiveKind.from_str(data["map_value_kind"])
            if data.get("map_value_kind")
            else None,
            cardinality=Cardinality(data.get("cardinality", Cardinality.AT_MOST_ONE.value)),
            unique=data.get("unique", False),
            description=data.get("description", ""),
        )


def attribute(
    name: str,
    kind: str | PrimitiveKind | AttributeKind,
    *,
    cardinality: str | Cardinality = Cardinality.AT_MOST_ONE,
    enum_symbols: tuple[str, ...] | None = None,
    map_value_kind: str | PrimitiveKind | None = None,
    unique: bool = False,
    description: str = "",
) -> AttributeDef:
    """Convenience function to create an AttributeDef.

    ``kind`` is either a primitive name ("string", "int", ...), "enum" or
    "map".

    Example:
        >>> name = attribute("qualifiedName", "string", cardinality="ONE_ONLY", unique=True)
        >>> labels = attribute("labels", "map", map_value_kind="string")
    """
    if isinstance(cardinality, str):
        cardinality = Cardinality(cardinality)
    if isinstance(map_value_kind, str):
        map_value_kind = PrimitiveKind.from_str(map_value_kind)

    primitive: PrimitiveKind | None = None
    if isinstance(kind, PrimitiveKind):
        attr_kind, primitive = AttributeKind.PRIMITIVE, kind
    elif isinstance(kind, AttributeKind):
        attr_kind = kind
    elif kind in (AttributeKind.ENUM.value, AttributeKind.MAP.value):
        attr_kind = AttributeKind(kind)
    else:
        attr_kind, primitive = AttributeKind.PRIMITIVE, PrimitiveKind.from_str(kind)

    return AttributeDef(
        name=name,
        kind=attr_kind,
        primitive=primitive,
        enum_symbols=enum_symbols,
        map_value_kind=map_value_kind,
        cardinality=cardinality,
        unique=unique,
        description=description,
    )


DEFAULT_VALID_STATUSES: tuple[InstanceStatus, ...] = (
    InstanceStatus.ACTIVE,
    InstanceStatus.DELETED,
)


def _check_header(
    category: TypeDefCategory,
    guid: str,
    name: str,
    attributes: tuple[AttributeDef, ...],
    initial_status: InstanceStatus,
    valid_statuses: tuple[InstanceStatus, ...],
) -> None:
    """Shared validation for every kind of type definition."""
    label = category.value
    if not guid:
        raise ValueError(f"{label} type guid cannot be empty")
    if not name:
        raise ValueError(f"{label} type name cannot be empty")
    names = [a.name for a in attributes]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate attribute name in {label} type '{name}'")
    if initial_status == InstanceStatus.DELETED:
        raise ValueError(f"{label} type '{name}' cannot use DELETED as initial status")
    if initial_status not in valid_statuses:
        raise ValueError(
            f"Initial status {initial_status.value} of {label} type '{name}' "
            "is not in its valid statuses"
        )


def _statuses_from(data: dict[str, Any]) -> tuple[InstanceStatus, ...]:
    raw = data.get("valid_statuses")
    if not raw:
        return DEFAULT_VALID_STATUSES
    return tuple(InstanceStatus(s) for s in raw)


def _header_dict(
    typedef: EntityDef | RelationshipDef | ClassificationDef,
) -> dict[str, Any]:
    result: dict[str, Any] = {
        "guid": typedef.guid,
        "name": typedef.name,
        "attributes": [a.to_dict() for a in typedef.attributes],
        "initial_status": typedef.initial_status.value,
        "valid_statuses": [s.value for s in typedef.valid_statuses],
    }
    if not typedef.supports_soft_delete:
        result["supports_soft_delete"] = False
    if not typedef.supports_undo:
        result["supports_undo"] = False
    if typedef.open_properties:
        result["open_properties"] = True
    if typedef.description:
        result["description"] = typedef.description
    return result


def _get_attribute(attributes: tuple[AttributeDef, ...], name: str) -> AttributeDef | None:
    for a in attributes:
        if a.name == name:
            return a
    return None


@dataclass(frozen=True)
class EntityDef:
    """Definition of an entity type.

    Attributes:
        guid: Stable identifier of the type definition
        name: Type name (unique across the registry)
        attributes: Declared attributes
        initial_status: Status given to newly created instances
        valid_statuses: Statuses instances may hold
        super_type: Name of the supertype, if any
        supports_soft_delete: Whether instances can be tombstoned and restored
        supports_undo: Whether the last property update can be undone
        open_properties: Whether attribute names outside ``attributes`` are accepted
        description: Human-readable description
    """

    guid: str
    name: str
    attributes: tuple[AttributeDef, ...] = dataclass_field(default_factory=tuple)
    initial_status: InstanceStatus = InstanceStatus.ACTIVE
    valid_statuses: tuple[InstanceStatus, ...] = DEFAULT_VALID_STATUSES
    super_type: str | None = None
    supports_soft_delete: bool = True
    supports_undo: bool = True
    open_properties: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        _check_header(
            TypeDefCategory.ENTITY,
            self.guid,
            self.name,
            self.attributes,
            self.initial_status,
            self.valid_statuses,
        )

    category = TypeDefCategory.ENTITY

    def get_attribute(self, name: str) -> AttributeDef | None:
        return _get_attribute(self.attributes, name)

    def unique_attribute_names(self) -> list[str]:
        """Names of own attributes copied into entity proxies; see TypeDefRegistry.all_attributes."""
        return [a.name for a in self.attributes if a.unique]

    def to_dict(self) -> dict[str, Any]:
        result = _header_dict(self)
        if self.super_type:
            result["super_type"] = self.super_type
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntityDef:
        return cls(
            guid=data["guid"],
            name=data["name"],
            attributes=tuple(AttributeDef.from_dict(a) for a in data.get("attributes", [])),
            initial_status=InstanceStatus(data.get("initial_status", "ACTIVE")),
            valid_statuses=_statuses_from(data),
            super_type=data.get("super_type"),
            supports_soft_delete=data.get("supports_soft_delete", True),
            supports_undo=data.get("supports_undo", True),
            open_properties=data.get("open_properties", False),
            description=data.get("description", ""),
        )

    def __hash__(self) -> int:
        """Hash based on guid (stable identifier)."""
        return hash(self.guid)

    def __eq__(self, other: object) -> bool:
        """Equality based on guid."""
        if not isinstance(other, EntityDef):
            return NotImplemented
        return self.guid == other.guid


@dataclass(frozen=True)
class RelationshipEndDef:
    """One end of a relationship type.

    Attributes:
        entity_type: Name of the entity type allowed at this end
        attribute_name: Role name of the end (the proxy name, e.g. "subscribers")
    """

    entity_type: str
    attribute_name: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = {"entity_type": self.entity_type, "attribute_name": self.attribute_name}
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipEndDef:
        return cls(
            entity_type=data["entity_type"],
            attribute_name=data["attribute_name"],
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class RelationshipDef:
    """Definition of a relationship type between two entity types.

    Example:
        >>> TopicSubscribers = RelationshipDef(
        ...     guid="bc63ac45-b4d0-4fba-b583-92859de77dd8",
        ...     name="TopicSubscribers",
        ...     end_one=RelationshipEndDef("SubscriberList", "subscribers"),
        ...     end_two=RelationshipEndDef("Topic", "topics"),
        ... )
    """

    guid: str
    name: str
    end_one: RelationshipEndDef
    end_two: RelationshipEndDef
    attributes: tuple[AttributeDef, ...] = dataclass_field(default_factory=tuple)
    initial_status: InstanceStatus = InstanceStatus.ACTIVE
    valid_statuses: tuple[InstanceStatus, ...] = DEFAULT_VALID_STATUSES
    supports_soft_delete: bool = True
    supports_undo: bool = True
    open_properties: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        _check_header(
            TypeDefCategory.RELATIONSHIP,
            self.guid,
            self.name,
            self.attributes,
            self.initial_status,
            self.valid_statuses,
        )
        if self.end_one.attribute_name == self.end_two.attribute_name:
            raise ValueError(f"Relationship type '{self.name}' ends need distinct names")

    category = TypeDefCategory.RELATIONSHIP

    def get_attribute(self, name: str) -> AttributeDef | None:
        return _get_attribute(self.attributes, name)

    def to_dict(self) -> dict[str, Any]:
        result = _header_dict(self)
        result["end_one"] = self.end_one.to_dict()
        result["end_two"] = self.end_two.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipDef:
        return cls(
            guid=data["guid"],
            name=data["name"],
            end_one=RelationshipEndDef.from_dict(data["end_one"]),
            end_two=RelationshipEndDef.from_dict(data["end_two"]),
            attributes=tuple(AttributeDef.from_dict(a) for a in data.get("attributes", [])),
            initial_status=InstanceStatus(data.get("initial_status", "ACTIVE")),
            valid_statuses=_statuses_from(data),
            supports_soft_delete=data.get("supports_soft_delete", True),
            supports_undo=data.get("supports_undo", True),
            open_properties=data.get("open_properties", False),
            description=data.get("description", ""),
        )

    def __hash__(self) -> int:
        return hash(self.guid)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelationshipDef):
            return NotImplemented
        return self.guid == other.guid


@dataclass(frozen=True)
class ClassificationDef:
    """Definition of a classification type.

    Attributes:
        valid_entity_types: Entity type names the classification may be
            attached to (subtypes included); empty means any entity type
    """

    guid: str
    name: str
    attributes: tuple[AttributeDef, ...] = dataclass_field(default_factory=tuple)
    valid_entity_types: tuple[str, ...] = dataclass_field(default_factory=tuple)
    initial_status: InstanceStatus = InstanceStatus.ACTIVE
    valid_statuses: tuple[InstanceStatus, ...] = DEFAULT_VALID_STATUSES
    supports_soft_delete: bool = True
    supports_undo: bool = True
    open_properties: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        _check_header(
            TypeDefCategory.CLASSIFICATION,
            self.guid,
            self.name,
            self.attributes,
            self.initial_status,
            self.valid_statuses,
        )

    category = TypeDefCategory.CLASSIFICATION

    def get_attribute(self, name: str) -> AttributeDef | None:
        return _get_attribute(self.attributes, name)

    def to_dict(self) -> dict[str, Any]:
        result = _header_dict(self)
        if self.valid_entity_types:
            result["valid_entity_types"] = list(self.valid_entity_types)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassificationDef:
        return cls(
            guid=data["guid"],
            name=data["name"],
            attributes=tuple(AttributeDef.from_dict(a) for a in data.get("attributes", [])),
            valid_entity_types=tuple(data.get("valid_entity_types", [])),
            initial_status=InstanceStatus(data.get("initial_status", "ACTIVE")),
            valid_statuses=_statuses_from(data),
            supports_soft_delete=data.get("supports_soft_delete", True),
            supports_undo=data.get("supports_undo", True),
            open_properties=data.get("open_properties", False),
            description=data.get("description", ""),
        )

    def __hash__(self) -> int:
        return hash(self.guid)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClassificationDef):
            return NotImplemented
        return self.guid == other.guid


TypeDef = EntityDef | RelationshipDef | ClassificationDef
