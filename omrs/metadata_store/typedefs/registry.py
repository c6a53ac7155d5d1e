"""
Type definition registry for the metadata store.

The TypeDefRegistry is the read-only collaborator the lifecycle engine
consults for every instance operation. It provides:
- Registration of entity, relationship and classification types
- Lookup by GUID or by name
- Supertype resolution for relationship end matching and inherited attributes
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Invariants:
    - Registry is mutable during startup, frozen before serving
    - Once frozen, no new types can be registered
    - Type GUIDs and type names are globally unique across categories
    - Fingerprint changes when any type definition changes

How to change safely:
    - Register all types before calling freeze()
    - Register supertypes before their subtypes
    - Never modify registered types after freeze

Example:
    >>> registry = TypeDefRegistry()
    >>> registry.register_entity_def(Topic)
    >>> registry.freeze()
    >>> registry.get_entity_def("Topic")
    EntityDef(guid='29100f49-...', name='Topic', ...)
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, List, Optional

import yaml

from .types import AttributeDef, ClassificationDef, EntityDef, RelationshipDef, TypeDef

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""
    pass


class DuplicateRegistrationError(Exception):
    """Raised when attempting to register a duplicate type GUID or name."""
    pass


class TypeDefRegistry:
    """Central registry for all type definitions.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the type set (computed on freeze)
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._by_guid: Dict[str, TypeDef] = {}
        self._by_name: Dict[str, TypeDef] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Registry fingerprint (available after freeze)."""
        return self._fingerprint

    def _register(self, typedef: TypeDef) -> None:
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register {typedef.category.value} type '{typedef.name}': "
                    "registry is frozen"
                )

            if typedef.guid in self._by_guid:
                existing = self._by_guid[typedef.guid]
                raise DuplicateRegistrationError(
                    f"guid {typedef.guid} already registered as '{existing.name}'"
                )

            if typedef.name in self._by_name:
                existing = self._by_name[typedef.name]
                raise DuplicateRegistrationError(
                    f"Type name '{typedef.name}' already registered with guid {existing.guid}"
                )

            self._by_guid[typedef.guid] = typedef
            self._by_name[typedef.name] = typedef
            logger.debug(
                f"Registered {typedef.category.value} type: {typedef.name} (guid={typedef.guid})"
            )

    def register_entity_def(self, entity_def: EntityDef) -> None:
        """Register an entity type definition.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If guid or name is already registered
        """
        if entity_def.super_type and entity_def.super_type not in self._by_name:
            logger.warning(
                f"Entity type '{entity_def.name}' references unregistered "
                f"super type '{entity_def.super_type}'"
            )
        self._register(entity_def)

    def register_relationship_def(self, relationship_def: RelationshipDef) -> None:
        """Register a relationship type definition.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If guid or name is already registered
        """
        for end in (relationship_def.end_one, relationship_def.end_two):
            if end.entity_type not in self._by_name:
                logger.warning(
                    f"Relationship type '{relationship_def.name}' references "
                    f"unregistered entity type '{end.entity_type}'"
                )
        self._register(relationship_def)

    def register_classification_def(self, classification_def: ClassificationDef) -> None:
        """Register a classification type definition."""
        self._register(classification_def)

    def get_type_def(self, guid_or_name: str) -> Optional[TypeDef]:
        """Get any type definition by GUID or name."""
        return self._by_guid.get(guid_or_name) or self._by_name.get(guid_or_name)

    def get_entity_def(self, guid_or_name: str) -> Optional[EntityDef]:
        """Get an entity type by GUID or name.

        Returns:
            EntityDef if found, None otherwise (including when the
            GUID/name belongs to another category of type)
        """
        typedef = self.get_type_def(guid_or_name)
        return typedef if isinstance(typedef, EntityDef) else None

    def get_relationship_def(self, guid_or_name: str) -> Optional[RelationshipDef]:
        """Get a relationship type by GUID or name."""
        typedef = self.get_type_def(guid_or_name)
        return typedef if isinstance(typedef, RelationshipDef) else None

    def get_classification_def(self, guid_or_name: str) -> Optional[ClassificationDef]:
        """Get a classification type by GUID or name."""
        typedef = self.get_type_def(guid_or_name)
        return typedef if isinstance(typedef, ClassificationDef) else None

    def entity_defs(self) -> Iterator[EntityDef]:
        """Iterate over all registered entity types."""
        for typedef in self._by_guid.values():
            if isinstance(typedef, EntityDef):
                yield typedef

    def relationship_defs(self) -> Iterator[RelationshipDef]:
        """Iterate over all registered relationship types."""
        for typedef in self._by_guid.values():
            if isinstance(typedef, RelationshipDef):
                yield typedef

    def classification_defs(self) -> Iterator[ClassificationDef]:
        """Iterate over all registered classification types."""
        for typedef in self._by_guid.values():
            if isinstance(typedef, ClassificationDef):
                yield typedef

    def super_type_names(self, entity_type_name: str) -> List[str]:
        """Names of the supertypes of an entity type, nearest first.

        Stops at the first unregistered supertype or on a cycle.
        """
        names: List[str] = []
        current = self.get_entity_def(entity_type_name)
        while current is not None and current.super_type and current.super_type not in names:
            names.append(current.super_type)
            current = self.get_entity_def(current.super_type)
        return names

    def is_type_of(self, entity_type_name: str, expected_type_name: str) -> bool:
        """Whether an entity type is, or inherits from, the expected type."""
        if entity_type_name == expected_type_name:
            return True
        return expected_type_name in self.super_type_names(entity_type_name)

    def all_attributes(self, entity_def: EntityDef) -> List[AttributeDef]:
        """Own attributes followed by those inherited from supertypes.

        An attribute declared on the subtype hides a supertype attribute
        of the same name.
        """
        attributes = list(entity_def.attributes)
        seen = {a.name for a in attributes}
        for name in self.super_type_names(entity_def.name):
            super_def = self.get_entity_def(name)
            if super_def is None:
                break
            for attribute in super_def.attributes:
                if attribute.name not in seen:
                    seen.add(attribute.name)
                    attributes.append(attribute)
        return attributes

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Type registry frozen with {len(self._by_guid)} types, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint over the canonical JSON form."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation.

        Returns:
            Dictionary with 'entity_defs', 'relationship_defs' and
            'classification_defs' lists, sorted by name for determinism.
        """
        return {
            "entity_defs": [
                t.to_dict() for t in sorted(self.entity_defs(), key=lambda t: t.name)
            ],
            "relationship_defs": [
                t.to_dict() for t in sorted(self.relationship_defs(), key=lambda t: t.name)
            ],
            "classification_defs": [
                t.to_dict() for t in sorted(self.classification_defs(), key=lambda t: t.name)
            ],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert registry to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> TypeDefRegistry:
        """Create registry from dictionary representation.

        Entity types are registered first so supertypes and relationship
        ends resolve.

        Returns:
            New TypeDefRegistry with types registered (not frozen)
        """
        registry = cls()
        for entity_data in data.get("entity_defs", []):
            registry.register_entity_def(EntityDef.from_dict(entity_data))
        for relationship_data in data.get("relationship_defs", []):
            registry.register_relationship_def(RelationshipDef.from_dict(relationship_data))
        for classification_data in data.get("classification_defs", []):
            registry.register_classification_def(ClassificationDef.from_dict(classification_data))
        return registry

    @classmethod
    def from_json(cls, json_str: str) -> TypeDefRegistry:
        """Create registry from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_yaml(cls, yaml_str: str) -> TypeDefRegistry:
        """Create registry from a YAML document with the same layout as to_dict()."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Type definition YAML must be a mapping at the top level")
        return cls.from_dict(data)

    def validate_all(self) -> list[str]:
        """Validate all registered types for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for entity in self.entity_defs():
            if entity.super_type and self.get_entity_def(entity.super_type) is None:
                errors.append(
                    f"Entity type '{entity.name}' references unknown super type "
                    f"'{entity.super_type}'"
                )

        for relationship in self.relationship_defs():
            for label, end in (("end_one", relationship.end_one), ("end_two", relationship.end_two)):
                if self.get_entity_def(end.entity_type) is None:
                    errors.append(
                        f"Relationship type '{relationship.name}' {label} references "
                        f"unknown entity type '{end.entity_type}'"
                    )

        for classification in self.classification_defs():
            for entity_type in classification.valid_entity_types:
                if self.get_entity_def(entity_type) is None:
                    errors.append(
                        f"Classification type '{classification.name}' references "
                        f"unknown entity type '{entity_type}'"
                    )

        return errors
