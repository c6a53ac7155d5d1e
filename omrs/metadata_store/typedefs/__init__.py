"""
Type definition module for the metadata store.

This module provides the type metadata the lifecycle engine consults:
- Type definitions (EntityDef, RelationshipDef, ClassificationDef, AttributeDef)
- Instance statuses and attribute kinds
- The TypeDefRegistry for lookup, supertype resolution and fingerprinting

Invariants:
    - Type GUIDs and names are immutable once registered
    - DELETED is never an initial status
    - All type definitions must be registered before the store serves requests

How to change safely:
    - Add new types with new GUIDs
    - Add new optional attributes to existing types
    - Never remove enum symbols or statuses that instances may hold
"""

from .registry import DuplicateRegistrationError, RegistryFrozenError, TypeDefRegistry
from .types import (
    AttributeDef,
    AttributeKind,
    Cardinality,
    ClassificationDef,
    EntityDef,
    InstanceStatus,
    PrimitiveKind,
    RelationshipDef,
    RelationshipEndDef,
    TypeDef,
    TypeDefCategory,
    attribute,
)

__all__ = [
    # Types
    "AttributeDef",
    "AttributeKind",
    "Cardinality",
    "PrimitiveKind",
    "InstanceStatus",
    "TypeDefCategory",
    "EntityDef",
    "RelationshipDef",
    "RelationshipEndDef",
    "ClassificationDef",
    "TypeDef",
    "attribute",
    # Registry
    "TypeDefRegistry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
]
