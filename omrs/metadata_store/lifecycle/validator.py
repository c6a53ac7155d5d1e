"""
Type conformance validation for instance property bags.

Invariants:
    - Validation is side-effect-free and deterministic
    - An empty or absent property bag is always valid; clearing all
      properties is done by updating with an empty bag
    - Error messages name the attribute and suggest close matches for
      unknown attribute names
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, List, Mapping, Optional, Tuple

from ..errors import TypeConformanceError
from ..instances.models import EntityProxy
from ..typedefs.registry import TypeDefRegistry
from ..typedefs.types import ClassificationDef, EntityDef, RelationshipDef, TypeDef


def check_properties(
    typedef: TypeDef,
    properties: Optional[Mapping[str, Any]],
    registry: Optional[TypeDefRegistry] = None,
) -> Tuple[bool, List[str]]:
    """Check a property bag against a type definition.

    Args:
        typedef: Entity, relationship or classification definition
        properties: Property bag (None or empty is always valid)
        registry: When given, entity types also accept the attributes
            they inherit from their supertypes

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not properties:
        return True, []

    attributes = list(typedef.attributes)
    if registry is not None and isinstance(typedef, EntityDef):
        attributes = registry.all_attributes(typedef)

    errors: List[str] = []

    if not typedef.open_properties:
        known = {a.name for a in attributes}
        for name in sorted(set(properties) - known):
            suggestions = get_close_matches(name, list(known), n=3)
            if suggestions:
                errors.append(f"Unknown attribute '{name}'. Did you mean: {suggestions}?")
            else:
                errors.append(f"Unknown attribute '{name}'")

    for attribute in attributes:
        is_valid, error = attribute.validate_value(properties.get(attribute.name))
        if not is_valid and error:
            errors.append(error)

    return len(errors) == 0, errors


def validate_properties(
    typedef: TypeDef,
    properties: Optional[Mapping[str, Any]],
    guid: Optional[str] = None,
    registry: Optional[TypeDefRegistry] = None,
) -> None:
    """Validate a property bag, raising on the first non-conforming bag.

    Raises:
        TypeConformanceError: With every problem found
    """
    is_valid, errors = check_properties(typedef, properties, registry)
    if not is_valid:
        raise TypeConformanceError(typedef.name, errors, guid=guid)


def validate_relationship_ends(
    relationship_def: RelationshipDef,
    end_one: EntityProxy,
    end_two: EntityProxy,
    registry: TypeDefRegistry,
) -> None:
    """Check both proxies match the entity types the relationship declares.

    A proxy of a subtype is accepted for its supertype. Supertypes known
    to the proxy's InstanceType are used first, so proxies of remote
    entities whose type is not registered locally can still match.

    Raises:
        TypeConformanceError: If either end has the wrong type
    """
    errors: List[str] = []
    for label, end_def, proxy in (
        ("end_one", relationship_def.end_one, end_one),
        ("end_two", relationship_def.end_two, end_two),
    ):
        type_name = proxy.type.type_def_name
        if proxy.type.is_type_of(end_def.entity_type):
            continue
        if registry.is_type_of(type_name, end_def.entity_type):
            continue
        errors.append(
            f"{label} ({end_def.attribute_name}) expects entity type "
            f"'{end_def.entity_type}', got '{type_name}' for entity {proxy.guid}"
        )
    if errors:
        raise TypeConformanceError(relationship_def.name, errors)


def validate_classification_target(
    classification_def: ClassificationDef,
    entity_def: EntityDef,
    registry: TypeDefRegistry,
) -> None:
    """Check a classification may be attached to an entity of this type.

    Raises:
        TypeConformanceError: If the entity type is not a valid target
    """
    if not classification_def.valid_entity_types:
        return
    for allowed in classification_def.valid_entity_types:
        if registry.is_type_of(entity_def.name, allowed):
            return
    raise TypeConformanceError(
        classification_def.name,
        [
            f"Classification '{classification_def.name}' cannot be attached to "
            f"entity type '{entity_def.name}'; valid types: "
            f"{list(classification_def.valid_entity_types)}"
        ],
    )
