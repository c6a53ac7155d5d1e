"""
Instance identity and proxy model.

Entities and relationships share one embedded InstanceHeader; proxies
stand in for entities that are not held locally.
"""

from .models import (
    Classification,
    EndOrdinal,
    EntityDetail,
    EntityProxy,
    EntitySummary,
    Instance,
    InstanceHeader,
    InstanceProvenance,
    InstanceType,
    Relationship,
    RelationshipEnd,
    freeze_properties,
)

__all__ = [
    "Classification",
    "EndOrdinal",
    "EntityDetail",
    "EntityProxy",
    "EntitySummary",
    "Instance",
    "InstanceHeader",
    "InstanceProvenance",
    "InstanceType",
    "Relationship",
    "RelationshipEnd",
    "freeze_properties",
]
