"""
Lifecycle probe: drives one entity per type through its whole lifecycle.

For each entity type the probe creates an instance with generated
properties, checks its header, walks every valid status, clears and
restores properties, deletes, restores and finally purges it. Soft delete
and undo are discovered rather than required: FunctionNotSupportedError
records the capability as Disabled and the probe carries on.

Invariants:
    - Every assertion has a stable id: repository-entity-lifecycle-NN
    - A probe run leaves nothing behind in the store (the instance is purged)
    - Unexpected repository errors end the run for that type and are
      reported on the result; they never escape run()

How to change safely:
    - Add assertions with new ids; never renumber existing ones
    - Keep discovered property names stable, reports are compared over time
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import (
    FunctionNotSupportedError,
    NotKnownError,
    RepositoryError,
    StatusNotSupportedError,
)
from ..instances.models import EntityDetail, InstanceProvenance
from ..store.instance_store import InstanceStore
from ..typedefs.registry import TypeDefRegistry
from ..typedefs.types import AttributeDef, AttributeKind, EntityDef, InstanceStatus, PrimitiveKind

logger = logging.getLogger(__name__)

TEST_CASE_ID = "repository-entity-lifecycle"
UNDO_SUPPORT = " undo support"
SOFT_DELETE_SUPPORT = " soft delete support"
ENABLED = "Enabled"
DISABLED = "Disabled"

_SAMPLE_PRIMITIVES: Dict[PrimitiveKind, Any] = {
    PrimitiveKind.STRING: "sample",
    PrimitiveKind.INT: 42,
    PrimitiveKind.LONG: 4_200_000_000,
    PrimitiveKind.SHORT: 7,
    PrimitiveKind.FLOAT: 4.5,
    PrimitiveKind.DOUBLE: 2.25,
    PrimitiveKind.BOOLEAN: True,
    PrimitiveKind.CHAR: "x",
    PrimitiveKind.DATE: 1_546_300_800_000,
}


def _sample_value(type_name: str, attr: AttributeDef) -> Any:
    if attr.kind == AttributeKind.ENUM:
        if not attr.enum_symbols:
            raise ValueError(f"Enum attribute '{attr.name}' has no symbols")
        value: Any = attr.enum_symbols[0]
    elif attr.kind == AttributeKind.MAP:
        if attr.map_value_kind is None:
            raise ValueError(f"Map attribute '{attr.name}' has no value kind")
        value = {"key": _SAMPLE_PRIMITIVES[attr.map_value_kind]}
    elif attr.primitive == PrimitiveKind.STRING:
        value = f"{type_name}.{attr.name}"
    else:
        if attr.primitive is None:
            raise ValueError(f"Primitive attribute '{attr.name}' has no primitive kind")
        value = _SAMPLE_PRIMITIVES[attr.primitive]
    return [value] if attr.cardinality.multi_valued else value


def sample_properties(
    entity_def: EntityDef, registry: Optional[TypeDefRegistry] = None
) -> Dict[str, Any]:
    """A property bag with a legal value for every declared attribute.

    With a registry, attributes inherited from supertypes are filled too.

    Example:
        >>> sample_properties(Topic)
        {'qualifiedName': 'Topic.qualifiedName', 'topicType': 'Topic.topicType'}
    """
    attributes = registry.all_attributes(entity_def) if registry is not None else entity_def.attributes
    return {attr.name: _sample_value(entity_def.name, attr) for attr in attributes}


@dataclass(frozen=True)
class AssertionResult:
    assertion_id: str
    message: str
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.assertion_id, "message": self.message, "passed": self.passed}


@dataclass
class ProbeResult:
    """Outcome of probing one entity type.

    Attributes:
        type_name: Entity type probed
        assertions: Every assertion checked, in order
        discovered_properties: Capabilities found (e.g. "Topic undo support": "Enabled")
        success_message: Set when the lifecycle ran to the end
        error: Repository error that stopped the run, if any
    """

    type_name: str
    assertions: List[AssertionResult] = field(default_factory=list)
    discovered_properties: Dict[str, str] = field(default_factory=dict)
    success_message: Optional[str] = None
    error: Optional[str] = None

    @property
    def failures(self) -> List[AssertionResult]:
        return [a for a in self.assertions if not a.passed]

    @property
    def passed(self) -> bool:
        return self.error is None and not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type_name": self.type_name,
            "passed": self.passed,
            "assertions": [a.to_dict() for a in self.assertions],
            "discovered_properties": dict(self.discovered_properties),
            "success_message": self.success_message,
            "error": self.error,
        }


class LifecycleProbe:
    """Runs the entity lifecycle against an InstanceStore.

    Example:
        >>> probe = LifecycleProbe(store)
        >>> result = probe.run(registry.get_entity_def("Topic"))
        >>> result.passed
        True
        >>> result.discovered_properties["Topic soft delete support"]
        'Enabled'
    """

    def __init__(
        self,
        store: InstanceStore,
        registry: Optional[TypeDefRegistry] = None,
        user_id: str = "lifecycle-probe",
    ) -> None:
        self.store = store
        self.registry = registry or store.registry
        self.user_id = user_id

    def run_all(self) -> List[ProbeResult]:
        """Probe every registered entity type, in name order."""
        return [
            self.run(entity_def)
            for entity_def in sorted(self.registry.entity_defs(), key=lambda d: d.name)
        ]

    def run(self, entity_def: EntityDef) -> ProbeResult:
        result = ProbeResult(type_name=entity_def.name)
        try:
            self._run(entity_def, result)
        except RepositoryError as e:
            result.error = str(e)
            logger.warning(
                f"Lifecycle probe of {entity_def.name} stopped: {e}",
                extra={"type_name": entity_def.name, "message_id": e.message_id},
            )
        return result

    def _check(self, result: ProbeResult, number: int, condition: bool, message: str) -> None:
        assertion = AssertionResult(
            assertion_id=f"{TEST_CASE_ID}-{number:02d}",
            message=f"{result.type_name}{message}",
            passed=bool(condition),
        )
        result.assertions.append(assertion)
        if not assertion.passed:
            logger.info(f"Assertion failed: {assertion.assertion_id}{assertion.message}")

    def _run(self, entity_def: EntityDef, result: ProbeResult) -> None:
        store = self.store
        user = self.user_id
        name = entity_def.name

        entity = store.add_entity(user, entity_def.guid, sample_properties(entity_def, self.registry))
        guid = entity.guid

        self._check(result, 1, entity is not None, " new entity created.")
        self._check(result, 2, entity.header.created_by == user, " new entity has createdBy user.")
        self._check(result, 3, entity.header.create_time is not None, " new entity has creation time.")
        self._check(
            result,
            4,
            entity.header.provenance == InstanceProvenance.LOCAL_COHORT,
            " new entity has correct provenance type.",
        )
        self._check(
            result,
            5,
            entity.status == entity_def.initial_status,
            " new entity has correct initial status.",
        )
        self._check(
            result,
            6,
            entity.type.type_def_guid == entity_def.guid and entity.type.type_def_name == name,
            " new entity has correct type.",
        )
        self._check(
            result,
            7,
            entity.header.metadata_collection_id == store.metadata_collection_id,
            " new entity has local metadata collection.",
        )
        self._check(result, 8, entity.version > 0, " new entity has version greater than zero.")

        self._check(result, 9, store.is_entity_known(user, guid) == entity, " new entity is known.")
        self._check(
            result, 10, store.get_entity_summary(user, guid) is not None, " new entity summarized."
        )
        self._check(
            result, 11, store.get_entity_detail(user, guid) == entity, " new entity retrieved."
        )
        self._check(
            result,
            12,
            store.get_relationships_for_entity(user, guid) is None,
            " new entity is unattached.",
        )

        next_version = entity.version + 1
        for status in entity_def.valid_statuses:
            if status == InstanceStatus.DELETED:
                continue
            updated = store.update_entity_status(user, guid, status)
            self._check(result, 13, updated is not None, " entity status updated.")
            self._check(
                result, 14, updated.status == status, f" entity new status is {status.value}"
            )
            self._check(
                result,
                15,
                updated.version == next_version,
                f" entity with new status version number is {next_version}",
            )
            next_version += 1

        try:
            store.update_entity_status(user, guid, InstanceStatus.DELETED)
            self._check(result, 16, False, " entity can not be set to DELETED status.")
        except StatusNotSupportedError:
            self._check(result, 16, True, " entity can not be set to DELETED status.")

        if entity.properties:
            cleared = store.update_entity_properties(user, guid, {})
            self._check(result, 17, not cleared.properties, " entity properties cleared to null.")
            self._check(
                result,
                18,
                cleared.version == next_version,
                f" entity with no properties version number is {next_version}",
            )
            next_version += 1

            next_version = self._probe_undo(result, entity, next_version)

        self._probe_soft_delete(result, entity, next_version)

        store.purge_entity(user, guid)
        try:
            store.get_entity_detail(user, guid)
            self._check(result, 24, False, " entity purged.")
        except NotKnownError:
            self._check(result, 24, True, " entity purged.")

        result.success_message = "Entities can be managed through their lifecycle"

    def _probe_undo(self, result: ProbeResult, entity: EntityDetail, next_version: int) -> int:
        key = f"{result.type_name}{UNDO_SUPPORT}"
        try:
            undone = self.store.undo_entity_update(self.user_id, entity.guid)
        except FunctionNotSupportedError:
            result.discovered_properties[key] = DISABLED
            return next_version

        result.discovered_properties[key] = ENABLED
        self._check(
            result,
            19,
            dict(undone.properties) == dict(entity.properties),
            " entity has properties restored.",
        )
        self._check(
            result,
            20,
            undone.version == next_version,
            f" entity after undo version number is {next_version}",
        )
        return next_version + 1

    def _probe_soft_delete(
        self, result: ProbeResult, entity: EntityDetail, next_version: int
    ) -> None:
        store = self.store
        user = self.user_id
        guid = entity.guid
        key = f"{result.type_name}{SOFT_DELETE_SUPPORT}"
        try:
            deleted = store.delete_entity(user, guid)
        except FunctionNotSupportedError:
            result.discovered_properties[key] = DISABLED
            return

        result.discovered_properties[key] = ENABLED
        self._check(
            result,
            21,
            deleted.version == next_version,
            f" entity deleted version number is {next_version}",
        )
        next_version += 1

        try:
            store.get_entity_detail(user, guid)
            self._check(result, 22, False, " entity no longer retrievable after delete.")
        except NotKnownError:
            self._check(result, 22, True, " entity no longer retrievable after delete.")

        restored = store.restore_entity(user, guid)
        self._check(
            result,
            23,
            restored.version == next_version,
            f" entity restored version number is {next_version}",
        )

        store.delete_entity(user, guid)
