"""
Lifecycle module: the rules every instance mutation passes through.

- validator: type conformance of property bags and relationship ends
- state_machine: which transitions are legal from which state
- ledger: version stamping and the one-step undo snapshot

Invariants:
    - Nothing in this module touches storage
    - Validation and transition checks run before a new version is built
"""

from .ledger import InstanceRecord, VersionLedger
from .state_machine import Capabilities, LifecycleState, LifecycleStateMachine, Transition
from .validator import (
    check_properties,
    validate_classification_target,
    validate_properties,
    validate_relationship_ends,
)

__all__ = [
    "InstanceRecord",
    "VersionLedger",
    "Capabilities",
    "LifecycleState",
    "LifecycleStateMachine",
    "Transition",
    "check_properties",
    "validate_properties",
    "validate_relationship_ends",
    "validate_classification_target",
]
