"""
OMRS Metadata Store - an in-memory metadata repository lifecycle engine.

This package implements the instance lifecycle of an open metadata
repository:
- Typed entities and relationships with embedded, versioned headers
- Soft delete, restore, purge and one-step undo as type/store capabilities
- Classifications attached to entities
- Reference copies of instances owned by other repositories
- Change events published to pluggable sinks after every commit

Architecture:
    ┌─────────────┐     ┌──────────────────────────────────────────┐
    │   Caller    │────▶│              InstanceStore               │
    │ (user_id)   │     │  validator → state machine → ledger      │
    └─────────────┘     └───────────────────┬──────────────────────┘
                                            │ compare-and-set
                                            ▼
                        ┌──────────────────────────────────────────┐
                        │     InstanceArena (GUID → record slot)   │
                        └───────────────────┬──────────────────────┘
                                            │ after commit
                                            ▼
                                     ┌─────────────┐
                                     │ EventSinks  │
                                     └─────────────┘

Invariants:
    - Every committed mutation moves an instance to exactly version + 1
    - A rejected mutation leaves the instance unchanged
    - GUIDs are never reused, not even after purge
    - DELETED is reachable only through delete, never through a status update
    - Type definitions are read-only once the registry is frozen

How to change safely:
    - New instance operations go through the state machine and the ledger
    - Capabilities only ever narrow: store flag AND type flag

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
