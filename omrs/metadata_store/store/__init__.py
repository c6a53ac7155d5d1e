"""
Instance storage for the metadata repository.

- arena: GUID to record mapping with per-record compare-and-set commits
- instance_store: public entity and relationship lifecycle API
"""

from .arena import InstanceArena
from .instance_store import EntityEnd, InstanceStore

__all__ = ["InstanceArena", "InstanceStore", "EntityEnd"]
