"""
Tools for checking a metadata repository.

- lifecycle_probe: drives every entity type through its lifecycle and
  discovers soft delete / undo support
- probe_cli: command-line front end for the probe

Invariants:
    - Tools work against an in-process store, no server required
    - Probe runs purge everything they create
"""

from .lifecycle_probe import AssertionResult, LifecycleProbe, ProbeResult, sample_properties

__all__ = ["AssertionResult", "LifecycleProbe", "ProbeResult", "sample_properties"]
