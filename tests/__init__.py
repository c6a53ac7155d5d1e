"""
Metadata store test suite.

This package contains:
- unit/: Unit tests for type definitions, models, lifecycle and storage pieces
- integration/: Tests that drive InstanceStore end to end, including the
  lifecycle probe and its CLI
"""
