"""
Lifecycle probe CLI.

Loads type definitions from a JSON or YAML file, runs the lifecycle probe
over every entity type against a fresh in-memory store, and prints a report.

Usage:
    python -m omrs.metadata_store.tools.probe_cli --typedefs types.yaml
    python -m omrs.metadata_store.tools.probe_cli --typedefs types.json --format json
    python -m omrs.metadata_store.tools.probe_cli --typedefs types.yaml --disable-soft-delete

Invariants:
    - Exit status 0 only when every assertion for every type passed
    - Exit status 1 on any failed assertion, stopped run or invalid type file
    - The JSON report is deterministic (sorted keys) for CI parsing

How to change safely:
    - Add options with defaults that keep the current behaviour
    - Keep the report layout stable
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import yaml

from ..config import ObservabilityConfig, RepositoryConfig, StoreConfig
from ..logging_config import setup_logging
from ..store.instance_store import InstanceStore
from ..typedefs.registry import DuplicateRegistrationError, TypeDefRegistry
from .lifecycle_probe import LifecycleProbe, ProbeResult

logger = logging.getLogger(__name__)


def load_registry(path: str) -> TypeDefRegistry:
    """Load and freeze a registry from a .json, .yaml or .yml file.

    Raises:
        ValueError: If the file is not a consistent set of type definitions
    """
    text = Path(path).read_text(encoding="utf-8")
    if Path(path).suffix.lower() in (".yaml", ".yml"):
        registry = TypeDefRegistry.from_yaml(text)
    else:
        registry = TypeDefRegistry.from_json(text)

    errors = registry.validate_all()
    if errors:
        raise ValueError("; ".join(errors))
    registry.freeze()
    return registry


def format_text(results: List[ProbeResult]) -> str:
    lines = []
    for result in results:
        status = "PASSED" if result.passed else "FAILED"
        lines.append(f"[{status}] {result.type_name}")
        for failure in result.failures:
            lines.append(f"    {failure.assertion_id}:{failure.message}")
        if result.error:
            lines.append(f"    stopped: {result.error}")
        for key, value in sorted(result.discovered_properties.items()):
            lines.append(f"    {key}: {value}")
    passed = sum(1 for r in results if r.passed)
    lines.append(f"{passed}/{len(results)} entity types passed")
    return "\n".join(lines)


def format_json(results: List[ProbeResult]) -> str:
    return json.dumps(
        {
            "passed": all(r.passed for r in results),
            "results": [r.to_dict() for r in results],
        },
        indent=2,
        sort_keys=True,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; returns the process exit status."""
    parser = argparse.ArgumentParser(description="Run the entity lifecycle probe")
    parser.add_argument(
        "--typedefs", "-t", required=True, help="Type definition file (.json, .yaml or .yml)"
    )
    parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Report format"
    )
    parser.add_argument(
        "--disable-soft-delete",
        action="store_true",
        help="Run against a store without soft delete",
    )
    parser.add_argument(
        "--disable-history",
        action="store_true",
        help="Run against a store that keeps no history for undo",
    )
    args = parser.parse_args(argv)

    store_config = StoreConfig.from_env()
    config = RepositoryConfig(
        store=StoreConfig(
            metadata_collection_id=store_config.metadata_collection_id,
            metadata_collection_name=store_config.metadata_collection_name,
            soft_delete_enabled=store_config.soft_delete_enabled and not args.disable_soft_delete,
            retain_history=store_config.retain_history and not args.disable_history,
        ),
        observability=ObservabilityConfig.from_env(),
    )
    setup_logging(config)
    config.log_config()

    try:
        registry = load_registry(args.typedefs)
    except (OSError, ValueError, KeyError, yaml.YAMLError, DuplicateRegistrationError) as e:
        print(f"Cannot load type definitions from {args.typedefs}: {e}", file=sys.stderr)
        return 1

    store = InstanceStore(registry, config.store)
    results = LifecycleProbe(store, registry).run_all()

    if args.format == "json":
        print(format_json(results))
    else:
        print(format_text(results))

    return 0 if all(r.passed for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
