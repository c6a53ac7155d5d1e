"""
Integration tests for the lifecycle probe and its CLI.
"""

import json
import logging

import pytest
import yaml

from omrs.metadata_store.config import StoreConfig
from omrs.metadata_store.errors import InvalidInstanceError
from omrs.metadata_store.store import InstanceStore
from omrs.metadata_store.tools import LifecycleProbe, sample_properties
from omrs.metadata_store.tools.probe_cli import load_registry, main
from omrs.metadata_store.typedefs import EntityDef, TypeDefRegistry, attribute

DISCOVERED_KEYS = ("Topic undo support", "Topic soft delete support")


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestSampleProperties:
    def test_every_attribute_gets_a_legal_value(self, registry):
        properties = sample_properties(registry.get_entity_def("Topic"))

        assert properties == {
            "qualifiedName": "Topic.qualifiedName",
            "topicType": "Topic.topicType",
            "priority": 42,
            "labels": {"key": "sample"},
            "keywords": ["Topic.keywords"],
        }

    def test_attribute_without_kind_detail_rejected(self):
        attr = attribute("labels", "map", map_value_kind="string")
        object.__setattr__(attr, "map_value_kind", None)
        broken = EntityDef(guid="e-9", name="Broken", attributes=(attr,))

        with pytest.raises(ValueError, match="has no value kind"):
            sample_properties(broken)

    def test_inherited_attributes_filled_with_registry(self):
        registry = TypeDefRegistry()
        registry.register_entity_def(
            EntityDef(
                guid="e-1",
                name="Referenceable",
                attributes=(attribute("qualifiedName", "string", unique=True),),
            )
        )
        asset = EntityDef(
            guid="e-2",
            name="Asset",
            super_type="Referenceable",
            attributes=(attribute("owner", "string"),),
        )
        registry.register_entity_def(asset)
        registry.freeze()

        assert sample_properties(asset) == {"owner": "Asset.owner"}
        assert sample_properties(asset, registry) == {
            "owner": "Asset.owner",
            "qualifiedName": "Asset.qualifiedName",
        }

        store = InstanceStore(registry, StoreConfig(metadata_collection_id="local-collection-0001"))
        result = LifecycleProbe(store).run(asset)
        assert result.passed, result.to_dict()


class TestLifecycleProbe:
    def test_full_store(self, store, registry):
        results = LifecycleProbe(store).run_all()

        assert [r.type_name for r in results] == [
            "AuditLog",
            "Referenceable",
            "SubscriberList",
            "Topic",
        ]
        assert all(r.passed for r in results), [r.to_dict() for r in results if not r.passed]
        assert all(
            r.success_message == "Entities can be managed through their lifecycle" for r in results
        )
        assert len(store.arena) == 0

    def test_discovers_capabilities(self, store, registry):
        topic = LifecycleProbe(store).run(registry.get_entity_def("Topic"))
        audit = LifecycleProbe(store).run(registry.get_entity_def("AuditLog"))

        assert {k: topic.discovered_properties[k] for k in DISCOVERED_KEYS} == {
            "Topic undo support": "Enabled",
            "Topic soft delete support": "Enabled",
        }
        assert audit.discovered_properties == {
            "AuditLog undo support": "Disabled",
            "AuditLog soft delete support": "Disabled",
        }

    def test_bare_store(self, bare_store, registry):
        result = LifecycleProbe(bare_store).run(registry.get_entity_def("Topic"))

        assert result.passed
        assert {k: result.discovered_properties[k] for k in DISCOVERED_KEYS} == {
            "Topic undo support": "Disabled",
            "Topic soft delete support": "Disabled",
        }

    def test_status_walk_assertions(self, store, registry):
        result = LifecycleProbe(store).run(registry.get_entity_def("Topic"))

        messages = [a.message for a in result.assertions if a.assertion_id.endswith("-14")]
        assert messages == [
            "Topic entity new status is DRAFT",
            "Topic entity new status is ACTIVE",
            "Topic entity new status is DEPRECATED",
        ]
        ids = {a.assertion_id for a in result.assertions}
        assert "repository-entity-lifecycle-01" in ids
        assert "repository-entity-lifecycle-24" in ids

    def test_store_errors_are_reported(self, store, registry, monkeypatch):
        def reject(user_id, guid, properties):
            raise InvalidInstanceError(guid, "storage offline")

        monkeypatch.setattr(store, "update_entity_properties", reject)

        result = LifecycleProbe(store).run(registry.get_entity_def("Topic"))

        assert not result.passed
        assert "storage offline" in result.error
        assert result.success_message is None


class TestProbeCli:
    @pytest.fixture
    def json_file(self, tmp_path, registry):
        path = tmp_path / "types.json"
        path.write_text(registry.to_json(), encoding="utf-8")
        return path

    @pytest.fixture
    def yaml_file(self, tmp_path, registry):
        path = tmp_path / "types.yaml"
        path.write_text(yaml.safe_dump(registry.to_dict()), encoding="utf-8")
        return path

    def test_load_registry(self, json_file, yaml_file, registry):
        from_json = load_registry(str(json_file))
        from_yaml = load_registry(str(yaml_file))

        assert from_json.frozen
        assert from_json.fingerprint == registry.fingerprint
        assert from_yaml.fingerprint == registry.fingerprint

    def test_text_report(self, json_file, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        exit_code = main(["--typedefs", str(json_file)])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "[PASSED] Topic" in out
        assert "4/4 entity types passed" in out

    def test_json_report(self, yaml_file, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        exit_code = main(["-t", str(yaml_file), "--format", "json", "--disable-soft-delete"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert report["passed"] is True
        topic = next(r for r in report["results"] if r["type_name"] == "Topic")
        assert topic["discovered_properties"]["Topic soft delete support"] == "Disabled"
        assert topic["discovered_properties"]["Topic undo support"] == "Enabled"

    def test_missing_file(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        exit_code = main(["--typedefs", str(tmp_path / "missing.json")])

        assert exit_code == 1
        assert "Cannot load type definitions" in capsys.readouterr().err

    def test_inconsistent_types(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        path = tmp_path / "types.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "entity_defs": [
                        {
                            "guid": "g-1",
                            "name": "Topic",
                            "super_type": "Missing",
                            "attributes": [],
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )

        exit_code = main(["--typedefs", str(path)])

        assert exit_code == 1
        assert "unknown super type 'Missing'" in capsys.readouterr().err
