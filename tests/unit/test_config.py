"""
Unit tests for configuration loading.

Tests cover:
- Defaults
- Environment variable parsing
- Validation errors
"""

import logging

import pytest

from omrs.metadata_store.config import ObservabilityConfig, RepositoryConfig, StoreConfig

ENV_VARS = (
    "OMRS_METADATA_COLLECTION_ID",
    "OMRS_METADATA_COLLECTION_NAME",
    "OMRS_SOFT_DELETE",
    "OMRS_RETAIN_HISTORY",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestStoreConfig:
    def test_defaults(self):
        config = StoreConfig.from_env()

        assert config.metadata_collection_id
        assert config.metadata_collection_name == "local-metadata-store"
        assert config.soft_delete_enabled is True
        assert config.retain_history is True

    def test_generated_ids_differ(self):
        assert StoreConfig().metadata_collection_id != StoreConfig().metadata_collection_id

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OMRS_METADATA_COLLECTION_ID", "collection-7")
        monkeypatch.setenv("OMRS_METADATA_COLLECTION_NAME", "archive")
        monkeypatch.setenv("OMRS_SOFT_DELETE", "false")
        monkeypatch.setenv("OMRS_RETAIN_HISTORY", "FALSE")

        config = StoreConfig.from_env()

        assert config.metadata_collection_id == "collection-7"
        assert config.metadata_collection_name == "archive"
        assert config.soft_delete_enabled is False
        assert config.retain_history is False


class TestRepositoryConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OMRS_METADATA_COLLECTION_ID", "collection-7")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = RepositoryConfig.from_env()

        assert config.store.metadata_collection_id == "collection-7"
        assert config.observability == ObservabilityConfig(log_level="debug", log_format="text")

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="Invalid LOG_FORMAT 'xml'"):
            RepositoryConfig.from_env()

    def test_invalid_log_level(self):
        config = RepositoryConfig(observability=ObservabilityConfig(log_level="LOUD"))

        with pytest.raises(ValueError, match="Invalid LOG_LEVEL 'LOUD'"):
            config.validate()

    def test_empty_collection_id(self):
        config = RepositoryConfig(store=StoreConfig(metadata_collection_id=""))

        with pytest.raises(ValueError, match="OMRS_METADATA_COLLECTION_ID cannot be empty"):
            config.validate()

    def test_generated_id_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="omrs.metadata_store.config"):
            RepositoryConfig.from_env()

        assert "OMRS_METADATA_COLLECTION_ID is not set" in caplog.text

    def test_log_config(self, caplog):
        config = RepositoryConfig(store=StoreConfig(metadata_collection_id="collection-7"))

        with caplog.at_level(logging.INFO, logger="omrs.metadata_store.config"):
            config.log_config()

        record = caplog.records[-1]
        assert record.message == "Repository configuration loaded"
        assert record.metadata_collection_id == "collection-7"
        assert record.soft_delete_enabled is True
