"""
Configuration management for the metadata store.

All configuration is done via environment variables; there are no config
files. This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - A repository that shares instances with a cohort MUST set an explicit
      OMRS_METADATA_COLLECTION_ID, or every restart gets a new identity
    - Configuration objects are immutable once loaded

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Store-level capability switches only ever narrow what types support
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class StoreConfig:
    """Instance store configuration.

    Attributes:
        metadata_collection_id: Identity of this repository's metadata
            collection; stamped on every locally created instance
        metadata_collection_name: Human-readable collection name
        soft_delete_enabled: Whether this store supports soft delete at all
        retain_history: Whether this store keeps prior versions for undo
    """

    metadata_collection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata_collection_name: str = "local-metadata-store"
    soft_delete_enabled: bool = True
    retain_history: bool = True

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load configuration from environment variables."""
        return cls(
            metadata_collection_id=os.getenv("OMRS_METADATA_COLLECTION_ID") or str(uuid.uuid4()),
            metadata_collection_name=os.getenv(
                "OMRS_METADATA_COLLECTION_NAME", "local-metadata-store"
            ),
            soft_delete_enabled=_env_bool("OMRS_SOFT_DELETE", True),
            retain_history=_env_bool("OMRS_RETAIN_HISTORY", True),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class RepositoryConfig:
    """Complete repository configuration.

    Attributes:
        store: Instance store configuration
        observability: Logging configuration
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> RepositoryConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            store=StoreConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.store.metadata_collection_id:
            raise ValueError("OMRS_METADATA_COLLECTION_ID cannot be empty")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )
        if self.observability.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid LOG_LEVEL '{self.observability.log_level}'. "
                f"Must be one of: {', '.join(LOG_LEVELS)}"
            )

        if "OMRS_METADATA_COLLECTION_ID" not in os.environ:
            logger.warning(
                "OMRS_METADATA_COLLECTION_ID is not set; using generated id "
                f"{self.store.metadata_collection_id}"
            )

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Repository configuration loaded",
            extra={
                "metadata_collection_id": self.store.metadata_collection_id,
                "metadata_collection_name": self.store.metadata_collection_name,
                "soft_delete_enabled": self.store.soft_delete_enabled,
                "retain_history": self.store.retain_history,
                "log_level": self.observability.log_level,
                "log_format": self.observability.log_format,
            },
        )
