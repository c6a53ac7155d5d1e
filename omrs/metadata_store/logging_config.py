"""
Logging setup for processes that host the metadata store.

The library itself only creates module loggers; a host process calls
setup_logging() once at startup.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import RepositoryConfig

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: RepositoryConfig) -> logging.Handler:
    """Configure root logging based on configuration.

    Args:
        config: Repository configuration

    Returns:
        The handler installed on the root logger
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("yaml").setLevel(logging.WARNING)
    return handler
