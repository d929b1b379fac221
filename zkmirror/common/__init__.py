"""
Common Utilities

Shared modules used across the mirror components:
- config.py - Mirror settings and loaders
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
"""

from .config import (
    MirrorSettings,
    load_mirror_settings,
    load_descriptor,
    load_embedded,
    read_config_file,
)
from .exceptions import (
    ZkMirrorError,
    ConfigError,
    StoreConnectionError,
    TraversalError,
    ReadError,
    WriteError,
    NotInitializedError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    set_log_level,
    log_document_written,
    log_node_change,
)

__all__ = [
    # Config
    "MirrorSettings",
    "load_mirror_settings",
    "load_descriptor",
    "load_embedded",
    "read_config_file",
    # Exceptions
    "ZkMirrorError",
    "ConfigError",
    "StoreConnectionError",
    "TraversalError",
    "ReadError",
    "WriteError",
    "NotInitializedError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "set_log_level",
    "log_document_written",
    "log_node_change",
]
