"""
zkmirror - ZooKeeper configuration snapshot and watch

Mirrors a ZooKeeper subtree into a local JSON document, keeps it fresh
as leaf values change, and serves typed lookups from the latest snapshot.
"""

from zkmirror.common.exceptions import (
    ConfigError,
    NotInitializedError,
    ReadError,
    StoreConnectionError,
    TraversalError,
    WriteError,
    ZkMirrorError,
)
from zkmirror.services.mirror import (
    MirrorService,
    SnapshotStore,
    setup_from_descriptor,
    setup_from_host_config,
)

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "MirrorService",
    "NotInitializedError",
    "ReadError",
    "SnapshotStore",
    "StoreConnectionError",
    "TraversalError",
    "WriteError",
    "ZkMirrorError",
    "setup_from_descriptor",
    "setup_from_host_config",
]
