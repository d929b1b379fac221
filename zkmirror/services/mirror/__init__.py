"""
Mirror Service - ZooKeeper subtree snapshot and watch

Responsibilities:
- Materialize a ZooKeeper subtree into a nested document
- Persist it atomically as JSON
- Serve typed lookups from the last loaded snapshot
- Watch every leaf and rebuild on change
"""

from .client import KazooStoreClient, NodeEvent, StoreClient
from .materializer import materialize
from .service import MirrorService, setup_from_descriptor, setup_from_host_config
from .snapshot import SnapshotStore
from .watcher import ChangeReactor, ReactorState, WatchRegistrar, WatchRegistry
from .writer import DocumentWriter

__all__ = [
    "ChangeReactor",
    "DocumentWriter",
    "KazooStoreClient",
    "MirrorService",
    "NodeEvent",
    "ReactorState",
    "SnapshotStore",
    "StoreClient",
    "WatchRegistrar",
    "WatchRegistry",
    "materialize",
    "setup_from_descriptor",
    "setup_from_host_config",
]
