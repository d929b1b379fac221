"""Shared fixtures: an in-memory ZooKeeper stand-in and mirror settings."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import pytest

from zkmirror.common.config import MirrorSettings
from zkmirror.common.exceptions import ReadError, TraversalError
from zkmirror.services.mirror.client import NodeEvent


class FakeStoreClient:
    """In-memory StoreClient with one-shot data watches.

    Nodes are created with add() (parents are created as empty nodes);
    set_value(), delete() and create() fire any pending watch on the node.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.children: dict[str, list[str]] = {}
        self.watches: dict[str, list[Callable[[NodeEvent], None]]] = {}
        self.deny_listing: set[str] = set()
        self.deny_reads: set[str] = set()
        self.connect_calls = 0
        self.closed = False
        self._lock = threading.Lock()

    @classmethod
    def from_tree(cls, root: str, tree: dict[str, Any]) -> "FakeStoreClient":
        store = cls()
        store.add(root)
        store._add_tree(root, tree)
        return store

    def _add_tree(self, parent: str, tree: dict[str, Any]) -> None:
        for name, value in tree.items():
            path = parent + "/" + name
            if isinstance(value, dict):
                self.add(path)
                self._add_tree(path, value)
            else:
                self.add(path, value)

    def add(self, path: str, value: str = "") -> None:
        with self._lock:
            parts = path.strip("/").split("/")
            current = ""
            for part in parts:
                parent = current or None
                current = current + "/" + part
                if current not in self.values:
                    self.values[current] = ""
                    self.children[current] = []
                    if parent is not None:
                        self.children[parent].append(part)
            self.values[path] = value

    def set_value(self, path: str, value: str) -> None:
        with self._lock:
            self.values[path] = value
            callbacks = self.watches.pop(path, [])
        for callback in callbacks:
            callback(NodeEvent(type="CHANGED", path=path))

    def delete(self, path: str) -> None:
        """Remove a leaf and fire DELETED on any pending watch."""
        with self._lock:
            del self.values[path]
            del self.children[path]
            parent, _, name = path.rpartition("/")
            if parent in self.children:
                self.children[parent].remove(name)
            callbacks = self.watches.pop(path, [])
        for callback in callbacks:
            callback(NodeEvent(type="DELETED", path=path))

    def create(self, path: str, value: str = "") -> None:
        """Add a node and fire CREATED on any pending existence watch."""
        self.add(path, value)
        with self._lock:
            callbacks = self.watches.pop(path, [])
        for callback in callbacks:
            callback(NodeEvent(type="CREATED", path=path))

    def has_watch(self, path: str) -> bool:
        with self._lock:
            return bool(self.watches.get(path))

    # StoreClient protocol

    def connect(self) -> None:
        self.connect_calls += 1

    def get_children(self, path: str) -> list[str]:
        with self._lock:
            if path in self.deny_listing:
                raise TraversalError(path, "NoAuthError")
            if path not in self.children:
                raise TraversalError(path, "NoNodeError")
            return list(self.children[path])

    def get_value(self, path: str) -> str:
        with self._lock:
            if path in self.deny_reads or path not in self.values:
                raise ReadError(f"cannot read {path}: NoAuthError", path=path)
            return self.values[path]

    def get_watch(self, path: str, callback: Callable[[NodeEvent], None]) -> str:
        # Missing nodes get an existence watch and read as "", like kazoo's
        with self._lock:
            missing = path not in self.values and path not in self.deny_reads
        value = "" if missing else self.get_value(path)
        with self._lock:
            self.watches.setdefault(path, []).append(callback)
        return value

    def close(self) -> None:
        self.closed = True


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def messages(self) -> list[str]:
        return [r.getMessage() for r in self.records]


@pytest.fixture
def store() -> FakeStoreClient:
    """/cfg with a="1", b="2" and group/x="v"."""
    return FakeStoreClient.from_tree("/cfg", {"a": "1", "b": "2", "group": {"x": "v"}})


@pytest.fixture
def settings(tmp_path) -> MirrorSettings:
    return MirrorSettings(
        address="zk1:2181,zk2:2181",
        root_path="/cfg",
        file_path=str(tmp_path / "config" / "zktemp"),
        scheme="digest",
        auth="user:secret",
        rearm_delay=0.05,
    )


@pytest.fixture
def wait_until():
    def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()
    return _wait


@pytest.fixture
def captured_logs():
    """Attach a list handler to the parent every component propagates to."""
    handler = ListHandler()
    parent = logging.getLogger("zkmirror")
    parent.addHandler(handler)
    yield handler
    parent.removeHandler(handler)
