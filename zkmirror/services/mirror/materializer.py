"""
Tree Materializer

Walks a ZooKeeper subtree and builds a nested document mirroring it:
internal nodes become dicts keyed by child name, leaves become their
raw string value.
"""

from typing import Any

from zkmirror.common.config import DEFAULT_ROOT_KEY
from zkmirror.common.exceptions import ZkMirrorError
from zkmirror.common.logging_setup import get_service_logger

from .client import StoreClient

logger = get_service_logger("mirror.materializer")


def child_path(parent: str, name: str) -> str:
    """Child paths are parent + "/" + name, with no normalization"""
    return parent + "/" + name


def materialize(
    client: StoreClient,
    root_path: str,
    root_key: str = DEFAULT_ROOT_KEY,
) -> dict[str, Any]:
    """
    Build a fresh document for the subtree at root_path.

    The subtree content is wrapped under a single synthetic root_key.
    The root itself is always treated as an internal node, so an empty
    subtree gives {root_key: {}}.

    Raises:
        TraversalError: listing children of any node failed
        ReadError: fetching any leaf value failed
    """
    content: dict[str, Any] = {}
    for name in client.get_children(root_path):
        _materialize_node(client, child_path(root_path, name), name, content)

    logger.debug(
        f"Materialized {root_path} ({len(content)} top-level keys)",
        extra={"path": root_path},
    )
    return {root_key: content}


def _materialize_node(
    client: StoreClient,
    path: str,
    name: str,
    parent: dict[str, Any],
) -> None:
    children = client.get_children(path)
    if children:
        node: dict[str, Any] = {}
        for child in children:
            _materialize_node(client, child_path(path, child), child, node)
        parent[name] = node
    else:
        parent[name] = client.get_value(path)


def iter_leaves(client: StoreClient, root_path: str):
    """
    Yield (path, error) for every leaf under root_path.

    Uses the same descent as materialize(). A listing failure on the root
    propagates; below the root it is yielded as (path, error) so callers
    can skip that branch and keep going.
    """
    names = client.get_children(root_path)
    stack = [child_path(root_path, name) for name in reversed(names)]

    while stack:
        path = stack.pop()
        try:
            children = client.get_children(path)
        except ZkMirrorError as e:
            yield path, e
            continue

        if children:
            stack.extend(child_path(path, name) for name in reversed(children))
        else:
            yield path, None
