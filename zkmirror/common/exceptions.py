"""
Custom Exception Classes for zkmirror

Hierarchical exception structure shared by the mirror components.
Startup errors are fatal; steady-state errors are logged by the watchers.
"""


class ZkMirrorError(Exception):
    """Base exception for all zkmirror errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(ZkMirrorError):
    """Mirror settings are missing or unreadable"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class StoreConnectionError(ZkMirrorError):
    """Cannot reach or authenticate to the ZooKeeper ensemble"""

    def __init__(self, message: str, hosts: str | None = None):
        self.hosts = hosts
        super().__init__(f"Connection Error: {message}", recoverable=False)


class TraversalError(ZkMirrorError):
    """Listing the children of a node failed"""

    HINT = "there is no node in the path, the authentication might be wrong"

    def __init__(self, path: str, reason: str | None = None):
        self.path = path
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Traversal Error at {path}: {self.HINT}{detail}", recoverable=False)


class ReadError(ZkMirrorError):
    """Fetching a leaf value, or reading the local document, failed"""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"Read Error: {message}", recoverable=True)


class WriteError(ZkMirrorError):
    """Persisting the local document failed"""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"Write Error: {message}", recoverable=True)


class NotInitializedError(ZkMirrorError):
    """Lookup attempted before any snapshot was loaded"""

    def __init__(self, key: str | None = None):
        self.key = key
        super().__init__("Snapshot store is not initialized", recoverable=True)
