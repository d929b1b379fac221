"""
ZooKeeper Store Client

Thin adapter over kazoo exposing only what the mirror needs:
connect + authenticate, list children, get a value, and get a value
with a one-shot change notification. Kazoo errors are mapped onto the
zkmirror exception hierarchy here so the rest of the package never
imports kazoo.
"""

from typing import Callable, NamedTuple, Protocol

from kazoo.client import KazooClient
from kazoo.exceptions import AuthFailedError, KazooException, NoAuthError, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError

from zkmirror.common.exceptions import ReadError, StoreConnectionError, TraversalError
from zkmirror.common.logging_setup import get_service_logger

logger = get_service_logger("mirror.client")


class NodeEvent(NamedTuple):
    """A fired one-shot notification"""
    type: str  # CHANGED, DELETED, CREATED, CHILD, NONE
    path: str


WatchCallback = Callable[[NodeEvent], None]


class StoreClient(Protocol):
    """What the materializer, registrar and reactors need from the store"""

    def connect(self) -> None:
        ...

    def get_children(self, path: str) -> list[str]:
        ...

    def get_value(self, path: str) -> str:
        ...

    def get_watch(self, path: str, callback: WatchCallback) -> str:
        ...

    def close(self) -> None:
        ...


def decode_value(data: bytes | None) -> str:
    """Leaf values are opaque strings; null data is the empty string"""
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class KazooStoreClient:
    """
    StoreClient backed by a kazoo session.

    Kazoo re-registers outstanding watches after a reconnect, so a
    reactor's one-shot subscription survives short connection losses.
    """

    def __init__(
        self,
        hosts: str,
        scheme: str = "",
        auth: str = "",
        connect_timeout: float = 1.0,
        client_factory: Callable[..., KazooClient] = KazooClient,
    ):
        self.hosts = hosts
        self.scheme = scheme
        self.auth = auth
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory
        self._client: KazooClient | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connected

    def connect(self) -> None:
        """Start the session and apply credentials; raises StoreConnectionError"""
        client = self._client_factory(hosts=self.hosts)
        try:
            client.start(timeout=self.connect_timeout)
        except KazooTimeoutError as e:
            raise StoreConnectionError(
                f"timed out after {self.connect_timeout}s connecting to {self.hosts}",
                hosts=self.hosts,
            ) from e
        except KazooException as e:
            raise StoreConnectionError(str(e), hosts=self.hosts) from e

        if self.scheme:
            try:
                client.add_auth(self.scheme, self.auth)
            except (AuthFailedError, KazooException) as e:
                self._shutdown(client)
                raise StoreConnectionError(
                    f"authentication with scheme '{self.scheme}' failed: {e}",
                    hosts=self.hosts,
                ) from e

        self._client = client
        logger.info(
            f"Connected to ZooKeeper at {self.hosts}",
            extra={"hosts": self.hosts, "scheme": self.scheme or None},
        )

    def _require(self) -> KazooClient:
        if self._client is None:
            raise StoreConnectionError("client is not connected", hosts=self.hosts)
        return self._client

    def get_children(self, path: str) -> list[str]:
        client = self._require()
        try:
            return list(client.get_children(path))
        except (NoNodeError, NoAuthError) as e:
            raise TraversalError(path, type(e).__name__) from e
        except KazooException as e:
            raise TraversalError(path, str(e) or type(e).__name__) from e

    def get_value(self, path: str) -> str:
        client = self._require()
        try:
            data, _stat = client.get(path)
        except KazooException as e:
            raise ReadError(f"cannot read {path}: {type(e).__name__}", path=path) from e
        return decode_value(data)

    def get_watch(self, path: str, callback: WatchCallback) -> str:
        """
        Read a value and subscribe to its next change (fires once).

        A node that does not exist gets an existence watch instead, which
        fires with CREATED once the node is back; its value reads as "".
        """
        client = self._require()

        def _on_event(event) -> None:
            callback(NodeEvent(type=str(event.type), path=event.path or path))

        try:
            data, _stat = client.get(path, watch=_on_event)
            return decode_value(data)
        except NoNodeError:
            pass
        except KazooException as e:
            raise ReadError(f"cannot watch {path}: {type(e).__name__}", path=path) from e

        try:
            stat = client.exists(path, watch=_on_event)
        except KazooException as e:
            raise ReadError(f"cannot watch {path}: {type(e).__name__}", path=path) from e

        if stat is None:
            logger.info(
                f"{path} does not exist, waiting for it to be created",
                extra={"path": path},
            )
        # Created in between: the existence watch still covers the next change
        return ""

    def close(self) -> None:
        if self._client is None:
            return
        self._shutdown(self._client)
        self._client = None
        logger.info(f"Closed ZooKeeper connection to {self.hosts}")

    @staticmethod
    def _shutdown(client: KazooClient) -> None:
        try:
            client.stop()
        finally:
            client.close()
