"""Tests for the kazoo-backed store client: error mapping and watch translation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kazoo.exceptions import AuthFailedError, ConnectionLoss, NoAuthError, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import WatchedEvent

from zkmirror.common.exceptions import ReadError, StoreConnectionError, TraversalError
from zkmirror.services.mirror.client import KazooStoreClient, NodeEvent, decode_value


def make_client(scheme: str = "digest", auth: str = "user:secret"):
    kazoo = MagicMock()
    factory = MagicMock(return_value=kazoo)
    client = KazooStoreClient(
        hosts="zk1:2181,zk2:2181",
        scheme=scheme,
        auth=auth,
        connect_timeout=1.0,
        client_factory=factory,
    )
    return client, kazoo, factory


class TestConnect:

    def test_connect_starts_session_and_authenticates(self):
        client, kazoo, factory = make_client()

        client.connect()

        factory.assert_called_once_with(hosts="zk1:2181,zk2:2181")
        kazoo.start.assert_called_once_with(timeout=1.0)
        kazoo.add_auth.assert_called_once_with("digest", "user:secret")

    def test_empty_scheme_skips_auth(self):
        client, kazoo, _ = make_client(scheme="", auth="")

        client.connect()

        kazoo.add_auth.assert_not_called()

    def test_timeout_raises_connection_error(self):
        client, kazoo, _ = make_client()
        kazoo.start.side_effect = KazooTimeoutError("Connection time-out")

        with pytest.raises(StoreConnectionError, match="timed out"):
            client.connect()

    def test_auth_failure_raises_and_shuts_down(self):
        client, kazoo, _ = make_client()
        kazoo.add_auth.side_effect = AuthFailedError()

        with pytest.raises(StoreConnectionError, match="authentication"):
            client.connect()

        kazoo.stop.assert_called_once()
        kazoo.close.assert_called_once()

    def test_calls_before_connect_fail(self):
        client, _, _ = make_client()

        with pytest.raises(StoreConnectionError):
            client.get_children("/cfg")

    def test_close_stops_session(self):
        client, kazoo, _ = make_client()
        client.connect()

        client.close()
        client.close()

        kazoo.stop.assert_called_once()
        kazoo.close.assert_called_once()


class TestOperations:

    @pytest.fixture
    def connected(self):
        client, kazoo, _ = make_client()
        client.connect()
        return client, kazoo

    def test_get_children(self, connected):
        client, kazoo = connected
        kazoo.get_children.return_value = ["a", "b"]

        assert client.get_children("/cfg") == ["a", "b"]

    @pytest.mark.parametrize("error", [NoAuthError(), NoNodeError(), ConnectionLoss()])
    def test_listing_errors_become_traversal_errors(self, connected, error):
        client, kazoo = connected
        kazoo.get_children.side_effect = error

        with pytest.raises(TraversalError) as exc_info:
            client.get_children("/cfg")

        assert exc_info.value.path == "/cfg"
        assert "authentication might be wrong" in str(exc_info.value)

    def test_get_value_decodes_bytes(self, connected):
        client, kazoo = connected
        kazoo.get.return_value = (b"v\xc3\xa9", MagicMock())

        assert client.get_value("/cfg/a") == "vé"

    def test_get_value_error_becomes_read_error(self, connected):
        client, kazoo = connected
        kazoo.get.side_effect = NoNodeError()

        with pytest.raises(ReadError) as exc_info:
            client.get_value("/cfg/a")
        assert exc_info.value.path == "/cfg/a"

    def test_get_watch_translates_event(self, connected):
        client, kazoo = connected
        kazoo.get.return_value = (b"1", MagicMock())
        received = []

        assert client.get_watch("/cfg/a", received.append) == "1"

        watch = kazoo.get.call_args.kwargs["watch"]
        watch(WatchedEvent(type="CHANGED", state="CONNECTED", path="/cfg/a"))
        assert received == [NodeEvent(type="CHANGED", path="/cfg/a")]

    def test_get_watch_on_missing_node_waits_for_creation(self, connected):
        client, kazoo = connected
        kazoo.get.side_effect = NoNodeError()
        kazoo.exists.return_value = None
        received = []

        assert client.get_watch("/cfg/a", received.append) == ""

        watch = kazoo.exists.call_args.kwargs["watch"]
        watch(WatchedEvent(type="CREATED", state="CONNECTED", path="/cfg/a"))
        assert received == [NodeEvent(type="CREATED", path="/cfg/a")]

    def test_get_watch_error_becomes_read_error(self, connected):
        client, kazoo = connected
        kazoo.get.side_effect = NoAuthError()

        with pytest.raises(ReadError):
            client.get_watch("/cfg/a", lambda event: None)
        kazoo.exists.assert_not_called()

    def test_get_watch_existence_failure_becomes_read_error(self, connected):
        client, kazoo = connected
        kazoo.get.side_effect = NoNodeError()
        kazoo.exists.side_effect = ConnectionLoss()

        with pytest.raises(ReadError):
            client.get_watch("/cfg/a", lambda event: None)


@pytest.mark.parametrize("data,expected", [
    (None, ""),
    (b"", ""),
    (b"plain", "plain"),
    (b"\xff\xfe", "\ufffd\ufffd"),
])
def test_decode_value(data, expected):
    assert decode_value(data) == expected
