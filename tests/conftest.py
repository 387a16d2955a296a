import json

import pytest

from kyberchat.relay.hub import RelayHub
from kyberchat.relay.registry import Connection


class RecordingConnection(Connection):
    """In-memory connection that keeps every frame sent to it."""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, data):
        self.sent.append(data)

    def messages(self, kind=None):
        decoded = []
        for data in self.sent:
            try:
                obj = json.loads(data)
            except ValueError:
                continue
            if isinstance(obj, dict) and (kind is None or obj.get("type") == kind):
                decoded.append(obj)
        return decoded

    def last(self, kind):
        found = self.messages(kind)
        assert found, f"no {kind} frame received"
        return found[-1]

    def clear(self):
        self.sent.clear()


def identify(hub, conn, key="pk", username=None, saved_user_id=None):
    """Connect *conn* (if needed) and send its pubkey frame."""

    if conn.conn_id is None:
        hub.connect(conn)
    frame = {"type": "pubkey", "key": key}
    if username is not None:
        frame["username"] = username
    if saved_user_id is not None:
        frame["savedUserId"] = saved_user_id
    hub.handle(conn, json.dumps(frame))
    return conn.user_id


def send(hub, conn, **frame):
    hub.handle(conn, json.dumps(frame))


@pytest.fixture
def hub():
    return RelayHub()


@pytest.fixture
def pair(hub):
    """Two identified connections, user_1 (alice) and user_2 (bob)."""

    a, b = RecordingConnection(), RecordingConnection()
    identify(hub, a, key="pkA", username="alice")
    identify(hub, b, key="pkB", username="bob")
    a.clear()
    b.clear()
    return a, b
