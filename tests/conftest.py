"""Shared fixtures: an isolated relay and in-memory connections."""

import json

import pytest

from cardrelay.core.connection import Connection
from cardrelay.core.relay import EventRelay
from cardrelay.core.status_store import StatusStore
from cardrelay.models.client import Client, Role


class RecordingConnection(Connection):
    """Connection that keeps every event sent to it."""

    def __init__(self, client_id: str, role: Role = Role.UNKNOWN):
        super().__init__(Client(id=client_id, role=role))
        self.sent = []

    async def send(self, event, data):
        self.sent.append((event, data))

    def received(self, event):
        return [data for name, data in self.sent if name == event]


class BrokenConnection(Connection):
    """Connection whose transport always fails."""

    async def send(self, event, data):
        raise ConnectionResetError("peer went away")


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 1000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def relay(clock):
    """Relay with a fake clock and a short write timeout."""
    return EventRelay(StatusStore(clock=clock), write_timeout=0.05)


@pytest.fixture
def connect(relay):
    """Register a recording connection on the relay."""
    def _connect(client_id, role=Role.UNKNOWN):
        connection = RecordingConnection(client_id, role)
        relay.connect(connection)
        return connection
    return _connect


@pytest.fixture
def broken_connection(relay):
    connection = BrokenConnection(Client(id="broken", role=Role.CLIENT))
    relay.connect(connection)
    return connection


def frame(event, data=None):
    return json.dumps({"event": event, "data": data})


@pytest.fixture
def send(relay):
    """Feed one frame to the relay as if it arrived on ``client_id``."""
    async def _send(client_id, event, data=None):
        await relay.handle_message(client_id, frame(event, data))
    return _send
