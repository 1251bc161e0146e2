import pytest
from fastapi.testclient import TestClient

from app import app
from backend import RoomBackend, room_backend


class FakeConnection:
    """Records what the room table hands to a connection instead of sending it."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        self.room_id = None
        self.role = None
        self.is_open = True
        self.closed = False
        self.sent = []

    def bind(self, room_id, role):
        self.room_id = room_id
        self.role = role

    def clear_membership(self):
        self.room_id = None
        self.role = None

    def deliver(self, message):
        if not self.is_open:
            return False
        self.sent.append(message)
        return True

    def close(self):
        self.is_open = False
        self.closed = True

    def types(self):
        return [message["type"] for message in self.sent]


@pytest.fixture
def backend():
    return RoomBackend()


@pytest.fixture
def make_connection():
    counter = iter(range(1, 1000))

    def _make(name=None):
        return FakeConnection(name or f"conn-{next(counter)}")

    return _make


@pytest.fixture
def client():
    room_backend.rooms.clear()
    with TestClient(app) as test_client:
        yield test_client
    room_backend.rooms.clear()
