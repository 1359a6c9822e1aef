"""Shared pytest configuration and fixtures."""

import os

# Keep the module-level settings away from any developer .env values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["API_KEY"] = "test-api-key"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from roomchat.coordinator import RoomCoordinator
from roomchat.database import make_session_factory
from roomchat.gateway import PersistenceGateway
from roomchat.registry import RoomDirectory, SessionRegistry
from roomchat.settings import CoordinatorConfig


class FakeConnections:
    """Records every outbound event instead of talking to a socket.io server."""

    def __init__(self):
        self.sent = []
        self.live = set()
        self.addresses = {}

    def connect(self, sid, address="127.0.0.1"):
        self.live.add(sid)
        self.addresses[sid] = address

    def drop(self, sid):
        self.live.discard(sid)

    def source_address(self, sid):
        return self.addresses.get(sid)

    def is_connected(self, sid):
        return sid in self.live

    async def send(self, sid, event, data):
        self.sent.append((sid, event, data))

    async def broadcast_to_room(self, members, event, data, skip_sid=None):
        for sid in members:
            if sid != skip_sid:
                self.sent.append((sid, event, data))

    def events_for(self, sid, event=None):
        return [
            (e, d) for s, e, d in self.sent
            if s == sid and (event is None or e == event)
        ]

    def of_type(self, event):
        return [(s, d) for s, e, d in self.sent if e == event]

    def clear(self):
        self.sent.clear()


def make_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest_asyncio.fixture
async def gateway():
    engine = make_engine()
    gw = PersistenceGateway(make_session_factory(engine), engine)
    await gw.create_tables()
    yield gw
    await gw.close()


@pytest.fixture
def connections():
    return FakeConnections()


@pytest.fixture
def coordinator(gateway, connections):
    return RoomCoordinator(
        SessionRegistry(),
        RoomDirectory(),
        gateway,
        connections,
        CoordinatorConfig(history_limit=100),
    )
