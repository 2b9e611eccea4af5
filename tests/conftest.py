import json

import pytest
import websockets

from chat_relay.presence import PresenceRegistry
from chat_relay.router import EventRouter
from chat_relay.store import MessageStore


class FakeConnection:
    """Stands in for a websocket; records decoded outbound frames."""

    def __init__(self, closed=False):
        self.frames = []
        self.closed = closed

    async def send(self, raw):
        if self.closed:
            raise websockets.ConnectionClosed(None, None)
        self.frames.append(json.loads(raw))

    def events(self, name=None):
        return [f["data"] for f in self.frames if name is None or f["type"] == name]

    def types(self):
        return [f["type"] for f in self.frames]

    def clear(self):
        self.frames.clear()


@pytest.fixture
def messages_file(tmp_path):
    return tmp_path / "messages.json"


@pytest.fixture
def store(messages_file):
    return MessageStore(messages_file)


@pytest.fixture
def registry():
    return PresenceRegistry()


@pytest.fixture
def router(registry, store):
    return EventRouter(registry, store)


@pytest.fixture
def connect(router):
    async def _connect(connection_id, username=None):
        conn = FakeConnection()
        await router.connect(connection_id, conn)
        if username is not None:
            await router.dispatch(connection_id, "user_join", username)
        return conn

    return _connect


@pytest.fixture
async def relay(tmp_path):
    from chat_relay.config import Settings
    from chat_relay.server import RelayServer

    server = RelayServer(Settings(messages_file=tmp_path / "messages.json"))
    ws_server = await server.start("127.0.0.1", 0)
    port = ws_server.sockets[0].getsockname()[1]
    server.url = f"ws://127.0.0.1:{port}"
    server.http_url = f"http://127.0.0.1:{port}"
    yield server
    ws_server.close()
    await ws_server.wait_closed()
