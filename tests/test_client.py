import asyncio
import json
import socket

import pytest
import websockets

from chat_relay.client import ChatClient


def _unused_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def test_connect_gives_up_after_bounded_retries(caplog):
    client = ChatClient(f"ws://127.0.0.1:{_unused_port()}", reconnect_attempts=2, reconnect_delay=0)
    with pytest.raises(ConnectionError, match="3 attempt"):
        await client.connect()
    assert caplog.text.count("Connection attempt") == 3


async def test_emit_requires_connection():
    with pytest.raises(ConnectionError):
        await ChatClient("ws://unused").join("alice")


async def test_handle_frame_dispatches_to_callbacks():
    client = ChatClient("ws://unused")
    seen = []

    async def on_users(users):
        seen.append(("async", users))

    client.on("user_list", lambda users: seen.append(("sync", users)))
    client.on("user_list", on_users)
    await client.handle_frame(json.dumps({"type": "user_list", "data": [{"username": "a", "id": "1"}]}))
    assert seen == [("sync", [{"username": "a", "id": "1"}]), ("async", [{"username": "a", "id": "1"}])]


async def test_connected_greeting_sets_id():
    client = ChatClient("ws://unused")
    await client.handle_frame(json.dumps({"type": "connected", "data": {"id": "abc"}}))
    assert client.id == "abc"


async def test_malformed_server_frame_is_ignored():
    client = ChatClient("ws://unused")
    await client.handle_frame("garbage")
    assert client.id is None


async def test_reconnects_after_server_drops_connection():
    accepted = []

    async def handler(ws):
        accepted.append(ws)
        if len(accepted) == 1:
            await ws.close()
            return
        await ws.send(json.dumps({"type": "connected", "data": {"id": "second"}}))
        await ws.wait_closed()

    server = await websockets.serve(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    client = ChatClient(f"ws://127.0.0.1:{port}", reconnect_attempts=3, reconnect_delay=0.05)
    events = []
    greeted = asyncio.Event()
    client.on("disconnect", lambda _: events.append("disconnect"))
    client.on("reconnect", lambda _: events.append("reconnect"))
    client.on("connected", lambda data: greeted.set())
    try:
        await client.connect()
        listener = asyncio.create_task(client.listen())
        await asyncio.wait_for(greeted.wait(), 5)
        assert len(accepted) == 2
        assert events == ["disconnect", "reconnect"]
        assert client.id == "second"
        await client.close()
        await asyncio.wait_for(listener, 5)
    finally:
        server.close()
        await server.wait_closed()


async def test_reconnect_callback_can_rejoin():
    joins = []
    rejoined = asyncio.Event()

    async def handler(ws):
        async for raw in ws:
            frame = json.loads(raw)
            joins.append(frame["data"])
            if len(joins) == 1:
                await ws.close()
            else:
                rejoined.set()

    server = await websockets.serve(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    client = ChatClient(f"ws://127.0.0.1:{port}", reconnect_attempts=3, reconnect_delay=0.05)

    async def rejoin(_):
        await client.join("alice")

    client.on("reconnect", rejoin)
    try:
        await client.connect()
        listener = asyncio.create_task(client.listen())
        await client.join("alice")
        await asyncio.wait_for(rejoined.wait(), 5)
        assert joins == ["alice", "alice"]
        await client.close()
        await asyncio.wait_for(listener, 5)
    finally:
        server.close()
        await server.wait_closed()


async def test_listen_gives_up_when_server_stays_down():
    holder = {}

    async def handler(ws):
        holder["server"].close()
        await ws.wait_closed()

    server = await websockets.serve(handler, "127.0.0.1", 0)
    holder["server"] = server
    port = server.sockets[0].getsockname()[1]
    client = ChatClient(f"ws://127.0.0.1:{port}", reconnect_attempts=1, reconnect_delay=0)
    await client.connect()
    with pytest.raises(ConnectionError, match="2 attempt"):
        await asyncio.wait_for(client.listen(), 5)
    await server.wait_closed()
