import asyncio
import socket

import pytest
import websockets

from roomchat.config import MAX_MESSAGE_SIZE, REGISTER_MESSAGE
from roomchat.models import User


async def recv_until(ws, predicate, timeout=2.0):
    """Читает сообщения до тех пор, пока не найдёт нужное."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise TimeoutError("didn't receive expected message")
        msg = await asyncio.wait_for(ws.recv(), timeout=remaining)
        if predicate(msg):
            return msg


def get_free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
async def running_server(fresh_server):
    port = get_free_port()
    server = await fresh_server.serve("127.0.0.1", port)
    try:
        yield f"ws://127.0.0.1:{port}"
    finally:
        server.close()
        await server.wait_closed()


async def register(ws, name):
    assert await ws.recv() == REGISTER_MESSAGE
    await ws.send(f"/name {name}")
    await recv_until(ws, lambda m: m == f"{name} entered the chat")


@pytest.mark.asyncio
async def test_e2e_room_lifecycle_and_broadcast(running_server):
    url = running_server

    async with websockets.connect(url) as a, websockets.connect(url) as b:
        await register(a, "alice")
        await register(b, "bob")

        await a.send("/room general")
        await recv_until(a, lambda m: m == "alice has joined the general room")
        await b.send("/room general")
        await recv_until(b, lambda m: m == "bob has joined the general room")
        await recv_until(a, lambda m: m == "bob has joined the general room")

        await a.send("/members")
        assert await recv_until(a, lambda m: m.startswith("Room Members:")) == "Room Members:\n\talice\n\tbob"

        await a.send("hi")
        assert await recv_until(b, lambda m: m.endswith("hi")) == "alice: hi"
        assert await recv_until(a, lambda m: m.endswith("hi")) == "alice: hi"

        await b.send("/room random")
        await recv_until(a, lambda m: m == "bob has left the general room")

        await a.send("/rooms")
        assert await recv_until(a, lambda m: m.startswith("Rooms:")) == "Rooms:\n\tgeneral\n\trandom"


@pytest.mark.asyncio
async def test_e2e_validation_and_unknown_commands(running_server):
    async with websockets.connect(running_server) as a:
        assert await a.recv() == REGISTER_MESSAGE

        await a.send("/name a")
        assert await a.recv() == "User name must be between 2 and 10 characters"

        await a.send("/help")
        assert await a.recv() == REGISTER_MESSAGE

        await a.send("/name alice")
        assert await a.recv() == "alice entered the chat"

        await a.send("/room x")
        assert await a.recv() == "Room must be between 2 and 10 characters"

        await a.send("/shrug")
        assert await a.recv() == "Unsupported command"

        await a.send("anyone?")
        assert await a.recv() == "You are not currently in a room"


@pytest.mark.asyncio
async def test_e2e_disconnect_releases_membership(running_server, fresh_server):
    url = running_server
    a = await websockets.connect(url)
    b = await websockets.connect(url)
    try:
        await register(a, "alice")
        await register(b, "bob")
        await a.send("/room")
        await recv_until(a, lambda m: m == "alice has joined the general room")
        await b.send("/room")
        await recv_until(a, lambda m: m == "bob has joined the general room")

        await b.close()

        await recv_until(a, lambda m: m == "bob has left the general room")
        assert User("bob") not in fresh_server.chat_state.get().user_rooms
        assert not await fresh_server.protocol.is_username_in_use("bob")
    finally:
        await a.close()
        await b.close()


@pytest.mark.asyncio
async def test_e2e_oversized_message_is_rejected_without_disconnect(running_server):
    async with websockets.connect(running_server) as a:
        await register(a, "alice")

        await a.send("a" * (MAX_MESSAGE_SIZE + 1))
        assert await a.recv() == f"Message too large. Max size: {MAX_MESSAGE_SIZE} bytes"

        await a.send("/room")
        assert await a.recv() == "alice has joined the general room"
