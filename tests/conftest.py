import asyncio

import pytest

from roomchat import server
from roomchat.chat_state import ChatStateRef
from roomchat.operations import Topic
from roomchat.protocol import Protocol


def assert_consistent(cs):
    """room_members — точная инверсия user_rooms, пустых комнат нет."""
    for user, room in cs.user_rooms.items():
        assert user in cs.room_members[room]
    for room, members in cs.room_members.items():
        assert members, f"empty room stored: {room}"
        for user in members:
            assert cs.user_rooms[user] == room


@pytest.fixture
def state():
    return ChatStateRef()


@pytest.fixture
def protocol(state):
    return Protocol(state)


@pytest.fixture
async def fresh_server(monkeypatch):
    """Подменяет глобальное состояние server на новое и гасит dispatcher после теста."""
    state = ChatStateRef()
    topic = Topic()
    monkeypatch.setattr(server, "chat_state", state)
    monkeypatch.setattr(server, "topic", topic)
    monkeypatch.setattr(server, "protocol", Protocol(state))

    yield server

    await topic.close()


class FakeWebSocket:
    """Минимальная заглушка websocket для unit-тестов ws_handler/client_writer.

    После того как входящие кадры закончились, итерация ждёт feed(), close()
    или hang_up(), чтобы writer успел отправить всё, что было в очереди.
    """
    def __init__(self, incoming=None, *, raise_on_send=None):
        self._incoming = list(incoming or [])
        self.sent = []
        self.pings = 0
        self.closed = False
        self.remote_address = ("127.0.0.1", 12345)
        self._raise_on_send = raise_on_send
        self._hangup = asyncio.Event()
        self._arrived = asyncio.Event()

    async def send(self, data):
        if self._raise_on_send:
            raise self._raise_on_send
        self.sent.append(data)

    async def ping(self):
        self.pings += 1

    async def close(self):
        self.closed = True
        self._hangup.set()

    def hang_up(self):
        self._hangup.set()

    def feed(self, data):
        self._incoming.append(data)
        self._arrived.set()

    def __aiter__(self):
        return self

    async def __anext__(self):
        while not self._incoming:
            if self._hangup.is_set():
                raise StopAsyncIteration
            self._arrived.clear()
            hangup = asyncio.ensure_future(self._hangup.wait())
            arrived = asyncio.ensure_future(self._arrived.wait())
            await asyncio.wait({hangup, arrived}, return_when=asyncio.FIRST_COMPLETED)
            hangup.cancel()
            arrived.cancel()
        return self._incoming.pop(0)


async def wait_until(predicate, timeout=1.0, step=0.01):
    start = asyncio.get_running_loop().time()
    while True:
        if predicate():
            return
        if asyncio.get_running_loop().time() - start > timeout:
            raise TimeoutError("condition not met")
        await asyncio.sleep(step)
