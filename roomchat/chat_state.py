import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, FrozenSet, Mapping, Optional, Tuple, TypeVar

from roomchat.models import Room, User

T = TypeVar('T')


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ChatState:
    """Снимок состояния чата: user -> room и обратный индекс room -> members.

    Снимок никогда не меняется на месте; каждое изменение возвращает новый объект,
    поэтому читатель всегда видит обе карты согласованными.
    """
    user_rooms: Mapping[User, Room] = field(default_factory=lambda: _frozen({}))
    room_members: Mapping[Room, FrozenSet[User]] = field(default_factory=lambda: _frozen({}))

    def room_of(self, user: User) -> Optional[Room]:
        return self.user_rooms.get(user)

    def members_of(self, room: Room) -> FrozenSet[User]:
        return self.room_members.get(room, frozenset())

    def with_member(self, user: User, room: Room) -> "ChatState":
        """Переносит user в room (из текущей комнаты, если она есть)."""
        state = self.without_user(user)
        user_rooms = dict(state.user_rooms)
        room_members = dict(state.room_members)
        user_rooms[user] = room
        room_members[room] = state.members_of(room) | {user}
        return ChatState(_frozen(user_rooms), _frozen(room_members))

    def without_user(self, user: User) -> "ChatState":
        room = self.room_of(user)
        if room is None:
            return self

        user_rooms = dict(self.user_rooms)
        room_members = dict(self.room_members)
        del user_rooms[user]
        remaining = self.members_of(room) - {user}
        if remaining:
            room_members[room] = remaining
        else:
            room_members.pop(room, None)
        return ChatState(_frozen(user_rooms), _frozen(room_members))


class ChatStateRef:
    """Единственная точка доступа к ChatState.

    get() отдаёт текущий снимок без блокировки. modify() выполняет
    чтение и запись как один шаг под asyncio.Lock.
    """

    def __init__(self, state: Optional[ChatState] = None):
        self._state = state or ChatState()
        self._lock = asyncio.Lock()

    def get(self) -> ChatState:
        return self._state

    async def modify(self, fn: Callable[[ChatState], Tuple[ChatState, T]]) -> T:
        async with self._lock:
            new_state, result = fn(self._state)
            self._state = new_state
            return result

    async def reset(self):
        async with self._lock:
            self._state = ChatState()
