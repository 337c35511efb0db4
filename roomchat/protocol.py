from dataclasses import dataclass
from typing import List, Optional

from roomchat.chat_state import ChatState, ChatStateRef
from roomchat.config import HELP_TEXT, logger
from roomchat.models import (
    ChatMsg,
    DISCARD,
    OutputMessage,
    ParsingError,
    Room,
    SendToUser,
    SuccessfulRegistration,
    User,
    ValidationError,
)

NOT_IN_ROOM = "You are not currently in a room"


@dataclass
class UserSlot:
    """Текущий пользователь соединения; None до успешной регистрации."""
    user: Optional[User] = None


def expand(state: ChatState, room: Room, template: OutputMessage) -> List[OutputMessage]:
    """Разворачивает одно событие в копию для каждого участника комнаты."""
    result = []
    for member in state.members_of(room):
        if isinstance(template, SendToUser):
            result.append(SendToUser(member, template.message))
        elif isinstance(template, ChatMsg):
            result.append(ChatMsg(template.from_user, member, template.message))
        else:
            result.append(DISCARD)
    return result


def _joined(state: ChatState, user: User, room: Room) -> List[OutputMessage]:
    return expand(state, room, SendToUser(user, f"{user.name} has joined the {room.room} room"))


def _left(after: ChatState, user: User, room: Room) -> List[OutputMessage]:
    # после удаления в старой комнате остались ровно те, кого надо оповестить
    return expand(after, room, SendToUser(user, f"{user.name} has left the {room.room} room"))


class Protocol:
    def __init__(self, state: ChatStateRef):
        self.state = state

    async def register(self, name: str) -> OutputMessage:
        try:
            user = User.create(name)
        except ValidationError as e:
            return ParsingError(None, e.reason)
        logger.info(f"User registered: {user.name}")
        return SuccessfulRegistration(user, f"{user.name} entered the chat")

    async def is_username_in_use(self, name: str) -> bool:
        return any(u.name == name for u in self.state.get().user_rooms)

    async def enter_room(self, user: User, room: Room) -> List[OutputMessage]:
        def transition(cs: ChatState):
            current = cs.room_of(user)
            if current == room:
                return cs, [SendToUser(user, f"You are already in the {room.room} room")]

            updated = cs.with_member(user, room)
            messages = []
            if current is not None:
                messages.extend(_left(updated, user, current))
            messages.extend(_joined(updated, user, room))
            return updated, messages

        return await self.state.modify(transition)

    async def chat(self, user: User, text: str) -> List[OutputMessage]:
        cs = self.state.get()
        room = cs.room_of(user)
        if room is None:
            return [SendToUser(user, NOT_IN_ROOM)]
        return expand(cs, room, ChatMsg(user, user, text))

    async def help(self, user: User) -> OutputMessage:
        return SendToUser(user, HELP_TEXT)

    async def list_rooms(self, user: User) -> List[OutputMessage]:
        names = sorted(r.room for r in self.state.get().room_members)
        return [SendToUser(user, "Rooms:\n\t" + "\n\t".join(names))]

    async def list_members(self, user: User) -> List[OutputMessage]:
        cs = self.state.get()
        room = cs.room_of(user)
        if room is None:
            return [SendToUser(user, NOT_IN_ROOM)]
        names = sorted(u.name for u in cs.members_of(room))
        return [SendToUser(user, "Room Members:\n\t" + "\n\t".join(names))]

    async def disconnect(self, slot: UserSlot) -> List[OutputMessage]:
        user = slot.user
        if user is None:
            return []

        def transition(cs: ChatState):
            room = cs.room_of(user)
            if room is None:
                return cs, []
            updated = cs.without_user(user)
            return updated, _left(updated, user, room)

        return await self.state.modify(transition)
