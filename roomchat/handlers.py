from typing import List

from roomchat.config import DEFAULT_ROOM, logger
from roomchat.models import (
    OutputMessage,
    ParsingError,
    Register,
    Room,
    SuccessfulRegistration,
    UnsupportedCommand,
    ValidationError,
)
from roomchat.protocol import Protocol, UserSlot


async def handle_name(protocol: Protocol, slot: UserSlot, arg: str) -> List[OutputMessage]:
    """/name <username>"""
    if slot.user is not None:
        return [ParsingError(slot.user, f"You are already registered as {slot.user.name}")]
    if not arg:
        return [ParsingError(None, "Usage: /name <username>")]

    result = await protocol.register(arg)
    if isinstance(result, SuccessfulRegistration):
        slot.user = result.user
    return [result]


async def handle_room(protocol, slot, arg):
    """/room или /room <room name>"""
    try:
        room = Room.create(arg or DEFAULT_ROOM)
    except ValidationError as e:
        return [ParsingError(slot.user, e.reason)]
    return await protocol.enter_room(slot.user, room)


async def handle_help(protocol, slot, arg):
    return [await protocol.help(slot.user)]


async def handle_rooms(protocol, slot, arg):
    return await protocol.list_rooms(slot.user)


async def handle_members(protocol, slot, arg):
    return await protocol.list_members(slot.user)


COMMAND_HANDLERS = {
    '/name': handle_name,
    '/room': handle_room,
    '/help': handle_help,
    '/rooms': handle_rooms,
    '/members': handle_members,
}

# команды, доступные до регистрации
UNREGISTERED_COMMANDS = {'/name'}


async def handle_text(protocol: Protocol, slot: UserSlot, text: str) -> List[OutputMessage]:
    """Разбирает строку от клиента и вызывает соответствующую операцию протокола."""
    if not text.strip():
        return []

    if not text.startswith('/'):
        if slot.user is None:
            return [Register(None)]
        return await protocol.chat(slot.user, text)

    command, _, arg = text.partition(' ')
    handler = COMMAND_HANDLERS.get(command)
    if handler is None:
        logger.warning(f"Unsupported command: {command}")
        return [UnsupportedCommand(slot.user)]

    if slot.user is None and command not in UNREGISTERED_COMMANDS:
        return [Register(None)]

    return await handler(protocol, slot, arg.strip())
