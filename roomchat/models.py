from dataclasses import dataclass
from typing import Optional

from roomchat.config import REGISTER_MESSAGE

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 10


class ValidationError(ValueError):
    """Имя пользователя или комнаты не прошло проверку."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def validate_name(value: str, field: str) -> str:
    if not MIN_NAME_LENGTH <= len(value) <= MAX_NAME_LENGTH:
        raise ValidationError(
            f"{field} must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
        )
    return value


@dataclass(frozen=True)
class User:
    name: str

    def __post_init__(self):
        validate_name(self.name, "User name")

    @classmethod
    def create(cls, name: str) -> "User":
        return cls(name)


@dataclass(frozen=True)
class Room:
    room: str

    def __post_init__(self):
        validate_name(self.room, "Room")

    @classmethod
    def create(cls, room: str) -> "Room":
        return cls(room)


# --- Исходящие сообщения ---
# user=None: сообщение принадлежит соединению, которое его породило
# (на нём ещё никто не зарегистрировался).

class OutputMessage:
    def for_user(self, target: Optional[User]) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Register(OutputMessage):
    user: Optional[User] = None
    message: str = REGISTER_MESSAGE

    def for_user(self, target):
        return self.user == target


@dataclass(frozen=True)
class ParsingError(OutputMessage):
    user: Optional[User]
    message: str

    def for_user(self, target):
        return self.user == target


@dataclass(frozen=True)
class SuccessfulRegistration(OutputMessage):
    user: User
    message: str = ""

    def __post_init__(self):
        if not self.message:
            object.__setattr__(self, "message", f"{self.user.name} entered the chat")

    def for_user(self, target):
        return self.user == target


@dataclass(frozen=True)
class UnsupportedCommand(OutputMessage):
    user: Optional[User]
    message: str = ""

    def for_user(self, target):
        return self.user == target


@dataclass(frozen=True)
class KeepAlive(OutputMessage):
    def for_user(self, target):
        return True


@dataclass(frozen=True)
class DiscardMessage(OutputMessage):
    def for_user(self, target):
        return False


# единственные экземпляры сообщений без полей
KEEP_ALIVE = KeepAlive()
DISCARD = DiscardMessage()


@dataclass(frozen=True)
class SendToUser(OutputMessage):
    user: User
    message: str

    def for_user(self, target):
        return self.user == target


@dataclass(frozen=True)
class ChatMsg(OutputMessage):
    from_user: User
    to: User
    message: str

    def for_user(self, target):
        return self.to == target


def is_connection_local(message: OutputMessage) -> bool:
    """Сообщение без адресата: доставляется только в своё соединение, не в общий канал."""
    if isinstance(message, (Register, ParsingError, UnsupportedCommand)):
        return message.user is None
    return False


def render(message: OutputMessage) -> Optional[str]:
    """Текст кадра для клиента; None, если текстового кадра быть не должно."""
    if isinstance(message, ChatMsg):
        return f"{message.from_user.name}: {message.message}"
    if isinstance(message, (SendToUser, Register, ParsingError, SuccessfulRegistration)):
        return message.message
    if isinstance(message, UnsupportedCommand):
        return message.message or "Unsupported command"
    if isinstance(message, (KeepAlive, DiscardMessage)):
        return None
    raise TypeError(f"unknown output message: {message!r}")
