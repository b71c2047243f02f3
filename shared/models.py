from enum import Enum, auto
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTED = auto()


class ChatEvent(BaseModel):
    """Base class for everything the dispatch loop hands to listeners."""

    model_config = ConfigDict(frozen=True)


class LoginResult(ChatEvent):
    kind: Literal["login_result"] = "login_result"
    success: bool
    reason: str | None = None


class TextMessage(ChatEvent):
    sender: str
    text: str

    @property
    def private(self) -> bool:
        return False

    def __str__(self):
        return f"{self.sender}: {self.text}"


class PublicMessage(TextMessage):
    kind: Literal["public_message"] = "public_message"


class PrivateMessage(TextMessage):
    kind: Literal["private_message"] = "private_message"

    @property
    def private(self) -> bool:
        return True

    def __str__(self):
        return f"{self.sender} (private): {self.text}"


class MessageDeliveryError(ChatEvent):
    kind: Literal["message_error"] = "message_error"
    reason: str


class CommandError(ChatEvent):
    kind: Literal["command_error"] = "command_error"
    reason: str


class UserListUpdate(ChatEvent):
    kind: Literal["user_list"] = "user_list"
    usernames: list[str]


class SupportedCommands(ChatEvent):
    kind: Literal["supported_commands"] = "supported_commands"
    commands: list[str]


class PeerDisconnected(ChatEvent):
    """Raised locally when the transport fails; the server never sends it."""

    kind: Literal["peer_disconnected"] = "peer_disconnected"


Event = Union[
    LoginResult,
    PublicMessage,
    PrivateMessage,
    MessageDeliveryError,
    CommandError,
    UserListUpdate,
    SupportedCommands,
    PeerDisconnected,
]
