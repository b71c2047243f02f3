import logging

from shared.config import CLIENT_LOGGER_NAME
from shared.models import (
    CommandError,
    Event,
    LoginResult,
    MessageDeliveryError,
    PeerDisconnected,
    PrivateMessage,
    PublicMessage,
    SupportedCommands,
    TextMessage,
    UserListUpdate,
)


class ChatListener:
    """
    Observer of chat client events.

    Every handler is a no-op here; subclasses override the ones they care
    about. Handlers run on the dispatch task and should not block.
    """

    def on_login_result(self, success: bool, reason: str | None) -> None:
        pass

    def on_message_received(self, message: TextMessage) -> None:
        pass

    def on_message_error(self, reason: str) -> None:
        pass

    def on_command_error(self, reason: str) -> None:
        pass

    def on_user_list(self, usernames: list[str]) -> None:
        pass

    def on_supported_commands(self, commands: list[str]) -> None:
        pass

    def on_disconnect(self) -> None:
        pass


class ListenerRegistry:
    """Ordered, duplicate-free set of listeners."""

    def __init__(self):
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)
        self._listeners: list[ChatListener] = []

    def add(self, listener: ChatListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: ChatListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __contains__(self, listener: ChatListener) -> bool:
        return listener in self._listeners

    def __len__(self) -> int:
        return len(self._listeners)

    def broadcast(self, event: Event) -> None:
        """
        Deliver one event to every registered listener in registration order.

        A listener that raises is logged and skipped; the remaining listeners
        still receive the event.
        """
        for listener in list(self._listeners):
            try:
                self._deliver(listener, event)
            except Exception as e:
                self.logger.exception(
                    f"Listener {listener!r} failed handling {event.kind}: {e}"
                )

    @staticmethod
    def _deliver(listener: ChatListener, event: Event) -> None:
        match event:
            case LoginResult(success=success, reason=reason):
                listener.on_login_result(success, reason)
            case PublicMessage() | PrivateMessage():
                listener.on_message_received(event)
            case MessageDeliveryError(reason=reason):
                listener.on_message_error(reason)
            case CommandError(reason=reason):
                listener.on_command_error(reason)
            case UserListUpdate(usernames=usernames):
                listener.on_user_list(list(usernames))
            case SupportedCommands(commands=commands):
                listener.on_supported_commands(list(commands))
            case PeerDisconnected():
                listener.on_disconnect()
            case _:
                raise TypeError(f"Unsupported event type: {type(event).__name__}")
