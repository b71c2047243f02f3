class ChatClientError(Exception):
    """Base class for every failure the chat client reports."""

    default_message = "Chat client error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def reason(self) -> str:
        return str(self)


class ConnectError(ChatClientError):
    default_message = "Could not connect"


class HostUnresolvedError(ConnectError):
    default_message = "The host name is unknown"


class ServerRefusedError(ConnectError):
    default_message = "No chat server found"


class TransportError(ChatClientError):
    """I/O failure on the stream, either while connecting or afterwards."""

    default_message = "IO error"


class ConnectionClosedError(TransportError):
    default_message = "Connection is closed"
