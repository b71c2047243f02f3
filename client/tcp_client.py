"""
TCP chat client.

The client owns one connection at a time, a registry of listeners and the
background dispatch loop that turns server lines into listener callbacks.

Usage:
    client = TCPClient()
    client.add_listener(my_listener)
    if await client.connect("localhost", 1300):
        await client.try_login("alice")
        await client.send_public_message("hello everyone")
        ...
        await client.disconnect()
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable

from shared.config import CLIENT_LOGGER_NAME, client_config
from shared.models import ConnectionState
from shared import protocol

from .connection import Connection
from .dispatcher import DispatchLoop
from .errors import ChatClientError
from .listeners import ChatListener, ListenerRegistry

ConnectionFactory = Callable[[str, int, float | None], Awaitable[Connection]]


class TCPClient:
    def __init__(
        self,
        connection_factory: ConnectionFactory | None = None,
        connect_timeout: float | None = client_config.connect_timeout,
    ):
        """
        Args:
            connection_factory: Coroutine function opening a Connection, used
                to substitute the transport in tests. Defaults to
                ``Connection.open``.
            connect_timeout: Seconds to wait for the TCP handshake, or None.
        """
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)
        self._connection_factory = connection_factory or Connection.open
        self._connect_timeout = connect_timeout

        self._connection: Connection | None = None
        self._dispatch_loop: DispatchLoop | None = None
        self._listeners = ListenerRegistry()
        self._last_error: str | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        if self.is_connection_active():
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    async def connect(self, host: str, port: int) -> bool:
        """
        Connect to a chat server and start listening for its messages.

        Returns True on success. On failure returns False and the reason is
        available from ``get_last_error``. Concurrent calls are serialized, so
        at most one of them opens a connection.
        """
        async with self._connect_lock:
            if self.is_connection_active():
                self.logger.warning(f"Already connected to {self._connection}")
                self._last_error = "Already connected"
                return False

            self.logger.info(f"Connecting to {host}:{port}")
            try:
                connection = await self._connection_factory(
                    host, port, self._connect_timeout
                )
            except ChatClientError as e:
                self.logger.error(f"Could not connect to {host}:{port}: {e}")
                self._last_error = e.reason
                return False

            self._connection = connection
            self._start_listening(connection)
            return True

    def _start_listening(self, connection: Connection):
        self._dispatch_loop = DispatchLoop(
            connection,
            self._listeners,
            teardown=functools.partial(self._teardown, connection),
            record_error=self._record_error,
        )
        self._dispatch_loop.start()

    def _record_error(self, reason: str):
        self._last_error = reason

    async def _teardown(self, connection: Connection):
        if await connection.close():
            self.logger.info(f"Connection to {connection} closed")

    async def disconnect(self):
        """
        Close the current connection.

        May be called from any task, including the dispatch task itself;
        only the first call tears the connection down.
        """
        connection = self._connection
        if connection is None:
            return

        await self._teardown(connection)

        task = self._dispatch_loop.task if self._dispatch_loop else None
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    async def wait_closed(self):
        """Wait until the dispatch loop of the current connection has stopped."""
        task = self._dispatch_loop.task if self._dispatch_loop else None
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def is_connection_active(self) -> bool:
        return self._connection is not None and self._connection.is_active()

    def get_last_error(self) -> str:
        """Return the most recent error message, or "" if nothing has failed."""
        return self._last_error if self._last_error is not None else ""

    def add_listener(self, listener: ChatListener):
        self._listeners.add(listener)

    def remove_listener(self, listener: ChatListener):
        self._listeners.remove(listener)

    async def _send_command(self, command: str) -> bool:
        connection = self._connection
        if connection is None or not connection.is_active():
            self.logger.warning(f"No connection, dropping command: {command}")
            return False

        try:
            await connection.write_line(command)
        except ChatClientError as e:
            self.logger.error(f"Error sending command: {e}")
            self._last_error = e.reason
            await self.disconnect()
            return False
        return True

    async def send_public_message(self, message: str) -> bool:
        return await self._send_command(protocol.public_message(message))

    async def try_login(self, username: str) -> bool:
        return await self._send_command(protocol.login(username))

    async def refresh_user_list(self) -> bool:
        """Ask the server for the users currently logged in."""
        return await self._send_command(protocol.user_list_query())

    async def send_private_message(self, recipient: str, message: str) -> bool:
        return await self._send_command(protocol.private_message(recipient, message))

    async def ask_supported_commands(self) -> bool:
        return await self._send_command(protocol.supported_commands_query())
