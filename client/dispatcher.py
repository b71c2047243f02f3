import asyncio
import logging
from enum import Enum, auto
from typing import Awaitable, Callable

from shared.config import CLIENT_LOGGER_NAME
from shared.models import PeerDisconnected
from shared.protocol import decode_response

from .connection import Connection
from .errors import TransportError
from .listeners import ListenerRegistry


class LoopState(Enum):
    RUNNING = auto()
    STOPPED = auto()


class DispatchLoop:
    """
    Reads server lines on a background task and broadcasts decoded events.

    The loop runs until its connection becomes inactive. It never restarts;
    every new connection gets a new loop.
    """

    def __init__(
        self,
        connection: Connection,
        listeners: ListenerRegistry,
        teardown: Callable[[], Awaitable[None]],
        record_error: Callable[[str], None],
    ):
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)
        self.connection = connection
        self.listeners = listeners
        self._teardown = teardown
        self._record_error = record_error
        self.state = LoopState.STOPPED
        self._task: asyncio.Task | None = None

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def start(self) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("Dispatch loop has already been started")
        self.state = LoopState.RUNNING
        self._task = asyncio.create_task(
            self.run(), name=f"chat-dispatch-{self.connection}"
        )
        return self._task

    async def run(self):
        self.state = LoopState.RUNNING
        self.logger.info(f"Listening for server messages from {self.connection}")
        try:
            while self.connection.is_active():
                try:
                    line = await self.connection.read_line()
                except TransportError as e:
                    self.logger.warning(f"Read from server failed: {e}")
                    self._record_error(e.reason)
                    await self._teardown()
                    self.listeners.broadcast(PeerDisconnected())
                    break

                if line is None:
                    self.logger.info("Connection closed, no more server messages.")
                    await self._teardown()
                    break

                if not line:
                    continue

                event = decode_response(line)
                if event is not None:
                    self.listeners.broadcast(event)
        finally:
            self.state = LoopState.STOPPED
            self.logger.info("Dispatch loop stopped.")
