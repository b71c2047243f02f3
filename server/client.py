import asyncio
import logging

from shared.config import SERVER_LOGGER_NAME
from shared.protocol import ENCODING, LINE_TERMINATOR


class Client:
    """Server-side view of one connected chat client."""

    def __init__(
        self,
        ip: str,
        port: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.logger = logging.getLogger(SERVER_LOGGER_NAME)
        self.ip: str = ip
        self.port: int = port
        self.reader: asyncio.StreamReader = reader
        self.writer: asyncio.StreamWriter = writer
        self.username: str | None = None

    @property
    def logged_in(self) -> bool:
        return self.username is not None

    async def receive_line(self) -> str | None:
        """Receives one command line from the client, None once it hung up."""
        data = await self.reader.readline()

        if not data:
            self.logger.info(f"No data received from {self}")
            return None

        line = data.decode(ENCODING, errors="replace").rstrip("\r\n")
        self.logger.info(f"Received from {self}: {line}")
        return line

    async def send_line(self, line: str) -> None:
        self.writer.write((line + LINE_TERMINATOR).encode(ENCODING))
        await self.writer.drain()

    def __str__(self) -> str:
        if self.username:
            return f"{self.username}@{self.ip}:{self.port}"
        return f"{self.ip}:{self.port}"
