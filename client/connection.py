import asyncio
import errno
import logging
import socket

from shared.config import CLIENT_LOGGER_NAME, client_config
from shared.protocol import ENCODING, LINE_TERMINATOR

from .errors import (
    ConnectionClosedError,
    HostUnresolvedError,
    ServerRefusedError,
    TransportError,
)


def _is_refusal(error: OSError) -> bool:
    # asyncio folds per-address failures into one OSError when a host name
    # resolves to several addresses, so the errno is only present in the text.
    if error.errno == errno.ECONNREFUSED:
        return True
    return f"[Errno {errno.ECONNREFUSED}]" in str(error)


class Connection:
    """
    One TCP stream to a chat server.

    A connection is never reopened: once ``close`` has run, ``read_line`` and
    ``write_line`` raise ``ConnectionClosedError`` and a new connection has to
    be opened with ``Connection.open``.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)
        self._reader = reader
        self._writer = writer
        self._close_lock = asyncio.Lock()
        self._closed = False

        peername = writer.get_extra_info("peername")
        self.peername = f"{peername[0]}:{peername[1]}" if peername else "unknown peer"

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        timeout: float | None = None,
        limit: int = client_config.read_limit,
    ) -> "Connection":
        """
        Open a connection to ``host:port``.

        ``limit`` sizes the stream buffer. Longer lines are still read whole.

        Raises:
            HostUnresolvedError: The host name could not be resolved.
            ServerRefusedError: Nothing accepted the connection on that port.
            TransportError: Any other I/O failure, including a timeout.
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, limit=limit), timeout
            )
        except socket.gaierror as e:
            raise HostUnresolvedError() from e
        except ConnectionRefusedError as e:
            raise ServerRefusedError() from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timed out connecting to {host}:{port}") from e
        except OSError as e:
            if _is_refusal(e):
                raise ServerRefusedError() from e
            raise TransportError() from e

        connection = cls(reader, writer)
        connection.logger.info(f"Connected to {connection.peername}")
        return connection

    def is_active(self) -> bool:
        return not self._closed

    async def write_line(self, text: str) -> None:
        """Send one line and wait until it has been handed to the transport."""
        if self._closed:
            raise ConnectionClosedError()

        self.logger.debug(f">>> {text}")
        try:
            self._writer.write((text + LINE_TERMINATOR).encode(ENCODING))
            await self._writer.drain()
        except OSError as e:
            raise TransportError(f"Failed to send to {self.peername}: {e}") from e

    async def read_line(self) -> str | None:
        """
        Wait for the next line from the server.

        Returns the line without its terminator, or None once the peer has
        closed the stream. Lines longer than the stream buffer limit are
        collected piece by piece.
        """
        if self._closed:
            raise ConnectionClosedError()

        separator = LINE_TERMINATOR.encode(ENCODING)
        chunks: list[bytes] = []
        try:
            while True:
                try:
                    chunks.append(await self._reader.readuntil(separator))
                    break
                except asyncio.IncompleteReadError as e:
                    chunks.append(e.partial)
                    break
                except asyncio.LimitOverrunError as e:
                    chunks.append(await self._reader.readexactly(e.consumed))
        except OSError as e:
            raise TransportError(f"Lost connection to {self.peername}: {e}") from e

        data = b"".join(chunks)
        if not data:
            return None

        line = data.decode(ENCODING, errors="replace")
        line = line.removesuffix(LINE_TERMINATOR).removesuffix("\r")
        self.logger.debug(f"<<< {line}")
        return line

    async def close(self) -> bool:
        """
        Tear the connection down.

        Safe to call from several tasks at once. Returns True for the single
        caller that performed the teardown and False for everyone else.
        """
        async with self._close_lock:
            if self._closed:
                return False
            self._closed = True

            self.logger.info(f"Disconnecting from {self.peername}")
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except OSError as e:
                self.logger.warning(f"Error while closing connection: {e}")
            return True

    def __str__(self) -> str:
        return self.peername
