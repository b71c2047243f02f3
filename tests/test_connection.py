import asyncio
import socket
from unittest.mock import patch

import pytest

from client.connection import Connection
from client.errors import (
    ConnectionClosedError,
    HostUnresolvedError,
    ServerRefusedError,
    TransportError,
)

from helpers import FakeStreamWriter


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestConnectionIO:
    @pytest.mark.asyncio
    async def test_write_line_appends_terminator(self, fake_connection, fake_writer):
        await fake_connection.write_line("msg hello there")

        assert fake_writer.written == [b"msg hello there\n"]

    @pytest.mark.asyncio
    async def test_read_line_strips_terminators(self, fake_connection, fake_reader):
        fake_reader.feed_data(b"loginok\r\n")
        fake_reader.feed_line("msg bob hi")

        assert await fake_connection.read_line() == "loginok"
        assert await fake_connection.read_line() == "msg bob hi"

    @pytest.mark.asyncio
    async def test_read_line_decodes_utf8(self, fake_connection, fake_reader):
        fake_reader.feed_data("msg åse hei på deg\n".encode("utf-8"))

        assert await fake_connection.read_line() == "msg åse hei på deg"

    @pytest.mark.asyncio
    async def test_read_line_returns_none_at_end_of_stream(
        self, fake_connection, fake_reader
    ):
        fake_reader.feed_eof()

        assert await fake_connection.read_line() is None

    @pytest.mark.asyncio
    async def test_read_line_longer_than_buffer_limit(self):
        reader = asyncio.StreamReader(limit=16)
        connection = Connection(reader, FakeStreamWriter(reader))
        text = "x" * 100
        reader.feed_data(f"msg bob {text}\nloginok\n".encode())
        reader.feed_eof()

        assert await connection.read_line() == f"msg bob {text}"
        assert await connection.read_line() == "loginok"
        assert await connection.read_line() is None
        assert connection.is_active()

    @pytest.mark.asyncio
    async def test_unterminated_last_line_is_returned(self):
        reader = asyncio.StreamReader(limit=16)
        connection = Connection(reader, FakeStreamWriter(reader))
        reader.feed_data(b"users alice bob carol dave")
        reader.feed_eof()

        assert await connection.read_line() == "users alice bob carol dave"
        assert await connection.read_line() is None

    @pytest.mark.asyncio
    async def test_read_failure_becomes_transport_error(
        self, fake_connection, fake_reader
    ):
        fake_reader.feed_error(ConnectionResetError("reset by peer"))

        with pytest.raises(TransportError, match="reset by peer"):
            await fake_connection.read_line()

    @pytest.mark.asyncio
    async def test_write_failure_becomes_transport_error(
        self, fake_connection, fake_writer
    ):
        fake_writer.write_error = BrokenPipeError("broken pipe")

        with pytest.raises(TransportError, match="broken pipe"):
            await fake_connection.write_line("users")


class TestConnectionClose:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, fake_connection, fake_writer):
        assert fake_connection.is_active()

        assert await fake_connection.close() is True
        assert await fake_connection.close() is False

        assert not fake_connection.is_active()
        assert fake_writer.close_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_close_tears_down_once(self, fake_connection, fake_writer):
        results = await asyncio.gather(*(fake_connection.close() for _ in range(5)))

        assert sorted(results) == [False, False, False, False, True]
        assert fake_writer.close_calls == 1

    @pytest.mark.asyncio
    async def test_io_after_close_fails_immediately(self, fake_connection):
        await fake_connection.close()

        with pytest.raises(ConnectionClosedError):
            await fake_connection.write_line("users")
        with pytest.raises(ConnectionClosedError):
            await fake_connection.read_line()

    @pytest.mark.asyncio
    async def test_close_unblocks_pending_read(self, fake_connection):
        pending = asyncio.create_task(fake_connection.read_line())
        await asyncio.sleep(0)

        await fake_connection.close()

        assert await asyncio.wait_for(pending, 1) is None


class TestConnectionOpen:
    @pytest.mark.asyncio
    async def test_open_against_real_listener(self):
        accepted = asyncio.Event()

        async def handler(reader, writer):
            accepted.set()
            writer.write(b"loginok\n")
            await writer.drain()

        server = await asyncio.start_server(handler, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            connection = await Connection.open("127.0.0.1", port, timeout=2)
            assert await asyncio.wait_for(connection.read_line(), 2) == "loginok"
            assert accepted.is_set()
            await connection.close()
        finally:
            server.close()

    @pytest.mark.asyncio
    async def test_refused(self):
        with pytest.raises(ServerRefusedError) as excinfo:
            await Connection.open("127.0.0.1", _unused_port(), timeout=2)

        assert excinfo.value.reason == "No chat server found"

    @pytest.mark.asyncio
    async def test_unknown_host(self):
        with patch(
            "client.connection.asyncio.open_connection",
            side_effect=socket.gaierror(-2, "Name or service not known"),
        ):
            with pytest.raises(HostUnresolvedError) as excinfo:
                await Connection.open("no.such.host", 1300)

        assert excinfo.value.reason == "The host name is unknown"

    @pytest.mark.asyncio
    async def test_refused_on_every_address(self):
        error = OSError(
            "Multiple exceptions: [Errno 111] Connect call failed ('::1', 1300), "
            "[Errno 111] Connect call failed ('127.0.0.1', 1300)"
        )
        with patch("client.connection.errno.ECONNREFUSED", 111), patch(
            "client.connection.asyncio.open_connection", side_effect=error
        ):
            with pytest.raises(ServerRefusedError):
                await Connection.open("localhost", 1300)

    @pytest.mark.asyncio
    async def test_other_io_failure(self):
        with patch(
            "client.connection.asyncio.open_connection",
            side_effect=OSError(101, "Network is unreachable"),
        ):
            with pytest.raises(TransportError) as excinfo:
                await Connection.open("10.255.255.1", 1300)

        assert excinfo.value.reason == "IO error"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def never_connects(host, port, **kwargs):
            await asyncio.sleep(10)

        with patch(
            "client.connection.asyncio.open_connection", side_effect=never_connects
        ):
            with pytest.raises(TransportError, match="Timed out"):
                await Connection.open("10.255.255.1", 1300, timeout=0.05)
