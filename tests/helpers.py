import asyncio

from client.listeners import ChatListener


class FakeStreamReader:
    """Scripted stand-in for asyncio.StreamReader; every fed item is one read."""

    def __init__(self):
        self._items: asyncio.Queue = asyncio.Queue()
        self.read_calls = 0

    def feed_line(self, line: str):
        self._items.put_nowait(line.encode() + b"\n")

    def feed_data(self, data: bytes):
        self._items.put_nowait(data)

    def feed_eof(self):
        self._items.put_nowait(b"")

    def feed_error(self, error: BaseException):
        self._items.put_nowait(error)

    async def readuntil(self, separator: bytes = b"\n") -> bytes:
        self.read_calls += 1
        item = await self._items.get()
        if isinstance(item, BaseException):
            raise item
        if not item.endswith(separator):
            # end of stream stays at end of stream
            self._items.put_nowait(b"")
            raise asyncio.IncompleteReadError(item, None)
        return item


class FakeStreamWriter:
    """Stand-in for asyncio.StreamWriter; closing it ends the paired reader."""

    def __init__(self, reader: FakeStreamReader):
        self.reader = reader
        self.written: list[bytes] = []
        self.close_calls = 0
        self.write_error: BaseException | None = None

    def get_extra_info(self, name):
        if name == "peername":
            return ("127.0.0.1", 1300)
        return None

    def write(self, data: bytes):
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)

    async def drain(self):
        await asyncio.sleep(0)

    def close(self):
        self.close_calls += 1
        self.reader.feed_eof()

    async def wait_closed(self):
        await asyncio.sleep(0)

    @property
    def lines(self) -> list[str]:
        return [data.decode() for data in self.written]


class RecordingListener(ChatListener):
    def __init__(self):
        self.events: list[tuple] = []

    def on_login_result(self, success, reason):
        self.events.append(("login", success, reason))

    def on_message_received(self, message):
        self.events.append(("message", message.private, message.sender, message.text))

    def on_message_error(self, reason):
        self.events.append(("message_error", reason))

    def on_command_error(self, reason):
        self.events.append(("command_error", reason))

    def on_user_list(self, usernames):
        self.events.append(("users", usernames))

    def on_supported_commands(self, commands):
        self.events.append(("supported", commands))

    def on_disconnect(self):
        self.events.append(("disconnect",))

    def of_kind(self, kind: str) -> list[tuple]:
        return [event for event in self.events if event[0] == kind]


async def wait_until(predicate, timeout: float = 2.0):
    """Polls predicate until it is true or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


class StubPeer:
    """Server side of one loopback connection, driven by the test."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    async def send(self, line: str):
        self.writer.write(line.encode() + b"\n")
        await self.writer.drain()

    async def receive(self, timeout: float = 2.0) -> str:
        data = await asyncio.wait_for(self.reader.readline(), timeout)
        return data.decode().rstrip("\n")

    async def close(self):
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionResetError, BrokenPipeError):
            pass


class StubServer:
    """Loopback server whose responses are scripted by the test."""

    def __init__(self):
        self.peers: asyncio.Queue[StubPeer] = asyncio.Queue()
        self.accepted: list[StubPeer] = []
        self.server: asyncio.Server | None = None

    async def _accept(self, reader, writer):
        peer = StubPeer(reader, writer)
        self.accepted.append(peer)
        await self.peers.put(peer)

    async def start(self):
        self.server = await asyncio.start_server(self._accept, "127.0.0.1", 0)

    @property
    def port(self) -> int:
        return self.server.sockets[0].getsockname()[1]

    async def next_peer(self, timeout: float = 2.0) -> StubPeer:
        return await asyncio.wait_for(self.peers.get(), timeout)

    async def stop(self):
        self.server.close()
        for peer in self.accepted:
            await peer.close()
