import pytest
import pytest_asyncio

from client.connection import Connection
from server.chat_server import ChatServer

from helpers import FakeStreamReader, FakeStreamWriter, RecordingListener, StubServer


@pytest.fixture
def fake_reader():
    return FakeStreamReader()


@pytest.fixture
def fake_writer(fake_reader):
    return FakeStreamWriter(fake_reader)


@pytest.fixture
def fake_connection(fake_reader, fake_writer):
    return Connection(fake_reader, fake_writer)


@pytest.fixture
def fake_factory(fake_reader, fake_writer):
    """Connection factory handing out connections over the fake streams."""
    opened: list[Connection] = []

    async def factory(host, port, timeout):
        connection = Connection(fake_reader, fake_writer)
        opened.append(connection)
        return connection

    factory.opened = opened
    return factory


@pytest.fixture
def listener():
    return RecordingListener()


@pytest_asyncio.fixture
async def stub_server():
    server = StubServer()
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def chat_server():
    server = ChatServer("127.0.0.1", 0)
    await server.init_server()
    yield server
    await server.stop_server()
