import asyncio
import logging
import re

from .client import Client
from shared.config import SERVER_LOGGER_NAME
from shared.protocol import split_keyword

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
SUPPORTED_COMMANDS = ("login", "msg", "privmsg", "users", "help")


class ChatServer:
    """
    A TCP server speaking the line chat protocol.

    Public messages are relayed through a broadcast queue; every other
    response goes straight back to the client that asked.
    """

    def __init__(self, address: str, port: int):
        self.logger = logging.getLogger(SERVER_LOGGER_NAME)
        self.logger.info(f"Initializing server at {address}:{port}")

        self.address = address
        self.port = port
        self.server: asyncio.Server | None = None
        self.connected_clients: list[Client] = []
        self.broadcast_queue: asyncio.Queue[tuple[Client, str]] = asyncio.Queue(
            maxsize=100
        )
        self._broadcast_task: asyncio.Task | None = None
        self._client_tasks: set[asyncio.Task] = set()

    @property
    def bound_port(self) -> int:
        """Port actually listened on, useful when the server was given port 0."""
        if self.server is None or not self.server.sockets:
            return self.port
        return self.server.sockets[0].getsockname()[1]

    async def init_server(self):
        """
        Initializes the TCP server and prepares it to accept connections.
        """
        try:
            self.server = await asyncio.start_server(
                self.handle_client, self.address, self.port
            )
            self._broadcast_task = asyncio.create_task(self.broadcast_messages())
            self.logger.info(
                f"Server initialized successfully at {self.address}:{self.bound_port}"
            )
        except Exception as e:
            self.logger.error(f"Failed to initialize server: {e}")
            raise

    async def start_server(self):
        """
        Serves connections until cancelled.
        """
        if self.server is None:
            await self.init_server()

        self.logger.info(f"Starting server on {self.address}:{self.bound_port}")
        try:
            async with self.server:
                self.logger.info("Chat Server Ready")
                await self.server.serve_forever()
        except asyncio.CancelledError:
            self.logger.info("Server shutdown requested")
            raise

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        """Handles communication with a connected client."""
        peername = writer.get_extra_info("peername")
        client = Client(ip=peername[0], port=peername[1], reader=reader, writer=writer)

        self._client_tasks.add(asyncio.current_task())
        await self._register_client(client)

        try:
            while True:
                line = await client.receive_line()
                if line is None:
                    break
                if line:
                    await self.handle_command(client, line)

        except asyncio.CancelledError:
            self.logger.warning(f"Client handler for {client} was cancelled.")
        except (ConnectionResetError, BrokenPipeError):
            self.logger.warning(f"Client {client} connection reset.")
        except Exception as e:
            self.logger.exception(f"Error with client {client}: {e}")
        finally:
            self._client_tasks.discard(asyncio.current_task())
            await self.remove_client(client)

    async def handle_command(self, client: Client, line: str):
        keyword, remainder = split_keyword(line)

        if keyword == "login":
            await self._handle_login(client, remainder)
        elif keyword == "msg":
            if not client.logged_in:
                await client.send_line("msgerr unauthorized")
                return
            await self.broadcast_queue.put((client, f"msg {client.username} {remainder}"))
        elif keyword == "privmsg":
            await self._handle_private_message(client, remainder)
        elif keyword == "users":
            names = " ".join(c.username for c in self.connected_clients if c.logged_in)
            await client.send_line(f"users {names}")
        elif keyword == "help":
            await client.send_line("supported " + " ".join(SUPPORTED_COMMANDS))
        else:
            await client.send_line("cmderr command not supported")

    async def _handle_login(self, client: Client, username: str):
        if not USERNAME_PATTERN.match(username):
            await client.send_line("loginerr incorrect username format")
            return

        taken = any(
            c.username == username for c in self.connected_clients if c is not client
        )
        if taken:
            await client.send_line("loginerr username already in use")
            return

        client.username = username
        self.logger.info(f"Client {client.ip}:{client.port} logged in as {username}")
        await client.send_line("loginok")

    async def _handle_private_message(self, client: Client, remainder: str):
        if not client.logged_in:
            await client.send_line("msgerr unauthorized")
            return

        recipient_name, _, text = remainder.partition(" ")
        recipient = next(
            (c for c in self.connected_clients if c.username == recipient_name), None
        )
        if recipient is None:
            await client.send_line(f"msgerr incorrect recipient {recipient_name}")
            return

        try:
            await recipient.send_line(f"privmsg {client.username} {text}")
        except (ConnectionResetError, BrokenPipeError):
            self.logger.warning(f"Client {recipient} disconnected, removing")
            await self.remove_client(recipient)
            await client.send_line(f"msgerr incorrect recipient {recipient_name}")

    async def stop_server(self):
        """Gracefully shuts down the server."""
        self.logger.info("Stopping server...")
        if self.server:
            self.server.close()

        if self._broadcast_task:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass

        for client in list(self.connected_clients):
            await self.remove_client(client)

        for task in list(self._client_tasks):
            task.cancel()
        await asyncio.gather(*self._client_tasks, return_exceptions=True)

        if self.server:
            await self.server.wait_closed()

        self.logger.info("Server stopped.")

    async def _register_client(self, client: Client):
        """Registers a new client."""
        if client not in self.connected_clients:
            self.logger.info(f"Accepted connection from {client}")
            self.connected_clients.append(client)

    async def remove_client(self, client: Client):
        """
        Removes a client from the connected clients and closes its connection.

        Args:
            client (Client): The client to remove.
        """
        if client not in self.connected_clients:
            return

        self.connected_clients.remove(client)
        self.logger.info(f"Removed disconnected client: {client}")
        try:
            client.writer.close()
            await client.writer.wait_closed()
        except Exception as e:
            self.logger.error(f"Error closing connection for {client}: {e}")

    async def broadcast_messages(self):
        while True:
            origin, line = await self.broadcast_queue.get()
            try:
                disconnected_clients: list[Client] = []
                for client in list(self.connected_clients):
                    if client is origin or not client.logged_in:
                        continue
                    try:
                        self.logger.info(f"Broadcasting message from {origin} -> {client}")
                        await client.send_line(line)
                    except (ConnectionResetError, BrokenPipeError):
                        self.logger.warning(f"Client {client} disconnected, removing")
                        disconnected_clients.append(client)
                    except Exception as e:
                        self.logger.error(f"Error sending message to {client}: {e}")
                        disconnected_clients.append(client)

                for client in disconnected_clients:
                    await self.remove_client(client)
            finally:
                self.broadcast_queue.task_done()
