import asyncio
import logging
from typing import Literal

from blessed import Terminal
from pydantic import BaseModel

from shared.config import CLIENT_LOGGER_NAME
from shared.models import TextMessage

from .chat_renderer import ChatLine, ChatRenderer
from .listeners import ChatListener
from .tcp_client import TCPClient

HELP_TEXT = "/login <name>, /w <user> <text>, /users, /help, /quit"


class UserCommand(BaseModel):
    action: Literal["login", "public", "private", "users", "help", "quit", "invalid"]
    target: str | None = None
    text: str = ""


def parse_user_input(raw: str) -> UserCommand | None:
    """Turn one line typed by the user into a command, None for blank input."""
    text = raw.strip()
    if not text:
        return None
    if not text.startswith("/"):
        return UserCommand(action="public", text=text)

    keyword, _, rest = text.partition(" ")
    rest = rest.strip()

    if keyword == "/login":
        if not rest or " " in rest:
            return UserCommand(action="invalid", text="Usage: /login <name>")
        return UserCommand(action="login", target=rest)
    if keyword in ("/w", "/msg"):
        recipient, _, message = rest.partition(" ")
        if not recipient or not message.strip():
            return UserCommand(action="invalid", text="Usage: /w <user> <text>")
        return UserCommand(action="private", target=recipient, text=message.strip())
    if keyword == "/users":
        return UserCommand(action="users")
    if keyword == "/help":
        return UserCommand(action="help")
    if keyword in ("/quit", "/exit"):
        return UserCommand(action="quit")
    return UserCommand(action="invalid", text=f"Unknown command {keyword}. {HELP_TEXT}")


class ChatState(BaseModel):
    input_buffer: str = ""
    history: list[ChatLine] = []
    users: list[str] = []
    status: str = "Not connected"
    username: str | None = None


class ChatSessionManager(ChatListener):
    """Terminal chat session: listens to the client and forwards user input."""

    def __init__(self, client: TCPClient | None = None):
        self.term = Terminal()
        self.state = ChatState()
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)
        self.message_queue: asyncio.Queue[ChatLine] = asyncio.Queue(maxsize=100)

        self.client = client or TCPClient()
        self.client.add_listener(self)
        self._renderer: ChatRenderer | None = None
        self._pending_username: str | None = None

    @property
    def renderer(self) -> ChatRenderer:
        if self._renderer is None:
            raise ValueError(
                "Renderer has not been initialized. Call init_session first."
            )
        return self._renderer

    @renderer.setter
    def renderer(self, value: ChatRenderer):
        if not isinstance(value, ChatRenderer):
            raise TypeError("renderer must be an instance of ChatRenderer")
        self._renderer = value

    def _push(self, kind: str, text: str):
        try:
            self.message_queue.put_nowait(ChatLine(kind=kind, text=text))
        except asyncio.QueueFull:
            self.logger.warning(f"Chat line dropped, display queue is full: {text}")

    # Listener callbacks, invoked from the client's dispatch task.

    def on_login_result(self, success: bool, reason: str | None) -> None:
        if success:
            self.state.username = self._pending_username
            self.state.status = f"Logged in as {self.state.username}"
            self._push("system", "Login successful")
        else:
            self._push("error", f"Login failed: {reason}")

    def on_message_received(self, message: TextMessage) -> None:
        self._push("private" if message.private else "public", str(message))

    def on_message_error(self, reason: str) -> None:
        self._push("error", f"Message not delivered: {reason}")

    def on_command_error(self, reason: str) -> None:
        self._push("error", f"Command error: {reason}")

    def on_user_list(self, usernames: list[str]) -> None:
        self.state.users = usernames

    def on_supported_commands(self, commands: list[str]) -> None:
        self._push("system", "Server supports: " + ", ".join(commands))

    def on_disconnect(self) -> None:
        self._push("error", "Connection to the server was lost")

    async def init_session(
        self, server_address: tuple[str, int], renderer: ChatRenderer
    ) -> bool:
        if not await self.client.connect(*server_address):
            self.logger.error(f"Connection failed: {self.client.get_last_error()}")
            return False

        self.renderer = renderer
        self.state.status = f"Connected to {server_address[0]}:{server_address[1]}"
        await self.client.refresh_user_list()

        watch_task = asyncio.create_task(self.watch_connection())
        user_input_task = asyncio.create_task(self.handle_user_input())
        render_task = asyncio.create_task(self.handle_rendering(self.renderer))

        try:
            await user_input_task
        finally:
            for task in (watch_task, render_task):
                task.cancel()
            await asyncio.gather(watch_task, render_task, return_exceptions=True)
            await self.client.disconnect()
        return True

    async def watch_connection(self):
        """Reports the end of the connection, however it happened."""
        await self.client.wait_closed()
        error = self.client.get_last_error()
        self.state.status = f"Disconnected{f': {error}' if error else ''}"
        self.state.users = []
        self._push("system", "Disconnected from server")

    async def handle_rendering(self, renderer: ChatRenderer):
        renderer.term = self.term
        try:
            with self.term.fullscreen(), self.term.cbreak(), self.term.hidden_cursor():
                while True:
                    while not self.message_queue.empty():
                        self.state.history.append(self.message_queue.get_nowait())

                    renderer.render_user_interface(
                        self.state.input_buffer,
                        self.state.history,
                        self.state.users,
                        self.state.status,
                    )
                    await asyncio.sleep(0.1)
        except asyncio.CancelledError:
            self.logger.info("Render handler cancelled.")
            raise
        except Exception as e:
            self.logger.error(f"Error in rendering handler: {e}")
            raise

    async def execute(self, command: UserCommand) -> bool:
        """Runs one user command. Returns False when the session should end."""
        if command.action == "quit":
            return False
        if command.action == "invalid":
            self._push("error", command.text)
            return True
        if command.action == "help":
            self._push("system", HELP_TEXT)
            sent = await self.client.ask_supported_commands()
        elif command.action == "login":
            self._pending_username = command.target
            sent = await self.client.try_login(command.target)
        elif command.action == "users":
            sent = await self.client.refresh_user_list()
        elif command.action == "private":
            sent = await self.client.send_private_message(command.target, command.text)
            if sent:
                self._push("own", f"(to {command.target}) {command.text}")
        else:
            sent = await self.client.send_public_message(command.text)
            if sent:
                self._push("own", command.text)

        if not sent:
            self._push("error", "Not connected to a server")
        return True

    async def handle_user_input(self):
        """Reads keystrokes until the user quits."""
        while True:
            self.state.input_buffer = ""
            while True:
                val = await asyncio.to_thread(self.term.inkey, timeout=0.1)
                if not val:
                    continue

                if val.is_sequence:
                    if val.name == "KEY_ENTER":
                        break
                    elif val.name in ("KEY_BACKSPACE", "KEY_DELETE"):
                        self.state.input_buffer = self.state.input_buffer[:-1]
                    elif val.name == "KEY_ESCAPE":
                        self.logger.info("User pressed escape, exiting...")
                        return
                else:
                    self.state.input_buffer += val

            command = parse_user_input(self.state.input_buffer)
            if command is None:
                continue
            if not await self.execute(command):
                self.logger.info("User quit the session.")
                return
