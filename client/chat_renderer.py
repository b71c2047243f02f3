import logging
from enum import Enum
from typing import Literal

from blessed import Terminal
from pydantic import BaseModel

from shared.config import CLIENT_LOGGER_NAME


class Color(Enum):
    BLACK = (0, 0, 0)
    WHITE = (255, 255, 255)
    RED = (200, 0, 0)
    GREEN = (0, 140, 0)
    BLUE = (0, 0, 200)
    GREY = (120, 120, 120)


class ChatLine(BaseModel):
    kind: Literal["public", "private", "own", "system", "error"]
    text: str


LINE_COLORS = {
    "public": Color.BLACK,
    "private": Color.BLUE,
    "own": Color.BLACK,
    "system": Color.GREY,
    "error": Color.RED,
}


class ChatRenderConfig(BaseModel):
    background_color: Color = Color.WHITE
    border_color: Color = Color.BLACK
    input_marker: str = ">"
    input_border_symbol: str = "─"
    user_panel_border_symbol: str = "│"
    user_panel_width: int = 16
    space_between_messages: int = 1
    user_identifier: str = "Me"


class ChatRenderer:
    def __init__(
        self,
        config: ChatRenderConfig = ChatRenderConfig(),
    ):
        self._term: Terminal | None = None
        self.render_config: ChatRenderConfig = config
        self.logger = logging.getLogger(CLIENT_LOGGER_NAME)

        self.y_offset: int = 0

    @property
    def term(self) -> Terminal | None:
        return self._term

    @term.setter
    def term(self, value: Terminal):
        if not isinstance(value, Terminal):
            raise TypeError("term must be an instance of blessed.Terminal")
        self._term = value

    def render_user_interface(
        self,
        input_buffer: str,
        history: list[ChatLine],
        users: list[str],
        status: str,
    ):
        try:
            self.y_offset = 0
            self.clear()
            self.render_status(status)
            self.render_users(users)
            self.render_messages(history)
            self.render_input_box(input_buffer)
        except Exception as e:
            self.logger.error(f"Error rendering chat interface: {e}")
            raise

    @property
    def message_width(self) -> int:
        return max(self._term.width - self.render_config.user_panel_width - 1, 10)

    def render_status(self, status: str):
        print(
            self._term.move_xy(0, 0)
            + self._term.color_rgb(*Color.GREY.value)
            + status[: self._term.width]
            + self._term.clear_eol,
            end="",
            flush=True,
        )
        self.y_offset = 2

    def render_users(self, users: list[str]):
        panel_x = self.message_width + 1
        width = self.render_config.user_panel_width
        symbol = self.render_config.user_panel_border_symbol
        bottom = self._term.height - 2

        for y in range(self.y_offset, bottom):
            print(
                self._term.move_xy(panel_x - 1, y)
                + self._term.color_rgb(*self.render_config.border_color.value)
                + symbol,
                end="",
            )

        for row, name in enumerate(["Users:", *users]):
            y = self.y_offset + row
            if y >= bottom:
                break
            print(self._term.move_xy(panel_x, y) + name[:width], end="")
        print("", end="", flush=True)

    def render_input_box(self, input_buffer: str = ""):
        bar_height = 2
        input_marker_size = len(self.render_config.input_marker) + 1
        input_space = self._term.width - input_marker_size - 2
        extra_lines = len(input_buffer) // input_space

        print(
            self._term.move_xy(0, self._term.height - extra_lines - bar_height)
            + self._term.color_rgb(*self.render_config.border_color.value)
            + self.render_config.input_border_symbol * self._term.width
            + self._term.move_down(1)
            + self._term.move_left(self._term.width)
            + self.render_config.input_marker
            + " ",
            end="",
            flush=True,
        )
        self.render_user_input(input_space, extra_lines, input_buffer)

    def render_user_input(self, input_space: int, extra_lines: int, input_buffer: str):
        chunks = []
        for x in range(0, len(input_buffer), input_space):
            chunks.append(input_buffer[x : x + input_space])

        print(
            self._term.move_xy(2, self._term.height - extra_lines - 1)
            + "\n  ".join(chunks)
            + self._term.clear_eol,
            end="",
            flush=True,
        )

    def render_messages(self, history: list[ChatLine]):
        visible_rows = max(
            (self._term.height - 3 - self.y_offset)
            // self.render_config.space_between_messages,
            0,
        )
        shown = history[-visible_rows:] if visible_rows else []
        for line in shown:
            print(
                self._term.move_xy(0, self.y_offset)
                + self._term.color_rgb(*LINE_COLORS[line.kind].value)
                + self.format_line(line),
                end="",
                flush=True,
            )
            self.y_offset += self.render_config.space_between_messages

    def format_line(self, line: ChatLine) -> str:
        width = self.message_width
        if line.kind == "own":
            own = f"{self.render_config.user_identifier}: {line.text}"[:width]
            return " " * (width - len(own)) + own
        return line.text[:width]

    def clear(self):
        print(
            self._term.home
            + self._term.on_color_rgb(*self.render_config.background_color.value)
            + self._term.clear,
            end="",
        )
