"""
Line protocol spoken between chat clients and the chat server.

Every command and response is one UTF-8 line terminated by ``\\n``. The first
space-delimited token is the keyword; the last field of a line may itself
contain spaces, so nothing is escaped.
"""

import logging

from shared.config import CLIENT_LOGGER_NAME
from shared.models import (
    CommandError,
    Event,
    LoginResult,
    MessageDeliveryError,
    PrivateMessage,
    PublicMessage,
    SupportedCommands,
    UserListUpdate,
)

LINE_TERMINATOR = "\n"
ENCODING = "utf-8"

logger = logging.getLogger(CLIENT_LOGGER_NAME)


def login(username: str) -> str:
    return f"login {username}"


def public_message(text: str) -> str:
    return f"msg {text}"


def private_message(recipient: str, text: str) -> str:
    return f"privmsg {recipient} {text}"


def user_list_query() -> str:
    return "users"


def supported_commands_query() -> str:
    return "help"


def split_keyword(line: str) -> tuple[str, str]:
    """Split a line into its keyword and the remainder after the first space."""
    keyword, _, remainder = line.partition(" ")
    return keyword, remainder


def _split_words(remainder: str) -> list[str]:
    """
    Split a space separated list of names.

    Empty fields left by repeated, leading or trailing spaces are dropped
    rather than reported as empty names, so ``"a  b"`` gives ``["a", "b"]``
    and an empty remainder gives ``[]``.
    """
    return [word for word in remainder.split(" ") if word]


def decode_response(line: str) -> Event | None:
    """
    Decode one server line into an event.

    Unknown keywords, empty lines and lines the grammar cannot fully parse
    produce None. This function never raises.
    """
    if not line:
        return None

    keyword, remainder = split_keyword(line)

    if keyword == "loginok":
        return LoginResult(success=True)
    if keyword == "loginerr":
        return LoginResult(success=False, reason=remainder)
    if keyword == "msg":
        sender, _, text = remainder.partition(" ")
        return PublicMessage(sender=sender, text=text)
    if keyword == "privmsg":
        sender, separator, text = remainder.partition(" ")
        if not separator:
            logger.debug(f"Dropping private message without text: {line!r}")
            return None
        return PrivateMessage(sender=sender, text=text)
    if keyword == "msgerr":
        return MessageDeliveryError(reason=remainder)
    if keyword == "cmderr":
        return CommandError(reason=remainder)
    if keyword == "users":
        return UserListUpdate(usernames=_split_words(remainder))
    if keyword == "supported":
        return SupportedCommands(commands=_split_words(remainder))

    logger.debug(f"Ignoring unrecognized response: {line!r}")
    return None
