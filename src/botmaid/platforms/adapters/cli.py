"""CLI platform adapter.

This adapter treats the terminal as a platform for local debugging: every
line typed on standard input becomes a private message from the local user,
and every outbound message is printed inside a fenced block.
"""

import asyncio
import getpass
import logging
import os
import sys
import threading
import time
from typing import Optional, TextIO

from botmaid.platforms.models import (
    Chat,
    Group,
    Message,
    MessageContents,
    MessageEvent,
    PlatformType,
    PrivateChat,
    User,
)
from botmaid.platforms.protocol import PlatformAdapter

logger = logging.getLogger(__name__)

DEFAULT_BOT_ID = "-"
READER_THREAD_NAME = "botmaid-cli-input"


def now_as_id() -> str:
    """Current time in milliseconds, used as message id."""
    return str(time.time_ns() // 1_000_000)


def local_user() -> User:
    """The user running this process."""
    uid = os.getuid() if hasattr(os, "getuid") else 0
    try:
        login = getpass.getuser()
    except (KeyError, OSError):
        login = None
    return User(id=str(uid), nickname=login)


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def _read_lines(stream: TextIO, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    """Blocking reader loop; ``None`` marks end of input."""
    while True:
        try:
            line = stream.readline()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read from terminal: {e}")
            line = ""
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line or None)
        except RuntimeError:
            # event loop already closed
            return
        if not line:
            return


class CLIAdapter(PlatformAdapter):
    """Platform adapter for the local terminal.

    A mention of the bot is typed as ``@<bot id> `` (note the trailing
    space). Group privileges are simulated: the local user counts as a group
    admin only when the process runs as root.
    """

    def __init__(
        self,
        bot_id: str = DEFAULT_BOT_ID,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
    ) -> None:
        """Initialize CLI adapter.

        Args:
            bot_id: Identity of the bot on the terminal
            input_stream: Where lines are read from (default: stdin)
            output_stream: Where messages are written to (default: stdout)
        """
        super().__init__()
        self._self_user = User(id=bot_id)
        self._input = input_stream
        self._output = output_stream
        self._sender = local_user()

    @property
    def platform_type(self) -> PlatformType:
        """The type of platform this adapter handles."""
        return PlatformType.CLI

    @property
    def self_user(self) -> User:
        return self._self_user

    async def run(self) -> None:
        """Read lines until end of input, then close the event queue.

        Lines are read by a daemon thread, so a cancelled run never keeps the
        process alive while the thread is blocked in ``readline``.
        """
        stream = self._input or sys.stdin
        lines: asyncio.Queue[Optional[str]] = asyncio.Queue()
        reader = threading.Thread(
            target=_read_lines,
            args=(stream, asyncio.get_running_loop(), lines),
            name=READER_THREAD_NAME,
            daemon=True,
        )
        reader.start()

        while True:
            line = await lines.get()
            if line is None:
                break
            await self.push_event(self.decode_line(line.rstrip("\r\n")))

        logger.info("Terminal input closed")
        await self.close_events()

    def decode_line(self, line: str) -> MessageEvent:
        """Turn one input line into a private message event."""
        marker = f"@{self._self_user.id} "
        contents = MessageContents()

        cursor = 0
        while True:
            pos = line.find(marker, cursor)
            if pos < 0:
                break
            if pos > cursor:
                contents.text(line[cursor:pos])
            contents.mention(self._self_user)
            cursor = pos + len(marker)

        if cursor < len(line):
            contents.text(line[cursor:])

        message = Message(
            id=now_as_id(),
            contents=contents,
            chat=PrivateChat(user=self._sender, adapter=self),
            sender=self._sender,
        )
        return MessageEvent(message=message)

    async def _send_message(
        self,
        contents: MessageContents,
        chat: Chat,
        reply_to: Optional[Message],
    ) -> str:
        stream = self._output or sys.stdout
        stream.write(f"```\n{contents}\n```\n")
        stream.flush()
        return now_as_id()

    async def is_group_admin(self, user: User, group: Group) -> bool:
        return is_root()
