"""Built-in message handlers and handler loading."""

import importlib
import logging

from botmaid.platforms.models import MentionSegment, Message, MessageContents, TextSegment
from botmaid.platforms.router import MessageHandler

logger = logging.getLogger(__name__)


class EchoHandler(MessageHandler):
    """Replies with the received contents.

    In groups the bot only answers when it is mentioned, and the mention of
    the bot itself is left out of the echo.
    """

    async def handle_message(self, message: Message) -> None:
        if message.chat.is_group and not message.mentions_self():
            return

        self_id = message.adapter.self_user.id
        echo = MessageContents()
        for segment in message.contents:
            if isinstance(segment, MentionSegment):
                if segment.user.id != self_id:
                    echo.mention(segment.user)
            elif isinstance(segment, TextSegment):
                echo.text(segment.text)

        if not str(echo).strip():
            return

        await message.reply(echo)


def load_handler(path: str) -> MessageHandler:
    """Load a handler from an import path.

    Args:
        path: ``package.module:attribute``; the attribute may be a
            MessageHandler instance or a class that is instantiated without
            arguments.

    Returns:
        The handler instance

    Raises:
        ValueError: If the path is malformed or does not name a handler
        ImportError: If the module cannot be imported
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"handler path `{path}` must look like `package.module:attribute`")

    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise ValueError(f"module `{module_name}` has no attribute `{attr}`") from e

    if isinstance(target, type) and issubclass(target, MessageHandler):
        target = target()
    if not isinstance(target, MessageHandler):
        raise ValueError(f"`{path}` is not a MessageHandler")

    logger.info(f"Loaded message handler {type(target).__name__} from {path}")
    return target
