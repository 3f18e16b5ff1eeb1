"""Platform adapter protocol definition."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any, Optional

from botmaid.platforms.errors import StreamClosedError
from botmaid.platforms.models import (
    Chat,
    Event,
    Group,
    Message,
    MessageContents,
    PlatformType,
    User,
)

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


class PlatformAdapter(ABC):
    """Abstract base class for platform adapters.

    Each platform (Telegram, OneBot, the local CLI, ...) implements this
    protocol to provide a unified interface for the message router.

    Every adapter owns a single-slot event queue. Its ingestion loop decodes
    raw platform events in independently spawned tasks which block on
    :meth:`push_event` until the router has pulled the previous event with
    :meth:`next_event`.
    """

    def __init__(self) -> None:
        """Initialize the platform adapter."""
        self._events: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        self._pull_lock = asyncio.Lock()
        self._closed = False
        self._exhausted = False
        self._end_pending = False
        self._tasks: set[asyncio.Task] = set()

    @property
    @abstractmethod
    def platform_type(self) -> PlatformType:
        """The type of platform this adapter handles."""
        ...

    @property
    @abstractmethod
    def self_user(self) -> User:
        """The bot's own identity on this platform.

        Raises:
            PlatformError: If the identity has not been discovered yet.
        """
        ...

    @property
    def name(self) -> str:
        """Human-readable adapter name for logs."""
        return self.platform_type.value

    async def start(self) -> None:
        """Prepare the adapter before :meth:`run`.

        Network adapters discover their own identity here. Default
        implementation does nothing.
        """
        pass

    @abstractmethod
    async def run(self) -> None:
        """Run the ingestion loop.

        This method should:
        1. Connect to the platform (reconnecting on failure)
        2. Receive raw events
        3. Hand each one to a spawned task that decodes it and pushes it with
           :meth:`push_event`

        It only returns on unrecoverable shutdown.
        """
        ...

    async def close(self) -> None:
        """Release transport resources. Default implementation does nothing."""
        pass

    # ------------------------------------------------------------------
    # Event queue
    # ------------------------------------------------------------------

    async def push_event(self, event: Event) -> None:
        """Push a decoded event, waiting until the single slot is free.

        Raises:
            StreamClosedError: If the queue was closed.
        """
        if self._closed:
            raise StreamClosedError(f"{self.name} event queue is closed")
        await self._events.put(event)

    async def close_events(self) -> None:
        """Close the event queue.

        Events already queued are still delivered; afterwards
        :meth:`next_event` reports end of stream.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._events.put_nowait(_END_OF_STREAM)
        except asyncio.QueueFull:
            # the queued event goes first, next_event enqueues the marker
            self._end_pending = True

    async def next_event(self) -> Optional[Event]:
        """Pull the next decoded event.

        Returns:
            The next event, or None once the queue is closed and drained.
            End of stream is terminal.
        """
        async with self._pull_lock:
            if self._exhausted:
                return None
            item = await self._events.get()
            if self._end_pending:
                self._end_pending = False
                self._events.put_nowait(_END_OF_STREAM)
            if item is _END_OF_STREAM:
                self._exhausted = True
                return None
            return item

    # ------------------------------------------------------------------
    # Outbound operations
    # ------------------------------------------------------------------

    async def send_message(
        self,
        contents: MessageContents,
        chat: Chat,
        reply_to: Optional[Message] = None,
    ) -> str:
        """Send a message to a chat on this platform.

        Args:
            contents: The message contents to send
            chat: Target chat
            reply_to: Message being replied to, if any

        Returns:
            Platform-specific message ID of the sent message

        Raises:
            PlatformError: If sending fails
        """
        logger.info(f"[{self.name}] sending message to {chat.id}: {contents}")
        return await self._send_message(contents, chat, reply_to)

    async def reply_to_message(self, contents: MessageContents, message: Message) -> str:
        """Reply to a message in the chat it came from.

        Returns:
            Platform-specific message ID of the sent message
        """
        logger.info(f"[{self.name}] replying to message {message.id}: {contents}")
        return await self._send_message(contents, message.chat, message)

    @abstractmethod
    async def _send_message(
        self,
        contents: MessageContents,
        chat: Chat,
        reply_to: Optional[Message],
    ) -> str:
        """Platform-specific send. Returns the platform message ID."""
        ...

    @abstractmethod
    async def is_group_admin(self, user: User, group: Group) -> bool:
        """Check whether a user is an owner or administrator of a group.

        Raises:
            PlatformError: If the platform query fails
        """
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def mentions_self(self, contents: MessageContents) -> bool:
        """Check whether contents mention this adapter's bot identity."""
        return contents.mentions(self.self_user.id)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Run a coroutine as an independent task.

        The adapter keeps a reference until the task finishes. Exceptions are
        logged, never propagated.
        """
        task = asyncio.create_task(self._guard(coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def cancel_tasks(self) -> None:
        """Cancel every task started with :meth:`spawn` that is still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _guard(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{self.name}] task failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
