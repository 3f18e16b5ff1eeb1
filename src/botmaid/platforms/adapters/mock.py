"""In-process test double adapter.

Tests inject events with :meth:`MockAdapter.happen` (or the ``simple_*``
helpers) and inspect what the bot sent with :meth:`MockAdapter.get_actions`.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from botmaid.platforms.models import (
    Chat,
    Event,
    Group,
    Message,
    MessageContents,
    MessageEvent,
    PlatformType,
    PrivateChat,
    User,
)
from botmaid.platforms.protocol import PlatformAdapter

DEFAULT_BOT_ID = "mock"
DEFAULT_BOT_NAME = "mock"
DEFAULT_SENDER_ID = "0"
DEFAULT_SENDER_NICKNAME = "tester"
DEFAULT_DRAIN_TIMEOUT = 0.2


class ActionKind(str, Enum):
    SEND_MESSAGE = "send_message"
    OTHER = "other"


class Action(BaseModel):
    """Something the bot did through the mock adapter."""

    kind: ActionKind
    message: Optional[Message] = None

    def send_msg(self) -> Optional[Message]:
        """The sent message, or None for other actions."""
        if self.kind == ActionKind.SEND_MESSAGE:
            return self.message
        return None


class MockAdapter(PlatformAdapter):
    """Platform adapter that records outbound calls instead of sending them."""

    def __init__(self, self_user: Optional[User] = None) -> None:
        super().__init__()
        self._self_user = self_user or User(id=DEFAULT_BOT_ID, nickname=DEFAULT_BOT_NAME)
        self._actions: list[Action] = []
        self._actions_lock = asyncio.Lock()
        self._admins: set[tuple[str, str]] = set()
        self._stopped = asyncio.Event()

    @property
    def platform_type(self) -> PlatformType:
        """The type of platform this adapter handles."""
        return PlatformType.MOCK

    @property
    def self_user(self) -> User:
        return self._self_user

    @property
    def default_sender(self) -> User:
        return User(id=DEFAULT_SENDER_ID, nickname=DEFAULT_SENDER_NICKNAME)

    async def run(self) -> None:
        """Wait until :meth:`close` is called."""
        await self._stopped.wait()

    async def close(self) -> None:
        """Stop :meth:`run` and close the event queue."""
        self._stopped.set()
        await self.close_events()

    # ------------------------------------------------------------------
    # Injection
    # ------------------------------------------------------------------

    def happen(self, event: Event) -> asyncio.Task:
        """Inject an event; it is pushed by an independent task."""
        return self.spawn(self.push_event(event), name="mock-happen")

    def simple_msg(self, contents: MessageContents) -> asyncio.Task:
        """Inject a private message from the default sender."""
        sender = self.default_sender
        message = Message(
            id=str(uuid.uuid4()),
            contents=contents,
            chat=PrivateChat(user=sender, adapter=self),
            sender=sender,
        )
        return self.happen(MessageEvent(message=message))

    def simple_text(self, text: Any) -> asyncio.Task:
        """Inject a private text message from the default sender."""
        return self.simple_msg(MessageContents().text(text))

    def set_admin(self, user: User, group: Group, admin: bool = True) -> None:
        """Configure the answer of :meth:`is_group_admin`."""
        key = (user.id, group.id)
        if admin:
            self._admins.add(key)
        else:
            self._admins.discard(key)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def get_actions(self, timeout: float = DEFAULT_DRAIN_TIMEOUT) -> list[Action]:
        """Wait ``timeout`` seconds, then return and forget every recorded action."""
        await asyncio.sleep(timeout)
        async with self._actions_lock:
            actions, self._actions = self._actions, []
        return actions

    async def _send_message(
        self,
        contents: MessageContents,
        chat: Chat,
        reply_to: Optional[Message],
    ) -> str:
        message_id = str(uuid.uuid4())
        async with self._actions_lock:
            self._actions.append(
                Action(
                    kind=ActionKind.SEND_MESSAGE,
                    message=Message(
                        id=message_id,
                        contents=contents,
                        chat=chat,
                        sender=self._self_user,
                    ),
                )
            )
        return message_id

    async def is_group_admin(self, user: User, group: Group) -> bool:
        return (user.id, group.id) in self._admins
