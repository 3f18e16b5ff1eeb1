"""Platform-neutral data models for chat messaging."""

from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel

from botmaid.platforms.errors import PlatformError


class PlatformType(str, Enum):
    """Supported messaging platforms."""

    CLI = "cli"
    MOCK = "mock"
    ONEBOT = "onebot"
    TELEGRAM = "telegram"


class User(BaseModel):
    """A user on a specific platform.

    The id is only unique within the platform that produced it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    nickname: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Nickname when known, otherwise the raw id."""
        return self.nickname or self.id

    def __str__(self) -> str:
        return self.display_name


class Group(BaseModel):
    """A group chat on a specific platform."""

    model_config = ConfigDict(frozen=True)

    id: str


class _ChatBase(BaseModel):
    """Fields shared by every chat kind.

    ``adapter`` is the adapter instance that produced the chat. Replies sent
    through the chat always go back over that adapter's connection.
    """

    model_config = ConfigDict(frozen=True)

    adapter: Any = Field(default=None, exclude=True, repr=False)

    @property
    def id(self) -> str:
        raise NotImplementedError

    @property
    def is_private(self) -> bool:
        return False

    @property
    def is_group(self) -> bool:
        return False

    async def send(self, contents: "MessageContents") -> str:
        """Send contents into this chat through its owning adapter.

        Returns:
            Platform message ID of the sent message

        Raises:
            PlatformError: If the chat is not bound to an adapter, or the
                adapter fails to send.
        """
        if self.adapter is None:
            raise PlatformError(f"chat `{self!r}` is not bound to an adapter")
        return await self.adapter.send_message(contents, self)


class PrivateChat(_ChatBase):
    """One-to-one conversation with a user."""

    kind: Literal["private"] = "private"
    user: User

    @property
    def id(self) -> str:
        return self.user.id

    @property
    def is_private(self) -> bool:
        return True


class GroupChat(_ChatBase):
    """Conversation inside a group."""

    kind: Literal["group"] = "group"
    group: Group

    @property
    def id(self) -> str:
        return self.group.id

    @property
    def is_group(self) -> bool:
        return True


Chat = Annotated[Union[PrivateChat, GroupChat], Field(discriminator="kind")]


class TextSegment(BaseModel):
    """Plain text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def __str__(self) -> str:
        return self.text


class MentionSegment(BaseModel):
    """A mention of a user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["mention"] = "mention"
    user: User

    def __str__(self) -> str:
        return f"@{self.user.display_name}"


Segment = Annotated[Union[TextSegment, MentionSegment], Field(discriminator="kind")]


class MessageContents(RootModel[list[Segment]]):
    """Ordered sequence of text and mention segments.

    The order is rendering order. Append methods return the same object so
    calls can be chained:

        MessageContents().text("hi ").mention(user).text("!")
    """

    root: list[Segment] = Field(default_factory=list)

    def text(self, value: Any) -> "MessageContents":
        """Append a text segment."""
        self.root.append(TextSegment(text=str(value)))
        return self

    def mention(self, user: User) -> "MessageContents":
        """Append a mention segment."""
        self.root.append(MentionSegment(user=user))
        return self

    def extend(self, segments: "MessageContents | list[Segment]") -> "MessageContents":
        """Append every segment of another sequence."""
        self.root.extend(segments)
        return self

    @property
    def plain_text(self) -> str:
        """Concatenation of the text segments only."""
        return "".join(s.text for s in self.root if isinstance(s, TextSegment))

    def mentions(self, user_id: str) -> bool:
        """Check whether a user with the given id is mentioned."""
        return any(
            isinstance(s, MentionSegment) and s.user.id == user_id for s in self.root
        )

    def __iter__(self) -> Iterator[Segment]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, index: int) -> Segment:
        return self.root[index]

    def __str__(self) -> str:
        return "".join(str(segment) for segment in self.root)


class Message(BaseModel):
    """A message decoded from a platform."""

    model_config = ConfigDict(frozen=True)

    id: str
    contents: MessageContents
    chat: Chat
    sender: User

    @property
    def adapter(self) -> Any:
        """The adapter that decoded this message."""
        return self.chat.adapter

    async def reply(self, contents: MessageContents) -> str:
        """Reply to this message over the adapter that received it.

        Raises:
            PlatformError: If the message is not bound to an adapter, or the
                adapter fails to send.
        """
        if self.adapter is None:
            raise PlatformError(f"message `{self!r}` is not bound to an adapter")
        return await self.adapter.reply_to_message(contents, self)

    def mentions_self(self) -> bool:
        """Check whether the receiving bot is mentioned in this message."""
        if self.adapter is None:
            return False
        return self.adapter.mentions_self(self.contents)

    def __str__(self) -> str:
        return f"[{self.chat.id}] {self.sender}: {str(self.contents)[:50]}"


class MessageEvent(BaseModel):
    """A message was received."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["message"] = "message"
    message: Message


class OtherEvent(BaseModel):
    """Any platform event the model does not represent (notices, requests, meta events)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["other"] = "other"
    description: str


Event = Annotated[Union[MessageEvent, OtherEvent], Field(discriminator="kind")]
