"""Telegram bot platform adapter using long polling."""

import asyncio
import logging
from typing import Any, Optional

import httpx

from botmaid.platforms import utf16
from botmaid.platforms.errors import (
    APIError,
    DecodeError,
    EmptyResponseError,
    PlatformError,
    TransportError,
)
from botmaid.platforms.models import (
    Chat,
    Event,
    Group,
    GroupChat,
    MentionSegment,
    Message,
    MessageContents,
    MessageEvent,
    OtherEvent,
    PlatformType,
    PrivateChat,
    TextSegment,
    User,
)
from botmaid.platforms.protocol import PlatformAdapter

logger = logging.getLogger(__name__)

DEFAULT_API_HOST = "api.telegram.org"

# Entity kinds that become mention segments. Every other kind (bold, url,
# hashtag, ...) stays part of the surrounding text.
MENTION_BY_NAME = "mention"
MENTION_BY_ID = "text_mention"

ADMIN_STATUSES = frozenset({"creator", "administrator"})


def _full_name(raw_user: dict[str, Any]) -> str:
    first_name = raw_user.get("first_name") or ""
    last_name = raw_user.get("last_name")
    return f"{first_name} {last_name}" if last_name else first_name


def parse_entities(
    text: str,
    entities: list[dict[str, Any]],
    self_user: Optional[User] = None,
) -> MessageContents:
    """Split message text into text and mention segments.

    Entity offsets and lengths are measured in UTF-16 code units. Entities are
    walked in the order given; Telegram sends them sorted by offset.

    Args:
        text: The message text
        entities: Raw ``MessageEntity`` objects
        self_user: The bot's own identity. A mention-by-name whose username
            equals its nickname resolves to this user.

    Returns:
        Parsed message contents

    Raises:
        DecodeError: If an entity range is invalid or splits a surrogate pair
    """
    units = utf16.encode(text)
    contents = MessageContents()
    cursor = 0

    for entity in entities:
        kind = entity.get("type")
        if kind not in (MENTION_BY_NAME, MENTION_BY_ID):
            continue

        try:
            offset = int(entity["offset"])
            length = int(entity["length"])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"malformed entity `{entity}`") from e

        if offset < cursor:
            raise DecodeError(f"entity `{entity}` overlaps the previous one")

        if offset > cursor:
            contents.text(utf16.decode_slice(units, cursor, offset))

        end = offset + length
        if kind == MENTION_BY_NAME:
            # skip the leading "@"
            username = utf16.decode_slice(units, offset + 1, end)
            if self_user is not None and self_user.nickname == username:
                contents.mention(self_user)
            else:
                contents.mention(User(id=username))
        else:
            raw_user = entity.get("user")
            if not isinstance(raw_user, dict) or "id" not in raw_user:
                raise DecodeError(f"text_mention entity `{entity}` has no user")
            # validate the span even though the user comes from the entity
            utf16.decode_slice(units, offset, end)
            contents.mention(
                User(id=str(raw_user["id"]), nickname=_full_name(raw_user) or None)
            )

        cursor = end

    total = utf16.unit_count(units)
    if cursor < total:
        contents.text(utf16.decode_slice(units, cursor, total))

    return contents


def build_entities(contents: MessageContents) -> tuple[str, list[dict[str, Any]]]:
    """Render contents to text plus mention entities.

    Each mention is rendered as ``@<nickname or id>`` and covered by an entity
    whose offset and length are counted in UTF-16 code units.

    Returns:
        Tuple of (text, entities)
    """
    parts: list[str] = []
    entities: list[dict[str, Any]] = []
    counter = 0

    for segment in contents:
        if isinstance(segment, TextSegment):
            parts.append(segment.text)
            counter += utf16.length(segment.text)
        elif isinstance(segment, MentionSegment):
            user = segment.user
            if user.id.lstrip("-").isdigit():
                rendered = f"@{user.display_name}"
                span = utf16.length(rendered)
                entities.append(
                    {
                        "type": MENTION_BY_ID,
                        "offset": counter,
                        "length": span,
                        "user": {
                            "id": int(user.id),
                            "is_bot": False,
                            "first_name": user.display_name,
                        },
                    }
                )
            else:
                # a username-only identity can only be mentioned by name
                rendered = f"@{user.id}"
                span = utf16.length(rendered)
                entities.append({"type": MENTION_BY_NAME, "offset": counter, "length": span})
            parts.append(rendered)
            counter += span

    return "".join(parts), entities


def _parse_id(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise PlatformError(f"invalid Telegram {what} `{value}`") from e


class TelegramAdapter(PlatformAdapter):
    """Telegram bot adapter using long polling.

    Talks to the Bot API directly over HTTPS. No webhook setup required.

    Polling runs in two phases. A short bootstrap call with ``offset=-1``
    discovers the latest pending update id and throws the backlog away. After
    that the adapter repeatedly long-polls for updates after the acknowledged
    offset, spawning one decode task per update.

    Configuration:
        - bot_token: Telegram bot token from @BotFather
        - api_host: Bot API host (default: api.telegram.org)
        - poll_timeout: Long poll timeout in seconds (default: 60)
        - bootstrap_timeout: Timeout of the backlog bootstrap call (default: 1)
        - retry_delay: Fixed delay before retrying after a failure (default: 3)
    """

    def __init__(
        self,
        bot_token: str,
        api_host: str = DEFAULT_API_HOST,
        poll_timeout: int = 60,
        bootstrap_timeout: int = 1,
        retry_delay: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Telegram adapter.

        Args:
            bot_token: Bot token from @BotFather
            api_host: Bot API host name
            poll_timeout: Long poll timeout in seconds
            bootstrap_timeout: Timeout of the bootstrap call in seconds
            retry_delay: Seconds to wait before retrying a failed poll
            client: HTTP client to use (one is created when omitted)
        """
        super().__init__()

        self._api_url = f"https://{api_host}/bot{bot_token}/"
        self._poll_timeout = poll_timeout
        self._bootstrap_timeout = bootstrap_timeout
        self._retry_delay = retry_delay
        self._client = client or httpx.AsyncClient()

        self._self_user: Optional[User] = None
        self._offset = 0

    @property
    def platform_type(self) -> PlatformType:
        """The type of platform this adapter handles."""
        return PlatformType.TELEGRAM

    @property
    def self_user(self) -> User:
        if self._self_user is None:
            raise PlatformError("Telegram adapter not started: bot identity unknown")
        return self._self_user

    @property
    def offset(self) -> int:
        """Last acknowledged update id."""
        return self._offset

    async def start(self) -> None:
        """Discover the bot identity with ``getMe``."""
        me = await self.call_api("getMe")
        self._self_user = User(id=str(me["id"]), nickname=me.get("username"))
        logger.info(f"Telegram bot identity: {self._self_user.id} (@{self._self_user.nickname})")

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Bootstrap the offset, then long-poll forever."""
        logger.info("Starting Telegram polling loop")

        while True:
            try:
                await self.bootstrap()
                break
            except PlatformError as e:
                logger.error(f"Telegram bootstrap failed: {e}")
                await asyncio.sleep(self._retry_delay)

        while True:
            try:
                await self.poll_once()
            except PlatformError as e:
                logger.error(f"Telegram getUpdates failed at offset {self._offset}: {e}")
                await asyncio.sleep(self._retry_delay)

    async def bootstrap(self) -> int:
        """Discover the highest pending update id.

        Every update returned here is discarded, not dispatched.

        Returns:
            The new offset
        """
        updates = await self.call_api(
            "getUpdates",
            {"offset": -1, "timeout": self._bootstrap_timeout},
            timeout=self._bootstrap_timeout + 10,
        )
        for _, update_id in self._valid_updates(updates):
            if update_id > self._offset:
                self._offset = update_id

        logger.info(
            f"Telegram backlog skipped ({len(updates)} update(s)), offset={self._offset}"
        )
        return self._offset

    async def poll_once(self) -> int:
        """Fetch one batch of updates after the current offset.

        Spawns one decode task per update.

        Returns:
            Number of updates received
        """
        updates = await self.call_api(
            "getUpdates",
            {"offset": self._offset + 1, "timeout": self._poll_timeout},
            timeout=self._poll_timeout + 10,
        )
        for update, update_id in self._valid_updates(updates):
            if update_id > self._offset:
                self._offset = update_id
            self.spawn(self._handle_update(update), name=f"telegram-update-{update_id}")

        return len(updates)

    @staticmethod
    def _valid_updates(updates: Any) -> list[tuple[dict[str, Any], int]]:
        """Pair each well-formed update with its id; malformed ones are logged and skipped.

        Raises:
            DecodeError: If the batch itself is not a list
        """
        if not isinstance(updates, list):
            raise DecodeError(f"getUpdates result is not a list: {updates!r}")

        valid = []
        for update in updates:
            update_id = update.get("update_id") if isinstance(update, dict) else None
            if isinstance(update_id, int) and not isinstance(update_id, bool):
                valid.append((update, update_id))
            else:
                logger.error(f"Skipping malformed Telegram update: {update!r}")
        return valid

    async def _handle_update(self, update: dict[str, Any]) -> None:
        try:
            event = self.decode_update(update)
        except DecodeError as e:
            logger.error(f"Dropping Telegram update {update.get('update_id')}: {e}")
            return

        logger.debug(f"Telegram event: {event}")
        await self.push_event(event)

    def decode_update(self, update: dict[str, Any]) -> Event:
        """Translate a raw update into an event.

        Raises:
            DecodeError: If the update cannot be translated
        """
        message = update.get("message")
        if not isinstance(message, dict) or message.get("text") is None:
            kinds = [key for key in update if key != "update_id"]
            return OtherEvent(description=f"telegram update {update.get('update_id')}: {kinds}")

        try:
            message_id = str(message["message_id"])
        except KeyError as e:
            raise DecodeError(f"message without message_id: {message}") from e

        contents = parse_entities(
            message["text"], message.get("entities") or [], self._self_user
        )

        raw_chat = message.get("chat")
        chat: Chat
        if isinstance(raw_chat, dict):
            if raw_chat.get("type") == "private":
                chat = PrivateChat(user=User(id=str(raw_chat.get("id"))), adapter=self)
            else:
                chat = GroupChat(group=Group(id=str(raw_chat.get("id"))), adapter=self)
        else:
            chat = PrivateChat(user=User(id=""), adapter=self)

        raw_from = message.get("from")
        if isinstance(raw_from, dict):
            sender = User(id=str(raw_from.get("id")), nickname=_full_name(raw_from) or None)
        else:
            sender = User(id="")

        return MessageEvent(
            message=Message(id=message_id, contents=contents, chat=chat, sender=sender)
        )

    # ------------------------------------------------------------------
    # Outbound operations
    # ------------------------------------------------------------------

    async def _send_message(
        self,
        contents: MessageContents,
        chat: Chat,
        reply_to: Optional[Message],
    ) -> str:
        text, entities = build_entities(contents)
        req: dict[str, Any] = {
            "chat_id": _parse_id(chat.id, "chat id"),
            "text": text,
            "entities": entities,
        }
        if reply_to is not None:
            req["reply_parameters"] = {"message_id": _parse_id(reply_to.id, "message id")}

        sent = await self.call_api("sendMessage", req)
        return str(sent["message_id"])

    async def is_group_admin(self, user: User, group: Group) -> bool:
        member = await self.call_api(
            "getChatMember",
            {
                "chat_id": _parse_id(group.id, "chat id"),
                "user_id": _parse_id(user.id, "user id"),
            },
        )
        return member.get("status") in ADMIN_STATUSES

    async def call_api(
        self,
        api: str,
        req: Optional[dict[str, Any]] = None,
        timeout: float = 30.0,
    ) -> Any:
        """Call a Bot API method and unwrap its response envelope.

        Args:
            api: Method name, e.g. ``sendMessage``
            req: JSON request body (GET without body when omitted)
            timeout: HTTP timeout in seconds

        Returns:
            The envelope's ``result``

        Raises:
            TransportError: If the request fails or the body is not JSON
            APIError: If Telegram reports a failure
            EmptyResponseError: If the envelope carries no result
        """
        url = self._api_url + api
        try:
            if req is None:
                resp = await self._client.get(url, timeout=timeout)
            else:
                resp = await self._client.post(url, json=req, timeout=timeout)
            body = resp.json()
        except httpx.HTTPError as e:
            raise TransportError(f"failed to call Telegram API `{api}`: {e!r}") from e
        except ValueError as e:
            raise TransportError(
                f"Telegram API `{api}` returned non-JSON body (HTTP {resp.status_code})"
            ) from e

        if not isinstance(body, dict):
            raise TransportError(f"Telegram API `{api}` returned unexpected body: {body!r}")

        if body.get("result") is not None:
            return body["result"]
        if not body.get("ok", False):
            raise APIError(api, body.get("error_code"), body.get("description"))
        raise EmptyResponseError(api)
