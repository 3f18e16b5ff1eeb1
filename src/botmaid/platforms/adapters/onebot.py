"""OneBot 11 platform adapter using a WebSocket event stream and HTTP RPC."""

import asyncio
import json
import logging
import re
from enum import Enum
from typing import Any, Callable, Literal, Optional
from urllib.parse import urlencode

import httpx
import websockets

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

WireSchema = Literal["segments", "raw"]
WIRE_SCHEMAS: tuple[str, ...] = ("segments", "raw")

ADMIN_ROLES = frozenset({"owner", "admin"})

CQ_CODE_PATTERN = re.compile(r"\[CQ:([a-zA-Z0-9_.\-]+)((?:,[^\]]*)?)\]")


class ConnectionState(str, Enum):
    """State of the event stream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class RespStatus(str, Enum):
    """Status field of the RPC response envelope."""

    OK = "ok"
    ASYNC = "async"
    FAILED = "failed"


# =============================================================================
# CQ code helpers (string message format)
# =============================================================================


def cq_escape(text: str, in_param: bool = False) -> str:
    """Escape text for the CQ-code string format."""
    text = text.replace("&", "&amp;").replace("[", "&#91;").replace("]", "&#93;")
    if in_param:
        text = text.replace(",", "&#44;")
    return text


def cq_unescape(text: str) -> str:
    """Reverse :func:`cq_escape`."""
    return (
        text.replace("&#44;", ",")
        .replace("&#91;", "[")
        .replace("&#93;", "]")
        .replace("&amp;", "&")
    )


def _cq_params(raw: str) -> dict[str, str]:
    params = {}
    for pair in raw.split(","):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[key] = cq_unescape(value)
    return params


# =============================================================================
# Inbound translation
# =============================================================================


def parse_segments(segments: list[Any], self_user: Optional[User] = None) -> MessageContents:
    """Translate a typed segment list into message contents.

    ``text`` segments become text, ``at`` segments become mentions. Every
    other segment kind (face, image, reply, ...) is ignored.

    Raises:
        DecodeError: If the list or a known segment is malformed
    """
    if not isinstance(segments, list):
        raise DecodeError(f"segment schema expects a list, got `{segments!r}`")

    contents = MessageContents()
    for segment in segments:
        if not isinstance(segment, dict):
            raise DecodeError(f"malformed segment `{segment!r}`")
        kind = segment.get("type")
        data = segment.get("data") or {}
        if kind == "text":
            contents.text(data.get("text", ""))
        elif kind == "at":
            if "qq" not in data:
                raise DecodeError(f"at segment without qq: `{segment!r}`")
            contents.mention(_resolve_user(str(data["qq"]), self_user))

    return contents


def parse_cq_string(raw: str, self_user: Optional[User] = None) -> MessageContents:
    """Translate a CQ-code string into message contents.

    Plain text is unescaped, ``[CQ:at,qq=N]`` becomes a mention, other CQ
    codes are ignored.

    Raises:
        DecodeError: If the message is not a string
    """
    if not isinstance(raw, str):
        raise DecodeError(f"raw schema expects a string, got `{raw!r}`")

    contents = MessageContents()
    cursor = 0
    for match in CQ_CODE_PATTERN.finditer(raw):
        if match.start() > cursor:
            contents.text(cq_unescape(raw[cursor : match.start()]))
        if match.group(1) == "at":
            qq = _cq_params(match.group(2)).get("qq")
            if qq:
                contents.mention(_resolve_user(qq, self_user))
        cursor = match.end()

    if cursor < len(raw):
        contents.text(cq_unescape(raw[cursor:]))

    return contents


def _resolve_user(user_id: str, self_user: Optional[User]) -> User:
    if self_user is not None and self_user.id == user_id:
        return self_user
    return User(id=user_id)


# =============================================================================
# Outbound translation
# =============================================================================


def build_segments(
    contents: MessageContents,
    private: bool,
    reply_to_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Translate contents into a typed segment list.

    Mentions become ``at`` segments in groups and the plain nickname in
    private chats, each followed by a single space.
    """
    message: list[dict[str, Any]] = []
    if reply_to_id is not None:
        message.append({"type": "reply", "data": {"id": reply_to_id}})

    for segment in contents:
        if isinstance(segment, TextSegment):
            message.append({"type": "text", "data": {"text": segment.text}})
        elif isinstance(segment, MentionSegment):
            if private:
                message.append({"type": "text", "data": {"text": segment.user.display_name}})
            else:
                message.append({"type": "at", "data": {"qq": segment.user.id}})
            message.append({"type": "text", "data": {"text": " "}})

    return message


def build_cq_string(
    contents: MessageContents,
    private: bool,
    reply_to_id: Optional[str] = None,
) -> str:
    """Translate contents into a CQ-code string (same layout as :func:`build_segments`)."""
    parts: list[str] = []
    if reply_to_id is not None:
        parts.append(f"[CQ:reply,id={cq_escape(reply_to_id, in_param=True)}]")

    for segment in contents:
        if isinstance(segment, TextSegment):
            parts.append(cq_escape(segment.text))
        elif isinstance(segment, MentionSegment):
            if private:
                parts.append(cq_escape(segment.user.display_name))
            else:
                parts.append(f"[CQ:at,qq={cq_escape(segment.user.id, in_param=True)}]")
            parts.append(" ")

    return "".join(parts)


def _parse_id(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise PlatformError(f"invalid OneBot {what} `{value}`") from e


# =============================================================================
# Adapter
# =============================================================================


class OneBotAdapter(PlatformAdapter):
    """OneBot 11 adapter.

    Events arrive over a WebSocket (``ws://host:ws_port/event``); actions are
    HTTP RPC calls (``http://host:http_port/<action>``).

    Two inbound wire schemas exist and are never mixed: ``segments`` (the
    ``message`` field is a typed segment list) and ``raw`` (the ``message``
    field is one CQ-code string). The schema is chosen at construction.

    The event stream reconnects forever with a fixed delay:
    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ...

    Configuration:
        - host: Host running the OneBot implementation
        - ws_port / http_port: Event stream and RPC ports
        - schema: Inbound wire schema ("segments" or "raw")
        - access_token: Optional access token
        - reconnect_delay: Seconds between reconnect attempts (default: 3)
    """

    def __init__(
        self,
        host: str,
        ws_port: int,
        http_port: int,
        schema: WireSchema,
        event_path: str = "/event",
        access_token: Optional[str] = None,
        reconnect_delay: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
        connect: Optional[Callable[[str], Any]] = None,
    ):
        """Initialize OneBot adapter.

        Args:
            host: Host name or address
            ws_port: WebSocket event port
            http_port: HTTP API port
            schema: Inbound wire schema, "segments" or "raw"
            event_path: WebSocket path of the event stream
            access_token: Access token sent with every request
            reconnect_delay: Seconds to wait before reconnecting
            client: HTTP client to use (one is created when omitted)
            connect: WebSocket connect factory (default: websockets.connect)

        Raises:
            ValueError: If schema is not a known wire schema
        """
        if schema not in WIRE_SCHEMAS:
            raise ValueError(f"unknown OneBot wire schema `{schema}`, expected one of {WIRE_SCHEMAS}")

        super().__init__()

        self._schema: WireSchema = schema
        self._api_url = f"http://{host}:{http_port}/"
        self._event_url = f"ws://{host}:{ws_port}{event_path}"
        if access_token:
            self._event_url += "?" + urlencode({"access_token": access_token})
        self._reconnect_delay = reconnect_delay

        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        self._client = client or httpx.AsyncClient(headers=headers)
        self._connect = connect or websockets.connect

        self._self_user: Optional[User] = None
        self._state = ConnectionState.DISCONNECTED
        self._connect_attempts = 0

    @property
    def platform_type(self) -> PlatformType:
        """The type of platform this adapter handles."""
        return PlatformType.ONEBOT

    @property
    def self_user(self) -> User:
        if self._self_user is None:
            raise PlatformError("OneBot adapter not started: bot identity unknown")
        return self._self_user

    @property
    def schema(self) -> WireSchema:
        return self._schema

    @property
    def state(self) -> ConnectionState:
        """Current event stream connection state."""
        return self._state

    @property
    def connect_attempts(self) -> int:
        return self._connect_attempts

    async def start(self) -> None:
        """Discover the bot identity with ``get_login_info``."""
        info = await self.call_api("get_login_info")
        self._self_user = User(id=str(info["user_id"]), nickname=info.get("nickname"))
        logger.info(f"OneBot identity: {self._self_user.id} ({self._self_user.nickname})")

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Consume the event stream, reconnecting forever."""
        logger.info(f"Starting OneBot event stream ({self._schema} schema)")

        while True:
            self._state = ConnectionState.CONNECTING
            self._connect_attempts += 1
            try:
                async with self._connect(self._event_url) as websocket:
                    self._state = ConnectionState.CONNECTED
                    logger.info("OneBot event stream connected")
                    async for frame in websocket:
                        self.spawn(self._handle_frame(frame), name="onebot-frame")
                logger.warning("OneBot event stream closed; reconnecting")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"OneBot event stream error; reconnecting: {e!r}")
            finally:
                self._state = ConnectionState.DISCONNECTED

            await asyncio.sleep(self._reconnect_delay)

    async def _handle_frame(self, frame: Any) -> None:
        try:
            event = self.decode_frame(frame)
        except DecodeError as e:
            logger.error(f"Dropping OneBot frame: {e}")
            return

        logger.debug(f"OneBot event: {event}")
        await self.push_event(event)

    def decode_frame(self, frame: Any) -> Event:
        """Translate one WebSocket frame into an event.

        Raises:
            DecodeError: If the frame is not a JSON text frame or a message
                event is malformed
        """
        if not isinstance(frame, str):
            raise DecodeError(f"`{frame!r}` is not a text frame")
        try:
            payload = json.loads(frame)
        except json.JSONDecodeError as e:
            raise DecodeError(f"failed to decode json from `{frame}`: {e}") from e
        if not isinstance(payload, dict):
            raise DecodeError(f"event `{frame}` is not a JSON object")

        post_type = payload.get("post_type")
        if post_type != "message":
            detail = payload.get(f"{post_type}_type") if post_type else None
            return OtherEvent(description=f"onebot {post_type}: {detail}")

        try:
            message_id = str(payload["message_id"])
            user_id = str(payload["user_id"])
            message_type = payload["message_type"]
            raw_message = payload["message"]
        except KeyError as e:
            raise DecodeError(f"message event missing {e}: `{frame}`") from e

        if self._schema == "segments":
            contents = parse_segments(raw_message, self._self_user)
        else:
            contents = parse_cq_string(raw_message, self._self_user)

        nickname = (payload.get("sender") or {}).get("nickname")
        sender = User(id=user_id, nickname=nickname)

        chat: Chat
        if message_type == "private":
            chat = PrivateChat(user=sender, adapter=self)
        elif message_type == "group":
            group_id = payload.get("group_id")
            if group_id is None:
                raise DecodeError(f"group message without group_id: `{frame}`")
            chat = GroupChat(group=Group(id=str(group_id)), adapter=self)
        else:
            raise DecodeError(f"unknown message_type `{message_type}`")

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
        reply_to_id = reply_to.id if reply_to is not None else None
        if self._schema == "segments":
            message: Any = build_segments(contents, chat.is_private, reply_to_id)
        else:
            message = build_cq_string(contents, chat.is_private, reply_to_id)

        if chat.is_private:
            req = {
                "message_type": "private",
                "user_id": _parse_id(chat.id, "user id"),
                "message": message,
            }
        else:
            req = {
                "message_type": "group",
                "group_id": _parse_id(chat.id, "group id"),
                "message": message,
            }

        data = await self.call_api("send_msg", req)
        return str(data["message_id"])

    async def is_group_admin(self, user: User, group: Group) -> bool:
        data = await self.call_api(
            "get_group_member_info",
            {
                "group_id": _parse_id(group.id, "group id"),
                "user_id": _parse_id(user.id, "user id"),
            },
        )
        return data.get("role") in ADMIN_ROLES

    async def call_api(self, api: str, req: Optional[dict[str, Any]] = None) -> Any:
        """Call an action and unwrap its response envelope.

        Returns:
            The envelope's ``data``

        Raises:
            TransportError: If the request fails or the body is not JSON
            APIError: If the envelope status is ``failed``
            EmptyResponseError: If the envelope carries no data otherwise
        """
        url = self._api_url + api
        try:
            if req is None:
                resp = await self._client.get(url)
            else:
                resp = await self._client.post(url, json=req)
            body = resp.json()
        except httpx.HTTPError as e:
            raise TransportError(f"failed to call OneBot API `{api}`: {e!r}") from e
        except ValueError as e:
            raise TransportError(
                f"OneBot API `{api}` returned non-JSON body (HTTP {resp.status_code})"
            ) from e

        if not isinstance(body, dict):
            raise TransportError(f"OneBot API `{api}` returned unexpected body: {body!r}")

        if body.get("data") is not None:
            return body["data"]
        if body.get("status") == RespStatus.FAILED.value:
            raise APIError(api, body.get("retcode"), body.get("message") or body.get("wording"))
        raise EmptyResponseError(api)
