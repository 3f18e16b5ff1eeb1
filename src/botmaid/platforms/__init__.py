"""Multi-platform chat runtime for botmaid.

This module provides a platform adapter protocol and implementations for
Telegram, OneBot 11 gateways, the local terminal and an in-process test
double.

Architecture:
    Platform Adapters → Message Router → Message Handler

Key Components:
    - PlatformAdapter: Abstract protocol for platform implementations
    - MessageRouter: Drains every adapter's event queue into the handler
    - MessageHandler: Application logic; replies route back through
      the adapter that received the message
"""

from botmaid.platforms.errors import (
    APIError,
    DecodeError,
    EmptyResponseError,
    PlatformError,
    StreamClosedError,
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
    Segment,
    TextSegment,
    User,
)
from botmaid.platforms.protocol import PlatformAdapter
from botmaid.platforms.router import MessageHandler, MessageRouter

__all__ = [
    "APIError",
    "Chat",
    "DecodeError",
    "EmptyResponseError",
    "Event",
    "Group",
    "GroupChat",
    "MentionSegment",
    "Message",
    "MessageContents",
    "MessageEvent",
    "MessageHandler",
    "MessageRouter",
    "OtherEvent",
    "PlatformAdapter",
    "PlatformError",
    "PlatformType",
    "PrivateChat",
    "Segment",
    "StreamClosedError",
    "TextSegment",
    "TransportError",
    "User",
]
