"""Unit tests for the message router and handlers."""

import asyncio
import sys
import types
from collections.abc import Sequence

import pytest

from botmaid.platforms.adapters.mock import MockAdapter
from botmaid.platforms.errors import TransportError
from botmaid.platforms.handlers import EchoHandler, load_handler
from botmaid.platforms.models import (
    Group,
    GroupChat,
    Message,
    MessageContents,
    MessageEvent,
    OtherEvent,
    User,
)
from botmaid.platforms.protocol import PlatformAdapter
from botmaid.platforms.router import MessageHandler, MessageRouter


class RecordingHandler(MessageHandler):
    """Handler that records messages and echoes them back."""

    def __init__(self, fail_on: str | None = None):
        self.received: list[Message] = []
        self.events: list = []
        self.job_adapters: list[PlatformAdapter] | None = None
        self.fail_on = fail_on

    async def handle_event(self, event):
        self.events.append(event)
        await super().handle_event(event)

    async def handle_message(self, message: Message) -> None:
        self.received.append(message)
        if str(message.contents) == self.fail_on:
            raise RuntimeError("handler exploded")
        await message.reply(MessageContents().text(f"echo: {message.contents}"))

    async def run_jobs(self, adapters: Sequence[PlatformAdapter]) -> None:
        self.job_adapters = list(adapters)


class FailingStartAdapter(MockAdapter):
    """Mock adapter whose identity discovery fails."""

    async def start(self) -> None:
        raise TransportError("gateway unreachable")


def _group_message(adapter: MockAdapter, contents: MessageContents) -> MessageEvent:
    sender = User(id="42", nickname="alice")
    return MessageEvent(
        message=Message(
            id="g1",
            contents=contents,
            chat=GroupChat(group=Group(id="777"), adapter=adapter),
            sender=sender,
        )
    )


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


class TestMessageRouter:
    """Tests for MessageRouter class."""

    def test_create_router(self, handler, mock_adapter):
        """Test creating a message router."""
        router = MessageRouter([mock_adapter], handler)

        assert router.adapters == (mock_adapter,)
        assert router.active_adapters == []
        assert router.is_running is False

    @pytest.mark.asyncio
    async def test_reply_goes_back_to_origin(self, handler):
        """Test that each reply is sent over the adapter that received the message."""
        first, second = MockAdapter(), MockAdapter(User(id="other", nickname="other"))
        router = MessageRouter([first, second], handler)
        await router.start()

        first.simple_text("one")
        second.simple_text("two")

        first_actions = await first.get_actions()
        second_actions = await second.get_actions()
        await router.stop()

        assert [str(a.send_msg().contents) for a in first_actions] == ["echo: one"]
        assert [str(a.send_msg().contents) for a in second_actions] == ["echo: two"]

    @pytest.mark.asyncio
    async def test_failed_start_is_skipped(self, handler):
        """Test that an adapter failing to start does not stop the others."""
        broken, healthy = FailingStartAdapter(), MockAdapter()
        router = MessageRouter([broken, healthy], handler)

        await router.start()
        healthy.simple_text("still here")
        actions = await healthy.get_actions()
        await router.stop()

        assert router.active_adapters == [healthy]
        assert len(actions) == 1

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self, mock_adapter):
        """Test that a failing handler does not stop later events."""
        handler = RecordingHandler(fail_on="bad")
        router = MessageRouter([mock_adapter], handler)
        await router.start()

        mock_adapter.simple_text("bad")
        mock_adapter.simple_text("good")
        actions = await mock_adapter.get_actions()
        await router.stop()

        assert sorted(str(m.contents) for m in handler.received) == ["bad", "good"]
        assert [str(a.send_msg().contents) for a in actions] == ["echo: good"]

    @pytest.mark.asyncio
    async def test_other_events_reach_handler(self, handler, mock_adapter):
        """Test that non-message events are delivered but not treated as messages."""
        router = MessageRouter([mock_adapter], handler)
        await router.start()

        mock_adapter.happen(OtherEvent(description="notice"))
        await mock_adapter.get_actions()
        await router.stop()

        assert handler.events == [OtherEvent(description="notice")]
        assert handler.received == []

    @pytest.mark.asyncio
    async def test_jobs_see_active_adapters(self, handler, mock_adapter):
        """Test that background jobs receive the started adapters."""
        router = MessageRouter([mock_adapter], handler)
        await router.start()
        await asyncio.sleep(0.01)
        await router.stop()

        assert handler.job_adapters == [mock_adapter]

    @pytest.mark.asyncio
    async def test_run_ends_when_streams_close(self, handler, mock_adapter):
        """Test that the router finishes once every adapter closed its stream."""
        router = MessageRouter([mock_adapter], handler)
        run = asyncio.create_task(router.run())
        await asyncio.sleep(0.01)

        await mock_adapter.close()

        await asyncio.wait_for(run, timeout=1)

    @pytest.mark.asyncio
    async def test_closed_stream_leaves_other_adapters_running(self, handler):
        """Test that one adapter ending its stream does not affect the others."""
        first, second = MockAdapter(), MockAdapter(User(id="other", nickname="other"))
        router = MessageRouter([first, second], handler)
        run = asyncio.create_task(router.run())
        await asyncio.sleep(0.01)

        await first.close()
        second.simple_text("after close")
        actions = await second.get_actions()

        assert [str(a.send_msg().contents) for a in actions] == ["echo: after close"]
        assert not run.done()

        await second.close()
        await asyncio.wait_for(run, timeout=1)

    @pytest.mark.asyncio
    async def test_double_start_and_stop(self, handler, mock_adapter):
        """Test that starting and stopping twice is harmless."""
        router = MessageRouter([mock_adapter], handler)

        await router.start()
        await router.start()
        assert router.is_running

        await router.stop()
        await router.stop()
        assert not router.is_running

    @pytest.mark.asyncio
    async def test_stop_cancels_handlers(self, mock_adapter):
        """Test that stop cancels handlers still in flight."""

        class SlowHandler(MessageHandler):
            async def handle_message(self, message: Message) -> None:
                await asyncio.sleep(10)

        router = MessageRouter([mock_adapter], SlowHandler())
        await router.start()
        mock_adapter.simple_text("slow")
        await asyncio.sleep(0.05)
        assert router.pending_handlers == 1

        await router.stop()

        assert router.pending_handlers == 0


class TestEchoHandler:
    """Tests for the built-in echo handler."""

    @pytest.mark.asyncio
    async def test_echoes_private_messages(self, mock_adapter):
        """Test that private messages are echoed."""
        router = MessageRouter([mock_adapter], EchoHandler())
        await router.start()

        mock_adapter.simple_text("hello")
        actions = await mock_adapter.get_actions()
        await router.stop()

        assert [str(a.send_msg().contents) for a in actions] == ["hello"]

    @pytest.mark.asyncio
    async def test_group_needs_mention(self, mock_adapter):
        """Test that group messages are only answered when the bot is mentioned."""
        router = MessageRouter([mock_adapter], EchoHandler())
        await router.start()

        mock_adapter.happen(_group_message(mock_adapter, MessageContents().text("chatter")))
        ignored = await mock_adapter.get_actions()

        mock_adapter.happen(
            _group_message(
                mock_adapter,
                MessageContents().mention(mock_adapter.self_user).text(" hi ").mention(User(id="42")),
            )
        )
        answered = await mock_adapter.get_actions()
        await router.stop()

        assert ignored == []
        assert len(answered) == 1
        sent = answered[0].send_msg()
        assert str(sent.contents) == " hi @42"
        assert not sent.contents.mentions(mock_adapter.self_user.id)
        assert sent.chat.id == "777"

    @pytest.mark.asyncio
    async def test_bare_mention_is_not_echoed(self, mock_adapter):
        """Test that a message holding only the bot mention gets no reply."""
        router = MessageRouter([mock_adapter], EchoHandler())
        await router.start()

        mock_adapter.happen(
            _group_message(mock_adapter, MessageContents().mention(mock_adapter.self_user).text(" "))
        )
        actions = await mock_adapter.get_actions()
        await router.stop()

        assert actions == []


class TestLoadHandler:
    """Tests for loading handlers by import path."""

    def test_load_class(self):
        """Test that a handler class is instantiated."""
        assert isinstance(load_handler("botmaid.platforms.handlers:EchoHandler"), EchoHandler)

    def test_load_instance(self, monkeypatch: pytest.MonkeyPatch):
        """Test that a handler instance is used as is."""
        instance = RecordingHandler()
        module = types.ModuleType("my_bot_handlers")
        module.handler = instance
        monkeypatch.setitem(sys.modules, "my_bot_handlers", module)

        assert load_handler("my_bot_handlers:handler") is instance

    @pytest.mark.parametrize(
        "path",
        [
            "no_colon",
            "botmaid.platforms.handlers:",
            "botmaid.platforms.handlers:Missing",
            "botmaid.platforms.handlers:load_handler",
        ],
    )
    def test_invalid_paths(self, path):
        """Test paths that do not name a handler."""
        with pytest.raises(ValueError):
            load_handler(path)

    def test_missing_module(self):
        """Test that an unknown module fails to import."""
        with pytest.raises(ImportError):
            load_handler("botmaid.no_such_module:Handler")
