"""Unit tests for the in-process mock adapter."""

import asyncio

import pytest

from botmaid.platforms.adapters.mock import (
    DEFAULT_SENDER_ID,
    ActionKind,
    MockAdapter,
)
from botmaid.platforms.models import Group, MessageContents, MessageEvent, User


class TestMockAdapter:
    """Tests for MockAdapter."""

    def test_default_identity(self, mock_adapter: MockAdapter):
        """Test the default bot identity."""
        assert mock_adapter.self_user == User(id="mock", nickname="mock")
        assert mock_adapter.name == "mock"

    def test_custom_identity(self):
        """Test overriding the bot identity."""
        adapter = MockAdapter(User(id="bot", nickname="maid"))
        assert adapter.self_user.nickname == "maid"

    @pytest.mark.asyncio
    async def test_simple_text_is_delivered(self, mock_adapter: MockAdapter):
        """Test injecting a private text message."""
        mock_adapter.simple_text("hello")

        event = await asyncio.wait_for(mock_adapter.next_event(), timeout=1)

        assert isinstance(event, MessageEvent)
        message = event.message
        assert str(message.contents) == "hello"
        assert message.sender.id == DEFAULT_SENDER_ID
        assert message.chat.is_private
        assert message.adapter is mock_adapter

    @pytest.mark.asyncio
    async def test_drain_returns_each_action_once(self, mock_adapter: MockAdapter):
        """Test that draining twice yields the action once, then nothing."""
        mock_adapter.simple_text("ping")
        event = await mock_adapter.next_event()
        await event.message.reply(MessageContents().text("pong"))

        first = await mock_adapter.get_actions(timeout=0.01)
        second = await mock_adapter.get_actions(timeout=0.01)

        assert len(first) == 1
        assert first[0].kind == ActionKind.SEND_MESSAGE
        sent = first[0].send_msg()
        assert str(sent.contents) == "pong"
        assert sent.sender == mock_adapter.self_user
        assert sent.chat.id == DEFAULT_SENDER_ID
        assert second == []

    @pytest.mark.asyncio
    async def test_group_admin(self, mock_adapter: MockAdapter):
        """Test configured admin answers."""
        user, group = User(id="1"), Group(id="g")

        assert await mock_adapter.is_group_admin(user, group) is False

        mock_adapter.set_admin(user, group)
        assert await mock_adapter.is_group_admin(user, group) is True

        mock_adapter.set_admin(user, group, admin=False)
        assert await mock_adapter.is_group_admin(user, group) is False

    @pytest.mark.asyncio
    async def test_close_ends_run_and_stream(self, mock_adapter: MockAdapter):
        """Test that close stops the ingestion loop and the event stream."""
        run = asyncio.create_task(mock_adapter.run())
        await asyncio.sleep(0)

        await mock_adapter.close()

        await asyncio.wait_for(run, timeout=1)
        assert await mock_adapter.next_event() is None
