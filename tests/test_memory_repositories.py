"""Tests for the conversation memory stores."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from agentdesk.chat.domain import ChatMessage
from agentdesk.chat.infrastructure import InMemoryChatMemoryRepository, SQLAlchemyChatMemoryRepository
from agentdesk.chat.infrastructure.models import ChatMessageModel


def numbered(count: int):
    return [ChatMessage.user(f"message {i}") for i in range(count)]


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryChatMemoryRepository:
    @pytest.mark.asyncio
    async def test_returns_messages_in_insertion_order(self):
        repository = InMemoryChatMemoryRepository(max_messages=50, ttl_seconds=3600)
        messages = numbered(5)
        for message in messages:
            await repository.append_message("s1", message)

        assert await repository.get_conversation("s1") == messages

    @pytest.mark.asyncio
    async def test_trims_to_cap(self):
        repository = InMemoryChatMemoryRepository(max_messages=3, ttl_seconds=3600)
        messages = numbered(5)
        for message in messages:
            await repository.append_message("s1", message)

        assert await repository.get_conversation("s1") == messages[-3:]

    @pytest.mark.asyncio
    async def test_limit_returns_most_recent(self):
        repository = InMemoryChatMemoryRepository(max_messages=50, ttl_seconds=3600)
        messages = numbered(4)
        for message in messages:
            await repository.append_message("s1", message)

        assert await repository.get_conversation("s1", limit=2) == messages[-2:]

    @pytest.mark.asyncio
    async def test_conversation_expires_after_idle_window(self):
        clock = FakeClock()
        repository = InMemoryChatMemoryRepository(max_messages=50, ttl_seconds=60, clock=clock)
        await repository.append_message("s1", ChatMessage.user("hi"))

        clock.now += 59
        assert len(await repository.get_conversation("s1")) == 1

        clock.now += 2
        assert await repository.get_conversation("s1") == []

    @pytest.mark.asyncio
    async def test_append_extends_expiry(self):
        clock = FakeClock()
        repository = InMemoryChatMemoryRepository(max_messages=50, ttl_seconds=60, clock=clock)
        await repository.append_message("s1", ChatMessage.user("first"))
        clock.now += 50
        await repository.append_message("s1", ChatMessage.user("second"))
        clock.now += 50

        assert len(await repository.get_conversation("s1")) == 2

    @pytest.mark.asyncio
    async def test_conversations_are_isolated_and_clearable(self):
        repository = InMemoryChatMemoryRepository(max_messages=50, ttl_seconds=3600)
        await repository.append_message("a", ChatMessage.user("for a"))
        await repository.append_message("b", ChatMessage.user("for b"))

        await repository.clear_conversation("a")

        assert await repository.get_conversation("a") == []
        assert await repository.get_conversation("b") == [ChatMessage.user("for b")]


class TestSQLAlchemyChatMemoryRepository:
    @pytest.mark.asyncio
    async def test_returns_messages_in_insertion_order(self, session_maker):
        repository = SQLAlchemyChatMemoryRepository(session_maker, max_messages=50, ttl_seconds=3600)
        messages = [ChatMessage.user("question"), ChatMessage.assistant("answer"), ChatMessage.user("thanks")]
        for message in messages:
            await repository.append_message("s1", message)

        assert await repository.get_conversation("s1") == messages

    @pytest.mark.asyncio
    async def test_trims_to_cap(self, session_maker):
        repository = SQLAlchemyChatMemoryRepository(session_maker, max_messages=3, ttl_seconds=3600)
        messages = numbered(6)
        for message in messages:
            await repository.append_message("s1", message)

        assert await repository.get_conversation("s1") == messages[-3:]
        async with session_maker() as session:
            rows = (await session.execute(
                ChatMessageModel.__table__.select().where(ChatMessageModel.session_id == "s1")
            )).all()
        assert len(rows) == 3

    @pytest.mark.asyncio
    async def test_expired_conversation_is_dropped(self, session_maker):
        repository = SQLAlchemyChatMemoryRepository(session_maker, max_messages=50, ttl_seconds=3600)
        await repository.append_message("s1", ChatMessage.user("old"))

        async with session_maker() as session, session.begin():
            await session.execute(
                update(ChatMessageModel).values(created_at=datetime.now(timezone.utc) - timedelta(hours=2))
            )

        assert await repository.get_conversation("s1") == []

        await repository.append_message("s1", ChatMessage.user("new"))
        assert await repository.get_conversation("s1") == [ChatMessage.user("new")]

    @pytest.mark.asyncio
    async def test_clear_conversation(self, session_maker):
        repository = SQLAlchemyChatMemoryRepository(session_maker, max_messages=50, ttl_seconds=3600)
        await repository.append_message("s1", ChatMessage.user("hi"))
        await repository.append_message("s2", ChatMessage.user("hello"))

        await repository.clear_conversation("s1")

        assert await repository.get_conversation("s1") == []
        assert await repository.get_conversation("s2") == [ChatMessage.user("hello")]
