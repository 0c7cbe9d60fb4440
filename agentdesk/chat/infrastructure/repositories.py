"""
Chat Infrastructure Repositories
=================================

Conversation memory stores. Each conversation keeps its most recent
messages up to a cap and expires once it has been idle for the retention
window.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentdesk.chat.application.services import IChatMemoryRepository
from agentdesk.chat.domain import ChatMessage
from agentdesk.chat.infrastructure.models import ChatMessageModel
from agentdesk.config import settings
from agentdesk.core import PersistenceDegradedException


class SQLAlchemyChatMemoryRepository(IChatMemoryRepository):
    """SQLAlchemy implementation of conversation memory."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        max_messages: Optional[int] = None,
        ttl_seconds: Optional[int] = None
    ):
        self._session_maker = session_maker
        self._max_messages = max_messages or settings.chat_memory_limit
        self._ttl = timedelta(seconds=ttl_seconds or settings.chat_memory_ttl_seconds)

    async def append_message(self, session_id: str, message: ChatMessage) -> None:
        """
        Append a message and trim the conversation to the cap.

        Raises:
            PersistenceDegradedException: If the write fails
        """
        try:
            async with self._session_maker() as session, session.begin():
                await self._purge_if_expired(session, session_id)
                session.add(ChatMessageModel(
                    session_id=session_id,
                    role=message.role.value,
                    content=message.content,
                    created_at=datetime.now(timezone.utc)
                ))
                await session.flush()
                await self._trim(session, session_id)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceDegradedException(f"Failed to append message: {e}") from e

    async def get_conversation(self, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """
        Get the most recent messages, oldest first.

        Raises:
            PersistenceDegradedException: If the read fails
        """
        limit = min(limit or self._max_messages, self._max_messages)
        stmt = (
            select(ChatMessageModel)
            .where(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.id.desc())
            .limit(limit)
        )
        try:
            async with self._session_maker() as session, session.begin():
                if await self._purge_if_expired(session, session_id):
                    return []
                result = await session.execute(stmt)
                models = list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceDegradedException(f"Failed to load conversation: {e}") from e

        models.reverse()
        return [ChatMessage.from_dict({"role": m.role, "content": m.content}) for m in models]

    async def clear_conversation(self, session_id: str) -> None:
        try:
            async with self._session_maker() as session, session.begin():
                await session.execute(
                    delete(ChatMessageModel).where(ChatMessageModel.session_id == session_id)
                )
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceDegradedException(f"Failed to clear conversation: {e}") from e

    async def _purge_if_expired(self, session: AsyncSession, session_id: str) -> bool:
        """Delete the conversation when its newest entry is past the retention window."""
        result = await session.execute(
            select(func.max(ChatMessageModel.created_at))
            .where(ChatMessageModel.session_id == session_id)
        )
        last_activity = result.scalar_one_or_none()
        if last_activity is None:
            return False

        if last_activity.tzinfo is None:
            last_activity = last_activity.replace(tzinfo=timezone.utc)
        if datetime.now(timezone.utc) - last_activity < self._ttl:
            return False

        await session.execute(
            delete(ChatMessageModel).where(ChatMessageModel.session_id == session_id)
        )
        return True

    async def _trim(self, session: AsyncSession, session_id: str) -> None:
        result = await session.execute(
            select(ChatMessageModel.id)
            .where(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.id.desc())
            .offset(self._max_messages)
        )
        stale_ids = list(result.scalars().all())
        if stale_ids:
            await session.execute(
                delete(ChatMessageModel).where(ChatMessageModel.id.in_(stale_ids))
            )


@dataclass
class _Conversation:
    messages: List[ChatMessage] = field(default_factory=list)
    expires_at: float = 0.0


class InMemoryChatMemoryRepository(IChatMemoryRepository):
    """Process-local conversation memory for development and tests."""

    def __init__(
        self,
        max_messages: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._max_messages = max_messages or settings.chat_memory_limit
        self._ttl = ttl_seconds or settings.chat_memory_ttl_seconds
        self._clock = clock
        self._conversations: Dict[str, _Conversation] = {}
        self._lock = asyncio.Lock()

    async def append_message(self, session_id: str, message: ChatMessage) -> None:
        async with self._lock:
            conversation = self._live(session_id) or _Conversation()
            conversation.messages.append(message)
            del conversation.messages[:-self._max_messages]
            conversation.expires_at = self._clock() + self._ttl
            self._conversations[session_id] = conversation

    async def get_conversation(self, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        conversation = self._live(session_id)
        if conversation is None:
            return []
        limit = min(limit or self._max_messages, self._max_messages)
        return list(conversation.messages[-limit:])

    async def clear_conversation(self, session_id: str) -> None:
        async with self._lock:
            self._conversations.pop(session_id, None)

    def _live(self, session_id: str) -> Optional[_Conversation]:
        conversation = self._conversations.get(session_id)
        if conversation is None:
            return None
        if conversation.expires_at <= self._clock():
            self._conversations.pop(session_id, None)
            return None
        return conversation
