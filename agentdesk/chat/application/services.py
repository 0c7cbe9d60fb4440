"""
Chat Application Services
==========================

Collaborator interfaces and the request orchestrator.

The orchestrator sequences one chat turn:
resolve identity, load history, classify, generate, then either file a
ticket or refine the tone, persist the turn and respond.
"""

import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Mapping, Optional, Tuple

from agentdesk.chat.domain import ChatMessage, ChatReply, RetrievalResult
from agentdesk.config import IntentCategory
from agentdesk.core import (
    ClassificationFailedException,
    ConfigurationException,
    GenerationFailedException,
    RepositoryException,
    RequestProcessingFailedException,
)
from agentdesk.shared.infrastructure.logging import get_context_logger, log_latency
from agentdesk.tickets.domain import Ticket

if TYPE_CHECKING:
    from agentdesk.chat.application.agents import IntentClassifier, ToneRefiner
    from agentdesk.chat.application.tickets import TicketExtractor


# ========== Repository Interfaces ==========

class IChatMemoryRepository(ABC):
    """Interface for per-user conversation storage."""

    @abstractmethod
    async def append_message(self, session_id: str, message: ChatMessage) -> None:
        """Append a message to the end of the conversation."""

    @abstractmethod
    async def get_conversation(self, session_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        """Get the most recent messages, oldest first."""

    @abstractmethod
    async def clear_conversation(self, session_id: str) -> None:
        """Delete the conversation."""


# ========== Service Interfaces ==========

class IRetrievalService(ABC):
    """Interface for knowledge retrieval."""

    @abstractmethod
    async def retrieve(self, query: str) -> RetrievalResult:
        """Return ranked context snippets for a query."""


class ResponseGenerator(ABC):
    """Category-specific reply strategy."""

    @abstractmethod
    async def generate(self, history: List[ChatMessage]) -> str:
        """Produce a raw reply for the conversation so far."""


def format_ticket_confirmation(ticket: Ticket) -> str:
    return f'Ticket created successfully with subject: "{ticket.subject}" at {ticket.created_time_label}'


# ========== Application Services ==========

class ChatOrchestrator:
    """
    Coordinates classification, generation, ticket filing, tone refinement
    and conversation memory for each chat message.

    Only classification and generation failures abort a request. History
    load, tone refinement, ticket persistence and the final save all degrade
    to a best-effort result.
    """

    def __init__(
        self,
        classifier: "IntentClassifier",
        generators: Mapping[IntentCategory, ResponseGenerator],
        ticket_extractor: "TicketExtractor",
        tone_refiner: "ToneRefiner",
        memory_repository: IChatMemoryRepository,
        history_limit: Optional[int] = None
    ):
        missing = [category.value for category in IntentCategory if category not in generators]
        if missing:
            raise ConfigurationException(
                "No response generator registered for categories",
                {"missing": missing}
            )

        self._classifier = classifier
        self._generators = dict(generators)
        self._ticket_extractor = ticket_extractor
        self._tone_refiner = tone_refiner
        self._memory = memory_repository
        self._history_limit = history_limit

    async def handle(self, user_id: Optional[str], message: ChatMessage) -> ChatReply:
        """
        Process one chat message.

        Args:
            user_id: Conversation owner, or None/blank to start a new one
            message: The user's message

        Returns:
            ChatReply carrying the resolved user ID, the reply text and the
            ticket when one was filed

        Raises:
            RequestProcessingFailedException: If classification or generation fails
        """
        resolved_id, is_new = self._resolve_identity(user_id)
        logger = get_context_logger(__name__, user_id=resolved_id)

        with log_latency(logger, "chat_request", new_conversation=is_new):
            history = [] if is_new else await self._load_history(resolved_id, logger)

            try:
                category = await self._classifier.classify(message)
                logger.info("Message classified", extra={"category": category.value})
                draft = await self._generators[category].generate([*history, message])
            except (ClassificationFailedException, GenerationFailedException) as e:
                logger.error(
                    "Chat request failed",
                    extra={"error_type": type(e).__name__, "error_message": e.message}
                )
                raise RequestProcessingFailedException(
                    details={"stage": "classify" if isinstance(e, ClassificationFailedException) else "generate"}
                ) from e

            ticket = await self._ticket_extractor.try_extract_ticket(draft)
            if ticket is not None:
                reply = format_ticket_confirmation(ticket)
                logger.info("Ticket filed from conversation", extra={"ticket_id": ticket.id})
            else:
                reply = await self._tone_refiner.refine(message, draft)

            await self._persist_turn(resolved_id, message, ChatMessage.assistant(reply), logger)

        return ChatReply(user_id=resolved_id, reply=reply, ticket=ticket)

    async def get_history(self, user_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        return await self._memory.get_conversation(user_id, limit or self._history_limit)

    async def clear_history(self, user_id: str) -> None:
        await self._memory.clear_conversation(user_id)

    @staticmethod
    def _resolve_identity(user_id: Optional[str]) -> Tuple[str, bool]:
        if user_id and user_id.strip():
            return user_id, False
        return str(uuid.uuid4()), True

    async def _load_history(self, user_id: str, logger) -> List[ChatMessage]:
        try:
            return await self._memory.get_conversation(user_id, self._history_limit)
        except RepositoryException as e:
            logger.warning("History unavailable, continuing without it", extra={"error": e.message})
            return []

    async def _persist_turn(
        self,
        user_id: str,
        user_message: ChatMessage,
        assistant_message: ChatMessage,
        logger
    ) -> None:
        try:
            await self._memory.append_message(user_id, user_message)
            await self._memory.append_message(user_id, assistant_message)
        except RepositoryException as e:
            logger.warning("Conversation not saved", extra={"error": e.message})
