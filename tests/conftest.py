"""Shared test fixtures and fakes."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from agentdesk.chat.application import (
    ChatOrchestrator,
    IntentClassifier,
    IRetrievalService,
    TicketExtractor,
    ToneRefiner,
    build_generator_registry,
)
from agentdesk.chat.domain import (
    ContextSnippet,
    CustomerServicePromptBuilder,
    IntentPromptBuilder,
    KnowledgePromptBuilder,
    RetrievalResult,
    TonePromptBuilder,
)
from agentdesk.chat.infrastructure import InMemoryChatMemoryRepository
from agentdesk.config import Settings
from agentdesk.core import PersistenceDegradedException, RetrievalDegradedException
from agentdesk.infrastructure.database import build_session_maker, create_tables
from agentdesk.infrastructure.llm import GenerationResult, MockGenerationClient
from agentdesk.tickets.application import TicketService
from agentdesk.tickets.infrastructure import InMemoryTicketRepository

Reply = Union[str, Exception, None]


@dataclass
class GenerationCall:
    model: str
    instructions: str
    messages: List[dict]


class ScriptedGenerationClient(MockGenerationClient):
    """
    Generation client with a scripted reply per agent.

    A reply of None echoes the last message back; an exception is raised.
    """

    def __init__(
        self,
        classification: Reply = '{"category": "knowledge"}',
        knowledge: Reply = "knowledge answer",
        customer_service: Reply = "customer service answer",
        tone: Reply = None
    ):
        super().__init__(embedding_dimension=8)
        self._replies: Dict[str, Reply] = {
            IntentPromptBuilder.get_system_prompt(): classification,
            KnowledgePromptBuilder.get_system_prompt(): knowledge,
            CustomerServicePromptBuilder.get_system_prompt(): customer_service,
            TonePromptBuilder.get_system_prompt(): tone,
        }
        self.calls: List[GenerationCall] = []

    def calls_for(self, instructions: str) -> List[GenerationCall]:
        return [call for call in self.calls if call.instructions == instructions]

    async def generate_response(
        self,
        model: str,
        instructions: str,
        messages: Sequence[dict]
    ) -> GenerationResult:
        self.calls.append(GenerationCall(model, instructions, list(messages)))
        reply = self._replies[instructions]
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            reply = messages[-1]["content"] if messages else ""
        return GenerationResult(response=reply, model=model)


class FakeRetriever(IRetrievalService):
    def __init__(self, snippets: Sequence[str] = (), error: Optional[Exception] = None):
        self._snippets = list(snippets)
        self._error = error
        self.queries: List[str] = []

    async def retrieve(self, query: str) -> RetrievalResult:
        self.queries.append(query)
        if self._error:
            raise self._error
        return RetrievalResult(context=[
            ContextSnippet(content=text, source="https://example.com/help")
            for text in self._snippets
        ])


class FlakyMemoryRepository(InMemoryChatMemoryRepository):
    """In-memory store whose reads and/or writes can be made to fail."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.append_attempts = 0

    async def get_conversation(self, session_id, limit=None):
        if self.fail_reads:
            raise PersistenceDegradedException("store offline")
        return await super().get_conversation(session_id, limit)

    async def append_message(self, session_id, message):
        self.append_attempts += 1
        if self.fail_writes:
            raise PersistenceDegradedException("store offline")
        await super().append_message(session_id, message)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        environment="development",
        llm_provider="mock",
        memory_backend="memory",
        ticket_backend="memory",
        vector_store_backend="memory",
        embedding_dimension=8,
        sources_config_path=tmp_path / "sources.yaml",
        corpus_refresh_log_path=tmp_path / "logs" / "document_chunks.log",
        corpus_source_urls=[],
    )


@pytest.fixture
def llm() -> ScriptedGenerationClient:
    return ScriptedGenerationClient()


@pytest.fixture
def retriever() -> FakeRetriever:
    return FakeRetriever(snippets=["open 9-6 Mon-Fri"])


@pytest.fixture
def memory() -> FlakyMemoryRepository:
    return FlakyMemoryRepository(max_messages=50, ttl_seconds=3600)


@pytest.fixture
def ticket_repository() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


def build_orchestrator(llm, retriever, memory, ticket_repository, config=None) -> ChatOrchestrator:
    return ChatOrchestrator(
        classifier=IntentClassifier(llm, "classifier-model"),
        generators=build_generator_registry(llm, retriever, config),
        ticket_extractor=TicketExtractor(TicketService(ticket_repository)),
        tone_refiner=ToneRefiner(llm, "tone-model"),
        memory_repository=memory,
        history_limit=50
    )


@pytest.fixture
def orchestrator(llm, retriever, memory, ticket_repository) -> ChatOrchestrator:
    return build_orchestrator(llm, retriever, memory, ticket_repository)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Session maker bound to a throwaway SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agentdesk-test.db'}")
    await create_tables(engine)
    yield build_session_maker(engine)
    await engine.dispose()
