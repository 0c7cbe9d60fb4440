"""Tests for the chat request orchestrator."""

import json
import uuid

import pytest

from agentdesk.chat.application import ChatOrchestrator, IntentClassifier, TicketExtractor, ToneRefiner
from agentdesk.chat.domain import (
    ChatMessage,
    CustomerServicePromptBuilder,
    KnowledgePromptBuilder,
    TonePromptBuilder,
)
from agentdesk.chat.infrastructure import SQLAlchemyChatMemoryRepository
from agentdesk.config import IntentCategory, MessageRole
from agentdesk.core import (
    ClassificationFailedException,
    ConfigurationException,
    GenerationFailedException,
    InvalidClassificationException,
    LLMException,
    PersistenceDegradedException,
    RequestProcessingFailedException,
)
from agentdesk.tickets.application import TicketService
from agentdesk.tickets.infrastructure import SQLAlchemyTicketRepository
from tests.conftest import FakeRetriever, FlakyMemoryRepository, ScriptedGenerationClient, build_orchestrator
from tests.test_ticket_extractor import FailingTicketRepository

LOGIN_TICKET = json.dumps({
    "action": "create_ticket",
    "subject": "Login issue",
    "description": "User cannot log in",
    "status": "open",
})


class TestBusinessHoursScenario:
    @pytest.mark.asyncio
    async def test_knowledge_reply_is_refined(self, memory, ticket_repository):
        llm = ScriptedGenerationClient(
            classification='{"category": "knowledge"}',
            knowledge="We are open Mon-Fri 9-6",
            tone="Sure! We're open Mon–Fri 9am–6pm 😊",
        )
        retriever = FakeRetriever(snippets=["open 9–6 Mon–Fri"])
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        reply = await orchestrator.handle(None, ChatMessage.user("What are your business hours?"))

        assert reply.reply == "Sure! We're open Mon–Fri 9am–6pm 😊"
        assert not reply.is_ticket
        assert uuid.UUID(reply.user_id)
        assert llm.calls_for(KnowledgePromptBuilder.get_system_prompt())[0].messages[0] == {
            "role": "system", "content": "open 9–6 Mon–Fri"
        }
        assert await memory.get_conversation(reply.user_id) == [
            ChatMessage.user("What are your business hours?"),
            ChatMessage.assistant("Sure! We're open Mon–Fri 9am–6pm 😊"),
        ]


class TestTicketScenario:
    @pytest.mark.asyncio
    async def test_ticket_short_circuits_refinement(self, memory, ticket_repository):
        llm = ScriptedGenerationClient(
            classification='{"category": "customer-service"}',
            customer_service=LOGIN_TICKET,
        )
        orchestrator = build_orchestrator(llm, FakeRetriever(), memory, ticket_repository)

        reply = await orchestrator.handle("user-1", ChatMessage.user("create a ticket, I can't log in"))

        assert reply.is_ticket
        assert reply.user_id == "user-1"
        assert reply.reply == (
            f'Ticket created successfully with subject: "Login issue" at {reply.ticket.created_time_label}'
        )
        assert llm.calls_for(TonePromptBuilder.get_system_prompt()) == []
        assert [t.subject for t in await ticket_repository.list()] == ["Login issue"]

        history = await memory.get_conversation("user-1")
        assert history[-1] == ChatMessage.assistant(reply.reply)

    @pytest.mark.asyncio
    async def test_ticket_store_failure_falls_back_to_refined_reply(self, memory):
        llm = ScriptedGenerationClient(
            classification='{"category": "customer-service"}',
            customer_service=LOGIN_TICKET,
            tone="refined",
        )
        orchestrator = build_orchestrator(llm, FakeRetriever(), memory, FailingTicketRepository())

        reply = await orchestrator.handle("user-1", ChatMessage.user("create a ticket"))

        assert not reply.is_ticket
        assert reply.reply == "refined"


class TestIdentityAndHistory:
    @pytest.mark.asyncio
    async def test_supplied_id_carries_history_into_next_turn(self, llm, retriever, memory, ticket_repository):
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        first = await orchestrator.handle(None, ChatMessage.user("first question"))
        second = await orchestrator.handle(first.user_id, ChatMessage.user("second question"))

        assert second.user_id == first.user_id
        knowledge_calls = llm.calls_for(KnowledgePromptBuilder.get_system_prompt())
        assert knowledge_calls[1].messages[1:] == [
            {"role": "user", "content": "first question"},
            {"role": "assistant", "content": "knowledge answer"},
            {"role": "user", "content": "second question"},
        ]
        assert len(await memory.get_conversation(first.user_id)) == 4

    @pytest.mark.asyncio
    async def test_blank_id_mints_a_new_one(self, orchestrator):
        reply = await orchestrator.handle("   ", ChatMessage.user("hi"))
        assert reply.user_id.strip()
        assert uuid.UUID(reply.user_id)

    @pytest.mark.asyncio
    async def test_history_failure_degrades_to_empty_history(self, llm, retriever, ticket_repository):
        memory = FlakyMemoryRepository(fail_reads=True)
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        reply = await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert reply.reply == "knowledge answer"
        knowledge_call = llm.calls_for(KnowledgePromptBuilder.get_system_prompt())[0]
        assert knowledge_call.messages[1:] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_reply(self, llm, retriever, ticket_repository):
        memory = FlakyMemoryRepository(fail_writes=True)
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        reply = await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert reply.reply == "knowledge answer"
        # The assistant append is skipped once the user append fails
        assert memory.append_attempts == 1

    @pytest.mark.asyncio
    async def test_tone_failure_returns_unrefined_draft(self, retriever, memory, ticket_repository):
        llm = ScriptedGenerationClient(knowledge="draft text", tone=LLMException("down"))
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        reply = await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert reply.reply == "draft text"
        assert (await memory.get_conversation("user-1"))[-1].content == "draft text"


class TestFatalFailures:
    @pytest.mark.asyncio
    async def test_unknown_category_aborts_without_writes(self, retriever, memory, ticket_repository):
        llm = ScriptedGenerationClient(classification='{"category": "sales"}')
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        with pytest.raises(RequestProcessingFailedException) as exc_info:
            await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert isinstance(exc_info.value.__cause__, InvalidClassificationException)
        assert memory.append_attempts == 0
        assert llm.calls_for(KnowledgePromptBuilder.get_system_prompt()) == []
        assert llm.calls_for(CustomerServicePromptBuilder.get_system_prompt()) == []

    @pytest.mark.asyncio
    async def test_classifier_outage_aborts(self, retriever, memory, ticket_repository):
        llm = ScriptedGenerationClient(classification=LLMException("unavailable"))
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        with pytest.raises(RequestProcessingFailedException) as exc_info:
            await orchestrator.handle(None, ChatMessage.user("hello"))

        assert isinstance(exc_info.value.__cause__, ClassificationFailedException)
        assert exc_info.value.details == {"stage": "classify"}

    @pytest.mark.asyncio
    async def test_generation_failure_aborts_without_writes(self, retriever, memory, ticket_repository):
        llm = ScriptedGenerationClient(knowledge=LLMException("rate limited"))
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        with pytest.raises(RequestProcessingFailedException) as exc_info:
            await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert isinstance(exc_info.value.__cause__, GenerationFailedException)
        assert exc_info.value.details == {"stage": "generate"}
        assert memory.append_attempts == 0
        assert await ticket_repository.list() == []


class TestConstruction:
    def test_missing_generator_is_a_configuration_error(self, llm, memory, ticket_repository):
        with pytest.raises(ConfigurationException) as exc_info:
            ChatOrchestrator(
                classifier=IntentClassifier(llm, "m"),
                generators={IntentCategory.KNOWLEDGE: object()},
                ticket_extractor=TicketExtractor(TicketService(ticket_repository)),
                tone_refiner=ToneRefiner(llm, "m"),
                memory_repository=memory,
            )
        assert exc_info.value.details["missing"] == ["customer-service"]


class TestHistoryAccess:
    @pytest.mark.asyncio
    async def test_get_and_clear_history(self, orchestrator):
        reply = await orchestrator.handle(None, ChatMessage.user("hello"))

        history = await orchestrator.get_history(reply.user_id)
        assert [m.role for m in history] == [MessageRole.USER, MessageRole.ASSISTANT]

        await orchestrator.clear_history(reply.user_id)
        assert await orchestrator.get_history(reply.user_id) == []


def unreachable_database():
    raise ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 5432)")


class TestDatabaseOutage:
    @pytest.mark.asyncio
    async def test_unreachable_memory_store_still_replies(self, llm, retriever, ticket_repository):
        memory = SQLAlchemyChatMemoryRepository(unreachable_database, max_messages=50, ttl_seconds=3600)
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        reply = await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert reply.reply == "knowledge answer"
        knowledge_call = llm.calls_for(KnowledgePromptBuilder.get_system_prompt())[0]
        assert knowledge_call.messages[1:] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_unreachable_ticket_store_falls_back_to_refined_reply(self, memory):
        llm = ScriptedGenerationClient(
            classification='{"category": "customer-service"}',
            customer_service=LOGIN_TICKET,
            tone="refined",
        )
        tickets = SQLAlchemyTicketRepository(unreachable_database)
        orchestrator = build_orchestrator(llm, FakeRetriever(), memory, tickets)

        reply = await orchestrator.handle("user-1", ChatMessage.user("create a ticket"))

        assert not reply.is_ticket
        assert reply.reply == "refined"
        assert (await memory.get_conversation("user-1"))[-1] == ChatMessage.assistant("refined")

    @pytest.mark.asyncio
    async def test_memory_store_errors_surface_as_persistence_degraded(self):
        memory = SQLAlchemyChatMemoryRepository(unreachable_database)

        with pytest.raises(PersistenceDegradedException):
            await memory.append_message("user-1", ChatMessage.user("hello"))
        with pytest.raises(PersistenceDegradedException):
            await memory.get_conversation("user-1")

    @pytest.mark.asyncio
    async def test_unexpected_classifier_error_aborts_without_writes(self, retriever, memory, ticket_repository):
        llm = ScriptedGenerationClient(classification=RuntimeError("socket closed"))
        orchestrator = build_orchestrator(llm, retriever, memory, ticket_repository)

        with pytest.raises(RequestProcessingFailedException) as exc_info:
            await orchestrator.handle("user-1", ChatMessage.user("hello"))

        assert exc_info.value.details == {"stage": "classify"}
        assert memory.append_attempts == 0
