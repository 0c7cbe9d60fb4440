"""
Chat Application Layer
=======================

Application layer for the chat module.

Contains:
- Services: Request orchestration and collaborator interfaces
- Agents: Intent classifier, response generators, tone refiner
- Ticket extraction
- DTOs: Data transfer objects for API serialization
"""

from agentdesk.chat.application.dto import (
    ChatHistoryResponse,
    ChatRequest,
    ChatResponse,
    ClassificationPayload,
    HistoryMessage,
    TicketActionPayload,
    strip_code_fences,
)
from agentdesk.chat.application.services import (
    ChatOrchestrator,
    IChatMemoryRepository,
    IRetrievalService,
    ResponseGenerator,
    format_ticket_confirmation,
)
from agentdesk.chat.application.agents import (
    CustomerServiceResponseGenerator,
    IntentClassifier,
    KnowledgeResponseGenerator,
    ToneRefiner,
    build_generator_registry,
    parse_category,
)
from agentdesk.chat.application.tickets import TicketExtractor, parse_ticket_action

__all__ = [
    # DTOs
    "ChatRequest",
    "ChatResponse",
    "ChatHistoryResponse",
    "HistoryMessage",
    "ClassificationPayload",
    "TicketActionPayload",
    "strip_code_fences",
    # Services
    "ChatOrchestrator",
    "format_ticket_confirmation",
    # Agents
    "IntentClassifier",
    "KnowledgeResponseGenerator",
    "CustomerServiceResponseGenerator",
    "ToneRefiner",
    "build_generator_registry",
    "parse_category",
    # Tickets
    "TicketExtractor",
    "parse_ticket_action",
    # Interfaces
    "IChatMemoryRepository",
    "IRetrievalService",
    "ResponseGenerator",
]
