"""
Chat Domain Layer
=================

Domain layer for the chat module.

Contains:
- Entities: ChatMessage, ContextSnippet, RetrievalResult, TicketAction, ChatReply
- Prompt builders: fixed instructions for each agent

This layer is framework-agnostic and contains pure business logic.
"""

from agentdesk.chat.domain.entities import (
    ChatMessage,
    ChatReply,
    ContextSnippet,
    CustomerServicePromptBuilder,
    IntentPromptBuilder,
    KnowledgePromptBuilder,
    RetrievalResult,
    TicketAction,
    TonePromptBuilder,
)

__all__ = [
    "ChatMessage",
    "ChatReply",
    "ContextSnippet",
    "RetrievalResult",
    "TicketAction",
    "IntentPromptBuilder",
    "KnowledgePromptBuilder",
    "CustomerServicePromptBuilder",
    "TonePromptBuilder",
]
