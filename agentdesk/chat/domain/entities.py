"""
Chat Domain Entities
====================

Domain entities for the chat module.

Contains pure Python business objects for conversation messages,
retrieved context and the final reply, plus the fixed agent instructions.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from agentdesk.config import DEFAULT_TICKET_STATUS, MessageRole
from agentdesk.core import ValidationException
from agentdesk.tickets.domain import Ticket


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation. Immutable once created."""
    role: MessageRole
    content: str

    def __post_init__(self):
        """Validate the role; plain strings are coerced to MessageRole."""
        try:
            role = MessageRole(self.role)
        except ValueError as e:
            raise ValidationException(f"Unknown message role: {self.role!r}") from e
        object.__setattr__(self, "role", role)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(MessageRole.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(MessageRole.SYSTEM, content)

    def to_dict(self) -> dict:
        """Model input shape: ``{"role": ..., "content": ...}``."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        """
        Rebuild a message from its stored form.

        Raises:
            ValidationException: If the role is unknown
        """
        return cls(data.get("role"), str(data.get("content", "")))


@dataclass(frozen=True)
class ContextSnippet:
    """Piece of retrieved text plus its source."""
    content: str
    source: str
    score: Optional[float] = None


@dataclass
class RetrievalResult:
    """Snippets returned for one query, best match first."""
    context: List[ContextSnippet] = field(default_factory=list)

    @property
    def joined_content(self) -> str:
        return "\n".join(snippet.content for snippet in self.context)


@dataclass(frozen=True)
class TicketAction:
    """Validated ticket-creation request pulled out of an agent reply."""
    subject: str
    description: str
    status: str = DEFAULT_TICKET_STATUS


@dataclass
class ChatReply:
    """Final outcome of one chat request."""
    user_id: str
    reply: str
    ticket: Optional[Ticket] = None

    @property
    def is_ticket(self) -> bool:
        return self.ticket is not None


# ========== Agent Instructions ==========

class IntentPromptBuilder:
    """Instruction for the intent classifier."""

    SYSTEM_PROMPT = """You are an AI agents orchestrator and your job is to analyze the user's message and return the agent category.

Knowledge Agent ("knowledge"): handles questions that need information retrieval and generation. It answers questions about the company's products and services.

Customer Service Agent ("customer-service"): handles customer support requests such as account problems, orders, refunds, complaints, and requests to open a support ticket.

Respond ONLY with a JSON object in this format:
{"category": "knowledge"} or {"category": "customer-service"}"""

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT


class KnowledgePromptBuilder:
    """Instruction for the retrieval-augmented knowledge agent."""

    SYSTEM_PROMPT = (
        "You are an assistant for question-answering tasks. Use the following pieces of "
        "retrieved context to answer the question. If you don't know the answer, just say "
        "that you don't know. Use three sentences maximum and keep the answer concise."
    )

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT


class CustomerServicePromptBuilder:
    """
    Instruction for the customer service agent.

    The agent may answer in prose or emit a ticket-creation payload.
    """

    SYSTEM_PROMPT = """You are a customer service agent for our support desk.

Help the customer with their request politely and concisely. Use the conversation so far for context.

When the customer asks to open a ticket, or reports a problem that needs follow-up by the support team, respond ONLY with a JSON object in this exact format and nothing else:
{"action": "create_ticket", "subject": "<short summary>", "description": "<full description of the problem>", "status": "open"}

Otherwise, reply in plain text. Never wrap the JSON in explanations."""

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT


class TonePromptBuilder:
    """Instruction for the tone refiner."""

    SYSTEM_PROMPT = """You rewrite the assistant's last reply in the voice of our support persona.

The persona is warm, upbeat and helpful. Keep every fact, number and instruction from the draft unchanged, keep it about the same length, and never add information that is not in the draft. Return only the rewritten reply."""

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT
