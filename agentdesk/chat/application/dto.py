"""
Chat Application DTOs
======================

Data Transfer Objects for the chat API layer, plus the schemas that
structured model output is validated against.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agentdesk.chat.domain import ChatMessage, TicketAction
from agentdesk.config import DEFAULT_TICKET_STATUS, VALID_STATUSES


# ========== Request DTOs ==========

class ChatRequest(BaseModel):
    """
    Request model for a chat turn.

    ``chatInput`` is checked by the controller so a missing message yields
    the plain 400 body rather than a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId", description="Conversation owner; minted when absent")
    chat_input: Optional[str] = Field(None, alias="chatInput", description="User message")


# ========== Response DTOs ==========

class ChatResponse(BaseModel):
    """Response model for a chat turn: either ``response`` or ``ticketResponse``."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    response: Optional[str] = None
    ticket_response: Optional[str] = Field(None, alias="ticketResponse")


class HistoryMessage(BaseModel):
    role: str
    content: str

    @classmethod
    def from_entity(cls, message: ChatMessage) -> "HistoryMessage":
        return cls(role=message.role.value, content=message.content)


class ChatHistoryResponse(BaseModel):
    """Stored conversation, oldest message first."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    messages: List[HistoryMessage]


# ========== Model Output Schemas ==========

def strip_code_fences(text: str) -> str:
    """Return the body of a fenced ```json block, or the stripped text."""
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    if "```" in text:
        return text.split("```")[1].split("```")[0].strip()
    return text.strip()


class ClassificationPayload(BaseModel):
    """Classifier output. Older prompts used ``agentType`` for the label."""
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = None
    agent_type: Optional[str] = Field(None, alias="agentType")

    @model_validator(mode="after")
    def require_label(self) -> "ClassificationPayload":
        if not self.label:
            raise ValueError("classification must name a category")
        return self

    @property
    def label(self) -> Optional[str]:
        return self.category or self.agent_type


class TicketActionPayload(BaseModel):
    """Ticket-creation payload emitted by the customer service agent."""
    model_config = ConfigDict(str_strip_whitespace=True)

    action: Literal["create_ticket"]
    subject: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    status: Optional[str] = Field(None, validate_default=True)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: object) -> str:
        """Missing, empty or unrecognised statuses become ``open``."""
        if not v or not isinstance(v, str):
            return DEFAULT_TICKET_STATUS
        normalized = v.strip().lower()
        return normalized if normalized in VALID_STATUSES else DEFAULT_TICKET_STATUS

    def to_action(self) -> TicketAction:
        return TicketAction(
            subject=self.subject,
            description=self.description,
            status=self.status or DEFAULT_TICKET_STATUS
        )
