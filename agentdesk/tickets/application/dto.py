"""
Ticket Application DTOs
========================

Pydantic models for ticket API request/response validation.
"""

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from agentdesk.tickets.domain import Ticket

TicketStatusStr = Literal["open", "in_progress", "resolved", "closed"]


# ========== Request DTOs ==========

class TicketStatusUpdateRequest(BaseModel):
    """Request model for a ticket status change."""
    status: TicketStatusStr = Field(..., description="New ticket status")


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Ticket information in API responses."""
    id: str
    subject: str
    description: str
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            subject=ticket.subject,
            description=ticket.description,
            status=ticket.status,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at
        )


class TicketListResponse(BaseModel):
    """Response model for ticket listing."""
    tickets: List[TicketResponse]
    count: int
