"""
Ticket Application Layer
=========================

Contains:
- Services: Ticket lifecycle management
- DTOs: Data transfer objects for API serialization
"""

from agentdesk.tickets.application.dto import (
    TicketListResponse,
    TicketResponse,
    TicketStatusUpdateRequest,
)
from agentdesk.tickets.application.services import ITicketRepository, TicketService

__all__ = [
    # DTOs
    "TicketListResponse",
    "TicketResponse",
    "TicketStatusUpdateRequest",
    # Services
    "TicketService",
    # Repository Interfaces
    "ITicketRepository",
]
