"""
Ticket Infrastructure Layer
============================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy and in-memory ticket stores
"""

from agentdesk.tickets.infrastructure.models import TicketModel
from agentdesk.tickets.infrastructure.repositories import (
    InMemoryTicketRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "TicketModel",
    "SQLAlchemyTicketRepository",
    "InMemoryTicketRepository",
]
