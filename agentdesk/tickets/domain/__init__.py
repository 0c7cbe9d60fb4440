"""
Ticket Domain Layer
===================

Contains:
- Entities: Ticket

This layer is framework-agnostic and contains pure business logic.
"""

from agentdesk.tickets.domain.entities import Ticket, utc_now

__all__ = ["Ticket", "utc_now"]
