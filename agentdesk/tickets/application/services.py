"""
Ticket Application Services
============================

Repository interface and the service that manages ticket lifecycle.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from agentdesk.config import DEFAULT_TICKET_STATUS, VALID_STATUSES
from agentdesk.core import ResourceNotFoundException, ValidationException
from agentdesk.shared.infrastructure.logging import get_logger
from agentdesk.tickets.domain import Ticket

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def create(
        self,
        subject: str,
        description: str,
        status: str = DEFAULT_TICKET_STATUS
    ) -> Ticket:
        """Persist a new ticket; the store assigns id and timestamps."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def list(self, limit: int = 100, offset: int = 0) -> List[Ticket]:
        """List tickets, newest first."""

    @abstractmethod
    async def update_status(self, ticket_id: str, status: str) -> Optional[Ticket]:
        """Change a ticket's status. Returns None when the ticket does not exist."""


# ========== Application Services ==========

class TicketService:
    """Service for creating, reading and updating support tickets."""

    def __init__(self, ticket_repository: ITicketRepository):
        self._repository = ticket_repository

    async def create_ticket(
        self,
        subject: str,
        description: str,
        status: str = DEFAULT_TICKET_STATUS
    ) -> Ticket:
        self._validate_status(status)
        ticket = await self._repository.create(subject, description, status)
        logger.info("Ticket created", extra={"ticket_id": ticket.id, "status": ticket.status})
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        """
        Get a ticket by ID.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
        """
        ticket = await self._repository.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def list_tickets(self, limit: int = 100, offset: int = 0) -> List[Ticket]:
        return await self._repository.list(limit=limit, offset=offset)

    async def update_status(self, ticket_id: str, status: str) -> Ticket:
        """
        Move a ticket to a new status.

        Raises:
            ValidationException: If the status is not a known ticket status
            ResourceNotFoundException: If the ticket does not exist
        """
        self._validate_status(status)
        ticket = await self._repository.update_status(ticket_id, status)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        logger.info("Ticket status updated", extra={"ticket_id": ticket_id, "status": status})
        return ticket

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in VALID_STATUSES:
            raise ValidationException(
                f"Invalid ticket status: {status}",
                {"allowed": VALID_STATUSES}
            )
