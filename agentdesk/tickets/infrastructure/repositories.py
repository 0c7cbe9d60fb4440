"""
Ticket Infrastructure Repositories
===================================

SQLAlchemy and in-memory implementations of the ticket store.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentdesk.config import DEFAULT_TICKET_STATUS
from agentdesk.core import RepositoryException, TicketPersistenceFailedException
from agentdesk.tickets.application.services import ITicketRepository
from agentdesk.tickets.domain import Ticket, utc_now
from agentdesk.tickets.infrastructure.models import TicketModel


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_entity(model: TicketModel) -> Ticket:
    return Ticket(
        id=str(model.id),
        subject=model.subject,
        description=model.description,
        status=model.status,
        created_at=_as_utc(model.created_at),
        updated_at=_as_utc(model.updated_at)
    )


def _parse_id(ticket_id: str) -> Optional[UUID]:
    try:
        return UUID(ticket_id)
    except ValueError:
        return None


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation for tickets."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create(
        self,
        subject: str,
        description: str,
        status: str = DEFAULT_TICKET_STATUS
    ) -> Ticket:
        """
        Create new ticket.

        Raises:
            TicketPersistenceFailedException: If the insert fails
        """
        now = utc_now()
        model = TicketModel(
            id=uuid4(),
            subject=subject,
            description=description,
            status=status,
            created_at=now,
            updated_at=now
        )
        try:
            async with self._session_maker() as session, session.begin():
                session.add(model)
                await session.flush()
        except (SQLAlchemyError, OSError) as e:
            raise TicketPersistenceFailedException(f"Failed to create ticket: {e}") from e

        return _to_entity(model)

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        ticket_uuid = _parse_id(ticket_id)
        if ticket_uuid is None:
            return None

        try:
            async with self._session_maker() as session:
                model = await session.get(TicketModel, ticket_uuid)
        except (SQLAlchemyError, OSError) as e:
            raise RepositoryException(f"Failed to load ticket: {e}") from e

        return _to_entity(model) if model else None

    async def list(self, limit: int = 100, offset: int = 0) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .order_by(TicketModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise RepositoryException(f"Failed to list tickets: {e}") from e

        return [_to_entity(model) for model in models]

    async def update_status(self, ticket_id: str, status: str) -> Optional[Ticket]:
        ticket_uuid = _parse_id(ticket_id)
        if ticket_uuid is None:
            return None

        try:
            async with self._session_maker() as session, session.begin():
                model = await session.get(TicketModel, ticket_uuid)
                if model is None:
                    return None
                model.status = status
                model.updated_at = utc_now()
                await session.flush()
        except (SQLAlchemyError, OSError) as e:
            raise RepositoryException(f"Failed to update ticket: {e}") from e

        return _to_entity(model)


class InMemoryTicketRepository(ITicketRepository):
    """Process-local ticket store for development and tests."""

    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        subject: str,
        description: str,
        status: str = DEFAULT_TICKET_STATUS
    ) -> Ticket:
        ticket = Ticket(id=str(uuid4()), subject=subject, description=description, status=status)
        async with self._lock:
            self._tickets[ticket.id] = ticket
        return ticket

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        return self._tickets.get(ticket_id)

    async def list(self, limit: int = 100, offset: int = 0) -> List[Ticket]:
        ordered = sorted(self._tickets.values(), key=lambda t: t.created_at, reverse=True)
        return ordered[offset:offset + limit]

    async def update_status(self, ticket_id: str, status: str) -> Optional[Ticket]:
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                return None
            ticket.change_status(status)
            return ticket
