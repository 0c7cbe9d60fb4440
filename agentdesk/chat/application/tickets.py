"""
Ticket Extraction
=================

Detects a ticket-creation payload in an agent reply and files the ticket.
"""

import json
from typing import Optional

from pydantic import ValidationError

from agentdesk.chat.application.dto import TicketActionPayload, strip_code_fences
from agentdesk.chat.domain import TicketAction
from agentdesk.core import RepositoryException, ValidationException
from agentdesk.shared.infrastructure.logging import get_logger
from agentdesk.tickets.application import TicketService
from agentdesk.tickets.domain import Ticket

logger = get_logger(__name__)


def parse_ticket_action(raw_text: str) -> Optional[TicketAction]:
    """Return the TicketAction in ``raw_text``, or None for anything else."""
    try:
        data = json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict) or data.get("action") != "create_ticket":
        return None

    try:
        return TicketActionPayload.model_validate(data).to_action()
    except ValidationError as e:
        logger.warning("Malformed ticket action ignored", extra={"error": str(e)})
        return None


class TicketExtractor:
    """
    Files a ticket when an agent reply carries a create_ticket action.

    Plain prose is the common case and simply yields None, as does a failed
    ticket write.
    """

    def __init__(self, ticket_service: TicketService):
        self._tickets = ticket_service

    async def try_extract_ticket(self, raw_text: str) -> Optional[Ticket]:
        action = parse_ticket_action(raw_text)
        if action is None:
            logger.debug("No ticket action in reply")
            return None

        try:
            ticket = await self._tickets.create_ticket(
                action.subject, action.description, action.status
            )
        except (RepositoryException, ValidationException) as e:
            logger.warning(
                "Ticket could not be saved, replying conversationally",
                extra={"error": e.message, "subject": action.subject}
            )
            return None

        logger.info("Ticket created from chat", extra={"ticket_id": ticket.id, "subject": ticket.subject})
        return ticket
