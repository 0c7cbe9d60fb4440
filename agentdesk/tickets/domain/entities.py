"""
Ticket Domain Entities
======================

Pure Python business objects for support tickets.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from agentdesk.config import DEFAULT_TICKET_STATUS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Ticket:
    """
    Support ticket entity.

    Created by the ticket store; only the status changes afterwards.
    """
    id: str
    subject: str
    description: str
    status: str = DEFAULT_TICKET_STATUS
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def created_time_label(self) -> str:
        """Creation time on a 12-hour clock, e.g. ``3:04:05 PM``."""
        return self.created_at.strftime("%I:%M:%S %p").lstrip("0")

    def change_status(self, status: str) -> None:
        self.status = status
        self.updated_at = utc_now()
