"""
Ticket Controllers (API Routes)
================================

FastAPI routes for support tickets.

Controllers delegate to the ticket service held on application state.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from agentdesk.shared.infrastructure.logging import get_logger
from agentdesk.tickets.application import (
    TicketListResponse,
    TicketResponse,
    TicketService,
    TicketStatusUpdateRequest,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/api/tickets", tags=["Tickets"])


TICKET_RESPONSE_EXAMPLE = {
    "id": "3f1c2a9e-8d4b-4a5e-9c6f-0b1d2e3f4a5b",
    "subject": "Login issue",
    "description": "Customer cannot log in after resetting their password.",
    "status": "open",
    "created_at": "2026-01-15T10:30:00Z",
    "updated_at": "2026-01-15T10:30:00Z"
}


# ========== Dependencies ==========

def get_ticket_service(request: Request) -> TicketService:
    """Get ticket service from app state."""
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service not available")
    return service


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets",
    description="List support tickets, newest first."
)
async def list_tickets(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list_tickets(limit=limit, offset=offset)
    return TicketListResponse(
        tickets=[TicketResponse.from_entity(t) for t in tickets],
        count=len(tickets)
    )


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    responses={
        200: {"content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}},
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.get_ticket(ticket_id)
    return TicketResponse.from_entity(ticket)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update ticket status",
    description="""
    Move a ticket to a new status.

    **Statuses**: `open`, `in_progress`, `resolved`, `closed`
    """,
    responses={404: {"description": "Ticket not found"}}
)
async def update_ticket_status(
    request: Request,
    ticket_id: str,
    payload: TicketStatusUpdateRequest,
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.update_status(ticket_id, payload.status)

    logger.info(
        "Ticket status changed via API",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "ticket_id": ticket_id,
            "status": payload.status
        }
    )
    return TicketResponse.from_entity(ticket)
