"""
Chat Controllers (API Routes)
==============================

FastAPI routes for the chat assistant.

Controllers delegate to the orchestrator held on application state.
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from agentdesk.chat.application import (
    ChatHistoryResponse,
    ChatOrchestrator,
    ChatRequest,
    ChatResponse,
    HistoryMessage,
)
from agentdesk.chat.domain import ChatMessage
from agentdesk.core import InvalidInputException
from agentdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/chat", tags=["Chat"])


# ========== Example payloads for Swagger ==========

CHAT_REQUEST_EXAMPLE = {
    "userId": "5b0e3c1e-7f43-4c8e-9d7a-2f1f6a0c9b11",
    "chatInput": "What are your business hours?"
}

CHAT_RESPONSE_EXAMPLE = {
    "userId": "5b0e3c1e-7f43-4c8e-9d7a-2f1f6a0c9b11",
    "response": "Sure! We're open Monday to Friday, 9am to 6pm."
}

TICKET_RESPONSE_EXAMPLE = {
    "userId": "5b0e3c1e-7f43-4c8e-9d7a-2f1f6a0c9b11",
    "ticketResponse": 'Ticket created successfully with subject: "Login issue" at 3:04:05 PM'
}


# ========== Dependencies ==========

def get_orchestrator(request: Request) -> ChatOrchestrator:
    """Get chat orchestrator from app state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Chat service not available")
    return orchestrator


async def read_chat_request(request: Request) -> ChatRequest:
    """
    Parse the chat body.

    A missing, non-JSON or non-object body is read as a request without a
    message, so the handler answers it with the plain 400.
    """
    raw = await request.body()
    try:
        data = json.loads(raw) if raw else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    try:
        return ChatRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False), body=data) from e


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    summary="Send a chat message",
    description="""
    Route a message to the knowledge or customer service agent.

    Omit `userId` to start a new conversation; the response carries the
    identifier to send with follow-up messages.

    The body contains `response` for a conversational reply, or
    `ticketResponse` when a support ticket was filed.
    """,
    responses={
        200: {
            "description": "Reply generated",
            "content": {
                "application/json": {
                    "examples": {
                        "reply": {"value": CHAT_RESPONSE_EXAMPLE},
                        "ticket": {"value": TICKET_RESPONSE_EXAMPLE}
                    }
                }
            }
        },
        400: {"description": "Message is required"},
        500: {"description": "The request could not be processed"}
    },
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {
                "application/json": {
                    "schema": ChatRequest.model_json_schema(by_alias=True),
                    "example": CHAT_REQUEST_EXAMPLE
                }
            }
        }
    }
)
async def chat(
    request: Request,
    payload: ChatRequest = Depends(read_chat_request),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    if not payload.chat_input:
        raise InvalidInputException("Message is required")

    logger.info(
        "Chat request received",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "has_user_id": bool(payload.user_id)
        }
    )

    reply = await orchestrator.handle(payload.user_id, ChatMessage.user(payload.chat_input))

    if reply.is_ticket:
        return ChatResponse(user_id=reply.user_id, ticket_response=reply.reply)
    return ChatResponse(user_id=reply.user_id, response=reply.reply)


@router.get(
    "/{user_id}/history",
    response_model=ChatHistoryResponse,
    summary="Get conversation history",
    description="Stored messages for a conversation, oldest first."
)
async def get_history(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    messages = await orchestrator.get_history(user_id, limit)
    return ChatHistoryResponse(
        user_id=user_id,
        messages=[HistoryMessage.from_entity(m) for m in messages]
    )


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear conversation history"
)
async def clear_history(
    user_id: str,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    await orchestrator.clear_history(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
