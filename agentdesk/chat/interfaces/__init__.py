"""
Chat Interfaces Layer
======================

Contains:
- Controllers: FastAPI route handlers
"""

from agentdesk.chat.interfaces.controllers import router as chat_router

__all__ = ["chat_router"]
