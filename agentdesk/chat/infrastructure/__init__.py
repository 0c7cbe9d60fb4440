"""
Chat Infrastructure Layer
==========================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Conversation memory stores
- External: Knowledge corpus retrieval and background refresh
"""

from agentdesk.chat.infrastructure.models import ChatMessageModel
from agentdesk.chat.infrastructure.repositories import (
    InMemoryChatMemoryRepository,
    SQLAlchemyChatMemoryRepository,
)
from agentdesk.chat.infrastructure.external import (
    CorpusFreshnessTracker,
    CorpusRefreshScheduler,
    DocumentRetriever,
    SourceProvider,
    chunk_text,
    html_to_text,
)

__all__ = [
    "ChatMessageModel",
    "SQLAlchemyChatMemoryRepository",
    "InMemoryChatMemoryRepository",
    "DocumentRetriever",
    "SourceProvider",
    "CorpusFreshnessTracker",
    "CorpusRefreshScheduler",
    "chunk_text",
    "html_to_text",
]
