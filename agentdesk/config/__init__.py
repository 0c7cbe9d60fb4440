"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="agentdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="sqlite+aiosqlite:///./agentdesk.db",
        description="SQLAlchemy async connection URL (postgresql+asyncpg://... in production)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Chat Memory ==========
    memory_backend: str = Field(default="sql", description="Conversation store backend: sql or memory")
    chat_memory_limit: int = Field(
        default=50,
        description="Most recent messages retained per conversation",
        ge=1
    )
    chat_memory_ttl_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        description="Seconds a conversation is retained after its last message",
        ge=60
    )

    # ========== Tickets ==========
    ticket_backend: str = Field(default="sql", description="Ticket store backend: sql or memory")

    # ========== LLM Provider ==========
    llm_provider: str = Field(default="openai", description="Generation provider: openai, zai or mock")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")

    # ========== LLM Settings ==========
    classifier_model: str = Field(default="gpt-5-nano", description="Model used for intent classification")
    knowledge_model: str = Field(default="gpt-5-nano", description="Model used by the knowledge agent")
    customer_service_model: str = Field(default="gpt-5-nano", description="Model used by the customer service agent")
    personality_model: str = Field(default="gpt-5-nano", description="Model used for tone refinement")
    embedding_model: str = Field(default="text-embedding-3-small", description="Embedding model")
    embedding_dimension: int = Field(default=1536, description="Embedding vector dimension", ge=8)
    llm_temperature: Optional[float] = Field(
        default=None,
        description="Sampling temperature (provider default when unset)",
        ge=0.0,
        le=2.0
    )
    llm_max_tokens: int = Field(
        default=1000,
        description="Default max tokens for LLM generation",
        ge=1,
        le=8000
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to each generation call",
        gt=0
    )

    # ========== Vector Store ==========
    vector_store_backend: str = Field(default="memory", description="Vector store backend: milvus or memory")
    zilliz_uri: str = Field(default="", description="Zilliz Cloud cluster URI")
    zilliz_api_key: str = Field(default="", description="Zilliz Cloud API key")
    milvus_collection_name: str = Field(default="agentdesk_docs", description="Milvus collection name")
    top_k_results: int = Field(
        default=5,
        description="Number of snippets to retrieve for the knowledge agent",
        ge=1,
        le=20
    )
    chunk_size: int = Field(default=1000, description="Character size for document chunks", ge=100)
    chunk_overlap: int = Field(default=200, description="Overlap between document chunks", ge=0)

    # ========== Knowledge Corpus ==========
    corpus_source_urls: List[str] = Field(
        default_factory=list,
        description="Pages fetched into the knowledge corpus"
    )
    sources_config_path: Path = Field(
        default=Path("sources.yaml"),
        description="YAML file listing corpus source URLs (hot-reloaded)"
    )
    corpus_refresh_log_path: Path = Field(
        default=Path("logs/document_chunks.log"),
        description="Append-only log of corpus refresh timestamps"
    )
    corpus_max_age_hours: float = Field(
        default=24.0,
        description="Hours before the corpus is considered stale",
        gt=0
    )
    corpus_refresh_mode: str = Field(
        default="inline",
        description="inline: refresh inside the request path; background: scheduled job"
    )
    fetch_timeout_seconds: float = Field(default=15.0, description="Timeout for each source fetch", gt=0)
    retrieval_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for a retrieval call, including an inline refresh",
        gt=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("memory_backend", "ticket_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        allowed = {"sql", "memory"}
        if v not in allowed:
            raise ValueError(f"store backend must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"openai", "zai", "mock"}
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v

    @field_validator("vector_store_backend")
    @classmethod
    def validate_vector_store_backend(cls, v: str) -> str:
        allowed = {"milvus", "memory"}
        if v not in allowed:
            raise ValueError(f"vector_store_backend must be one of {allowed}")
        return v

    @field_validator("corpus_refresh_mode")
    @classmethod
    def validate_refresh_mode(cls, v: str) -> str:
        allowed = {"inline", "background"}
        if v not in allowed:
            raise ValueError(f"corpus_refresh_mode must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class MessageRole(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class IntentCategory(str, Enum):
    """Routing labels the intent classifier may emit."""
    KNOWLEDGE = "knowledge"
    CUSTOMER_SERVICE = "customer-service"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


# ========== Lists for validation ==========

# Labels used by earlier classifier prompts, mapped onto the same categories.
INTENT_ALIASES = {
    "knowledgeAgent": IntentCategory.KNOWLEDGE,
    "csAgent": IntentCategory.CUSTOMER_SERVICE,
}
VALID_STATUSES = [status.value for status in TicketStatus]
DEFAULT_TICKET_STATUS = TicketStatus.OPEN.value
