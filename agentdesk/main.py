"""
AgentDesk - Main Application
=============================

Multi-agent customer support chat service.

Modules:
- Chat: Intent routing, knowledge and customer service agents, memory
- Tickets: Support tickets filed from conversations

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and agent instructions
- Infrastructure: Database, LLM, vector store
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from agentdesk.config import Settings, settings as default_settings
from agentdesk.core import (
    ApplicationException,
    ConfigurationException,
    InvalidInputException,
    ResourceNotFoundException,
    ValidationException,
    VectorStoreException,
)

# Infrastructure
from agentdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)
from agentdesk.infrastructure.llm import create_generation_client
from agentdesk.infrastructure.vectorstore import InMemoryVectorStore, create_vector_store

# Chat Module
from agentdesk.chat.application import (
    ChatOrchestrator,
    IntentClassifier,
    TicketExtractor,
    ToneRefiner,
    build_generator_registry,
)
from agentdesk.chat.infrastructure import (
    CorpusFreshnessTracker,
    CorpusRefreshScheduler,
    DocumentRetriever,
    InMemoryChatMemoryRepository,
    SourceProvider,
    SQLAlchemyChatMemoryRepository,
)

# Tickets Module
from agentdesk.tickets.application import TicketService
from agentdesk.tickets.infrastructure import InMemoryTicketRepository, SQLAlchemyTicketRepository

# Module Routers
from agentdesk.chat.interfaces import chat_router
from agentdesk.tickets.interfaces import tickets_router

# Shared
from agentdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    global_exception_handler,
    invalid_input_handler,
    not_found_handler,
    validation_exception_handler,
)
from agentdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def init_services(app: FastAPI, config: Settings) -> None:
    """
    Build every collaborator and store it on app state.

    Missing LLM credentials leave the chat service unavailable (503) while
    the ticket routes keep working.
    """
    # Database
    session_maker = None
    if "sql" in (config.memory_backend, config.ticket_backend):
        logger.info("Initializing database")
        engine = init_database(config.database_url)
        try:
            await create_tables(engine)
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database not available - running in degraded mode: {e}")
        session_maker = get_session_maker()
        app.state.database = "configured"

    # Repositories
    if config.ticket_backend == "sql":
        ticket_repository = SQLAlchemyTicketRepository(session_maker)
    else:
        ticket_repository = InMemoryTicketRepository()

    if config.memory_backend == "sql":
        memory_repository = SQLAlchemyChatMemoryRepository(
            session_maker,
            max_messages=config.chat_memory_limit,
            ttl_seconds=config.chat_memory_ttl_seconds
        )
    else:
        memory_repository = InMemoryChatMemoryRepository(
            max_messages=config.chat_memory_limit,
            ttl_seconds=config.chat_memory_ttl_seconds
        )

    ticket_service = TicketService(ticket_repository)
    app.state.ticket_service = ticket_service

    # LLM client
    logger.info("Initializing LLM client", extra={"provider": config.llm_provider})
    try:
        llm_client = create_generation_client(config)
    except ConfigurationException as e:
        logger.warning(f"LLM client not configured - chat unavailable: {e.message}")
        app.state.llm_client = None
        app.state.orchestrator = None
        return
    app.state.llm_client = llm_client

    # Vector store
    logger.info("Initializing vector store", extra={"backend": config.vector_store_backend})
    vector_store = create_vector_store(config)
    try:
        await vector_store.initialize()
    except VectorStoreException as e:
        logger.warning(f"Vector store not available, using in-memory store: {e.message}")
        vector_store = InMemoryVectorStore()
    app.state.vector_store = vector_store

    # Knowledge corpus
    source_provider = SourceProvider(config.sources_config_path, config.corpus_source_urls)
    source_provider.load()
    source_provider.start_watching()
    app.state.source_provider = source_provider

    retriever = DocumentRetriever(
        llm_client,
        vector_store,
        source_provider,
        CorpusFreshnessTracker(config.corpus_refresh_log_path, config.corpus_max_age_hours),
        config=config
    )

    if config.corpus_refresh_mode == "background":
        scheduler = CorpusRefreshScheduler(retriever, config.corpus_max_age_hours)
        await scheduler.start()
        app.state.corpus_scheduler = scheduler

    # Orchestrator
    app.state.orchestrator = ChatOrchestrator(
        classifier=IntentClassifier(llm_client, config.classifier_model),
        generators=build_generator_registry(llm_client, retriever, config),
        ticket_extractor=TicketExtractor(ticket_service),
        tone_refiner=ToneRefiner(llm_client, config.personality_model),
        memory_repository=memory_repository,
        history_limit=config.chat_memory_limit
    )


async def shutdown_services(app: FastAPI) -> None:
    scheduler = getattr(app.state, "corpus_scheduler", None)
    if scheduler:
        await scheduler.stop()

    source_provider = getattr(app.state, "source_provider", None)
    if source_provider:
        source_provider.stop_watching()

    await close_database()


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Application lifespan manager.

        STARTUP:
        1. Setup structured logging
        2. Initialize database and create tables
        3. Build repositories and ticket service
        4. Initialize LLM client and vector store
        5. Load corpus sources and start the refresh scheduler
        6. Build the chat orchestrator

        SHUTDOWN:
        1. Stop the refresh scheduler and sources watcher
        2. Close database connections
        """
        setup_logging(config.log_level, config.environment)
        logger.info("Starting AgentDesk", extra={
            "version": config.app_version,
            "environment": config.environment
        })

        await init_services(app, config)
        logger.info("AgentDesk started successfully")

        yield  # Application runs here

        logger.info("Shutting down AgentDesk")
        await shutdown_services(app)
        logger.info("AgentDesk shutdown complete")

    app = FastAPI(
        title="AgentDesk API",
        description="""
    ## Multi-Agent Customer Support Chat

    Each message is classified and routed to a specialised agent:

    - **Knowledge agent** answers product questions from the documentation corpus (RAG)
    - **Customer service agent** helps with account and order issues and files support tickets

    Replies are rewritten in the support persona's voice, and each conversation
    keeps a short, expiring memory.

    ### Endpoints
    - `POST /api/chat` - Send a message
    - `GET /api/chat/{userId}/history` - Conversation history
    - `DELETE /api/chat/{userId}` - Clear a conversation
    - `GET /api/tickets` - List tickets
    - `GET /api/tickets/{id}` - Get a ticket
    - `PATCH /api/tickets/{id}` - Update ticket status
    """,
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = config

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(InvalidInputException, invalid_input_handler)
    app.add_exception_handler(ValidationException, validation_exception_handler)
    app.add_exception_handler(ResourceNotFoundException, not_found_handler)
    app.add_exception_handler(ApplicationException, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(chat_router)
    app.include_router(tickets_router)

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "chat": "available",
                            "llm_client": "available",
                            "vector_store": "available (120 documents)",
                            "corpus_scheduler": "stopped"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        state = request.app.state
        scheduler = getattr(state, "corpus_scheduler", None)
        checks = {
            "chat": "available" if getattr(state, "orchestrator", None) else "unavailable",
            "llm_client": "available" if getattr(state, "llm_client", None) else "not_configured",
            "vector_store": "initializing",
            "corpus_scheduler": "running" if scheduler and scheduler.is_running else "stopped"
        }

        vector_store = getattr(state, "vector_store", None)
        if vector_store is not None:
            try:
                count = await vector_store.get_document_count()
                checks["vector_store"] = f"available ({count} documents)"
            except VectorStoreException as e:
                checks["vector_store"] = f"error: {e.message}"

        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "AgentDesk",
            "version": config.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "chat": {
                    "prefix": "/api/chat",
                    "endpoints": [
                        "POST /api/chat - Send a message",
                        "GET /api/chat/{userId}/history - Conversation history",
                        "DELETE /api/chat/{userId} - Clear a conversation"
                    ]
                },
                "tickets": {
                    "prefix": "/api/tickets",
                    "endpoints": [
                        "GET /api/tickets - List tickets",
                        "GET /api/tickets/{id} - Get a ticket",
                        "PATCH /api/tickets/{id} - Update ticket status"
                    ]
                }
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agentdesk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "development",
        log_level="info"
    )
