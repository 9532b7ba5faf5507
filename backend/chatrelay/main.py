"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import redis

from chatrelay.config import Settings, get_settings
from chatrelay.database import Database
from chatrelay.middleware.logging import LoggingMiddleware, configure_logging, get_logger
from chatrelay.api import chat, conversations, health
from chatrelay.api import settings as settings_api
from chatrelay.api.errors import register_exception_handlers
from chatrelay.repositories import SettingsRepository, SqliteChatRepository
from chatrelay.services.chat import ChatService
from chatrelay.services.conversations import ConversationService
from chatrelay.services.llm import LLMService
from chatrelay.services.providers import ProviderService
from chatrelay.services.rate_limiter import RateLimiter
from chatrelay.services.settings import SettingsService

logger = get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; tests pass their own settings."""
    settings = settings or get_settings()
    configure_logging(settings.json_logs, settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store and wire services for the lifetime of the app."""
        database = Database(settings.resolve_database_path(), echo=settings.debug)
        # StorageError here aborts startup
        database.get_connection()

        settings_repository = SettingsRepository(database)
        provider_service = ProviderService(settings, settings_repository)
        conversation_service = ConversationService(SqliteChatRepository(database))
        llm_service = LLMService(
            provider_service,
            timeout=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature
        )

        app.state.settings = settings
        app.state.database = database
        app.state.provider_service = provider_service
        app.state.conversation_service = conversation_service
        app.state.llm_service = llm_service
        app.state.chat_service = ChatService(llm_service, provider_service, conversation_service)
        app.state.settings_service = SettingsService(
            settings_repository,
            provider_service,
            llm_service,
            verify_keys=settings.verify_api_keys
        )
        app.state.rate_limiter = None
        if settings.rate_limit_enabled:
            app.state.rate_limiter = RateLimiter(
                redis.from_url(settings.redis_url),
                limit=settings.rate_limit_chat_per_minute,
                window=settings.rate_limit_window
            )

        available = provider_service.get_available_providers()
        if not available:
            logger.warning("no_providers_configured")
        logger.info(
            "application_started",
            environment=settings.environment,
            available_providers=available,
            database_path=str(database.path)
        )

        try:
            yield  # App runs here
        finally:
            database.close()
            logger.info("application_stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Multi-provider chat relay with persistent, branchable conversation history",
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    allowed_origins = [
        "http://localhost:5173",
        "http://localhost:3000",
        settings.frontend_url,
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"]
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(chat.router, prefix="/api", tags=["chat"])
    app.include_router(conversations.router, prefix="/api", tags=["conversations"])
    app.include_router(settings_api.router, prefix="/api", tags=["settings"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": settings.app_name,
            "version": settings.version,
            "docs": "/docs" if settings.debug else "disabled",
            "endpoints": {
                "health": "/api/health",
                "providers": "/api/providers",
                "chat": "POST /api/chat",
                "conversations": "/api/conversations",
                "settings": "/api/settings/api-keys"
            }
        }

    return app


app = create_app()

# uvicorn chatrelay.main:app --reload
