"""FastAPI dependencies resolving the services built in the app lifespan."""
from fastapi import Request, Response

from chatrelay.config import Settings
from chatrelay.services.chat import ChatService
from chatrelay.services.conversations import ConversationService
from chatrelay.services.llm import LLMService
from chatrelay.services.providers import ProviderService
from chatrelay.services.rate_limiter import RateLimiter
from chatrelay.services.settings import SettingsService


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service


def get_provider_service(request: Request) -> ProviderService:
    return request.app.state.provider_service


def get_llm_service(request: Request) -> LLMService:
    return request.app.state.llm_service


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_settings_service(request: Request) -> SettingsService:
    return request.app.state.settings_service


def enforce_chat_rate_limit(request: Request, response: Response) -> None:
    """
    Count a chat request against the client's per-minute budget.

    The budget is reported in X-RateLimit-* headers; streaming routes copy
    them from ``request.state.rate_limit_headers``.
    """
    limiter: RateLimiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client_ip = request.client.host if request.client else "unknown"
    remaining = limiter.enforce(client_ip)

    headers = {
        "X-RateLimit-Limit": str(limiter.limit),
        "X-RateLimit-Remaining": str(remaining),
    }
    request.state.rate_limit_headers = headers
    response.headers.update(headers)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
