"""LLM service for chat completions across providers."""
import openai
from typing import AsyncGenerator, Dict, List, Optional, Tuple
import time

import structlog

from chatrelay.errors import LLMProviderError
from chatrelay.services.providers import ProviderService

logger = structlog.get_logger()


class LLMService:
    """Service for sending chats to any configured provider."""

    def __init__(
        self,
        provider_service: ProviderService,
        timeout: float = 60.0,
        max_tokens: int = 1000,
        temperature: float = 0.7
    ):
        self.provider_service = provider_service
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._clients: Dict[str, openai.AsyncOpenAI] = {}

    def get_client(self, provider: str) -> openai.AsyncOpenAI:
        """Get or create the OpenAI-compatible client for a provider."""
        if provider not in self._clients:
            config = self.provider_service.get_config(provider)
            self._clients[provider] = openai.AsyncOpenAI(
                api_key=self.provider_service.get_api_key(provider),
                base_url=config.base_url,
                timeout=self.timeout
            )
        return self._clients[provider]

    def clear_clients(self) -> None:
        """Drop cached clients, e.g. after API keys change."""
        self._clients.clear()

    async def get_completion(
        self,
        messages: List[Dict[str, str]],
        provider: str,
        model: str
    ) -> Dict:
        """
        Get a non-streaming completion.

        Returns:
            Dict with 'content', 'tokens_in', 'tokens_out', 'latency_ms', 'model', 'provider'

        Raises:
            LLMProviderError: If the provider call fails
        """
        start_time = time.time()
        client = self.get_client(provider)

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )
        except openai.OpenAIError as e:
            provider_name = self.provider_service.get_config(provider).name
            logger.error(
                "llm_call_failed",
                provider=provider,
                model=model,
                error=str(e),
                error_type=type(e).__name__
            )
            raise LLMProviderError(provider_name, str(e)) from e

        latency_ms = int((time.time() - start_time) * 1000)
        usage = response.usage

        return {
            "content": response.choices[0].message.content or "",
            "tokens_in": usage.prompt_tokens if usage else None,
            "tokens_out": usage.completion_tokens if usage else None,
            "latency_ms": latency_ms,
            "model": model,
            "provider": provider
        }

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        provider: str,
        model: str
    ) -> AsyncGenerator[Tuple[str, Dict], None]:
        """
        Stream chat completion tokens from a provider.

        Yields:
            Tuples of (token: str, metadata: dict)
            Final yield contains complete response metadata

        Example:
            >>> async for token, metadata in service.stream_chat(messages, "openai", "gpt-4o-mini"):
            >>>     print(token, end="", flush=True)
        """
        start_time = time.time()
        full_content = ""
        tokens_in: Optional[int] = None
        tokens_out: Optional[int] = None
        client = self.get_client(provider)

        try:
            stream = await client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                stream=True
            )

            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    token = chunk.choices[0].delta.content
                    full_content += token
                    yield token, {}

                # Usage arrives in the final chunk when the provider reports it
                if getattr(chunk, "usage", None):
                    tokens_in = chunk.usage.prompt_tokens
                    tokens_out = chunk.usage.completion_tokens

        except openai.OpenAIError as e:
            provider_name = self.provider_service.get_config(provider).name
            raise LLMProviderError(provider_name, str(e)) from e

        yield "", {
            "done": True,
            "full_content": full_content,
            "tokens_in": tokens_in,
            "tokens_out": tokens_out,
            "latency_ms": int((time.time() - start_time) * 1000),
            "model": model,
            "provider": provider
        }
