"""Chat processing service: provider selection, relay and optional persistence."""
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from chatrelay.errors import ConversationNotFoundError
from chatrelay.models.message import MessageRole
from chatrelay.schemas.chat import ChatMessage, ChatResponse
from chatrelay.schemas.conversation import SaveMessageData
from chatrelay.services.conversations import ConversationService
from chatrelay.services.llm import LLMService
from chatrelay.services.providers import PROVIDER_METADATA, ProviderService

logger = structlog.get_logger()


class ChatService:
    """Relays a conversation to a provider and records the exchange when asked."""

    def __init__(
        self,
        llm: LLMService,
        provider_service: ProviderService,
        conversations: Optional[ConversationService] = None
    ):
        self.llm = llm
        self.provider_service = provider_service
        self.conversations = conversations

    async def process_message(
        self,
        messages: List[ChatMessage],
        provider: Optional[str] = None,
        model: Optional[str] = None,
        conversation_id: Optional[str] = None
    ) -> ChatResponse:
        """
        Send the full conversation to the selected provider.

        When ``conversation_id`` is given the last user message is saved before
        the call and the assistant reply after it.

        Raises:
            ProviderUnavailableError, UnsupportedModelError: Bad provider/model selection
            ConversationNotFoundError: conversation_id does not exist
            LLMProviderError: Upstream call failed
        """
        selected_provider, selected_model = self.provider_service.resolve(provider, model)

        if conversation_id is not None:
            await self.save_user_message(conversation_id, messages)

        logger.info(
            "llm_call_started",
            provider=selected_provider,
            model=selected_model,
            message_count=len(messages),
            conversation_id=conversation_id
        )

        result = await self.llm.get_completion(
            [{"role": m.role.value, "content": m.content} for m in messages],
            selected_provider,
            selected_model
        )

        logger.info(
            "llm_call_completed",
            provider=selected_provider,
            model=selected_model,
            tokens_in=result.get("tokens_in"),
            tokens_out=result.get("tokens_out"),
            latency_ms=result.get("latency_ms")
        )

        if conversation_id is not None:
            await self.save_assistant_reply(
                conversation_id, result["content"], selected_provider, selected_model
            )

        return ChatResponse(
            response=result["content"],
            timestamp=datetime.now(timezone.utc).isoformat(),
            provider=selected_provider,
            provider_name=PROVIDER_METADATA[selected_provider].name,
            model=selected_model,
            conversation_id=conversation_id
        )

    async def save_assistant_reply(
        self,
        conversation_id: str,
        content: str,
        provider: str,
        model: str
    ) -> None:
        if self.conversations is None or not content:
            return
        await self.conversations.save_message(SaveMessageData(
            conversation_id=conversation_id,
            role=MessageRole.ASSISTANT.value,
            content=content,
            provider=provider,
            model=model
        ))

    async def save_user_message(self, conversation_id: str, messages: List[ChatMessage]) -> None:
        """Persist the newest message if it came from the user."""
        if self.conversations is None:
            return
        last = messages[-1]
        if last.role != MessageRole.USER:
            # Nothing new from the user; still make sure the conversation exists
            if await self.conversations.get_conversation(conversation_id) is None:
                raise ConversationNotFoundError(conversation_id)
            return
        await self.conversations.save_message(SaveMessageData(
            conversation_id=conversation_id,
            role=last.role.value,
            content=last.content
        ))
