"""Chat endpoints with optional streaming.

Features:
- Provider/model selection per request
- Optional persistence of the exchange into a conversation
- SSE streaming with clean disconnect handling
- Per-client rate limiting
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
import json
import asyncio

from chatrelay.api.dependencies import enforce_chat_rate_limit, get_chat_service
from chatrelay.errors import ChatRelayError
from chatrelay.middleware.logging import get_logger
from chatrelay.schemas.chat import ChatRequest, ChatResponse
from chatrelay.services.chat import ChatService
from chatrelay.services.providers import PROVIDER_METADATA

router = APIRouter()
logger = get_logger()


@router.post("/chat", response_model=ChatResponse, dependencies=[Depends(enforce_chat_rate_limit)])
async def chat(
    chat_request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service)
):
    """Send the conversation to a provider and return the full reply."""
    logger.info(
        "chat_request_received",
        provider=chat_request.provider,
        model=chat_request.model,
        conversation_id=chat_request.conversation_id,
        message_count=len(chat_request.messages)
    )
    return await chat_service.process_message(
        chat_request.messages,
        provider=chat_request.provider,
        model=chat_request.model,
        conversation_id=chat_request.conversation_id
    )


@router.post("/chat/stream", dependencies=[Depends(enforce_chat_rate_limit)])
async def chat_stream(
    request: Request,
    chat_request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service)
):
    """
    Chat endpoint with Server-Sent Events (SSE) streaming.

    Example SSE events:
        data: {"token": "Hello"}
        data: {"token": " there!"}
        data: {"done": true, "provider": "openai", "model": "gpt-4o-mini", ...}
    """
    # Selection and the user message save fail fast, before the stream opens
    provider, model = chat_service.provider_service.resolve(chat_request.provider, chat_request.model)
    conversation_id = chat_request.conversation_id
    if conversation_id is not None:
        await chat_service.save_user_message(conversation_id, chat_request.messages)

    messages = [{"role": m.role.value, "content": m.content} for m in chat_request.messages]
    trace_id = getattr(request.state, "trace_id", None)

    async def event_stream():
        metadata = {}
        try:
            logger.info(
                "llm_call_started",
                provider=provider,
                model=model,
                message_count=len(messages),
                trace_id=trace_id
            )

            async for token, meta in chat_service.llm.stream_chat(messages, provider, model):
                if token:
                    yield f"data: {json.dumps({'token': token})}\n\n"
                if meta.get("done"):
                    metadata = meta

            if conversation_id is not None:
                await chat_service.save_assistant_reply(
                    conversation_id, metadata.get("full_content", ""), provider, model
                )

            logger.info(
                "llm_call_completed",
                provider=provider,
                model=model,
                tokens_in=metadata.get("tokens_in"),
                tokens_out=metadata.get("tokens_out"),
                latency_ms=metadata.get("latency_ms")
            )

            final_data = {
                "done": True,
                "provider": provider,
                "provider_name": PROVIDER_METADATA[provider].name,
                "model": model,
                "conversation_id": conversation_id,
                "tokens_in": metadata.get("tokens_in"),
                "tokens_out": metadata.get("tokens_out"),
                "latency_ms": metadata.get("latency_ms")
            }
            yield f"data: {json.dumps(final_data)}\n\n"

        except asyncio.CancelledError:
            logger.info("stream_client_disconnected", provider=provider, model=model)
            raise

        except ChatRelayError as e:
            # The stream is already open, so failures are reported as a final event
            logger.error(
                "chat_stream_failed",
                error_code=e.error_code.value,
                provider=provider,
                model=model,
                error=e.message
            )
            yield f"data: {json.dumps({'error': e.error_code.value, 'message': e.message})}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            **getattr(request.state, "rate_limit_headers", {})
        }
    )
