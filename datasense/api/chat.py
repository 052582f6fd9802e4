"""
Chat API Endpoints

Asynchronous path: a turn is stored, classified and queued. The reply is
written to the conversation history by the background worker; there is no
error channel back to the caller for a failed background turn.
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from datasense.dependencies import ServiceContainer, get_container
from datasense.models.api import (
    StartConversationRequest,
    SendChatMessageRequest,
    SendChatMessageResponse,
)
from datasense.models.chat import ChatMessage, Conversation, MessageRole
from datasense.services.exceptions import (
    BrokerUnavailableError,
    CacheUnavailableError,
    ConversationNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/conversations", response_model=Conversation, status_code=201)
async def start_conversation(
    request: StartConversationRequest,
    services: ServiceContainer = Depends(get_container)
):
    """
    Start a conversation. If a suggestion is given it is queued as the first turn.
    """
    conversation = await services.conversations.create_conversation(
        owner_id=request.owner_id,
        external_channel_id=request.external_channel_id,
        platform_type=request.platform_type,
    )

    if request.suggestion:
        try:
            await services.conversations.append_message(
                conversation.id,
                ChatMessage(conversation_id=conversation.id, role=MessageRole.USER, content=request.suggestion),
            )
            await services.queue.enqueue(conversation.id, request.suggestion)
        except (BrokerUnavailableError, CacheUnavailableError) as e:
            logger.error(f"Conversation {conversation.id} created but first turn not queued: {e}")
            raise HTTPException(status_code=503, detail="Conversation created but the first message could not be queued")

    return conversation


@router.post("/messages", response_model=SendChatMessageResponse, status_code=202)
async def send_message(
    request: SendChatMessageRequest,
    services: ServiceContainer = Depends(get_container)
):
    """
    Accept one user turn.

    Flow:
    1. Check the conversation exists
    2. Append the user message to the history
    3. Classify whether the turn needs a database query
    4. Queue the turn for the background worker
    """
    try:
        conversation = await services.conversations.require_conversation(request.conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")

    user_message = ChatMessage(
        conversation_id=request.conversation_id,
        role=MessageRole.USER,
        content=request.message,
    )
    try:
        await services.conversations.append_message(request.conversation_id, user_message)
    except CacheUnavailableError as e:
        # The durable log already holds the turn at this point
        logger.error(f"User turn for {request.conversation_id} logged but not cached: {e}")
        raise HTTPException(
            status_code=503,
            detail="Message was saved but could not be processed; do not resend it",
        )

    decision = await services.query_detection.decide(request.message, request.database_schema)
    app_metadata = await services.app_metadata.get_app_metadata(conversation.owner_id)

    metadata = {
        **request.metadata,
        "requiresQuery": decision.needs_query,
        "schema": "provided" if request.database_schema is not None else "none",
    }
    try:
        await services.queue.enqueue(request.conversation_id, request.message, metadata)
    except BrokerUnavailableError:
        raise HTTPException(status_code=503, detail="Message could not be queued, please retry")

    return SendChatMessageResponse(
        conversation_id=request.conversation_id,
        accepted=True,
        requires_query_execution=decision.needs_query,
        links=app_metadata.links if app_metadata else [],
    )
