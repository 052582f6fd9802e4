"""
Conversation Service

Cache-first access to conversations and their history. A cache miss falls
back to the durable log and repopulates the cache.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from datasense.models.chat import ChatMessage, Conversation
from datasense.services.conversation_repository import ConversationRepository
from datasense.services.exceptions import CacheUnavailableError, ConversationNotFoundError
from datasense.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(self, repository: ConversationRepository, cache: RedisService):
        self.repository = repository
        self.cache = cache

    async def create_conversation(
        self,
        owner_id: str,
        external_channel_id: Optional[str] = None,
        platform_type: Optional[str] = None,
    ) -> Conversation:
        conversation = await self.repository.insert_conversation(
            Conversation(
                owner_id=owner_id,
                external_channel_id=external_channel_id,
                platform_type=platform_type,
            )
        )
        await self._cache_conversation(conversation)

        logger.info(f"Conversation created: {conversation.id} for owner: {owner_id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        cached = await self.cache.get_conversation(conversation_id)
        if cached is not None:
            return cached

        conversation = await self.repository.get_active_conversation(conversation_id)
        if conversation is not None:
            await self._cache_conversation(conversation)
        return conversation

    async def require_conversation(self, conversation_id: str) -> Conversation:
        """Like get_conversation, but an unknown id raises ConversationNotFoundError"""
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return conversation

    async def get_history(self, conversation_id: str) -> List[ChatMessage]:
        history = await self.cache.get_chat_history(conversation_id)
        if history:
            return history

        history = await self.repository.list_messages(conversation_id)
        if history:
            logger.info(f"Repopulating cached history for {conversation_id} ({len(history)} messages)")
            try:
                await self.cache.save_chat_history(conversation_id, history)
            except CacheUnavailableError:
                logger.warning(f"Could not repopulate history cache for {conversation_id}")
        return history

    async def append_message(self, conversation_id: str, message: ChatMessage) -> None:
        """
        Durable log first, then the cached history.

        A cached history that expired or was evicted is rebuilt from the log
        (which already holds this message) rather than restarted at it.
        """
        await self.repository.insert_message(message)
        appended = await self.cache.add_message_to_history(conversation_id, message, create_missing=False)
        if not appended:
            history = await self.repository.list_messages(conversation_id)
            logger.info(f"Rebuilding cached history for {conversation_id} from the log ({len(history)} messages)")
            await self.cache.save_chat_history(conversation_id, history)

    async def touch(self, conversation: Conversation) -> Conversation:
        """Record activity on the conversation"""
        conversation.updated_at = datetime.now(timezone.utc)
        await self.cache.save_conversation(conversation.id, conversation)
        return conversation

    async def list_owner_conversations(self, owner_id: str) -> List[Conversation]:
        return await self.repository.list_owner_conversations(owner_id)

    async def _cache_conversation(self, conversation: Conversation) -> None:
        try:
            await self.cache.save_conversation(conversation.id, conversation)
        except CacheUnavailableError:
            logger.warning(f"Could not cache conversation {conversation.id}")
