"""
Conversation Repository
Durable log of conversations and messages behind the Redis cache.

- SupabaseConversationRepository: tables "conversations" and "chat_messages"
- InMemoryConversationRepository: process-local, for development and tests
"""
import asyncio
import logging
from typing import Dict, List, Optional, Protocol

from supabase import Client, create_client

from datasense.config import Settings
from datasense.models.chat import ChatMessage, Conversation

logger = logging.getLogger(__name__)


class ConversationRepository(Protocol):
    async def insert_conversation(self, conversation: Conversation) -> Conversation: ...

    async def get_active_conversation(self, conversation_id: str) -> Optional[Conversation]: ...

    async def list_owner_conversations(self, owner_id: str) -> List[Conversation]: ...

    async def insert_message(self, message: ChatMessage) -> None: ...

    async def list_messages(self, conversation_id: str) -> List[ChatMessage]: ...


class InMemoryConversationRepository:
    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[ChatMessage]] = {}

    async def insert_conversation(self, conversation: Conversation) -> Conversation:
        self._conversations[conversation.id] = conversation
        return conversation

    async def get_active_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or not conversation.is_active:
            return None
        return conversation

    async def list_owner_conversations(self, owner_id: str) -> List[Conversation]:
        owned = [c for c in self._conversations.values() if c.owner_id == owner_id and c.is_active]
        return sorted(owned, key=lambda c: c.last_activity, reverse=True)

    async def insert_message(self, message: ChatMessage) -> None:
        messages = self._messages.setdefault(message.conversation_id, [])
        if any(m.id == message.id for m in messages):
            return
        messages.append(message)

    async def list_messages(self, conversation_id: str) -> List[ChatMessage]:
        return sorted(self._messages.get(conversation_id, []), key=lambda m: m.timestamp)


class SupabaseConversationRepository:
    """Supabase-backed log. The client is synchronous, so calls run in a worker thread."""

    def __init__(self, client: Client):
        self.client = client

    @staticmethod
    def _conversation_row(conversation: Conversation) -> dict:
        return {
            "id": conversation.id,
            "user_id": conversation.owner_id,
            "created_at": conversation.created_at.isoformat(),
            "updated_at": conversation.updated_at.isoformat() if conversation.updated_at else None,
            "is_active": conversation.is_active,
            "external_user_id": conversation.external_channel_id,
            "platform_type": conversation.platform_type,
        }

    @staticmethod
    def _to_conversation(row: dict) -> Conversation:
        return Conversation(
            id=row["id"],
            owner_id=row["user_id"],
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
            is_active=row.get("is_active", True),
            external_channel_id=row.get("external_user_id"),
            platform_type=row.get("platform_type"),
        )

    async def insert_conversation(self, conversation: Conversation) -> Conversation:
        response = await asyncio.to_thread(
            lambda: self.client.table("conversations").insert(self._conversation_row(conversation)).execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create conversation")
        return self._to_conversation(response.data[0])

    async def get_active_conversation(self, conversation_id: str) -> Optional[Conversation]:
        response = await asyncio.to_thread(
            lambda: self.client.table("conversations")
            .select("*")
            .eq("id", conversation_id)
            .eq("is_active", True)
            .execute()
        )
        if not response.data:
            return None
        return self._to_conversation(response.data[0])

    async def list_owner_conversations(self, owner_id: str) -> List[Conversation]:
        response = await asyncio.to_thread(
            lambda: self.client.table("conversations")
            .select("*")
            .eq("user_id", owner_id)
            .eq("is_active", True)
            .execute()
        )
        conversations = [self._to_conversation(row) for row in response.data or []]
        return sorted(conversations, key=lambda c: c.last_activity, reverse=True)

    async def insert_message(self, message: ChatMessage) -> None:
        row = {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "role": message.role,
            "content": message.content,
            "timestamp": message.timestamp.isoformat(),
            "metadata": message.metadata or {},
        }
        # Upsert on id so a repeated insert of the same message is a no-op
        await asyncio.to_thread(lambda: self.client.table("chat_messages").upsert(row, on_conflict="id").execute())

    async def list_messages(self, conversation_id: str) -> List[ChatMessage]:
        response = await asyncio.to_thread(
            lambda: self.client.table("chat_messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("timestamp", desc=False)
            .execute()
        )
        return [ChatMessage.model_validate(row) for row in response.data or []]


def create_conversation_repository(config: Settings) -> ConversationRepository:
    if config.is_supabase_configured:
        logger.info("Using Supabase conversation log")
        return SupabaseConversationRepository(create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY))
    logger.warning("Supabase not configured. Conversation log is in-memory and lost on restart.")
    return InMemoryConversationRepository()
