"""
Redis Service
Connection factory plus the conversation cache.

Keys:
- chat:history:{conversation_id}  -> JSON array of messages (30 days)
- conversation:{conversation_id}  -> JSON conversation document (30 days)
- app:metadata:{owner_id}         -> JSON owner metadata (365 days)

The cache is never the source of truth. Reads that fail are logged and
reported as a miss so a turn degrades to context-free generation instead
of failing. Writes raise CacheUnavailableError.
"""
import json
import logging
from typing import List, Optional

import redis.asyncio as redis
from redis import exceptions as redis_exceptions
from pydantic import ValidationError

from datasense.config import Settings
from datasense.models.chat import AppMetadata, ChatMessage, Conversation
from datasense.services.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

CHAT_HISTORY_PREFIX = "chat:history:"
CONVERSATION_PREFIX = "conversation:"
APP_METADATA_PREFIX = "app:metadata:"


def create_redis(config: Settings) -> redis.Redis:
    """Create a Redis client with its own connection pool. Called once at startup."""
    pool = redis.ConnectionPool(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_DB,
        password=config.REDIS_PASSWORD,
        decode_responses=True,
        max_connections=config.REDIS_MAX_CONNECTIONS,
        socket_connect_timeout=5,
    )
    return redis.Redis(connection_pool=pool)


def _dump_history(messages: List[ChatMessage]) -> str:
    return json.dumps([m.model_dump(mode="json", by_alias=True) for m in messages], ensure_ascii=False)


def _load_history(raw: Optional[str], conversation_id: str) -> List[ChatMessage]:
    if not raw:
        return []
    try:
        return [ChatMessage.model_validate(item) for item in json.loads(raw)]
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Discarding unreadable chat history for {conversation_id}: {e}")
        return []


class RedisService:
    """Conversation cache over an explicitly supplied Redis client"""

    def __init__(
        self,
        client: redis.Redis,
        conversation_ttl: int = 30 * 24 * 3600,
        history_ttl: int = 30 * 24 * 3600,
        metadata_ttl: int = 365 * 24 * 3600,
        append_retries: int = 5,
    ):
        self.redis = client
        self.conversation_ttl = conversation_ttl
        self.history_ttl = history_ttl
        self.metadata_ttl = metadata_ttl
        self.append_retries = append_retries

    @classmethod
    def from_settings(cls, client: redis.Redis, config: Settings) -> "RedisService":
        return cls(
            client,
            conversation_ttl=config.CONVERSATION_TTL,
            history_ttl=config.CHAT_HISTORY_TTL,
            metadata_ttl=config.APP_METADATA_TTL,
            append_retries=config.HISTORY_APPEND_RETRIES,
        )

    # ============ Chat History ============

    async def get_chat_history(self, conversation_id: str) -> List[ChatMessage]:
        """Ordered messages, or an empty list on a miss or a Redis failure"""
        try:
            raw = await self.redis.get(f"{CHAT_HISTORY_PREFIX}{conversation_id}")
        except redis_exceptions.RedisError as e:
            logger.error(f"Error getting chat history from Redis: {e}")
            return []
        return _load_history(raw, conversation_id)

    async def save_chat_history(self, conversation_id: str, messages: List[ChatMessage]) -> None:
        """Whole-value overwrite of the history"""
        try:
            await self.redis.set(
                f"{CHAT_HISTORY_PREFIX}{conversation_id}",
                _dump_history(messages),
                ex=self.history_ttl,
            )
        except redis_exceptions.RedisError as e:
            logger.error(f"Error saving chat history to Redis: {e}")
            raise CacheUnavailableError(f"Failed to save chat history: {e}") from e

    async def add_message_to_history(
        self,
        conversation_id: str,
        message: ChatMessage,
        create_missing: bool = True,
    ) -> bool:
        """
        Append one message atomically.

        Read-modify-write runs under WATCH on the history key. If another
        writer changes the key before EXEC, the transaction aborts and is
        retried against the fresh value, so no message is lost.

        With create_missing=False a missing or unreadable history is left
        alone and False is returned, so the caller can rebuild it from the
        durable log instead of caching a history that starts mid-conversation.
        """
        key = f"{CHAT_HISTORY_PREFIX}{conversation_id}"
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                for attempt in range(1, self.append_retries + 1):
                    try:
                        await pipe.watch(key)
                        history = _load_history(await pipe.get(key), conversation_id)
                        if not history and not create_missing:
                            await pipe.unwatch()
                            return False
                        history.append(message)
                        pipe.multi()
                        pipe.set(key, _dump_history(history), ex=self.history_ttl)
                        await pipe.execute()
                        return True
                    except redis_exceptions.WatchError:
                        logger.debug(f"History for {conversation_id} changed during append (attempt {attempt})")
                        continue
        except redis_exceptions.RedisError as e:
            logger.error(f"Error adding message to chat history: {e}")
            raise CacheUnavailableError(f"Failed to append message: {e}") from e

        raise CacheUnavailableError(
            f"History for {conversation_id} kept changing, gave up after {self.append_retries} attempts"
        )

    # ============ Conversations ============

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        try:
            raw = await self.redis.get(f"{CONVERSATION_PREFIX}{conversation_id}")
        except redis_exceptions.RedisError as e:
            logger.error(f"Error getting conversation from Redis: {e}")
            return None
        if not raw:
            return None
        try:
            return Conversation.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable conversation {conversation_id}: {e}")
            return None

    async def save_conversation(self, conversation_id: str, conversation: Conversation) -> None:
        try:
            await self.redis.set(
                f"{CONVERSATION_PREFIX}{conversation_id}",
                conversation.model_dump_json(by_alias=True),
                ex=self.conversation_ttl,
            )
        except redis_exceptions.RedisError as e:
            logger.error(f"Error saving conversation to Redis: {e}")
            raise CacheUnavailableError(f"Failed to save conversation: {e}") from e

    # ============ Owner Metadata ============

    async def get_app_metadata(self, owner_id: str) -> Optional[AppMetadata]:
        try:
            raw = await self.redis.get(f"{APP_METADATA_PREFIX}{owner_id}")
        except redis_exceptions.RedisError as e:
            logger.error(f"Error getting app metadata from Redis: {e}")
            return None
        if not raw:
            return None
        try:
            return AppMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable app metadata for {owner_id}: {e}")
            return None

    async def save_app_metadata(self, owner_id: str, metadata: AppMetadata) -> None:
        try:
            await self.redis.set(
                f"{APP_METADATA_PREFIX}{owner_id}",
                metadata.model_dump_json(by_alias=True),
                ex=self.metadata_ttl,
            )
        except redis_exceptions.RedisError as e:
            logger.error(f"Error saving app metadata to Redis: {e}")
            raise CacheUnavailableError(f"Failed to save app metadata: {e}") from e
