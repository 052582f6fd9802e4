import asyncio

import pytest
from redis import exceptions as redis_exceptions

from datasense.models.chat import AppLink, AppMetadata, ChatMessage, Conversation, MessageRole
from datasense.services.exceptions import CacheUnavailableError
from datasense.services.redis_service import RedisService


class UnreachableRedis:
    """Every command fails the way a dropped connection does"""

    async def get(self, *args, **kwargs):
        raise redis_exceptions.ConnectionError("Connection refused")

    async def set(self, *args, **kwargs):
        raise redis_exceptions.ConnectionError("Connection refused")

    def pipeline(self, *args, **kwargs):
        raise redis_exceptions.ConnectionError("Connection refused")


def message(conversation_id: str, content: str, role: MessageRole = MessageRole.USER) -> ChatMessage:
    return ChatMessage(conversation_id=conversation_id, role=role, content=content)


@pytest.mark.asyncio
async def test_history_miss_is_empty(cache):
    assert await cache.get_chat_history("missing") == []


@pytest.mark.asyncio
async def test_appended_messages_keep_their_order(cache):
    await cache.add_message_to_history("c1", message("c1", "first"))
    await cache.add_message_to_history("c1", message("c1", "second", MessageRole.ASSISTANT))
    await cache.add_message_to_history("c1", message("c1", "third"))

    history = await cache.get_chat_history("c1")

    assert [m.content for m in history] == ["first", "second", "third"]
    assert history[1].role == "assistant"


@pytest.mark.asyncio
async def test_history_is_stored_with_ttl(cache, redis_client):
    await cache.add_message_to_history("c1", message("c1", "hi"))

    ttl = await redis_client.ttl("chat:history:c1")
    assert 0 < ttl <= 30 * 24 * 3600


@pytest.mark.asyncio
async def test_history_wire_format_uses_camel_case(cache, redis_client):
    await cache.add_message_to_history("c1", message("c1", "hi"))

    raw = await redis_client.get("chat:history:c1")
    assert '"conversationId": "c1"' in raw
    assert '"role": "user"' in raw


@pytest.mark.asyncio
async def test_concurrent_appends_lose_nothing(redis_client):
    cache = RedisService(redis_client, append_retries=50)

    await asyncio.gather(*[
        cache.add_message_to_history("busy", message("busy", f"msg-{i}"))
        for i in range(20)
    ])

    history = await cache.get_chat_history("busy")
    assert sorted(m.content for m in history) == sorted(f"msg-{i}" for i in range(20))


@pytest.mark.asyncio
async def test_save_history_overwrites(cache):
    await cache.add_message_to_history("c1", message("c1", "old"))
    await cache.save_chat_history("c1", [message("c1", "new")])

    assert [m.content for m in await cache.get_chat_history("c1")] == ["new"]


@pytest.mark.asyncio
async def test_unreadable_history_is_a_miss(cache, redis_client):
    await redis_client.set("chat:history:c1", "not json")
    assert await cache.get_chat_history("c1") == []


@pytest.mark.asyncio
async def test_read_failure_degrades_to_empty_history():
    cache = RedisService(UnreachableRedis())

    assert await cache.get_chat_history("c1") == []
    assert await cache.get_conversation("c1") is None
    assert await cache.get_app_metadata("owner") is None


@pytest.mark.asyncio
async def test_write_failure_raises_cache_unavailable():
    cache = RedisService(UnreachableRedis())

    with pytest.raises(CacheUnavailableError):
        await cache.add_message_to_history("c1", message("c1", "hi"))
    with pytest.raises(CacheUnavailableError):
        await cache.save_conversation("c1", Conversation(owner_id="owner"))


@pytest.mark.asyncio
async def test_conversation_round_trip(cache, redis_client):
    conversation = Conversation(owner_id="owner-1", platform_type="telegram")
    await cache.save_conversation(conversation.id, conversation)

    loaded = await cache.get_conversation(conversation.id)

    assert loaded.owner_id == "owner-1"
    assert loaded.platform_type == "telegram"
    assert '"userId":"owner-1"' in await redis_client.get(f"conversation:{conversation.id}")


@pytest.mark.asyncio
async def test_app_metadata_uses_year_long_ttl(cache, redis_client):
    metadata = AppMetadata(description="Inventory tracker", links=[AppLink(title="Docs", url="https://example.com")])
    await cache.save_app_metadata("owner-1", metadata)

    loaded = await cache.get_app_metadata("owner-1")
    ttl = await redis_client.ttl("app:metadata:owner-1")

    assert loaded.links[0].title == "Docs"
    assert 30 * 24 * 3600 < ttl <= 365 * 24 * 3600


@pytest.mark.asyncio
async def test_append_without_create_leaves_missing_history_alone(cache, redis_client):
    appended = await cache.add_message_to_history("c1", message("c1", "hi"), create_missing=False)

    assert appended is False
    assert await redis_client.exists("chat:history:c1") == 0


@pytest.mark.asyncio
async def test_append_without_create_extends_existing_history(cache):
    await cache.add_message_to_history("c1", message("c1", "first"))

    appended = await cache.add_message_to_history("c1", message("c1", "second"), create_missing=False)

    assert appended is True
    assert [m.content for m in await cache.get_chat_history("c1")] == ["first", "second"]
