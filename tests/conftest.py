from typing import List, Union

import fakeredis
import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from datasense.config import settings
from datasense.dependencies import build_container
from datasense.models.schema import ColumnInfo, DatabaseSchema, TableInfo
from datasense.services.app_metadata_service import AppMetadataService
from datasense.services.conversation_repository import InMemoryConversationRepository
from datasense.services.conversation_service import ConversationService
from datasense.services.inference_client import InferenceClient
from datasense.services.llm_queue_service import LLMQueueService, LLMQueueWorker
from datasense.services.redis_service import RedisService

TEST_QUEUE_KEY = "test:ollama:requests"


class ScriptedInferenceClient(InferenceClient):
    """Returns queued replies in order and records every prompt it was sent"""

    def __init__(self, replies: List[Union[str, Exception]] = None):
        self.replies = list(replies or [])
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def infer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise AssertionError("Inference called more times than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


# Schema
@pytest.fixture
def employees_schema() -> DatabaseSchema:
    return DatabaseSchema(
        database_name="HR",
        tables=[
            TableInfo(
                name="Employees",
                columns=[
                    ColumnInfo(name="Id", data_type="int", is_primary_key=True),
                    ColumnInfo(name="Name", data_type="nvarchar", max_length=100, is_nullable=True),
                ],
            )
        ],
    )


@pytest.fixture
def inference() -> ScriptedInferenceClient:
    return ScriptedInferenceClient()


# Fresh in-memory Redis server per test
@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis_client) -> RedisService:
    return RedisService(redis_client)


@pytest.fixture
def repository() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def conversation_service(repository, cache) -> ConversationService:
    return ConversationService(repository, cache)


@pytest.fixture
def app_metadata_service(cache) -> AppMetadataService:
    return AppMetadataService(cache)


@pytest.fixture
def queue(redis_client) -> LLMQueueService:
    return LLMQueueService(redis_client, TEST_QUEUE_KEY)


@pytest.fixture
def worker(redis_client, conversation_service, app_metadata_service, inference) -> LLMQueueWorker:
    return LLMQueueWorker(
        redis_client,
        TEST_QUEUE_KEY,
        conversation_service=conversation_service,
        app_metadata_service=app_metadata_service,
        inference_client=inference,
        poll_timeout=0.1,
        concurrency=4,
        shutdown_grace=1.0,
    )


# Client against the FastAPI app with fakes wired in (lifespan is not run)
@pytest_asyncio.fixture
async def services(redis_client, inference, repository):
    container = build_container(
        settings,
        redis_client=redis_client,
        inference_client=inference,
        repository=repository,
    )
    yield container
    await container.http_client.aclose()


@pytest_asyncio.fixture
async def client(services):
    from main import app

    app.state.services = services
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
