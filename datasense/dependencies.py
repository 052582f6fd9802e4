"""
Service wiring

Every connection handle (Redis, HTTP, inference) is created once here at
startup and passed into the services that use it. Endpoints reach the
services through FastAPI dependencies reading app.state.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as redis
from fastapi import Request

from datasense.config import Settings
from datasense.services.app_metadata_service import AppMetadataService
from datasense.services.conversation_repository import (
    ConversationRepository,
    create_conversation_repository,
)
from datasense.services.conversation_service import ConversationService
from datasense.services.inference_client import InferenceClient, create_inference_client
from datasense.services.llm_queue_service import LLMQueueService, LLMQueueWorker
from datasense.services.query_detection_service import QueryDetectionService
from datasense.services.redis_service import RedisService, create_redis
from datasense.services.result_interpreter_service import ResultInterpreterService
from datasense.services.sql_generator_service import SQLGeneratorService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    redis_client: redis.Redis
    http_client: httpx.AsyncClient
    inference_client: InferenceClient
    cache: RedisService
    conversations: ConversationService
    app_metadata: AppMetadataService
    sql_generator: SQLGeneratorService
    query_detection: QueryDetectionService
    result_interpreter: ResultInterpreterService
    queue: LLMQueueService
    worker: LLMQueueWorker

    async def aclose(self) -> None:
        await self.inference_client.aclose()
        await self.http_client.aclose()
        await self.redis_client.aclose()
        logger.info("Service handles closed")


def build_container(
    config: Settings,
    redis_client: Optional[redis.Redis] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    inference_client: Optional[InferenceClient] = None,
    repository: Optional[ConversationRepository] = None,
    worker_concurrency: Optional[int] = None,
) -> ServiceContainer:
    """
    Construct all services. Any handle may be supplied instead (tests, scripts).

    worker_concurrency overrides WORKER_CONCURRENCY for this container only.
    """
    redis_client = redis_client or create_redis(config)
    http_client = http_client or httpx.AsyncClient(timeout=config.INFERENCE_TIMEOUT)
    inference_client = inference_client or create_inference_client(config, http_client)
    repository = repository or create_conversation_repository(config)

    cache = RedisService.from_settings(redis_client, config)
    conversations = ConversationService(repository, cache)
    app_metadata = AppMetadataService(cache)

    worker = LLMQueueWorker(
        redis_client,
        config.QUEUE_KEY,
        conversation_service=conversations,
        app_metadata_service=app_metadata,
        inference_client=inference_client,
        poll_timeout=config.QUEUE_POLL_TIMEOUT,
        concurrency=worker_concurrency or config.WORKER_CONCURRENCY,
        shutdown_grace=config.WORKER_SHUTDOWN_GRACE,
        max_history=config.HISTORY_CONTEXT_MESSAGES,
    )

    return ServiceContainer(
        redis_client=redis_client,
        http_client=http_client,
        inference_client=inference_client,
        cache=cache,
        conversations=conversations,
        app_metadata=app_metadata,
        sql_generator=SQLGeneratorService(inference_client),
        query_detection=QueryDetectionService(inference_client),
        result_interpreter=ResultInterpreterService(inference_client),
        queue=LLMQueueService(redis_client, config.QUEUE_KEY),
        worker=worker,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.services
