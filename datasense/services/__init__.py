"""Business logic services"""
from .exceptions import (
    DataSenseError,
    InferenceUnavailableError,
    InferenceTimeoutError,
    MalformedResponseError,
    UnsafeStatementError,
    BrokerUnavailableError,
    CacheUnavailableError,
    ConversationNotFoundError,
)
from .inference_client import InferenceClient, create_inference_client
from .sql_generator_service import SQLGeneratorService
from .query_detection_service import QueryDetectionService, QueryDecision
from .result_interpreter_service import ResultInterpreterService
from .redis_service import RedisService, create_redis
from .conversation_service import ConversationService
from .app_metadata_service import AppMetadataService
from .llm_queue_service import LLMQueueService, LLMQueueWorker

__all__ = [
    "DataSenseError",
    "InferenceUnavailableError",
    "InferenceTimeoutError",
    "MalformedResponseError",
    "UnsafeStatementError",
    "BrokerUnavailableError",
    "CacheUnavailableError",
    "ConversationNotFoundError",
    "InferenceClient",
    "create_inference_client",
    "SQLGeneratorService",
    "QueryDetectionService",
    "QueryDecision",
    "ResultInterpreterService",
    "RedisService",
    "create_redis",
    "ConversationService",
    "AppMetadataService",
    "LLMQueueService",
    "LLMQueueWorker",
]
