"""
App Metadata Service
Owner-level context (description and links) used to ground chat replies.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from datasense.models.chat import AppMetadata
from datasense.models.schema import DatabaseSchema
from datasense.services.redis_service import RedisService

logger = logging.getLogger(__name__)

GENERIC_SUGGESTIONS = (
    "Help me with my data",
    "What can I query?",
    "Show me examples",
)
MAX_SUGGESTIONS = 3


class AppMetadataService:
    def __init__(self, cache: RedisService):
        self.cache = cache

    async def save_app_metadata(self, owner_id: str, metadata: AppMetadata) -> AppMetadata:
        metadata.owner_id = owner_id
        metadata.updated_at = datetime.now(timezone.utc)
        await self.cache.save_app_metadata(owner_id, metadata)
        logger.info(f"App metadata saved for owner: {owner_id}")
        return metadata

    async def get_app_metadata(self, owner_id: str) -> Optional[AppMetadata]:
        return await self.cache.get_app_metadata(owner_id)

    @staticmethod
    def generate_welcome_suggestions(schema: Optional[DatabaseSchema]) -> List[str]:
        """
        Starter prompts for a new conversation.

        Two per table for the first tables of the schema, padded with generic
        prompts, capped at three.
        """
        suggestions: List[str] = []
        if schema is not None:
            for table_name in schema.table_names[:5]:
                suggestions.append(f"Tell me about {table_name}")
                suggestions.append(f"Show me data from {table_name}")

        missing = MAX_SUGGESTIONS - len(suggestions)
        if missing > 0:
            suggestions.extend(GENERIC_SUGGESTIONS[:missing])

        return suggestions[:MAX_SUGGESTIONS]
