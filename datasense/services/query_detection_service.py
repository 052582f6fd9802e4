"""
Query Detection Service
Decides whether a chat message needs the SQL pipeline.

Two stages:
- heuristic: cheap case-insensitive keyword match, no I/O
- inference: one constrained YES/NO call, only when the heuristic fires
  AND a schema is available

Any inference failure answers "no query needed".
"""
import logging
from typing import NamedTuple, Optional

from datasense.models.schema import DatabaseSchema
from datasense.services.exceptions import DataSenseError
from datasense.services.inference_client import InferenceClient

logger = logging.getLogger(__name__)

QUERY_KEYWORDS = (
    "show", "list", "get", "find", "search",
    "count", "select", "how many", "what are", "which",
)


class QueryDecision(NamedTuple):
    needs_query: bool
    stage: str
    keyword: Optional[str] = None


def match_query_keyword(message: str) -> Optional[str]:
    """Return the first keyword found in the message (substring, case-insensitive)"""
    lowered = (message or "").lower()
    for keyword in QUERY_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def build_detection_prompt(message: str, schema: DatabaseSchema) -> str:
    return f"""Analyze if the following user message requires querying a database to answer accurately.
Consider the available database schema: {", ".join(schema.table_names)}

User message: "{message}"

Respond with only 'YES' if database query is needed, or 'NO' if it can be answered without querying.
Be conservative - only say YES if the message clearly requires database data."""


class QueryDetectionService:
    def __init__(self, inference_client: InferenceClient):
        self.inference_client = inference_client

    async def decide(self, message: str, schema: Optional[DatabaseSchema] = None) -> QueryDecision:
        keyword = match_query_keyword(message)

        if schema is None:
            return QueryDecision(False, "no_schema", keyword)
        if keyword is None:
            return QueryDecision(False, "heuristic")

        try:
            reply = await self.inference_client.infer(build_detection_prompt(message, schema))
        except DataSenseError as e:
            logger.error(f"Error detecting if query execution is needed: {e}")
            return QueryDecision(False, "inference_failed", keyword)

        return QueryDecision(reply.strip().upper().startswith("YES"), "inference", keyword)

    async def needs_query(self, message: str, schema: Optional[DatabaseSchema] = None) -> bool:
        decision = await self.decide(message, schema)
        logger.debug(f"Query detection: needs_query={decision.needs_query} stage={decision.stage}")
        return decision.needs_query
