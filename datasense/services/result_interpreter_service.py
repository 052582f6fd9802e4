"""
Result Interpreter Service
Explains rows returned by a generated query in plain language.

Same render -> infer -> parse shape as SQL generation, without the safety
gate. The model is asked for strict JSON; a reply that cannot be parsed
falls back to being the summary.
"""
import json
import logging
from typing import Optional

from pydantic import ValidationError

from datasense.models.schema import InterpretationData, InterpretResultsRequest
from datasense.services.inference_client import InferenceClient
from datasense.utils.text_processing import recover_truncated_json, strip_code_fences

logger = logging.getLogger(__name__)


def build_interpretation_prompt(request: InterpretResultsRequest) -> str:
    results_json = json.dumps(request.results, ensure_ascii=False, separators=(",", ":"), default=str)
    return f"""You are an assistant. You've been given data from the database and the original question.

Original Question: "{request.original_query}"

Relevant data pulled using this query: {request.sql_query} from database:
{results_json}

YOUR TASK:
Analyze the data and answer the original question. Provide three things:
1. Analysis: What the data shows (2-4 sentences)
2. Answer: Direct answer to the original question (1-2 sentences)
3. Summary: Brief summary of key findings (1 sentence)

CRITICAL OUTPUT FORMAT:
You MUST respond with ONLY valid, complete JSON. No markdown, no code blocks, no explanations before or after. The JSON must be complete with proper closing braces. Respond with ONLY this exact structure:

{{"analysis":"text here","answer":"text here","summary":"text here"}}"""


def _parse_interpretation(text: str) -> Optional[InterpretationData]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    # Keys are matched case-insensitively
    lowered = {str(k).lower(): v for k, v in data.items()}
    try:
        return InterpretationData(
            analysis=str(lowered.get("analysis") or ""),
            answer=str(lowered.get("answer") or ""),
            summary=str(lowered.get("summary") or ""),
        )
    except ValidationError:
        return None


class ResultInterpreterService:
    def __init__(self, inference_client: InferenceClient):
        self.inference_client = inference_client

    async def interpret_results(self, request: InterpretResultsRequest) -> InterpretationData:
        logger.info("Interpreting query results")
        reply = await self.inference_client.infer(build_interpretation_prompt(request))
        cleaned = strip_code_fences(reply)

        interpretation = _parse_interpretation(cleaned)
        if interpretation is None:
            logger.warning("Failed to parse JSON response from model, attempting recovery")
            recovered = recover_truncated_json(cleaned)
            if recovered is not None:
                interpretation = _parse_interpretation(recovered)
                if interpretation is not None:
                    logger.info("Successfully recovered JSON")

        if interpretation is None:
            logger.info("Using fallback: returning full model reply as summary")
            interpretation = InterpretationData(analysis="", answer="", summary=cleaned)

        return interpretation
