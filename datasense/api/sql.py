"""
SQL API Endpoints

Synchronous path: natural language -> validated SQL, intent detection and
result interpretation.
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from datasense.dependencies import ServiceContainer, get_container
from datasense.models.api import (
    GenerateSqlRequest, GenerateSqlResponse,
    NeedsQueryRequest, NeedsQueryResponse,
)
from datasense.models.schema import InterpretResultsRequest, InterpretationData
from datasense.services.exceptions import (
    InferenceTimeoutError,
    InferenceUnavailableError,
    MalformedResponseError,
    UnsafeStatementError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sql", tags=["sql"])


@router.post("/generate", response_model=GenerateSqlResponse)
async def generate_sql(
    request: GenerateSqlRequest,
    services: ServiceContainer = Depends(get_container)
):
    """
    Generate a read-only SQL query for a natural-language question.

    The statement is returned only if it passed the safety gate, directly
    or after a single rewrite.
    """
    try:
        statement = await services.sql_generator.generate(
            request.natural_query,
            request.database_schema,
            request.db_type,
        )
        return GenerateSqlResponse(
            sql_query=statement.sanitized_text,
            correction_attempts=statement.correction_attempts,
        )

    except UnsafeStatementError as e:
        logger.warning(f"Could not produce a safe query: {e.reason}")
        raise HTTPException(status_code=422, detail="Could not produce a safe SQL query for this question")

    except InferenceTimeoutError:
        raise HTTPException(status_code=504, detail="Inference service timed out")

    except (InferenceUnavailableError, MalformedResponseError) as e:
        logger.error(f"SQL generation failed: {e}")
        raise HTTPException(status_code=503, detail="Inference service unavailable")


@router.post("/needs-query", response_model=NeedsQueryResponse)
async def needs_query_execution(
    request: NeedsQueryRequest,
    services: ServiceContainer = Depends(get_container)
):
    """Decide whether a chat message should go through SQL generation."""
    decision = await services.query_detection.decide(request.message, request.database_schema)
    return NeedsQueryResponse(needs_query=decision.needs_query, stage=decision.stage)


@router.post("/interpret", response_model=InterpretationData)
async def interpret_results(
    request: InterpretResultsRequest,
    services: ServiceContainer = Depends(get_container)
):
    """Explain query results in plain language."""
    try:
        return await services.result_interpreter.interpret_results(request)

    except InferenceTimeoutError:
        raise HTTPException(status_code=504, detail="Inference service timed out")

    except (InferenceUnavailableError, MalformedResponseError) as e:
        logger.error(f"Result interpretation failed: {e}")
        raise HTTPException(status_code=503, detail="Inference service unavailable")
