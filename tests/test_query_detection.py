import pytest

from datasense.services.exceptions import InferenceTimeoutError
from datasense.services.query_detection_service import (
    QueryDetectionService,
    match_query_keyword,
)

from tests.conftest import ScriptedInferenceClient


@pytest.mark.asyncio
async def test_message_without_keywords_skips_inference(employees_schema):
    inference = ScriptedInferenceClient()
    detector = QueryDetectionService(inference)

    decision = await detector.decide("hello there", employees_schema)

    assert decision.needs_query is False
    assert decision.stage == "heuristic"
    assert inference.calls == 0


@pytest.mark.asyncio
async def test_no_schema_never_needs_a_query():
    inference = ScriptedInferenceClient()
    detector = QueryDetectionService(inference)

    assert await detector.needs_query("show me all employees", None) is False
    assert inference.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("reply, expected", [
    ("YES", True),
    ("  yes, the question needs data", True),
    ("NO", False),
    ("Maybe. YES", False),
])
async def test_inference_stage_reads_yes_prefix(employees_schema, reply, expected):
    inference = ScriptedInferenceClient([reply])
    detector = QueryDetectionService(inference)

    decision = await detector.decide("How many employees are there?", employees_schema)

    assert decision.needs_query is expected
    assert decision.stage == "inference"
    assert decision.keyword == "how many"
    assert "Employees" in inference.prompts[0]
    assert 'User message: "How many employees are there?"' in inference.prompts[0]


@pytest.mark.asyncio
async def test_inference_failure_answers_no(employees_schema):
    inference = ScriptedInferenceClient([InferenceTimeoutError("slow")])
    detector = QueryDetectionService(inference)

    decision = await detector.decide("list employees", employees_schema)

    assert decision.needs_query is False
    assert decision.stage == "inference_failed"


def test_keyword_match_is_case_insensitive_substring():
    assert match_query_keyword("SHOW ME") == "show"
    # substring match, so "Showcase" fires the heuristic too
    assert match_query_keyword("Showcase") == "show"
    assert match_query_keyword("good morning") is None
    assert match_query_keyword("") is None
