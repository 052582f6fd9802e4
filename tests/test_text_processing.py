import pytest

from datasense.utils.text_processing import recover_truncated_json, strip_code_fences


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("```sql\nSELECT 1\n```", "SELECT 1"),
        ("```\nSELECT 1\n```", "SELECT 1"),
        ("```SELECT 1```", "SELECT 1"),
        ("```json\n{\"a\": 1}\n```", "{\"a\": 1}"),
        ("  SELECT 1  ", "SELECT 1"),
        ("SELECT 1\n```", "SELECT 1"),
        ("", ""),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected


def test_strip_code_fences_drops_language_tag_on_opening_line():
    assert strip_code_fences("```postgresql\nSELECT 1\n```") == "SELECT 1"


def test_recover_truncated_json_appends_missing_braces():
    assert recover_truncated_json('{"a": {"b": 1}') == '{"a": {"b": 1}}'


def test_recover_truncated_json_returns_none_when_balanced():
    assert recover_truncated_json('{"a": 1}') is None
    assert recover_truncated_json("") is None
