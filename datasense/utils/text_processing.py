"""
Text processing utilities
Functions for cleaning raw model replies before they are parsed
"""
import re
from typing import Optional

# Opening fence with an optional language tag, e.g. ```sql or ```json, followed by a newline
_OPENING_FENCE_WITH_TAG = re.compile(r"^```[A-Za-z0-9_+\-]*[ \t]*\r?\n")


def strip_code_fences(text: str) -> str:
    """
    Remove a leading ``` / ```sql style fence and a trailing ``` fence

    Args:
        text: Raw model reply

    Returns:
        The text between the fences, trimmed
    """
    if not text:
        return ""
    t = text.strip()
    match = _OPENING_FENCE_WITH_TAG.match(t)
    if match:
        t = t[match.end():].strip()
    elif t.startswith("```"):
        t = t[3:].strip()
    if t.endswith("```"):
        t = t[:-3].strip()
    return t


def recover_truncated_json(text: str) -> Optional[str]:
    """
    Close a JSON object the model cut off early

    Returns the text with the missing closing braces appended, or None when
    nothing is missing.
    """
    if not text or not text.strip():
        return None
    trimmed = text.strip()
    missing = trimmed.count("{") - trimmed.count("}")
    if missing > 0:
        return trimmed + "}" * missing
    return None
