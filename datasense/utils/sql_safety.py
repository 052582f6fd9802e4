"""
SQL Safety Gate

Lexical screening of model-generated SQL before it leaves the service.
Pure functions, no I/O.

Keyword gate, not a parser: a banned word inside a string literal is
rejected too, and obfuscated SQL is not detected.
"""
import logging
import re
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

# Whole-word matches of any of these reject the statement
DENY_LIST = (
    "DROP",
    "DELETE",
    "TRUNCATE",
    "ALTER",
    "CREATE",
    "INSERT",
    "UPDATE",
    "EXEC",
    "EXECUTE",
    "SP_EXECUTESQL",
    "XP_CMDSHELL",
)

_LINE_COMMENT = re.compile(r"--[^\r\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_SELECT = re.compile(r"\bSELECT\b", re.IGNORECASE)
_DENY_PATTERNS = tuple(
    (keyword, re.compile(rf"\b{keyword}\b", re.IGNORECASE)) for keyword in DENY_LIST
)


class SafetyVerdict(NamedTuple):
    is_safe: bool
    reason: Optional[str] = None


def _strip_comments_once(sql: str) -> str:
    sql = _LINE_COMMENT.sub("", sql)
    sql = _BLOCK_COMMENT.sub("", sql)
    return sql.strip()


def sanitize(sql: str) -> str:
    """
    Strip -- line comments and /* */ block comments, then trim.

    Removing one comment kind can join characters into another
    (``-/**/-`` becomes ``--``), so stripping repeats until nothing
    changes. That keeps sanitize(sanitize(x)) == sanitize(x).
    """
    if sql is None or not sql.strip():
        return sql
    current = sql
    while True:
        stripped = _strip_comments_once(current)
        if stripped == current:
            return stripped
        current = stripped


def classify(sql: str) -> SafetyVerdict:
    """
    Decide whether a sanitized statement may be released.

    Requires the whole word SELECT and no whole-word deny-list entry,
    case-insensitively.
    """
    if sql is None or not sql.strip():
        return SafetyVerdict(False, "empty statement")

    if not _SELECT.search(sql):
        logger.warning("Query is not a SELECT statement")
        return SafetyVerdict(False, "not a SELECT statement")

    for keyword, pattern in _DENY_PATTERNS:
        if pattern.search(sql):
            logger.warning(f"Query contains dangerous keyword: {keyword}")
            return SafetyVerdict(False, f"contains dangerous keyword {keyword}")

    return SafetyVerdict(True)


def is_safe(sql: str) -> bool:
    return classify(sql).is_safe
