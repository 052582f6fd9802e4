"""Utility functions"""
from .text_processing import strip_code_fences, recover_truncated_json
from .sql_safety import sanitize, classify, is_safe, SafetyVerdict, DENY_LIST

__all__ = [
    "strip_code_fences",
    "recover_truncated_json",
    "sanitize",
    "classify",
    "is_safe",
    "SafetyVerdict",
    "DENY_LIST",
]
