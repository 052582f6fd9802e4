"""Pydantic models"""
from .schema import (
    ColumnInfo, RelationshipInfo, TableInfo, DatabaseSchema,
    PromptRequest, StatementVerdict, GeneratedStatement,
    InterpretResultsRequest, InterpretationData,
)
from .chat import (
    MessageRole, ChatMessage, Conversation,
    AppLink, AppMetadata, DispatchEnvelope,
)

__all__ = [
    "ColumnInfo",
    "RelationshipInfo",
    "TableInfo",
    "DatabaseSchema",
    "PromptRequest",
    "StatementVerdict",
    "GeneratedStatement",
    "InterpretResultsRequest",
    "InterpretationData",
    "MessageRole",
    "ChatMessage",
    "Conversation",
    "AppLink",
    "AppMetadata",
    "DispatchEnvelope",
]
