"""
Request / response models for the HTTP surface
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from .chat import AppLink
from .schema import DatabaseSchema


class GenerateSqlRequest(BaseModel):
    natural_query: str = Field(..., alias="naturalQuery", min_length=1)
    database_schema: DatabaseSchema = Field(..., alias="schema")
    db_type: str = Field("sqlserver", alias="dbType")

    class Config:
        populate_by_name = True


class GenerateSqlResponse(BaseModel):
    sql_query: str = Field(..., alias="sqlQuery")
    correction_attempts: int = Field(0, alias="correctionAttempts")

    class Config:
        populate_by_name = True


class NeedsQueryRequest(BaseModel):
    message: str = Field(..., min_length=1)
    database_schema: Optional[DatabaseSchema] = Field(None, alias="schema")

    class Config:
        populate_by_name = True


class NeedsQueryResponse(BaseModel):
    needs_query: bool = Field(..., alias="needsQuery")
    stage: str

    class Config:
        populate_by_name = True


class StartConversationRequest(BaseModel):
    owner_id: str = Field(..., alias="ownerId", min_length=1)
    external_channel_id: Optional[str] = Field(None, alias="externalChannelId")
    platform_type: Optional[str] = Field(None, alias="platformType")
    suggestion: Optional[str] = None

    class Config:
        populate_by_name = True


class SendChatMessageRequest(BaseModel):
    conversation_id: str = Field(..., alias="conversationId", min_length=1)
    message: str = Field(..., min_length=1)
    database_schema: Optional[DatabaseSchema] = Field(None, alias="schema")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True


class SendChatMessageResponse(BaseModel):
    conversation_id: str = Field(..., alias="conversationId")
    accepted: bool = True
    requires_query_execution: bool = Field(False, alias="requiresQueryExecution")
    links: List[AppLink] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class SuggestionsRequest(BaseModel):
    database_schema: Optional[DatabaseSchema] = Field(None, alias="schema")

    class Config:
        populate_by_name = True


class SuggestionsResponse(BaseModel):
    suggestions: List[str]
