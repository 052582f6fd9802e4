"""
Conversation Models

Pydantic models for conversations, messages, owner metadata and the
envelopes carried on the work queue.
"""
import uuid
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Role of the message sender"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """One turn in a conversation. Append-only, ordered by timestamp."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str = Field(..., alias="conversationId")
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True
        use_enum_values = True


class Conversation(BaseModel):
    """Conversation session between an owner (or external channel identity) and the assistant"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str = Field(..., alias="userId")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    is_active: bool = Field(True, alias="isActive")
    external_channel_id: Optional[str] = Field(None, alias="externalUserId")
    platform_type: Optional[str] = Field(None, alias="platformType")

    class Config:
        populate_by_name = True

    @property
    def last_activity(self) -> datetime:
        return self.updated_at or self.created_at


class AppLink(BaseModel):
    title: str
    url: str


class AppMetadata(BaseModel):
    """Long-lived owner context injected into chat prompts"""
    owner_id: Optional[str] = Field(None, alias="userId")
    description: Optional[str] = None
    links: List[AppLink] = Field(default_factory=list)
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True


class DispatchEnvelope(BaseModel):
    """One user turn waiting on the queue. Exists only in transit."""
    conversation_id: str = Field(..., alias="conversationId", min_length=1)
    prompt: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)
