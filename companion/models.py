from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """Holds only the AI preference subset of a user; accounts are managed elsewhere."""
    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = None
    # AI preference; None means "use the configured default"
    ai_provider: Optional[str] = None
    google_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None
    ollama_model: Optional[str] = None
    conversation_memory: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    session_id: str = Field(index=True)
    role: str
    content: str
    crisis_detected: bool = Field(default=False)
    crisis_level: Optional[str] = None
    language: str = Field(default="en-US")
    # generation metadata, assistant turns only
    model: Optional[str] = None
    tokens: Optional[int] = None
    latency_ms: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)


class CrisisEvent(SQLModel, table=True):
    __tablename__ = "crisis_events"
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    message_id: int = Field(index=True, foreign_key="chat_messages.id")
    level: str
    keywords: str  # JSON array of matched keywords
    response: str
    escalated: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
