from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ChatRequest(BaseModel):
    """Request payload for chat API; both fields are checked by the handler so gaps yield a 400."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: Optional[str] = None


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    model_config = ConfigDict(populate_by_name=True)

    content: str
    session_id: str = Field(alias="sessionId")


class StoredMessage(BaseModel):
    """One role-tagged entry of a session conversation."""
    role: Role
    content: str


class ToolRequest(BaseModel):
    query: Optional[str] = None
    topic: Optional[str] = None
    reason: Optional[str] = None


class ToolResponse(BaseModel):
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
