from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SessionMessage(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime


class ChatSummaryOut(BaseModel):
    chat_id: int
    title: str
    creator: Optional[str] = None


class SessionView(BaseModel):
    mode: str
    selected_chat_id: Optional[int] = None
    messages: list[SessionMessage] = Field(default_factory=list)
    pending: bool = False
    restoring: bool = False
    creating: bool = False
    busy: bool = False
    error: Optional[str] = None
    principal: Optional[str] = None
    login_status: str = "idle"


class ChatListResponse(BaseModel):
    chats: list[ChatSummaryOut]
    error: Optional[str] = None


class SendMessageRequest(BaseModel):
    prompt: str = Field(..., description="Prompt to send to the assistant.")


class ProfileView(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    needs_setup: bool = False
    error: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: str = Field(default="", description="Display name for the caller.")

    @field_validator("name")
    @classmethod
    def validate_name_length(cls, value: str) -> str:
        if len(value.strip()) > 100:
            raise ValueError("Name must be 100 characters or fewer")
        return value
