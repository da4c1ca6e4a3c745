from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

NEW_CHAT_TITLE = "New Chat"

# Anonymous sessions keep a single local chat slot.
ANONYMOUS_CHAT_ID = 0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class SessionMode(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


@dataclass(frozen=True, slots=True)
class Identity:
    principal: str


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    role: MessageRole
    content: str
    timestamp: datetime


@dataclass(slots=True)
class ChatRecord:
    chat_id: int
    title: str
    messages: list[Message] = field(default_factory=list)
    creator: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class ChatSummary:
    chat_id: int
    title: str
    creator: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UserProfile:
    name: str


@dataclass(slots=True)
class SessionState:
    """Everything the rendering layer is allowed to observe."""

    mode: SessionMode = SessionMode.ANONYMOUS
    selected_chat_id: Optional[int] = None
    messages: list[Message] = field(default_factory=list)
    pending: bool = False
    restoring: bool = False
    creating: bool = False
    error: Optional[str] = None
    chats: list[ChatSummary] = field(default_factory=list)

    @property
    def busy(self) -> bool:
        return self.pending or self.restoring or self.creating


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def from_millis(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_clock_lock = threading.Lock()
_last_millis = 0
_sequence = itertools.count(1)


def next_timestamp(after: Optional[datetime] = None) -> datetime:
    """Return the current UTC time in whole milliseconds, strictly increasing.

    Successive calls never return the same instant, and the result is always
    later than ``after`` when given.
    """
    global _last_millis
    now = to_millis(datetime.now(timezone.utc))
    with _clock_lock:
        floor = _last_millis + 1
        if after is not None:
            floor = max(floor, to_millis(after) + 1)
        _last_millis = max(now, floor)
        return from_millis(_last_millis)


def new_message(role: MessageRole, content: str, *, after: Optional[datetime] = None) -> Message:
    timestamp = next_timestamp(after)
    message_id = f"{role.value}-{to_millis(timestamp)}-{next(_sequence)}"
    return Message(id=message_id, role=role, content=content, timestamp=timestamp)
