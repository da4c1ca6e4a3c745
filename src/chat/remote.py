"""Typed wrappers over the chat backend connection handle."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .backend import ChatBackend
from .errors import BackendError, ReplyError
from .models import (
    ChatRecord,
    ChatSummary,
    Message,
    MessageRole,
    UserProfile,
    UserRole,
    from_millis,
    to_millis,
)

logger = logging.getLogger(__name__)


class _WireMessage(BaseModel):
    content: str
    author: str
    timestamp: int


class _WireChatSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: int = Field(alias="chatId")
    title: str
    creator: Optional[str] = None


class _WireChatView(_WireChatSummary):
    messages: list[_WireMessage] = Field(default_factory=list)


class _WireProfile(BaseModel):
    name: str


def unwrap_option(value: Any) -> Any:
    """Return the wrapped value of a tagged option, or ``None`` when absent.

    ``{"__kind__": "Some", "value": x}`` yields ``x``; ``{"__kind__": "None"}``,
    ``None`` and unknown tags are absent. Untagged values pass through.
    """
    if value is None:
        return None
    if isinstance(value, dict) and "__kind__" in value:
        kind = value.get("__kind__")
        if kind == "Some":
            return value.get("value")
        if kind != "None":
            logger.warning("Treating option with unknown tag %r as absent", kind)
        return None
    return value


def transcript_from_wire(messages: list[_WireMessage]) -> list[Message]:
    seen: dict[str, int] = {}
    transcript: list[Message] = []
    for wire in messages:
        key = f"{wire.author}-{wire.timestamp}"
        count = seen.get(key, 0)
        seen[key] = count + 1
        transcript.append(
            Message(
                id=key if count == 0 else f"{key}-{count}",
                role=MessageRole.USER if wire.author == MessageRole.USER.value else MessageRole.ASSISTANT,
                content=wire.content,
                timestamp=from_millis(wire.timestamp),
            )
        )
    return transcript


class RemoteChatService:
    """Chat CRUD and profile calls for the authenticated caller."""

    def __init__(self, backend: ChatBackend) -> None:
        self._backend = backend

    async def list(self) -> list[ChatSummary]:
        payload = await self._backend.call("getUserChats")
        if not isinstance(payload, list):
            raise BackendError("getUserChats returned a non-list payload")
        summaries = [_parse(_WireChatSummary, item, "getUserChats") for item in payload]
        return [
            ChatSummary(chat_id=item.chat_id, title=item.title, creator=item.creator)
            for item in summaries
        ]

    async def get(self, chat_id: int) -> Optional[ChatRecord]:
        payload = unwrap_option(await self._backend.call("getChat", chat_id))
        if payload is None:
            return None
        view = _parse(_WireChatView, payload, "getChat")
        return ChatRecord(
            chat_id=view.chat_id,
            title=view.title,
            messages=transcript_from_wire(view.messages),
            creator=view.creator,
        )

    async def create(self, title: str) -> int:
        payload = await self._backend.call("createChat", title)
        try:
            return int(payload)
        except (TypeError, ValueError) as exc:
            raise BackendError("createChat returned a non-integer chat id", details=payload) from exc

    async def delete(self, chat_id: int) -> None:
        await self._backend.call("deleteChat", chat_id)

    async def append_message(
        self,
        chat_id: int,
        author: MessageRole,
        content: str,
        timestamp: datetime,
    ) -> None:
        await self._backend.call(
            "addMessage",
            chat_id,
            {"content": content, "author": author.value},
            to_millis(timestamp),
        )

    async def get_profile(self) -> Optional[UserProfile]:
        payload = unwrap_option(await self._backend.call("getCallerUserProfile"))
        if payload is None:
            return None
        return UserProfile(name=_parse(_WireProfile, payload, "getCallerUserProfile").name)

    async def save_profile(self, profile: UserProfile) -> None:
        await self._backend.call("saveCallerUserProfile", {"name": profile.name})

    async def get_role(self) -> UserRole:
        payload = await self._backend.call("getCallerUserRole")
        try:
            return UserRole(payload)
        except ValueError as exc:
            raise BackendError("getCallerUserRole returned an unknown role", details=payload) from exc

    async def is_admin(self) -> bool:
        return bool(await self._backend.call("isCallerAdmin"))


class ReplyService:
    """Maps a prompt to the assistant's reply through the backend."""

    def __init__(self, backend: ChatBackend) -> None:
        self._backend = backend

    async def generate(self, prompt: str) -> str:
        try:
            reply = await self._backend.call("getChatbotReply", prompt)
        except Exception as exc:  # noqa: BLE001 - reply generation is opaque
            raise ReplyError("Reply generation failed", details=str(exc)) from exc
        if not isinstance(reply, str):
            raise ReplyError("Reply generation returned a non-text payload", details=reply)
        return reply


def _parse(model: type[BaseModel], payload: Any, method: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise BackendError(f"{method} returned a malformed payload", details=str(exc)) from exc
