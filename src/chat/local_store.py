"""Versioned persistence of anonymous chat transcripts in local storage."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import LocalStorageError
from .models import ChatRecord, Message, MessageRole, ensure_utc, from_millis, to_millis
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_VERSION = "1.0"
CHATS_KEY = "chat-session-chats"
SELECTED_CHAT_KEY = "chat-session-selected"


class LocalMessage(BaseModel):
    id: str
    role: MessageRole
    content: str
    timestamp: datetime


class LocalChat(BaseModel):
    id: int
    title: str
    messages: list[LocalMessage] = Field(default_factory=list)
    timestamp: int


class LocalChatsEnvelope(BaseModel):
    version: str
    chats: dict[int, LocalChat] = Field(default_factory=dict)


class LocalChatStore:
    """Stores whole chat records under one versioned storage key.

    A stored envelope whose version differs from ``version`` is discarded
    wholesale rather than migrated.
    """

    def __init__(self, storage: KeyValueStorage, *, version: str = STORAGE_VERSION) -> None:
        self._storage = storage
        self._version = version

    @property
    def version(self) -> str:
        return self._version

    async def init(self) -> None:
        await self._storage.init()

    async def load(self) -> dict[int, ChatRecord]:
        envelope = await self._load_envelope()
        if envelope is None:
            return {}
        return {chat_id: _to_record(chat) for chat_id, chat in envelope.chats.items()}

    async def save(self, chat_id: int, messages: Iterable[Message], title: str) -> ChatRecord:
        envelope = await self._load_envelope()
        chats = dict(envelope.chats) if envelope is not None else {}
        written_at = datetime.now(timezone.utc)
        chats[chat_id] = LocalChat(
            id=chat_id,
            title=title,
            messages=[
                LocalMessage(id=m.id, role=m.role, content=m.content, timestamp=m.timestamp)
                for m in messages
            ],
            timestamp=to_millis(written_at),
        )
        payload = LocalChatsEnvelope(version=self._version, chats=chats).model_dump_json()
        try:
            await self._storage.set_item(CHATS_KEY, payload)
        except Exception as exc:  # noqa: BLE001 - storage backends raise their own types
            raise LocalStorageError(f"Failed to save local chat {chat_id}", details=str(exc)) from exc
        return _to_record(chats[chat_id])

    async def get_selected(self) -> Optional[int]:
        try:
            stored = await self._storage.get_item(SELECTED_CHAT_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to read selected local chat: %s", exc)
            return None
        if not stored:
            return None
        try:
            return int(stored)
        except ValueError:
            return None

    async def set_selected(self, chat_id: Optional[int]) -> None:
        try:
            if chat_id is None:
                await self._storage.remove_item(SELECTED_CHAT_KEY)
            else:
                await self._storage.set_item(SELECTED_CHAT_KEY, str(chat_id))
        except Exception as exc:  # noqa: BLE001
            raise LocalStorageError("Failed to save selected local chat", details=str(exc)) from exc

    async def clear(self) -> None:
        try:
            await self._storage.remove_item(CHATS_KEY)
            await self._storage.remove_item(SELECTED_CHAT_KEY)
        except Exception as exc:  # noqa: BLE001
            raise LocalStorageError("Failed to clear local chats", details=str(exc)) from exc

    async def _load_envelope(self) -> Optional[LocalChatsEnvelope]:
        try:
            stored = await self._storage.get_item(CHATS_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to read local chats: %s", exc)
            return None
        if not stored:
            return None

        try:
            raw = json.loads(stored)
        except ValueError:
            logger.warning("Discarding unreadable local chats")
            await self._discard()
            return None

        if not isinstance(raw, dict) or raw.get("version") != self._version:
            logger.info(
                "Discarding local chats with version %r (expected %r)",
                raw.get("version") if isinstance(raw, dict) else None,
                self._version,
            )
            await self._discard()
            return None

        try:
            return LocalChatsEnvelope.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding malformed local chats: %s", exc.error_count())
            await self._discard()
            return None

    async def _discard(self) -> None:
        try:
            await self._storage.remove_item(CHATS_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to remove local chats: %s", exc)


def _to_record(chat: LocalChat) -> ChatRecord:
    return ChatRecord(
        chat_id=chat.id,
        title=chat.title,
        messages=[
            Message(
                id=message.id,
                role=message.role,
                content=message.content,
                timestamp=ensure_utc(message.timestamp),
            )
            for message in chat.messages
        ],
        updated_at=from_millis(chat.timestamp),
    )
