"""Session controller: owns the visible transcript and decides where it lives.

Anonymous sessions are backed by :class:`LocalChatStore`; authenticated
sessions by the backend through :class:`RemoteChatService`. Identity
transitions never carry the selected chat or its messages across modes, and
local history is never migrated to the backend.

Failures are split in two classes. A failure in a step that must succeed
before anything visible changes (creating a chat, deleting one, generating a
reply) leaves the state as it was and sets ``state.error``. A failure while
persisting an exchange that is already on screen is only logged.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .backend import ChatBackend
from .errors import AlreadyAuthenticatedError
from .identity import IdentityProvider
from .local_store import LocalChatStore
from .models import (
    ANONYMOUS_CHAT_ID,
    NEW_CHAT_TITLE,
    ChatSummary,
    Identity,
    Message,
    MessageRole,
    SessionMode,
    SessionState,
    new_message,
)
from .remote import RemoteChatService, ReplyService

logger = logging.getLogger(__name__)

CREATE_CHAT_FAILED = "Failed to create chat. Please try again."
DELETE_CHAT_FAILED = "Failed to delete chat. Please try again."
LOAD_CHAT_FAILED = "Failed to load chat. Please try again."
LOAD_CHATS_FAILED = "Failed to load chats. Please try again."
REPLY_FAILED = (
    "We encountered an issue processing your message. "
    "Please try again or start a new conversation."
)
SIGN_IN_FAILED = "Failed to sign in. Please try again."
SIGN_OUT_FAILED = "Failed to sign out. Please try again."

Connector = Callable[[Optional[Identity]], ChatBackend]


class SessionController:
    def __init__(
        self,
        local_store: LocalChatStore,
        identity_provider: IdentityProvider,
        connect: Connector,
    ) -> None:
        self._local = local_store
        self._identity_provider = identity_provider
        self._connect = connect
        self._state = SessionState()
        self._identity: Optional[Identity] = None
        # Bumped on every identity transition.
        self._session_epoch = 0
        # Bumped whenever the visible transcript is replaced.
        self._transcript_epoch = 0
        self._restores_in_flight = 0
        self._creates_in_flight = 0
        self._bind(None)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def identity_provider(self) -> IdentityProvider:
        return self._identity_provider

    @property
    def remote(self) -> RemoteChatService:
        return self._remote

    @property
    def local_store(self) -> LocalChatStore:
        return self._local

    async def start(self) -> None:
        """Adopt whatever identity the provider currently reports."""
        await self.on_identity_changed(self._identity_provider.identity)

    async def on_identity_changed(self, identity: Optional[Identity]) -> None:
        mode = SessionMode.AUTHENTICATED if identity is not None else SessionMode.ANONYMOUS
        if mode is self._state.mode and identity == self._identity:
            await self.restore()
            return

        logger.info("Session mode %s -> %s", self._state.mode.value, mode.value)
        self._session_epoch += 1
        self._identity = identity
        self._bind(identity)
        self._state.mode = mode
        self._state.chats = []
        self._state.error = None
        self._replace_transcript(None)

        await self.restore()
        if mode is SessionMode.AUTHENTICATED:
            await self.refresh_chats()

    async def restore(self) -> None:
        """Re-derive the transcript from the store that owns the current mode.

        Safe to call repeatedly. A restore overtaken by a transition is
        discarded.
        """
        epoch = self._transcript_epoch
        self._restores_in_flight += 1
        self._state.restoring = True
        try:
            if self._state.mode is SessionMode.AUTHENTICATED:
                await self._restore_remote(epoch)
            else:
                await self._restore_local(epoch)
        finally:
            self._restores_in_flight -= 1
            self._state.restoring = self._restores_in_flight > 0

    async def send(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            return
        self._state.error = None

        created = False
        if self._state.mode is SessionMode.AUTHENTICATED and self._state.selected_chat_id is None:
            session_epoch = self._session_epoch
            try:
                chat_id = await self._create_chat()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to create chat for send: %s", exc)
                self._state.error = CREATE_CHAT_FAILED
                return
            if session_epoch != self._session_epoch:
                logger.info("Abandoning send; session changed while creating chat %s", chat_id)
                return
            self._replace_transcript(chat_id)
            created = True

        mode = self._state.mode
        chat_id = self._state.selected_chat_id
        epoch = self._transcript_epoch

        self._state.pending = True
        try:
            reply = await self._reply.generate(prompt)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Reply generation failed: %s", exc)
            if self._is_current(epoch, chat_id):
                self._state.error = REPLY_FAILED
            return
        finally:
            self._state.pending = False

        if not self._is_current(epoch, chat_id):
            logger.info("Dropping reply for chat %s; selection changed while pending", chat_id)
            return

        user_message = new_message(MessageRole.USER, prompt)
        assistant_message = new_message(
            MessageRole.ASSISTANT, reply, after=user_message.timestamp
        )
        self._state.messages = [*self._state.messages, user_message, assistant_message]

        if mode is SessionMode.AUTHENTICATED:
            await self._persist_remote(chat_id, (user_message, assistant_message))
            if created:
                await self.refresh_chats()
        else:
            await self._persist_local(chat_id, list(self._state.messages))

    async def new_chat(self) -> None:
        self._state.error = None
        if self._state.mode is SessionMode.ANONYMOUS:
            self._replace_transcript(None)
            try:
                await self._local.set_selected(None)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to reset selected local chat: %s", exc)
            return

        session_epoch = self._session_epoch
        try:
            chat_id = await self._create_chat()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to create chat: %s", exc)
            self._state.error = CREATE_CHAT_FAILED
            return
        if session_epoch != self._session_epoch:
            return
        self._replace_transcript(chat_id)
        await self.refresh_chats()

    async def select_chat(self, chat_id: int) -> None:
        if self._state.mode is SessionMode.ANONYMOUS:
            logger.debug("Ignoring selection of chat %s in anonymous mode", chat_id)
            return
        self._state.error = None
        self._replace_transcript(chat_id)
        await self.restore()

    async def delete_chat(self, chat_id: int) -> None:
        if self._state.mode is SessionMode.ANONYMOUS:
            logger.debug("Ignoring deletion of chat %s in anonymous mode", chat_id)
            return
        self._state.error = None

        session_epoch = self._session_epoch
        try:
            await self._remote.delete(chat_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to delete chat %s: %s", chat_id, exc)
            self._state.error = DELETE_CHAT_FAILED
            return
        if session_epoch != self._session_epoch:
            return

        if self._state.selected_chat_id == chat_id:
            self._replace_transcript(None)
            await self.new_chat()
        else:
            await self.refresh_chats()

    async def clear_chat(self) -> None:
        self._state.error = None
        selected = self._state.selected_chat_id
        if self._state.mode is SessionMode.AUTHENTICATED and selected is not None:
            await self.delete_chat(selected)
            return
        # Local storage keeps the old transcript until the next send overwrites it.
        self._replace_transcript(selected)

    async def login(self) -> None:
        self._state.error = None
        try:
            try:
                await self._identity_provider.login()
            except AlreadyAuthenticatedError:
                logger.info("Identity provider already authenticated; retrying login")
                await self._identity_provider.clear()
                await self._identity_provider.login()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Login failed: %s", exc)
            self._state.error = SIGN_IN_FAILED
            return

        identity = self._identity_provider.identity
        if identity is None:
            self._state.error = SIGN_IN_FAILED
            return
        await self.on_identity_changed(identity)

    async def logout(self) -> None:
        self._state.error = None
        try:
            await self._identity_provider.clear()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Logout failed: %s", exc)
            self._state.error = SIGN_OUT_FAILED
            return
        await self.on_identity_changed(None)

    async def refresh_chats(self) -> list[ChatSummary]:
        if self._state.mode is SessionMode.ANONYMOUS:
            self._state.chats = []
            return []

        session_epoch = self._session_epoch
        try:
            chats = await self._remote.list()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to list chats: %s", exc)
            if session_epoch == self._session_epoch:
                self._state.error = LOAD_CHATS_FAILED
            return list(self._state.chats)
        if session_epoch == self._session_epoch:
            self._state.chats = chats
        return chats

    def _bind(self, identity: Optional[Identity]) -> None:
        backend = self._connect(identity)
        self._remote = RemoteChatService(backend)
        self._reply = ReplyService(backend)

    async def _create_chat(self) -> int:
        self._creates_in_flight += 1
        self._state.creating = True
        try:
            return await self._remote.create(NEW_CHAT_TITLE)
        finally:
            self._creates_in_flight -= 1
            self._state.creating = self._creates_in_flight > 0

    def _replace_transcript(self, chat_id: Optional[int]) -> None:
        self._transcript_epoch += 1
        self._state.selected_chat_id = chat_id
        self._state.messages = []

    def _is_current(self, epoch: int, chat_id: Optional[int]) -> bool:
        return epoch == self._transcript_epoch and chat_id == self._state.selected_chat_id

    async def _restore_remote(self, epoch: int) -> None:
        chat_id = self._state.selected_chat_id
        if chat_id is None:
            self._state.messages = []
            return

        try:
            record = await self._remote.get(chat_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to fetch chat %s: %s", chat_id, exc)
            if self._is_current(epoch, chat_id):
                self._state.error = LOAD_CHAT_FAILED
            return

        if not self._is_current(epoch, chat_id):
            logger.debug("Discarding stale transcript for chat %s", chat_id)
            return
        self._state.messages = list(record.messages) if record is not None else []

    async def _restore_local(self, epoch: int) -> None:
        chats = await self._local.load()
        saved = await self._local.get_selected()
        if epoch != self._transcript_epoch:
            logger.debug("Discarding stale local restore")
            return

        if saved is not None and saved in chats:
            self._state.selected_chat_id = saved
            self._state.messages = list(chats[saved].messages)
        else:
            self._state.selected_chat_id = None
            self._state.messages = []

    async def _persist_remote(self, chat_id: Optional[int], messages: tuple[Message, ...]) -> None:
        if chat_id is None:
            return
        # Appended one at a time so the backend log keeps the user-first order.
        for message in messages:
            try:
                await self._remote.append_message(
                    chat_id, message.role, message.content, message.timestamp
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Failed to persist %s message to chat %s: %s",
                    message.role.value,
                    chat_id,
                    exc,
                )
                return

    async def _persist_local(self, chat_id: Optional[int], messages: list[Message]) -> None:
        local_id = chat_id if chat_id is not None else ANONYMOUS_CHAT_ID
        if self._state.selected_chat_id is None:
            self._state.selected_chat_id = local_id
        try:
            await self._local.save(local_id, messages, NEW_CHAT_TITLE)
            await self._local.set_selected(local_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist local chat %s: %s", local_id, exc)
