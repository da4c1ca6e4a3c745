"""Chat session state with local (anonymous) and backend (authenticated) persistence."""

from .backend import ChatBackend, HttpChatBackend
from .controller import SessionController
from .identity import IdentityProvider, LoginStatus, StaticIdentityProvider
from .local_store import LocalChatStore
from .models import (
    ANONYMOUS_CHAT_ID,
    NEW_CHAT_TITLE,
    ChatRecord,
    ChatSummary,
    Identity,
    Message,
    MessageRole,
    SessionMode,
    SessionState,
    UserProfile,
    UserRole,
)
from .profile import ProfileController
from .remote import RemoteChatService, ReplyService
from .storage import InMemoryKeyValueStorage, KeyValueStorage, SQLiteKeyValueStorage

__all__ = [
    "ANONYMOUS_CHAT_ID",
    "NEW_CHAT_TITLE",
    "ChatBackend",
    "ChatRecord",
    "ChatSummary",
    "HttpChatBackend",
    "Identity",
    "IdentityProvider",
    "InMemoryKeyValueStorage",
    "KeyValueStorage",
    "LocalChatStore",
    "LoginStatus",
    "Message",
    "MessageRole",
    "ProfileController",
    "RemoteChatService",
    "ReplyService",
    "SQLiteKeyValueStorage",
    "SessionController",
    "SessionMode",
    "SessionState",
    "StaticIdentityProvider",
    "UserProfile",
    "UserRole",
]
