"""Exceptions raised by the chat session layer."""

from typing import Any, Optional


class ChatSessionError(Exception):
    """Base exception for chat session failures."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class BackendError(ChatSessionError):
    """A remote backend call failed or returned a malformed payload."""


class ReplyError(BackendError):
    """Reply generation failed."""


class IdentityError(ChatSessionError):
    """The identity provider rejected a login or logout."""


class AlreadyAuthenticatedError(IdentityError):
    """Login was requested while an identity is already present."""


class LocalStorageError(ChatSessionError):
    """Local key-value storage could not be written."""
