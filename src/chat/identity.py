from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from .errors import AlreadyAuthenticatedError
from .models import Identity

logger = logging.getLogger(__name__)


class LoginStatus(str, Enum):
    IDLE = "idle"
    LOGGING_IN = "logging-in"
    SUCCESS = "success"
    LOGIN_ERROR = "loginError"


class IdentityProvider(Protocol):
    @property
    def identity(self) -> Optional[Identity]: ...

    @property
    def login_status(self) -> LoginStatus: ...

    async def login(self) -> None: ...

    async def clear(self) -> None: ...


class StaticIdentityProvider:
    """In-process identity provider that signs in as a fixed principal."""

    def __init__(self, principal: str, *, authenticated: bool = False) -> None:
        self._principal = principal
        self._identity: Optional[Identity] = Identity(principal) if authenticated else None
        self._status = LoginStatus.SUCCESS if authenticated else LoginStatus.IDLE

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def login_status(self) -> LoginStatus:
        return self._status

    async def login(self) -> None:
        if self._identity is not None:
            raise AlreadyAuthenticatedError("User is already authenticated")
        self._status = LoginStatus.LOGGING_IN
        self._identity = Identity(self._principal)
        self._status = LoginStatus.SUCCESS
        logger.info("Signed in as %s", self._principal)

    async def clear(self) -> None:
        self._identity = None
        self._status = LoginStatus.IDLE
