from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends

from src.chat.backend import HttpChatBackend
from src.chat.controller import SessionController
from src.chat.identity import StaticIdentityProvider
from src.chat.local_store import LocalChatStore
from src.chat.models import Identity
from src.chat.profile import ProfileController
from src.chat.storage import SQLiteKeyValueStorage
from src.config.loader import get_bool_env, get_int_env, get_str_env

logger = logging.getLogger(__name__)

_SESSION_CONTROLLER: Optional[SessionController] = None
_PROFILE_CONTROLLER: Optional[ProfileController] = None


def initialise_session_controller() -> SessionController:
    """Create the session controller using configuration."""
    global _SESSION_CONTROLLER
    if _SESSION_CONTROLLER is not None:
        return _SESSION_CONTROLLER

    db_path = get_str_env("LOCAL_STORE_PATH", "chat_session.db")
    backend_url = get_str_env("CHAT_BACKEND_URL", "http://localhost:8000")
    timeout = float(get_int_env("CHAT_BACKEND_TIMEOUT", 30))
    identity_provider = StaticIdentityProvider(
        get_str_env("SESSION_PRINCIPAL", "local-user"),
        authenticated=get_bool_env("SESSION_AUTO_LOGIN", False),
    )

    def connect(identity: Optional[Identity]) -> HttpChatBackend:
        return HttpChatBackend(backend_url, identity, timeout=timeout)

    storage = SQLiteKeyValueStorage(db_path)
    controller = SessionController(LocalChatStore(storage), identity_provider, connect)
    set_session_controller(controller)
    logger.info(
        "Initialised session controller with local store %s and backend %s",
        storage.db_path,
        backend_url,
    )
    return controller


def set_session_controller(controller: SessionController) -> None:
    global _SESSION_CONTROLLER, _PROFILE_CONTROLLER
    _SESSION_CONTROLLER = controller
    _PROFILE_CONTROLLER = ProfileController(controller)


def get_session_controller(
    _: SessionController = Depends(initialise_session_controller),
) -> SessionController:
    if _SESSION_CONTROLLER is None:
        raise RuntimeError("Session controller has not been initialised")
    return _SESSION_CONTROLLER


def get_profile_controller(
    _: SessionController = Depends(get_session_controller),
) -> ProfileController:
    if _PROFILE_CONTROLLER is None:
        raise RuntimeError("Profile controller has not been initialised")
    return _PROFILE_CONTROLLER
