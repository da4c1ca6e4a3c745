from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .controller import SessionController
from .models import Identity, SessionMode, UserProfile, UserRole

logger = logging.getLogger(__name__)

PROFILE_NAME_REQUIRED = "Please enter your name."
PROFILE_SAVE_FAILED = "Failed to save profile. Please try again."
PROFILE_LOAD_FAILED = "Failed to load profile. Please try again."


@dataclass(slots=True)
class ProfileState:
    profile: Optional[UserProfile] = None
    role: Optional[UserRole] = None
    loaded: bool = False
    saving: bool = False
    error: Optional[str] = None

    @property
    def needs_setup(self) -> bool:
        return self.loaded and self.profile is None


class ProfileController:
    """Caller profile for authenticated sessions, reset on identity change."""

    def __init__(self, session: SessionController) -> None:
        self._session = session
        self._state = ProfileState()
        self._owner: Optional[Identity] = None

    @property
    def state(self) -> ProfileState:
        if self._owner != self._session.identity:
            self._owner = self._session.identity
            self._state = ProfileState()
        return self._state

    async def load(self) -> ProfileState:
        state = self.state
        if self._session.state.mode is SessionMode.ANONYMOUS:
            return state

        remote = self._session.remote
        try:
            profile = await remote.get_profile()
            role = await remote.get_role()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to load caller profile: %s", exc)
            state.error = PROFILE_LOAD_FAILED
            return state

        state.profile = profile
        state.role = role
        state.loaded = True
        state.error = None
        return state

    async def save(self, name: str) -> bool:
        state = self.state
        trimmed = name.strip()
        if not trimmed:
            state.error = PROFILE_NAME_REQUIRED
            return False
        if self._session.state.mode is SessionMode.ANONYMOUS:
            logger.debug("Ignoring profile save in anonymous mode")
            return False

        profile = UserProfile(name=trimmed)
        state.saving = True
        try:
            await self._session.remote.save_profile(profile)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to save caller profile: %s", exc)
            state.error = PROFILE_SAVE_FAILED
            return False
        finally:
            state.saving = False

        state.profile = profile
        state.loaded = True
        state.error = None
        return True
