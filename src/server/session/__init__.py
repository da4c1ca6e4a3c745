"""HTTP intents and read-only views over the chat session controller."""

from .dependencies import get_session_controller, set_session_controller
from .router import router

__all__ = ["get_session_controller", "router", "set_session_controller"]
