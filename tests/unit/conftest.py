import asyncio
import copy
from typing import Any, Callable, Optional

import pytest

from src.chat.controller import SessionController
from src.chat.errors import BackendError
from src.chat.identity import StaticIdentityProvider
from src.chat.local_store import LocalChatStore
from src.chat.models import Identity
from src.chat.storage import InMemoryKeyValueStorage


class FakeNetwork:
    """In-memory chat backend shared by every connection handle it hands out."""

    def __init__(self) -> None:
        self.chats: dict[int, dict[str, Any]] = {}
        self.profiles: dict[str, dict[str, Any]] = {}
        self.next_id = 1
        self.calls: list[tuple[Optional[str], str, tuple]] = []
        self.failures: set[str] = set()
        self.reply: Callable[[str], str] = lambda prompt: f"echo: {prompt}"
        # Calls to a gated method wait until its event is set.
        self.gates: dict[str, asyncio.Event] = {}

    def connect(self, identity: Optional[Identity]) -> "FakeConnection":
        return FakeConnection(self, identity.principal if identity is not None else None)

    def methods(self) -> list[str]:
        return [method for _, method, _ in self.calls]

    def calls_of(self, method: str) -> list[tuple]:
        return [args for _, name, args in self.calls if name == method]


class FakeConnection:
    def __init__(self, network: FakeNetwork, principal: Optional[str]) -> None:
        self._network = network
        self._principal = principal

    async def call(self, method: str, *args: Any) -> Any:
        network = self._network
        network.calls.append((self._principal, method, args))
        gate = network.gates.get(method)
        if gate is not None:
            await gate.wait()
        if method in network.failures:
            raise BackendError(f"{method} unavailable")

        if method == "getChatbotReply":
            return network.reply(args[0])

        if self._principal is None:
            raise BackendError("Anonymous callers cannot use chat storage")

        if method == "createChat":
            chat_id = network.next_id
            network.next_id += 1
            network.chats[chat_id] = {
                "chatId": chat_id,
                "title": args[0],
                "creator": self._principal,
                "messages": [],
            }
            return chat_id
        if method == "deleteChat":
            self._owned(args[0])
            del network.chats[args[0]]
            return None
        if method == "getChat":
            chat = network.chats.get(args[0])
            if chat is None or chat["creator"] != self._principal:
                return {"__kind__": "None"}
            return {"__kind__": "Some", "value": copy.deepcopy(chat)}
        if method == "getUserChats":
            return [
                {"chatId": chat["chatId"], "title": chat["title"], "creator": chat["creator"]}
                for chat in network.chats.values()
                if chat["creator"] == self._principal
            ]
        if method == "addMessage":
            chat = self._owned(args[0])
            chat["messages"].append({**args[1], "timestamp": args[2]})
            return None
        if method == "getCallerUserProfile":
            profile = network.profiles.get(self._principal)
            if profile is None:
                return {"__kind__": "None"}
            return {"__kind__": "Some", "value": dict(profile)}
        if method == "saveCallerUserProfile":
            network.profiles[self._principal] = dict(args[0])
            return None
        if method == "getCallerUserRole":
            return "user"
        if method == "isCallerAdmin":
            return False
        raise BackendError(f"Unknown method {method}")

    def _owned(self, chat_id: int) -> dict[str, Any]:
        chat = self._network.chats.get(chat_id)
        if chat is None or chat["creator"] != self._principal:
            raise BackendError(f"Chat {chat_id} not found")
        return chat


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def local_store(storage: InMemoryKeyValueStorage) -> LocalChatStore:
    return LocalChatStore(storage)


@pytest.fixture
def identity_provider() -> StaticIdentityProvider:
    return StaticIdentityProvider("alice")


@pytest.fixture
def controller(local_store, identity_provider, network) -> SessionController:
    return SessionController(local_store, identity_provider, network.connect)
