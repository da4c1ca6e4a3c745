import json

import pytest

from src.chat.errors import LocalStorageError
from src.chat.local_store import CHATS_KEY, SELECTED_CHAT_KEY, STORAGE_VERSION, LocalChatStore
from src.chat.models import MessageRole, new_message
from src.chat.storage import InMemoryKeyValueStorage, SQLiteKeyValueStorage


def _exchange(prompt: str, reply: str):
    user = new_message(MessageRole.USER, prompt)
    return [user, new_message(MessageRole.ASSISTANT, reply, after=user.timestamp)]


@pytest.mark.asyncio
async def test_save_and_load_rehydrates_messages(local_store, storage):
    messages = _exchange("Hello", "Hi there!")

    saved = await local_store.save(0, messages, "New Chat")
    chats = await local_store.load()

    assert list(chats) == [0]
    assert chats[0].title == "New Chat"
    assert chats[0].messages == messages
    assert chats[0].messages[0].timestamp.tzinfo is not None
    assert chats[0].updated_at == saved.updated_at

    stored = json.loads(storage.items[CHATS_KEY])
    assert stored["version"] == STORAGE_VERSION
    assert set(stored["chats"]) == {"0"}


@pytest.mark.asyncio
async def test_save_overwrites_whole_record(local_store):
    await local_store.save(0, _exchange("first", "one"), "New Chat")
    await local_store.save(1, _exchange("other", "two"), "Other")

    replacement = _exchange("second", "three")
    await local_store.save(0, replacement, "Renamed")

    chats = await local_store.load()
    assert chats[0].messages == replacement
    assert chats[0].title == "Renamed"
    assert [m.content for m in chats[1].messages] == ["other", "two"]


@pytest.mark.asyncio
async def test_version_mismatch_discards_store():
    storage = InMemoryKeyValueStorage(
        {
            CHATS_KEY: json.dumps(
                {
                    "version": "0.9",
                    "chats": {"0": {"id": 0, "title": "Old", "messages": [], "timestamp": 1}},
                }
            )
        }
    )
    store = LocalChatStore(storage)

    assert await store.load() == {}
    assert CHATS_KEY not in storage.items


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stored",
    [
        "{not json",
        json.dumps(["1.0"]),
        json.dumps({"version": "1.0", "chats": {"0": {"id": 0, "messages": "oops"}}}),
    ],
)
async def test_unreadable_store_is_discarded(stored):
    storage = InMemoryKeyValueStorage({CHATS_KEY: stored, SELECTED_CHAT_KEY: "0"})
    store = LocalChatStore(storage)

    assert await store.load() == {}
    assert CHATS_KEY not in storage.items


@pytest.mark.asyncio
async def test_load_never_raises_on_storage_failure():
    class UnreadableStorage(InMemoryKeyValueStorage):
        async def get_item(self, key):
            raise OSError("locked")

    assert await LocalChatStore(UnreadableStorage()).load() == {}


@pytest.mark.asyncio
async def test_save_raises_local_storage_error():
    class ReadOnlyStorage(InMemoryKeyValueStorage):
        async def set_item(self, key, value):
            raise OSError("read only")

    with pytest.raises(LocalStorageError):
        await LocalChatStore(ReadOnlyStorage()).save(0, [], "New Chat")


@pytest.mark.asyncio
async def test_selected_pointer(local_store, storage):
    assert await local_store.get_selected() is None

    await local_store.set_selected(3)
    assert await local_store.get_selected() == 3

    await local_store.set_selected(None)
    assert await local_store.get_selected() is None
    assert SELECTED_CHAT_KEY not in storage.items

    await storage.set_item(SELECTED_CHAT_KEY, "garbage")
    assert await local_store.get_selected() is None


@pytest.mark.asyncio
async def test_clear_removes_chats_and_pointer(local_store, storage):
    await local_store.save(0, _exchange("Hello", "Hi"), "New Chat")
    await local_store.set_selected(0)

    await local_store.clear()

    assert storage.items == {}
    assert await local_store.load() == {}


@pytest.mark.asyncio
async def test_sqlite_storage_survives_reopen(tmp_path):
    db_path = tmp_path / "local_store.db"
    storage = SQLiteKeyValueStorage(str(db_path))
    await storage.init()
    store = LocalChatStore(storage)
    messages = _exchange("Hello", "Hi there!")
    await store.save(0, messages, "New Chat")
    await store.set_selected(0)

    reopened = SQLiteKeyValueStorage(str(db_path))
    await reopened.init()
    restored = LocalChatStore(reopened)

    assert await restored.get_selected() == 0
    assert (await restored.load())[0].messages == messages

    await restored.clear()
    assert await reopened.get_item(CHATS_KEY) is None
