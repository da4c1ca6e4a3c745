import pytest
from fastapi.testclient import TestClient

from src.server.session.dependencies import set_session_controller


@pytest.fixture
def client(controller, network):
    network.reply = lambda prompt: "Hi there!"
    set_session_controller(controller)

    from src.server.app import app

    with TestClient(app) as test_client:
        yield test_client


def test_anonymous_conversation_flow(client: TestClient):
    response = client.get("/api/session")
    assert response.status_code == 200
    assert response.json()["mode"] == "anonymous"
    assert response.json()["messages"] == []
    assert response.json()["login_status"] == "idle"

    response = client.post("/api/session/messages", json={"prompt": "Hello"})
    assert response.status_code == 200
    view = response.json()
    assert [(m["role"], m["content"]) for m in view["messages"]] == [
        ("user", "Hello"),
        ("assistant", "Hi there!"),
    ]
    assert view["selected_chat_id"] == 0
    assert view["pending"] is False

    response = client.post("/api/session/restore")
    assert response.json()["messages"] == view["messages"]

    response = client.post("/api/session/clear")
    assert response.json()["messages"] == []


def test_authenticated_chat_lifecycle(client: TestClient, network):
    response = client.post("/api/session/login")
    assert response.status_code == 200
    assert response.json()["mode"] == "authenticated"
    assert response.json()["principal"] == "alice"
    assert response.json()["login_status"] == "success"

    response = client.post("/api/session/messages", json={"prompt": "Hello"})
    chat_id = response.json()["selected_chat_id"]
    assert chat_id is not None

    response = client.get("/api/session/chats")
    assert [chat["chat_id"] for chat in response.json()["chats"]] == [chat_id]

    response = client.post("/api/session/chats")
    other_id = response.json()["selected_chat_id"]
    assert other_id != chat_id
    assert response.json()["messages"] == []

    response = client.post(f"/api/session/chats/{chat_id}/select")
    assert len(response.json()["messages"]) == 2

    response = client.delete(f"/api/session/chats/{chat_id}")
    view = response.json()
    assert view["selected_chat_id"] not in (None, chat_id)
    assert view["messages"] == []

    response = client.post("/api/session/logout")
    assert response.json()["mode"] == "anonymous"
    assert response.json()["principal"] is None
    assert response.json()["login_status"] == "idle"


def test_operation_failures_are_reported_in_view(client: TestClient, network):
    client.post("/api/session/login")
    network.failures.add("createChat")

    response = client.post("/api/session/messages", json={"prompt": "Hello"})

    assert response.status_code == 200
    assert response.json()["error"] == "Failed to create chat. Please try again."


def test_send_is_rejected_while_busy(client: TestClient, controller):
    controller.state.pending = True

    response = client.post("/api/session/messages", json={"prompt": "Hello"})

    assert response.status_code == 409


def test_send_is_rejected_while_creating_chat(client: TestClient, controller):
    client.post("/api/session/login")
    controller.state.creating = True

    response = client.post("/api/session/messages", json={"prompt": "Hello"})

    assert response.status_code == 409
    assert client.get("/api/session").json()["busy"] is True


def test_profile_setup(client: TestClient):
    client.post("/api/session/login")

    response = client.get("/api/session/profile")
    assert response.json()["needs_setup"] is True

    response = client.put("/api/session/profile", json={"name": " "})
    assert response.json()["error"] == "Please enter your name."

    response = client.put("/api/session/profile", json={"name": "Ada"})
    assert response.json() == {"name": "Ada", "role": "user", "needs_setup": False, "error": None}
