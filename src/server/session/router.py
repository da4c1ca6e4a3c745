from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from src.chat.controller import SessionController
from src.chat.models import ChatSummary, Message, SessionState
from src.chat.profile import ProfileController, ProfileState

from .dependencies import get_profile_controller, get_session_controller
from .schemas import (
    ChatListResponse,
    ChatSummaryOut,
    ProfileUpdateRequest,
    ProfileView,
    SendMessageRequest,
    SessionMessage,
    SessionView,
)

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("", response_model=SessionView)
async def get_session(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    return _to_view(controller)


@router.post("/restore", response_model=SessionView)
async def restore_session(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.restore()
    return _to_view(controller)


@router.post("/messages", response_model=SessionView)
async def send_message(
    payload: SendMessageRequest,
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    if controller.state.busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another session operation is still in progress",
        )
    await controller.send(payload.prompt)
    return _to_view(controller)


@router.get("/chats", response_model=ChatListResponse)
async def list_chats(
    controller: SessionController = Depends(get_session_controller),
) -> ChatListResponse:
    chats = await controller.refresh_chats()
    return ChatListResponse(chats=[_to_summary(chat) for chat in chats], error=controller.state.error)


@router.post("/chats", response_model=SessionView)
async def new_chat(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.new_chat()
    return _to_view(controller)


@router.post("/chats/{chat_id}/select", response_model=SessionView)
async def select_chat(
    chat_id: int,
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.select_chat(chat_id)
    return _to_view(controller)


@router.delete("/chats/{chat_id}", response_model=SessionView)
async def delete_chat(
    chat_id: int,
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    if controller.state.pending:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A reply is still in progress",
        )
    await controller.delete_chat(chat_id)
    return _to_view(controller)


@router.post("/clear", response_model=SessionView)
async def clear_chat(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.clear_chat()
    return _to_view(controller)


@router.post("/login", response_model=SessionView)
async def login(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.login()
    return _to_view(controller)


@router.post("/logout", response_model=SessionView)
async def logout(
    controller: SessionController = Depends(get_session_controller),
) -> SessionView:
    await controller.logout()
    return _to_view(controller)


@router.get("/profile", response_model=ProfileView)
async def get_profile(
    profiles: ProfileController = Depends(get_profile_controller),
) -> ProfileView:
    return _to_profile(await profiles.load())


@router.put("/profile", response_model=ProfileView)
async def update_profile(
    payload: ProfileUpdateRequest,
    profiles: ProfileController = Depends(get_profile_controller),
) -> ProfileView:
    await profiles.save(payload.name)
    return _to_profile(profiles.state)


def _to_message(message: Message) -> SessionMessage:
    return SessionMessage(
        id=message.id,
        role=message.role.value,
        content=message.content,
        timestamp=message.timestamp,
    )


def _to_summary(chat: ChatSummary) -> ChatSummaryOut:
    return ChatSummaryOut(chat_id=chat.chat_id, title=chat.title, creator=chat.creator)


def _to_view(controller: SessionController) -> SessionView:
    state: SessionState = controller.state
    identity = controller.identity
    return SessionView(
        mode=state.mode.value,
        selected_chat_id=state.selected_chat_id,
        messages=[_to_message(message) for message in state.messages],
        pending=state.pending,
        restoring=state.restoring,
        creating=state.creating,
        busy=state.busy,
        error=state.error,
        principal=identity.principal if identity is not None else None,
        login_status=controller.identity_provider.login_status.value,
    )


def _to_profile(state: ProfileState) -> ProfileView:
    return ProfileView(
        name=state.profile.name if state.profile is not None else None,
        role=state.role.value if state.role is not None else None,
        needs_setup=state.needs_setup,
        error=state.error,
    )
