"""
Chat session API routes.

Endpoints:
- POST /api/chat/sessions - Start a new session
- GET /api/chat/sessions/{session_id} - Current session state
- POST /api/chat/sessions/{session_id}/choices - Pick a branch option
- POST /api/chat/sessions/{session_id}/messages - Send free text
- POST /api/chat/sessions/{session_id}/scroll - Report viewport state
- POST /api/chat/sessions/{session_id}/continue - Resume paused delivery
- POST /api/chat/sessions/{session_id}/undo - Undo the last exchange
- PATCH /api/chat/sessions/{session_id}/settings - Change reading speed
- DELETE /api/chat/sessions/{session_id} - End the session
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from dialogue.delivery.sessions import (
    ChatSession,
    SessionNotFoundError,
    create_session,
    end_session,
    get_session,
)
from dialogue.graph.store import GraphNotLoadedError

router = APIRouter(prefix="/api/chat/sessions", tags=["chat"])


class ChoiceRequest(BaseModel):
    """Request body for picking a branch option."""

    optionId: str


class MessageRequest(BaseModel):
    """Request body for free-text input."""

    text: str = Field(min_length=1)


class ScrollRequest(BaseModel):
    """Viewport state reported by the chat client."""

    isAtBottom: bool
    viewportHeight: float = Field(ge=0)


class SettingsRequest(BaseModel):
    """Learner-adjustable delivery settings."""

    speedMultiplier: float = Field(gt=0)


def _session_or_404(session_id: str) -> ChatSession:
    try:
        return get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


def _state(session: ChatSession) -> dict:
    return {"sessionId": session.session_id, **session.engine.snapshot()}


@router.post("")
async def start_session():
    """Start a session. Delivery begins once the client reports its viewport."""
    try:
        session = await create_session()
    except GraphNotLoadedError:
        raise HTTPException(status_code=503, detail="Curriculum not loaded")
    return _state(session)


@router.get("/{session_id}")
async def get_session_state(session_id: str):
    return _state(_session_or_404(session_id))


@router.post("/{session_id}/choices")
async def choose_branch(session_id: str, request: ChoiceRequest):
    session = _session_or_404(session_id)
    session.engine.choose_branch(request.optionId)
    return _state(session)


@router.post("/{session_id}/messages")
async def send_message(session_id: str, request: MessageRequest):
    """
    Send free text to the tutor.

    Returns once the AI has answered; the reply paragraphs then arrive one
    by one, so clients keep polling the session state.
    """
    session = _session_or_404(session_id)
    await session.engine.handle_free_text(request.text)
    return _state(session)


@router.post("/{session_id}/scroll")
async def report_scroll(session_id: str, request: ScrollRequest):
    session = _session_or_404(session_id)
    session.engine.report_scroll_state(request.isAtBottom, request.viewportHeight)
    return _state(session)


@router.post("/{session_id}/continue")
async def continue_delivery(session_id: str):
    session = _session_or_404(session_id)
    session.engine.user_requested_continue()
    return _state(session)


@router.post("/{session_id}/undo")
async def undo_last_exchange(session_id: str):
    session = _session_or_404(session_id)
    session.engine.undo_last_exchange()
    return _state(session)


@router.patch("/{session_id}/settings")
async def update_settings(session_id: str, request: SettingsRequest):
    session = _session_or_404(session_id)
    session.engine.set_speed_multiplier(request.speedMultiplier)
    return _state(session)


@router.delete("/{session_id}")
async def delete_session(session_id: str):
    try:
        end_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "ended"}
