"""Chat session management - one traversal engine per active session."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dialogue.config import DeliverySettings, load_delivery_settings
from dialogue.delivery.ai_turn import AITurnHandler, LLMTurnHandler
from dialogue.delivery.engine import TraversalEngine
from dialogue.graph.store import GraphStore, get_store

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a session cannot be found."""

    pass


@dataclass
class ChatSession:
    session_id: str
    engine: TraversalEngine
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_sessions: dict[str, ChatSession] = {}


async def create_session(
    store: GraphStore | None = None,
    ai_handler: AITurnHandler | None = None,
    settings: DeliverySettings | None = None,
) -> ChatSession:
    """
    Create and start a new chat session.

    Args:
        store: Graph to traverse (defaults to the shared store)
        ai_handler: Free-text responder (defaults to the LiteLLM tutor)
        settings: Pacing knobs (defaults to environment configuration)

    Returns:
        The started ChatSession
    """
    engine = TraversalEngine(
        store=store or get_store(),
        ai_handler=ai_handler or LLMTurnHandler(),
        settings=settings or load_delivery_settings(),
    )
    session = ChatSession(session_id=uuid.uuid4().hex, engine=engine)
    _sessions[session.session_id] = session
    await engine.start()
    logger.info(f"Started chat session {session.session_id}")
    return session


def get_session(session_id: str) -> ChatSession:
    """
    Get a session by ID.

    Raises:
        SessionNotFoundError: If session doesn't exist
    """
    session = _sessions.get(session_id)
    if session is None:
        raise SessionNotFoundError(f"Session not found: {session_id}")
    return session


def end_session(session_id: str) -> None:
    """
    Stop a session's deliveries and forget it.

    Raises:
        SessionNotFoundError: If session doesn't exist
    """
    session = get_session(session_id)
    session.engine.close()
    del _sessions[session_id]
    logger.info(f"Ended chat session {session_id}")


def end_all_sessions() -> None:
    """Stop every session (shutdown and tests)."""
    for session_id in list(_sessions):
        end_session(session_id)
