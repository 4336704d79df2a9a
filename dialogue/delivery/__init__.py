"""Conversational delivery: pacing, choice tracking, traversal and AI turns."""

from .types import (
    Role,
    Origin,
    DeliveredItem,
    Transcript,
    Idle,
    PendingDelivery,
    AwaitingChoice,
    AwaitingAI,
    Phase,
)
from .pacer import compute_delay, estimate_height, should_pause
from .ledger import ChoiceLedger
from .ai_turn import (
    AITurnHandler,
    AITurnResult,
    LLMTurnHandler,
    TurnContext,
    parse_turn_response,
    split_paragraphs,
)
from .engine import TraversalEngine
from .sessions import (
    ChatSession,
    create_session,
    get_session,
    end_session,
    end_all_sessions,
    SessionNotFoundError,
)

__all__ = [
    # Transcript and phases
    "Role",
    "Origin",
    "DeliveredItem",
    "Transcript",
    "Idle",
    "PendingDelivery",
    "AwaitingChoice",
    "AwaitingAI",
    "Phase",
    # Pacing and choices
    "compute_delay",
    "estimate_height",
    "should_pause",
    "ChoiceLedger",
    # AI turns
    "AITurnHandler",
    "AITurnResult",
    "LLMTurnHandler",
    "TurnContext",
    "parse_turn_response",
    "split_paragraphs",
    # Engine and sessions
    "TraversalEngine",
    "ChatSession",
    "create_session",
    "get_session",
    "end_session",
    "end_all_sessions",
    "SessionNotFoundError",
]
