"""
Type definitions for the conversation transcript and traversal phases.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from dialogue.graph.payloads import StructuredPayload


class Role(str, Enum):
    LEARNER = "learner"
    NARRATOR = "narrator"
    ASSISTANT = "assistant"


class Origin(str, Enum):
    AUTHORED = "authored"
    AI_GENERATED = "ai_generated"


@dataclass(frozen=True)
class DeliveredItem:
    """One entry in the transcript. Never mutated once appended."""

    role: Role
    text: str
    origin: Origin = Origin.AUTHORED
    structured_payload: StructuredPayload | None = None
    node_id: str | None = None  # Graph node that produced it, if any
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Transcript:
    """Append-only log of delivered items.

    The single exception is undo of the last learner message and the
    reply that followed it.
    """

    def __init__(self):
        self._items: list[DeliveredItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def items(self) -> tuple[DeliveredItem, ...]:
        return tuple(self._items)

    def append(self, item: DeliveredItem) -> None:
        self._items.append(item)

    def last(self, count: int) -> list[DeliveredItem]:
        return self._items[-count:] if count > 0 else []

    def second_to_last(self) -> DeliveredItem | None:
        return self._items[-2] if len(self._items) >= 2 else None

    def remove_last_exchange(self) -> bool:
        """Drop the most recent learner message and everything after it.

        A reply may span several items (one per paragraph), so the whole
        tail goes. Returns False when no learner message is followed by a
        reply.
        """
        if not self._items or self._items[-1].role == Role.LEARNER:
            return False
        for index in range(len(self._items) - 2, -1, -1):
            if self._items[index].role == Role.LEARNER:
                del self._items[index:]
                return True
        return False


# --- Traversal phases ---


@dataclass(frozen=True)
class Idle:
    """Nothing waiting on the learner (a timed delivery may be running)."""


@dataclass(frozen=True)
class PendingDelivery:
    """Delivery paused until the learner scrolls or asks to continue."""

    node_id: str
    # True when the node's text is already on screen and only its
    # branch options are held back
    content_delivered: bool = False


@dataclass(frozen=True)
class AwaitingChoice:
    """Options are on screen; ledger entries are recorded under parent_id."""

    parent_id: str


@dataclass(frozen=True)
class AwaitingAI:
    """A free-text turn is with the AI backend."""

    # Phase to return to once the turn resolves
    resume_to: "Idle | PendingDelivery | AwaitingChoice" = field(default_factory=Idle)


Phase = Idle | PendingDelivery | AwaitingChoice | AwaitingAI
