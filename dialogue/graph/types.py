"""
Type definitions for authored curriculum nodes.
"""

from dataclasses import dataclass, field
from enum import Enum


class NodeKind(str, Enum):
    """How a node is presented in the conversation."""

    NARRATION = "system"
    BRANCH_PROMPT = "aporia-system"
    BRANCH_OPTION = "aporia-user"
    CARD_CAROUSEL = "card-carousel"
    MEDIA = "media"
    MODULE_TITLE = "module_title"
    MODULE_DESCRIPTION = "module_description"


@dataclass(frozen=True)
class LearningNode:
    """One authored unit of curriculum.

    Ids are dotted and hierarchical ("15.2.1" is a child of "15.2").
    """

    id: str
    kind: NodeKind
    content: str
    successors: tuple[str, ...] = ()
    next_action: str = "getNextChunk"  # Authoring hint, informational only

    @property
    def first_successor(self) -> str | None:
        return self.successors[0] if self.successors else None

    @property
    def structural_parent(self) -> str | None:
        """Dotted-id parent ("15.2.1" -> "15.2"), None for top-level ids."""
        if "." not in self.id:
            return None
        return self.id.rsplit(".", 1)[0]


@dataclass(frozen=True)
class NodeOverride:
    """Declarative per-node adjustments supplied alongside the graph."""

    # Narration nodes whose children are several options act as a prompt
    treat_as_branch_prompt: bool = False
    # Forced continuation once every option under this prompt was chosen
    exhausted_exit: str | None = None
    exhausted_message: str | None = None


@dataclass
class GraphIssue:
    """A data-integrity problem found while validating a loaded graph."""

    node_id: str
    message: str
    missing_ids: list[str] = field(default_factory=list)
