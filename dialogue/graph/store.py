"""In-memory graph store for authored curriculum nodes.

Loaded once at startup and read-only afterwards, so a single store is
shared by every chat session.
"""

import asyncio
import logging

from dialogue.graph.types import GraphIssue, LearningNode, NodeKind, NodeOverride

logger = logging.getLogger(__name__)


class GraphNotLoadedError(Exception):
    """Raised when trying to access the shared store before it was set."""

    pass


class GraphStore:
    """Nodes keyed by id, plus the per-node override table."""

    def __init__(self):
        self._nodes: dict[str, LearningNode] = {}
        self._overrides: dict[str, NodeOverride] = {}
        self._loaded = asyncio.Event()

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set()

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def load(
        self,
        nodes: dict[str, LearningNode],
        overrides: dict[str, NodeOverride] | None = None,
    ) -> None:
        """Publish the loaded nodes and wake anyone awaiting the load."""
        if self.is_loaded:
            raise RuntimeError("GraphStore is immutable once loaded")
        self._nodes = dict(nodes)
        self._overrides = dict(overrides or {})
        for issue in self.validate():
            logger.warning(f"Graph data error at {issue.node_id}: {issue.message}")
        logger.info(
            f"Graph loaded: {len(self._nodes)} nodes, "
            f"{len(self._overrides)} overrides"
        )
        self._loaded.set()

    async def wait_until_loaded(self) -> None:
        await self._loaded.wait()

    def lookup(self, node_id: str | None) -> LearningNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def override_for(self, node_id: str) -> NodeOverride:
        return self._overrides.get(node_id, NodeOverride())

    def effective_kind(self, node: LearningNode) -> NodeKind:
        """Kind after applying the override table.

        A narration node flagged as a prompt only behaves as one when it
        really leads to more than one option.
        """
        override = self.override_for(node.id)
        if node.kind == NodeKind.NARRATION and override.treat_as_branch_prompt:
            options = [
                child
                for child in (self.lookup(s) for s in node.successors)
                if child is not None and child.kind == NodeKind.BRANCH_OPTION
            ]
            if len(options) > 1:
                return NodeKind.BRANCH_PROMPT
        return node.kind

    def validate(self) -> list[GraphIssue]:
        """Report successor references that do not resolve."""
        issues = []
        for node in self._nodes.values():
            missing = [s for s in node.successors if s not in self._nodes]
            if missing:
                issues.append(
                    GraphIssue(
                        node_id=node.id,
                        message=f"unresolved successors {missing}",
                        missing_ids=missing,
                    )
                )
        for node_id, override in self._overrides.items():
            if node_id not in self._nodes:
                issues.append(
                    GraphIssue(node_id=node_id, message="override for unknown node")
                )
            if override.exhausted_exit and override.exhausted_exit not in self._nodes:
                issues.append(
                    GraphIssue(
                        node_id=node_id,
                        message=f"unknown exhausted exit {override.exhausted_exit}",
                        missing_ids=[override.exhausted_exit],
                    )
                )
        return issues


# Shared store singleton
_store: GraphStore | None = None


def get_store() -> GraphStore:
    """Get the shared graph store.

    Raises:
        GraphNotLoadedError: If no store has been set.
    """
    if _store is None:
        raise GraphNotLoadedError("Graph store not initialized. Call set_store() first.")
    return _store


def set_store(store: GraphStore) -> None:
    """Set the shared graph store (used by startup and tests)."""
    global _store
    _store = store


def clear_store() -> None:
    """Clear the shared graph store (used by tests)."""
    global _store
    _store = None
