# dialogue/graph/loader.py
"""Load authored curriculum from CSV and the override table from YAML."""

import csv
import logging
from pathlib import Path

import yaml

from dialogue.graph.store import GraphStore
from dialogue.graph.types import LearningNode, NodeKind, NodeOverride

logger = logging.getLogger(__name__)

FALLBACK_NODES = {
    "1": LearningNode(
        id="1",
        kind=NodeKind.NARRATION,
        content="Content loading failed. Please contact support.",
    )
}


class OverrideFormatError(Exception):
    """Raised when the override table is not a mapping of node ids."""

    pass


def parse_graph_rows(rows: list[list[str]]) -> dict[str, LearningNode]:
    """
    Build nodes from CSV rows (header already removed).

    Columns: sequence_id, display_type, content, nextAction, nextChunk.
    nextChunk holds successor ids separated by "|". Rows with too few
    columns or an unknown display type are skipped with a warning.
    """
    nodes: dict[str, LearningNode] = {}
    for line_number, row in enumerate(rows, start=2):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < 5:
            logger.warning(f"Line {line_number}: expected 5 columns, got {len(row)}")
            continue

        node_id = row[0].strip()
        type_raw = row[1].strip()
        try:
            kind = NodeKind(type_raw)
        except ValueError:
            logger.warning(
                f"Unknown display type: {type_raw!r} for sequence_id: {node_id!r}"
            )
            continue

        successors = tuple(s.strip() for s in row[4].split("|") if s.strip())
        if node_id in nodes:
            logger.warning(f"Duplicate sequence_id {node_id!r}, keeping last row")
        nodes[node_id] = LearningNode(
            id=node_id,
            kind=kind,
            content=row[2],
            successors=successors,
            next_action=row[3].strip(),
        )
    return nodes


def load_graph_csv(path: Path) -> dict[str, LearningNode]:
    """
    Read the authored CSV.

    A missing file is not fatal: a single fallback node is returned so the
    chat can still tell the learner something went wrong.
    """
    if not path.exists():
        logger.error(f"Curriculum CSV missing: {path}")
        return dict(FALLBACK_NODES)

    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        next(reader, None)  # header
        return parse_graph_rows(list(reader))


def load_overrides_yaml(path: Path | None) -> dict[str, NodeOverride]:
    """
    Read the per-node override table.

    Example:

        "15":
          treat_as_branch_prompt: true
        "15.2.1":
          exhausted_exit: "16"
          exhausted_message: "Let's see how it resolves."
    """
    if path is None:
        return {}
    if not path.exists():
        logger.warning(f"Override table not found: {path}")
        return {}

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise OverrideFormatError(f"{path}: expected a mapping of node ids")

    overrides = {}
    for node_id, entry in raw.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise OverrideFormatError(f"{path}: entry for {node_id} must be a mapping")
        overrides[str(node_id)] = NodeOverride(
            treat_as_branch_prompt=bool(entry.get("treat_as_branch_prompt", False)),
            exhausted_exit=_optional_str(entry.get("exhausted_exit")),
            exhausted_message=entry.get("exhausted_message"),
        )
    return overrides


def build_store(csv_path: Path, overrides_path: Path | None = None) -> GraphStore:
    """Load CSV and overrides into a fresh, loaded GraphStore."""
    store = GraphStore()
    store.load(load_graph_csv(csv_path), load_overrides_yaml(overrides_path))
    return store


def _optional_str(value) -> str | None:
    return None if value is None else str(value)
