"""Authored curriculum graph: node types, payload parsing, loading, storage."""

from .types import LearningNode, NodeKind, NodeOverride, GraphIssue
from .payloads import (
    Card,
    CarouselPayload,
    MediaFile,
    MediaPayload,
    StructuredPayload,
    parse_carousel,
    parse_media,
)
from .store import (
    GraphStore,
    GraphNotLoadedError,
    get_store,
    set_store,
    clear_store,
)
from .loader import (
    load_graph_csv,
    load_overrides_yaml,
    parse_graph_rows,
    build_store,
    OverrideFormatError,
)

__all__ = [
    "LearningNode",
    "NodeKind",
    "NodeOverride",
    "GraphIssue",
    "Card",
    "CarouselPayload",
    "MediaFile",
    "MediaPayload",
    "StructuredPayload",
    "parse_carousel",
    "parse_media",
    "GraphStore",
    "GraphNotLoadedError",
    "get_store",
    "set_store",
    "clear_store",
    "load_graph_csv",
    "load_overrides_yaml",
    "parse_graph_rows",
    "build_store",
    "OverrideFormatError",
]
