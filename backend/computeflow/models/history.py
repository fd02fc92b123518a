"""Pydantic models for graph history entries."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import Field

from computeflow.models.edge import EdgeDefinition
from computeflow.models.node import CamelModel, NodeDefinition


class HistoryEntryType(str, Enum):
    """Kind of edit a history entry represents."""

    ADD_NODE = "add_node"
    DELETE_NODE = "delete_node"
    MOVE_NODE = "move_node"
    ADD_EDGE = "add_edge"
    DELETE_EDGE = "delete_edge"
    EDIT_NODE = "edit_node"
    BATCH = "batch"
    LOAD_FLOW = "load_flow"


class HistorySnapshot(CamelModel):
    """A full, independent copy of the node and edge collections."""

    nodes: list[NodeDefinition] = Field(default_factory=list)
    edges: list[EdgeDefinition] = Field(default_factory=list)


class HistoryEntry(CamelModel):
    """One point in the undo/redo history."""

    id: str
    description: str
    type: HistoryEntryType
    snapshot: HistorySnapshot
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    node_count: int = 0
    edge_count: int = 0


class HistoryEntrySummary(CamelModel):
    """History entry without its snapshot, for listing in a history panel."""

    index: int
    id: str
    description: str
    type: HistoryEntryType
    timestamp: datetime
    node_count: int
    edge_count: int
    is_current: bool = False


class HistoryState(CamelModel):
    """Cursor position within the history stack."""

    can_undo: bool = False
    can_redo: bool = False
    current_index: int = -1
    length: int = 0
