"""Pydantic models for whole-graph state and graph-level requests."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from computeflow.models.edge import EdgeDefinition, EdgeUpdate
from computeflow.models.execution import ExecutionProgress
from computeflow.models.node import CamelModel, NodeDefinition, NodeUpdate, Position


class ValidationResult(CamelModel):
    """Outcome of validating a proposed connection."""

    valid: bool
    error: str | None = None
    warning: str | None = None


class EdgeValidationError(CamelModel):
    """A single problem found while auditing existing edges."""

    edge_id: str
    error: str


class GraphValidationReport(CamelModel):
    """Result of auditing every edge in a graph."""

    valid: bool
    errors: list[EdgeValidationError] = Field(default_factory=list)


class DirtyState(CamelModel):
    """Which entities changed since the last successful save."""

    dirty_node_ids: set[str] = Field(default_factory=set)
    dirty_edge_ids: set[str] = Field(default_factory=set)
    is_graph_dirty: bool = False
    last_saved_at: datetime | None = None
    last_modified_at: datetime | None = None


class DirtySummary(CamelModel):
    """Condensed dirty state for a save indicator."""

    node_count: int
    edge_count: int
    is_graph_dirty: bool
    time_since_last_save: float | None = None  # seconds


class GraphState(CamelModel):
    """Everything the canvas needs to render a project."""

    project_id: str
    nodes: list[NodeDefinition]
    edges: list[EdgeDefinition]
    execution: ExecutionProgress
    can_undo: bool
    can_redo: bool
    dirty: DirtySummary
    is_loading: bool = False
    is_saving: bool = False
    error: str | None = None


class StoreEventType(str, Enum):
    """Notifications emitted by the graph store."""

    CHANGED = "changed"
    HISTORY = "history"
    EXECUTION = "execution"
    FIT_VIEW = "fit_view"


class StoreEvent(CamelModel):
    """A change notification for subscribers such as the canvas."""

    type: StoreEventType
    node_ids: list[str] = Field(default_factory=list)
    detail: dict[str, Any] = Field(default_factory=dict)


class NodeBatchUpdate(CamelModel):
    """One node's partial update inside an atomic batch."""

    id: str
    updates: NodeUpdate


class EdgeBatchUpdate(CamelModel):
    """One edge's partial update inside an atomic batch."""

    id: str
    updates: EdgeUpdate


class BatchUpdateRequest(CamelModel):
    """Request to apply many partial updates as a single edit."""

    node_updates: list[NodeBatchUpdate] = Field(default_factory=list)
    edge_updates: list[EdgeBatchUpdate] = Field(default_factory=list)
    description: str | None = None


class MoveNodeRequest(CamelModel):
    """Request to move a node on the canvas."""

    position: Position


class DragRequest(CamelModel):
    """Start or end a continuous drag gesture."""

    dragging: bool


class GeneratedWorkflowRequest(CamelModel):
    """An externally produced graph fragment to splice into the project."""

    nodes: list[NodeDefinition]
    edges: list[EdgeDefinition] = Field(default_factory=list)


class PendingWorkflow(CamelModel):
    """A spliced workflow whose edges wait for the canvas to mount its nodes."""

    batch_id: str
    node_ids: list[str]
    pending_edge_count: int = 0
    dropped_edge_count: int = 0
    edges_attached: bool = False


class SaveResult(CamelModel):
    """Outcome of persisting a project's graph."""

    success: bool
    ids_normalized: bool = False
    error: str | None = None
    saved_at: datetime | None = None
