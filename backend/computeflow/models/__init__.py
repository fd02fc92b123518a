"""Pydantic models for the compute flow graph engine."""

from computeflow.models.edge import (
    EdgeCreate,
    EdgeDefinition,
    EdgeEndpoint,
    EdgeStatus,
    EdgeUpdate,
)
from computeflow.models.execution import (
    CANCELLED_MESSAGE,
    EngineEvent,
    ExecutionProgress,
)
from computeflow.models.graph import (
    BatchUpdateRequest,
    DirtyState,
    DirtySummary,
    DragRequest,
    EdgeBatchUpdate,
    EdgeValidationError,
    GeneratedWorkflowRequest,
    GraphState,
    GraphValidationReport,
    MoveNodeRequest,
    NodeBatchUpdate,
    PendingWorkflow,
    SaveResult,
    StoreEvent,
    StoreEventType,
    ValidationResult,
)
from computeflow.models.history import (
    HistoryEntry,
    HistoryEntrySummary,
    HistoryEntryType,
    HistorySnapshot,
    HistoryState,
)
from computeflow.models.node import (
    NODE_KIND_PORTS,
    DataType,
    NodeCreate,
    NodeDefinition,
    NodeKind,
    NodeStatus,
    NodeUpdate,
    Port,
    PortDirection,
    Position,
    Size,
)

__all__ = [
    # Nodes
    "NodeDefinition",
    "NodeCreate",
    "NodeUpdate",
    "NodeKind",
    "NodeStatus",
    "NODE_KIND_PORTS",
    "DataType",
    "Port",
    "PortDirection",
    "Position",
    "Size",
    # Edges
    "EdgeDefinition",
    "EdgeCreate",
    "EdgeUpdate",
    "EdgeEndpoint",
    "EdgeStatus",
    # History
    "HistoryEntry",
    "HistoryEntrySummary",
    "HistoryEntryType",
    "HistorySnapshot",
    "HistoryState",
    # Execution
    "ExecutionProgress",
    "EngineEvent",
    "CANCELLED_MESSAGE",
    # Graph
    "ValidationResult",
    "EdgeValidationError",
    "GraphValidationReport",
    "DirtyState",
    "DirtySummary",
    "GraphState",
    "StoreEvent",
    "StoreEventType",
    "NodeBatchUpdate",
    "EdgeBatchUpdate",
    "BatchUpdateRequest",
    "MoveNodeRequest",
    "DragRequest",
    "GeneratedWorkflowRequest",
    "PendingWorkflow",
    "SaveResult",
]
