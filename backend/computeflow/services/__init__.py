"""Services for the compute flow engine."""

from computeflow.services.engine_client import ExecutionEngineClient, parse_event_stream
from computeflow.services.execution import ExecutionSessionController, map_engine_status
from computeflow.services.graph_store import GraphStore, build_node
from computeflow.services.history import HistoryManager, graph_meaningfully_changed
from computeflow.services.id_integrity import (
    NormalizationResult,
    find_invalid_ids,
    is_canonical_id,
    normalize_graph_ids,
    reconcile_edge_ports,
)
from computeflow.services.status_machine import (
    get_valid_next_statuses,
    guard_status_transition,
    validate_status_transition,
)
from computeflow.services.validation import (
    ConnectionContext,
    is_type_compatible,
    validate_all_edges,
    validate_connection,
    would_create_cycle,
)

__all__ = [
    "ConnectionContext",
    "ExecutionEngineClient",
    "ExecutionSessionController",
    "GraphStore",
    "HistoryManager",
    "NormalizationResult",
    "build_node",
    "find_invalid_ids",
    "get_valid_next_statuses",
    "graph_meaningfully_changed",
    "guard_status_transition",
    "is_canonical_id",
    "is_type_compatible",
    "map_engine_status",
    "normalize_graph_ids",
    "parse_event_stream",
    "reconcile_edge_ports",
    "validate_all_edges",
    "validate_connection",
    "validate_status_transition",
    "would_create_cycle",
]
