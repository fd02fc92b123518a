"""Graph editing API routes."""

from typing import Any

from fastapi import APIRouter, HTTPException

from computeflow.models import (
    BatchUpdateRequest,
    DirtySummary,
    DragRequest,
    EdgeCreate,
    EdgeDefinition,
    GeneratedWorkflowRequest,
    GraphState,
    GraphValidationReport,
    HistoryEntrySummary,
    HistoryState,
    MoveNodeRequest,
    NodeCreate,
    NodeDefinition,
    NodeUpdate,
    PendingWorkflow,
    PortDirection,
    SaveResult,
)
from computeflow.services.id_integrity import generate_id
from computeflow.services.validation import validate_all_edges
from computeflow.sessions import GraphSession, get_session_manager

router = APIRouter()


async def _session(project_id: str) -> GraphSession:
    return await get_session_manager().get_or_create_session(project_id)


# ==================== Graph ====================


@router.get("/projects/{project_id}/graph", response_model=GraphState)
async def get_graph(project_id: str) -> GraphState:
    """Get the current graph of a project."""
    session = await _session(project_id)
    return session.get_state()


@router.post("/projects/{project_id}/load", response_model=GraphState)
async def load_graph(project_id: str) -> GraphState:
    """Reload the graph from storage, discarding unsaved changes."""
    session = await _session(project_id)
    if not await session.dispatch(GraphSession.load):
        raise HTTPException(status_code=500, detail=session.store.error or "Failed to load graph")
    return session.get_state()


@router.post("/projects/{project_id}/save", response_model=SaveResult)
async def save_graph(project_id: str) -> SaveResult:
    """Persist the graph, normalizing ids first."""
    session = await _session(project_id)
    result = await session.dispatch(GraphSession.save)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "Failed to save graph")
    return result


@router.get("/projects/{project_id}/validate", response_model=GraphValidationReport)
async def validate_graph(project_id: str) -> GraphValidationReport:
    """Audit every edge of the graph."""
    session = await _session(project_id)
    return validate_all_edges(session.store.nodes, session.store.edges)


@router.get("/projects/{project_id}/dirty", response_model=DirtySummary)
async def get_dirty_summary(project_id: str) -> DirtySummary:
    """Get what changed since the last save."""
    session = await _session(project_id)
    return session.store.get_dirty_summary()


# ==================== Nodes ====================


@router.post("/projects/{project_id}/nodes", response_model=NodeDefinition, status_code=201)
async def create_node(project_id: str, body: NodeCreate) -> NodeDefinition:
    """Create a node of the given kind with its default ports."""
    session = await _session(project_id)
    return session.apply(
        lambda store: store.create_node(body.kind, body.position, body.label, body.params)
    )


@router.patch("/projects/{project_id}/nodes/{node_id}", response_model=NodeDefinition)
async def update_node(project_id: str, node_id: str, body: NodeUpdate) -> NodeDefinition:
    """Apply a partial update to a node."""
    session = await _session(project_id)
    node = session.apply(lambda store: store.update_node(node_id, body))
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node


@router.post("/projects/{project_id}/nodes/{node_id}/move", response_model=NodeDefinition)
async def move_node(project_id: str, node_id: str, body: MoveNodeRequest) -> NodeDefinition:
    """Move a node. Moves during a drag gesture share one history entry."""
    session = await _session(project_id)
    node = session.apply(lambda store: store.move_node(node_id, body.position))
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node


@router.delete("/projects/{project_id}/nodes/{node_id}")
async def delete_node(project_id: str, node_id: str) -> dict[str, bool]:
    """Delete a node and every edge attached to it."""
    session = await _session(project_id)
    if not session.apply(lambda store: store.remove_node(node_id)):
        raise HTTPException(status_code=404, detail="Node not found")
    return {"deleted": True}


# ==================== Edges ====================


@router.post("/projects/{project_id}/edges", response_model=EdgeDefinition, status_code=201)
async def create_edge(project_id: str, body: EdgeCreate) -> EdgeDefinition:
    """Connect an output port to an input port.

    Invalid connections are rejected with 422 and the reason.
    """
    session = await _session(project_id)

    data_type = body.data_type
    if data_type is None:
        source_node = session.store.get_node(body.source.node_id)
        source_port = (
            source_node.find_port(body.source.port_id, PortDirection.OUTPUT)
            if source_node
            else None
        )
        data_type = source_port.data_type if source_port else "any"

    edge = EdgeDefinition(
        id=body.id or generate_id(),
        source=body.source,
        target=body.target,
        data_type=data_type,
        metadata=body.metadata,
    )
    result = session.apply(lambda store: store.add_edge(edge))
    if not result.valid:
        raise HTTPException(status_code=422, detail=result.error)
    return edge


@router.delete("/projects/{project_id}/edges/{edge_id}")
async def delete_edge(project_id: str, edge_id: str) -> dict[str, bool]:
    """Delete an edge."""
    session = await _session(project_id)
    if not session.apply(lambda store: store.remove_edge(edge_id)):
        raise HTTPException(status_code=404, detail="Edge not found")
    return {"deleted": True}


# ==================== Batches and generated workflows ====================


@router.post("/projects/{project_id}/batch", response_model=GraphState)
async def batch_update(project_id: str, body: BatchUpdateRequest) -> GraphState:
    """Apply many node and edge updates as one undoable change."""
    session = await _session(project_id)
    session.apply(
        lambda store: store.update_graph_atomic(
            body.node_updates, body.edge_updates, body.description
        )
    )
    return session.get_state()


@router.post("/projects/{project_id}/workflows", response_model=PendingWorkflow, status_code=201)
async def add_generated_workflow(
    project_id: str, body: GeneratedWorkflowRequest
) -> PendingWorkflow:
    """Splice a generated fragment into the graph.

    Nodes are inserted immediately. When the fragment has edges, they are
    attached once the client reports the nodes as mounted.
    """
    session = await _session(project_id)
    return session.apply(lambda store: store.add_generated_workflow(body.nodes, body.edges))


@router.post(
    "/projects/{project_id}/workflows/{batch_id}/mounted", response_model=PendingWorkflow
)
async def workflow_nodes_mounted(project_id: str, batch_id: str) -> PendingWorkflow:
    """Attach the pending edges of a generated workflow."""
    session = await _session(project_id)
    result = session.apply(lambda store: store.notify_nodes_mounted(batch_id))
    if result is None:
        raise HTTPException(status_code=404, detail="Pending workflow not found")
    return result


# ==================== History ====================


@router.post("/projects/{project_id}/drag", response_model=HistoryState)
async def set_dragging(project_id: str, body: DragRequest) -> HistoryState:
    """Start or end a drag gesture."""
    session = await _session(project_id)
    session.apply(lambda store: store.set_dragging(body.dragging))
    return session.store.history_state


@router.post("/projects/{project_id}/undo", response_model=GraphState)
async def undo(project_id: str) -> GraphState:
    """Undo the last change. A no-op at the start of history."""
    session = await _session(project_id)
    session.apply(lambda store: store.undo())
    return session.get_state()


@router.post("/projects/{project_id}/redo", response_model=GraphState)
async def redo(project_id: str) -> GraphState:
    """Redo the last undone change. A no-op at the end of history."""
    session = await _session(project_id)
    session.apply(lambda store: store.redo())
    return session.get_state()


@router.get("/projects/{project_id}/history", response_model=list[HistoryEntrySummary])
async def list_history(project_id: str) -> list[HistoryEntrySummary]:
    """List history entries, oldest first."""
    session = await _session(project_id)
    current = session.store.history_state.current_index
    return [
        HistoryEntrySummary(
            index=index,
            id=entry.id,
            description=entry.description,
            type=entry.type,
            timestamp=entry.timestamp,
            node_count=entry.node_count,
            edge_count=entry.edge_count,
            is_current=index == current,
        )
        for index, entry in enumerate(session.store.history_entries)
    ]


@router.post("/projects/{project_id}/history/{index}", response_model=GraphState)
async def jump_to_history_entry(project_id: str, index: int) -> GraphState:
    """Restore the graph to a specific history entry."""
    session = await _session(project_id)
    if not session.apply(lambda store: store.jump_to_entry(index)):
        raise HTTPException(status_code=404, detail="History entry not found")
    return session.get_state()


# Admin endpoint for monitoring
@router.get("/sessions/stats")
async def get_session_stats() -> dict[str, Any]:
    """Get graph session statistics (admin endpoint)."""
    return get_session_manager().get_stats()
