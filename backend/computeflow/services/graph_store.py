"""GraphStore - in-memory state of one project's compute graph.

Every mutation goes through this class so that referential integrity,
history recording and dirty tracking stay consistent. Mutators accept
``record=False`` (or have a ``*_silent`` twin) for high-frequency updates
such as live execution feedback, which must neither create history
entries nor mark the graph dirty.
"""

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from computeflow.errors import DuplicateNodeError
from computeflow.models.edge import EdgeDefinition
from computeflow.models.execution import ExecutionProgress
from computeflow.models.graph import (
    DirtyState,
    DirtySummary,
    EdgeBatchUpdate,
    NodeBatchUpdate,
    PendingWorkflow,
    StoreEvent,
    StoreEventType,
    ValidationResult,
)
from computeflow.models.history import HistoryEntry, HistorySnapshot, HistoryState
from computeflow.models.node import (
    NODE_KIND_PORTS,
    NodeDefinition,
    NodeKind,
    NodeStatus,
    NodeUpdate,
    Port,
    PortDirection,
    Position,
)
from computeflow.services.history import HistoryManager, graph_meaningfully_changed
from computeflow.services.id_integrity import (
    generate_id,
    normalize_graph_ids,
    port_id,
    reconcile_edge_ports,
)
from computeflow.services.status_machine import guard_status_transition
from computeflow.services.validation import ConnectionContext, validate_connection

logger = logging.getLogger(__name__)

Listener = Callable[[StoreEvent], None]
NodeChanges = NodeUpdate | Mapping[str, Any]

LAYOUT_FIELDS = {"position", "size"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_partial(updates: NodeChanges) -> dict[str, Any]:
    if isinstance(updates, NodeUpdate):
        partial = updates.to_partial()
    else:
        partial = dict(updates)
    # Ids are immutable once assigned
    partial.pop("id", None)
    return partial


def _build_ports(node_id: str, specs: list[tuple[str, str, str]], direction: PortDirection) -> list[Port]:
    return [
        Port(
            id=port_id(node_id, direction, index),
            name=name,
            data_type=data_type,
            direction=direction,
            cardinality=cardinality,
        )
        for index, (name, data_type, cardinality) in enumerate(specs)
    ]


def build_node(
    kind: NodeKind,
    position: Position | None = None,
    label: str | None = None,
    params: dict[str, Any] | None = None,
) -> NodeDefinition:
    """Create a node of the given kind with its default ports."""
    node_id = generate_id()
    ports = NODE_KIND_PORTS.get(kind, {"inputs": [], "outputs": []})
    return NodeDefinition(
        id=node_id,
        kind=kind,
        label=label or f"{kind.value} Node",
        position=position or Position(),
        inputs=_build_ports(node_id, ports["inputs"], PortDirection.INPUT),
        outputs=_build_ports(node_id, ports["outputs"], PortDirection.OUTPUT),
        params=dict(params or {}),
    )


class GraphStore:
    """Authoritative graph state with history, dirty tracking and events."""

    def __init__(self, history: HistoryManager | None = None):
        self._nodes: list[NodeDefinition] = []
        self._edges: list[EdgeDefinition] = []
        self._history = history or HistoryManager()
        self._dirty = DirtyState()
        self._execution = ExecutionProgress()
        self._listeners: list[Listener] = []
        # batch id -> (node ids, edges waiting for those nodes to mount)
        self._pending_workflows: dict[str, tuple[list[str], list[EdgeDefinition]]] = {}
        self.error: str | None = None

    # ==================== Read access ====================

    @property
    def nodes(self) -> list[NodeDefinition]:
        """Current nodes. Treat the returned models as read-only."""
        return list(self._nodes)

    @property
    def edges(self) -> list[EdgeDefinition]:
        """Current edges. Treat the returned models as read-only."""
        return list(self._edges)

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def history_entries(self) -> list[HistoryEntry]:
        return self._history.entries

    @property
    def history_state(self) -> HistoryState:
        return self._history.get_state()

    @property
    def can_undo(self) -> bool:
        return self._history.get_state().can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.get_state().can_redo

    @property
    def execution(self) -> ExecutionProgress:
        return self._execution

    @property
    def dirty_state(self) -> DirtyState:
        return self._dirty.model_copy(deep=True)

    @property
    def pending_workflow_ids(self) -> list[str]:
        return list(self._pending_workflows)

    def get_node(self, node_id: str) -> NodeDefinition | None:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> EdgeDefinition | None:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    # ==================== Subscriptions ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(
        self,
        event_type: StoreEventType,
        node_ids: list[str] | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        event = StoreEvent(type=event_type, node_ids=node_ids or [], detail=detail or {})
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.exception(f"Store listener failed on {event_type.value}: {e}")

    # ==================== History helpers ====================

    def _record(
        self,
        previous_nodes: list[NodeDefinition],
        previous_edges: list[EdgeDefinition],
        description: str,
        force: bool = False,
    ) -> bool:
        """Push the current graph onto the history if it changed meaningfully.

        ``force`` skips the significance filter, for edits whose intent is
        known (adding a node, a drag gesture).
        """
        if not force and not graph_meaningfully_changed(
            previous_nodes, previous_edges, self._nodes, self._edges
        ):
            return False

        self._history.ensure_baseline(previous_nodes, previous_edges)
        self._history.push_snapshot(self._nodes, self._edges, description)
        self._emit(StoreEventType.HISTORY, detail={"description": description})
        return True

    def _prune_dangling_edges(self) -> list[EdgeDefinition]:
        """Drop edges whose nodes or ports no longer exist."""
        node_map = {node.id: node for node in self._nodes}
        kept: list[EdgeDefinition] = []
        removed: list[EdgeDefinition] = []
        for edge in self._edges:
            source = node_map.get(edge.source.node_id)
            target = node_map.get(edge.target.node_id)
            if (
                source is None
                or target is None
                or source.find_port(edge.source.port_id, PortDirection.OUTPUT) is None
                or target.find_port(edge.target.port_id, PortDirection.INPUT) is None
            ):
                removed.append(edge)
            else:
                kept.append(edge)
        if removed:
            logger.warning(f"Pruned {len(removed)} edge(s) referencing missing nodes or ports")
            self._edges = kept
        return removed

    # ==================== Dirty tracking ====================

    def mark_node_dirty(self, node_id: str) -> None:
        self._dirty.dirty_node_ids.add(node_id)
        self._dirty.last_modified_at = _now()

    def mark_edge_dirty(self, edge_id: str) -> None:
        self._dirty.dirty_edge_ids.add(edge_id)
        self._dirty.last_modified_at = _now()

    def mark_graph_dirty(self) -> None:
        self._dirty.is_graph_dirty = True
        self._dirty.last_modified_at = _now()

    def clear_dirty_state(self, saved_at: datetime | None = None) -> None:
        """Forget pending changes after a successful save or load."""
        self._dirty = DirtyState(last_saved_at=saved_at or _now())

    def is_node_dirty(self, node_id: str) -> bool:
        return node_id in self._dirty.dirty_node_ids

    @property
    def is_dirty(self) -> bool:
        return bool(
            self._dirty.is_graph_dirty
            or self._dirty.dirty_node_ids
            or self._dirty.dirty_edge_ids
        )

    def get_dirty_summary(self, now: datetime | None = None) -> DirtySummary:
        since_save = None
        if self._dirty.last_saved_at is not None:
            since_save = ((now or _now()) - self._dirty.last_saved_at).total_seconds()
        return DirtySummary(
            node_count=len(self._dirty.dirty_node_ids),
            edge_count=len(self._dirty.dirty_edge_ids),
            is_graph_dirty=self._dirty.is_graph_dirty,
            time_since_last_save=since_save,
        )

    # ==================== Nodes ====================

    def create_node(
        self,
        kind: NodeKind,
        position: Position | None = None,
        label: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> NodeDefinition:
        """Build a node of the given kind and add it to the graph."""
        node = build_node(kind, position, label, params)
        self.add_node(node)
        return node

    def add_node(self, node: NodeDefinition, record: bool = True) -> NodeDefinition:
        """Add a node to the graph.

        Args:
            node: The node to add; a copy is stored.
            record: Mark the node dirty and record an undoable history entry.

        Returns:
            The node that was passed in.

        Raises:
            DuplicateNodeError: A node with the same id already exists.
        """
        if self.get_node(node.id) is not None:
            raise DuplicateNodeError(node.id)

        previous_nodes, previous_edges = self._nodes, self._edges
        self._nodes = [*self._nodes, node.model_copy(deep=True)]

        if record:
            self.mark_node_dirty(node.id)
            self._record(previous_nodes, previous_edges, f"Added {node.label}", force=True)

        self._emit(StoreEventType.CHANGED, node_ids=[node.id])
        return node

    def add_node_silent(self, node: NodeDefinition) -> NodeDefinition:
        return self.add_node(node, record=False)

    def update_node(
        self, node_id: str, updates: NodeChanges, record: bool = True
    ) -> NodeDefinition | None:
        """Merge a partial update into a node.

        Edges attached to ports the update removed are dropped.

        Args:
            node_id: The node to update. Its id itself cannot change.
            updates: A NodeUpdate or a mapping of field names to new values.
            record: Mark the node dirty and record history when the change
                is significant. Position-only changes during a drag share
                one entry.

        Returns:
            The updated node, or None when the node does not exist.
        """
        partial = _as_partial(updates)
        index = next((i for i, node in enumerate(self._nodes) if node.id == node_id), None)
        if index is None:
            logger.debug(f"Ignoring update for unknown node {node_id}")
            return None

        current = self._nodes[index]
        merged = NodeDefinition.model_validate({**current.model_dump(), **partial})

        previous_nodes, previous_edges = self._nodes, self._edges
        self._nodes = [*self._nodes[:index], merged, *self._nodes[index + 1 :]]
        if "inputs" in partial or "outputs" in partial:
            self._prune_dangling_edges()

        if record:
            self.mark_node_dirty(node_id)
            layout_only = bool(partial) and set(partial) <= LAYOUT_FIELDS
            if layout_only and self._history.is_dragging:
                # The history manager folds the gesture into one entry
                self._record(previous_nodes, previous_edges, f"Moved {merged.label}", force=True)
            elif layout_only:
                self._record(previous_nodes, previous_edges, f"Moved {merged.label}")
            else:
                self._record(previous_nodes, previous_edges, f"Updated {merged.label}")

        self._emit(StoreEventType.CHANGED, node_ids=[node_id])
        return merged

    def update_node_silent(self, node_id: str, updates: NodeChanges) -> NodeDefinition | None:
        return self.update_node(node_id, updates, record=False)

    def update_nodes_silent(self, updates: Mapping[str, NodeChanges]) -> int:
        """Apply several silent updates, emitting a single change event."""
        partials = {node_id: _as_partial(changes) for node_id, changes in updates.items()}
        applied: list[str] = []
        new_nodes: list[NodeDefinition] = []
        for node in self._nodes:
            partial = partials.get(node.id)
            if partial is None:
                new_nodes.append(node)
                continue
            new_nodes.append(NodeDefinition.model_validate({**node.model_dump(), **partial}))
            applied.append(node.id)
        self._nodes = new_nodes
        if applied:
            self._emit(StoreEventType.CHANGED, node_ids=applied)
        return len(applied)

    def move_node(
        self, node_id: str, position: Position, record: bool = True
    ) -> NodeDefinition | None:
        return self.update_node(node_id, {"position": position}, record=record)

    def remove_node(self, node_id: str, record: bool = True) -> bool:
        """Remove a node together with every edge touching it.

        Args:
            node_id: The node to remove.
            record: Mark the graph dirty and record history.

        Returns:
            True if the node existed.
        """
        node = self.get_node(node_id)
        if node is None:
            return False

        previous_nodes, previous_edges = self._nodes, self._edges
        self._nodes = [n for n in self._nodes if n.id != node_id]
        self._edges = [e for e in self._edges if not e.touches(node_id)]

        if record:
            self.mark_graph_dirty()
            self._record(previous_nodes, previous_edges, f"Removed node {node.label}")

        self._emit(StoreEventType.CHANGED, node_ids=[node_id])
        return True

    def remove_node_silent(self, node_id: str) -> bool:
        return self.remove_node(node_id, record=False)

    # ==================== Edges ====================

    def validate_edge(self, edge: EdgeDefinition) -> ValidationResult:
        """Check an edge against the current graph without adding it."""
        source_node = self.get_node(edge.source.node_id)
        target_node = self.get_node(edge.target.node_id)
        if source_node is None or target_node is None:
            return ValidationResult(valid=False, error="Source or target node not found")

        source_port = source_node.find_port(edge.source.port_id, PortDirection.OUTPUT)
        target_port = target_node.find_port(edge.target.port_id, PortDirection.INPUT)
        if source_port is None or target_port is None:
            return ValidationResult(valid=False, error="Source or target port not found")

        if self.get_edge(edge.id) is not None:
            return ValidationResult(valid=False, error=f"Edge {edge.id} already exists")

        return validate_connection(
            ConnectionContext(
                source_node=source_node,
                source_port=source_port,
                target_node=target_node,
                target_port=target_port,
                existing_edges=self._edges,
            )
        )

    def add_edge(self, edge: EdgeDefinition, record: bool = True) -> ValidationResult:
        """Validate and add an edge. Invalid edges leave the graph untouched.

        Args:
            edge: The edge to add; an id is minted when it is empty.
            record: Mark the edge dirty and record history.

        Returns:
            The validation result. Never raises for an invalid edge.
        """
        if not edge.id:
            edge = edge.model_copy(update={"id": generate_id()})

        result = self.validate_edge(edge)
        if not result.valid:
            logger.info(f"Rejected edge {edge.id}: {result.error}")
            return result

        previous_nodes, previous_edges = self._nodes, self._edges
        self._edges = [*self._edges, edge.model_copy(deep=True)]

        if record:
            self.mark_edge_dirty(edge.id)
            source = self.get_node(edge.source.node_id)
            target = self.get_node(edge.target.node_id)
            self._record(
                previous_nodes,
                previous_edges,
                f"Connected {source.label} to {target.label}",
                force=True,
            )

        self._emit(
            StoreEventType.CHANGED,
            node_ids=[edge.source.node_id, edge.target.node_id],
        )
        return result

    def add_edge_silent(self, edge: EdgeDefinition) -> ValidationResult:
        return self.add_edge(edge, record=False)

    def remove_edge(self, edge_id: str, record: bool = True) -> bool:
        edge = self.get_edge(edge_id)
        if edge is None:
            return False

        previous_nodes, previous_edges = self._nodes, self._edges
        self._edges = [e for e in self._edges if e.id != edge_id]

        if record:
            self.mark_edge_dirty(edge_id)
            self._record(previous_nodes, previous_edges, "Removed edge")

        self._emit(
            StoreEventType.CHANGED,
            node_ids=[edge.source.node_id, edge.target.node_id],
        )
        return True

    def remove_edge_silent(self, edge_id: str) -> bool:
        return self.remove_edge(edge_id, record=False)

    # ==================== Whole-graph operations ====================

    def set_graph_atomic(
        self,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
        skip_history: bool = False,
        skip_dirty: bool = False,
    ) -> None:
        """Replace the whole graph in one step.

        Edges that reference missing nodes or ports are dropped.

        Args:
            nodes: The new node list.
            edges: The new edge list.
            skip_history: Do not record a history entry.
            skip_dirty: Do not mark anything dirty.
        """
        previous_nodes, previous_edges = self._nodes, self._edges
        self._nodes = [node.model_copy(deep=True) for node in nodes]
        self._edges = [edge.model_copy(deep=True) for edge in edges]
        self._prune_dangling_edges()

        if not skip_dirty:
            self._dirty.dirty_node_ids = {node.id for node in self._nodes}
            self._dirty.dirty_edge_ids = {edge.id for edge in self._edges}
            self.mark_graph_dirty()

        if not skip_history:
            self._record(previous_nodes, previous_edges, "Graph replaced")

        self._emit(StoreEventType.CHANGED, node_ids=[node.id for node in self._nodes])

    def update_graph_atomic(
        self,
        node_updates: list[NodeBatchUpdate] | None = None,
        edge_updates: list[EdgeBatchUpdate] | None = None,
        description: str | None = None,
    ) -> None:
        """Apply many partial updates as one change and one history entry.

        Args:
            node_updates: Partial updates keyed by node id. Unknown ids are skipped.
            edge_updates: Partial updates keyed by edge id. Unknown ids are skipped.
            description: Label of the history entry.
        """
        node_partials = {u.id: _as_partial(u.updates) for u in node_updates or []}
        edge_partials = {
            u.id: u.updates.model_dump(exclude_unset=True) for u in edge_updates or []
        }

        previous_nodes, previous_edges = self._nodes, self._edges
        touched: list[str] = []
        ports_changed = False

        new_nodes: list[NodeDefinition] = []
        for node in self._nodes:
            partial = node_partials.pop(node.id, None)
            if partial is None:
                new_nodes.append(node)
                continue
            ports_changed = ports_changed or "inputs" in partial or "outputs" in partial
            new_nodes.append(NodeDefinition.model_validate({**node.model_dump(), **partial}))
            touched.append(node.id)
            self.mark_node_dirty(node.id)

        new_edges: list[EdgeDefinition] = []
        for edge in self._edges:
            partial = edge_partials.pop(edge.id, None)
            if partial is None:
                new_edges.append(edge)
                continue
            new_edges.append(edge.model_copy(update=partial))
            self.mark_edge_dirty(edge.id)

        for missing in [*node_partials, *edge_partials]:
            logger.debug(f"Batch update skipped unknown id {missing}")

        self._nodes = new_nodes
        self._edges = new_edges
        if ports_changed:
            self._prune_dangling_edges()

        self._record(previous_nodes, previous_edges, description or "Batch update")
        self._emit(StoreEventType.CHANGED, node_ids=touched)

    def add_nodes_and_edges_atomic(
        self,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
        description: str | None = None,
    ) -> list[EdgeDefinition]:
        """Insert nodes and edges as a single history entry.

        Edges are reconciled against the combined node set first; those
        that cannot be resolved are dropped. Returns the edges added.
        """
        existing_ids = {node.id for node in self._nodes}
        for node in nodes:
            if node.id in existing_ids:
                raise DuplicateNodeError(node.id)

        combined = [*self._nodes, *nodes]
        kept, dropped = reconcile_edge_ports(combined, edges)
        existing_edge_ids = {edge.id for edge in self._edges}
        kept = [edge for edge in kept if edge.id not in existing_edge_ids]
        if dropped:
            logger.warning(f"Dropped {len(dropped)} unresolvable edge(s) from batch insert")

        previous_nodes, previous_edges = self._nodes, self._edges
        self._nodes = [*self._nodes, *(node.model_copy(deep=True) for node in nodes)]
        self._edges = [*self._edges, *(edge.model_copy(deep=True) for edge in kept)]

        for node in nodes:
            self.mark_node_dirty(node.id)
        for edge in kept:
            self.mark_edge_dirty(edge.id)

        self._record(
            previous_nodes,
            previous_edges,
            description or f"Added {len(nodes)} nodes and {len(kept)} edges",
            force=True,
        )
        self._emit(StoreEventType.CHANGED, node_ids=[node.id for node in nodes])
        return kept

    # ==================== Generated workflows ====================

    def add_generated_workflow(
        self, nodes: list[NodeDefinition], edges: list[EdgeDefinition]
    ) -> PendingWorkflow:
        """Splice an externally generated fragment into the graph.

        Ids are normalized first. Nodes are inserted immediately; edges wait
        until ``notify_nodes_mounted`` confirms the canvas has rendered the
        nodes, so an edge never points at a node the canvas has not drawn.

        Args:
            nodes: Generated nodes. Non-canonical or taken ids are replaced.
            edges: Generated edges, rewritten to the replacement ids.

        Returns:
            The batch id and inserted node ids. ``edges_attached`` is True
            when there were no edges to wait for.
        """
        reserved = {node.id for node in self._nodes} | {edge.id for edge in self._edges}
        normalized = normalize_graph_ids(nodes, edges, reserved_ids=reserved)
        kept, dropped = reconcile_edge_ports(normalized.nodes, normalized.edges)
        if dropped:
            logger.warning(f"Dropped {len(dropped)} edge(s) from generated workflow")

        previous_nodes, previous_edges = self._nodes, self._edges
        self._history.ensure_baseline(previous_nodes, previous_edges)
        self._nodes = [*self._nodes, *normalized.nodes]
        node_ids = [node.id for node in normalized.nodes]
        for new_id in node_ids:
            self.mark_node_dirty(new_id)

        batch_id = str(uuid.uuid4())
        self._emit(StoreEventType.CHANGED, node_ids=node_ids, detail={"batchId": batch_id})

        if not kept:
            self._record(previous_nodes, previous_edges, f"Added {len(node_ids)} nodes", force=True)
            self._emit(StoreEventType.FIT_VIEW, node_ids=node_ids)
            return PendingWorkflow(
                batch_id=batch_id,
                node_ids=node_ids,
                dropped_edge_count=len(dropped),
                edges_attached=True,
            )

        self._pending_workflows[batch_id] = (node_ids, kept)
        logger.info(f"Workflow {batch_id}: {len(node_ids)} nodes inserted, {len(kept)} edges pending")
        return PendingWorkflow(
            batch_id=batch_id,
            node_ids=node_ids,
            pending_edge_count=len(kept),
            dropped_edge_count=len(dropped),
        )

    def notify_nodes_mounted(self, batch_id: str) -> PendingWorkflow | None:
        """Attach the pending edges of a generated workflow.

        Args:
            batch_id: The batch id returned by ``add_generated_workflow``.

        Returns:
            The completed batch, or None for an unknown or already
            completed batch.
        """
        pending = self._pending_workflows.pop(batch_id, None)
        if pending is None:
            return None
        node_ids, edges = pending

        # Nodes may have been deleted while the canvas was mounting them
        kept, dropped = reconcile_edge_ports(self._nodes, edges)

        previous_nodes, previous_edges = self._nodes, self._edges
        self._edges = [*self._edges, *kept]
        for edge in kept:
            self.mark_edge_dirty(edge.id)

        self._record(
            previous_nodes,
            previous_edges,
            f"Added {len(node_ids)} nodes and {len(kept)} edges",
            force=True,
        )
        self._emit(StoreEventType.CHANGED, node_ids=node_ids)
        self._emit(StoreEventType.FIT_VIEW, node_ids=node_ids)
        return PendingWorkflow(
            batch_id=batch_id,
            node_ids=node_ids,
            dropped_edge_count=len(dropped),
            edges_attached=True,
        )

    # ==================== History ====================

    def set_dragging(self, dragging: bool) -> None:
        self._history.set_dragging(dragging)

    def undo(self) -> bool:
        return self._restore(self._history.undo())

    def redo(self) -> bool:
        return self._restore(self._history.redo())

    def jump_to_entry(self, index: int) -> bool:
        """Restore the graph to a history entry.

        Args:
            index: Position of the entry, oldest first.

        Returns:
            True if the entry exists and was restored.
        """
        return self._restore(self._history.jump_to_entry(index))

    def _restore(self, snapshot: HistorySnapshot | None) -> bool:
        if snapshot is None:
            return False
        self.set_graph_atomic(snapshot.nodes, snapshot.edges, skip_history=True)
        self._emit(StoreEventType.HISTORY, detail=self._history.get_state().model_dump(by_alias=True))
        return True

    # ==================== Execution state ====================

    def set_node_status(
        self,
        node_id: str,
        status: NodeStatus,
        progress: int | None = None,
        error: str | None = None,
        preview: dict[str, Any] | None = None,
    ) -> NodeDefinition | None:
        """Move a node to a new status, enforcing the status state machine.

        Status updates are silent: no history entry and no dirty mark.

        Args:
            node_id: The node to update.
            status: The target status.
            progress: New progress, 0 to 100.
            error: Error message to store on the node.
            preview: Output preview to store on the node.

        Returns:
            The updated node, or None when the node does not exist.

        Raises:
            InvalidStatusTransitionError: The transition is not allowed.
        """
        node = self.get_node(node_id)
        if node is None:
            return None
        guard_status_transition(node.status, status, node_id=node_id)

        changes: dict[str, Any] = {"status": status}
        if progress is not None:
            changes["progress"] = progress
        if error is not None:
            changes["error"] = error
        if preview is not None:
            changes["preview"] = preview
        return self.update_node_silent(node_id, changes)

    def reset_all_node_status(self) -> None:
        """Return every node to idle, clearing progress and errors."""
        self.update_nodes_silent(
            {
                node.id: {"status": NodeStatus.IDLE, "progress": 0, "error": None}
                for node in self._nodes
            }
        )

    def set_execution(self, progress: ExecutionProgress) -> None:
        self._execution = progress
        self._emit(
            StoreEventType.EXECUTION, detail=progress.model_dump(mode="json", by_alias=True)
        )

    def update_execution(self, **changes: Any) -> ExecutionProgress:
        progress = self._execution.model_copy(update=changes)
        self.set_execution(progress)
        return progress

    # ==================== Lifecycle ====================

    def clear(self) -> None:
        """Drop the graph, its history and any pending state."""
        self._nodes = []
        self._edges = []
        self._history.clear()
        self._dirty = DirtyState()
        self._execution = ExecutionProgress()
        self._pending_workflows.clear()
        self.error = None
        self._emit(StoreEventType.CHANGED)
