"""Undo/redo history for the compute graph.

The history is a bounded stack of full graph snapshots with a cursor. A
separate significance filter decides whether two graphs differ enough to be
worth an entry, so that panning, nudging and live execution feedback never
flood the stack.
"""

import logging
import uuid

from computeflow.models.edge import EdgeDefinition
from computeflow.models.history import (
    HistoryEntry,
    HistoryEntryType,
    HistorySnapshot,
    HistoryState,
)
from computeflow.models.node import NodeDefinition

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50

# Fields that change during execution or layout and never make an entry
IGNORED_NODE_FIELDS = {"position", "size", "status", "progress", "preview", "error", "is_dirty"}


def nodes_meaningfully_changed(
    old_nodes: list[NodeDefinition], new_nodes: list[NodeDefinition]
) -> bool:
    """Check whether two node collections differ beyond layout and run state."""
    if len(old_nodes) != len(new_nodes):
        return True

    old_map = {node.id: node for node in old_nodes}

    for new_node in new_nodes:
        old_node = old_map.get(new_node.id)
        if old_node is None:
            return True

        old_data = old_node.model_dump(exclude=IGNORED_NODE_FIELDS)
        new_data = new_node.model_dump(exclude=IGNORED_NODE_FIELDS)
        if old_data != new_data:
            return True

    return False


def edges_meaningfully_changed(
    old_edges: list[EdgeDefinition], new_edges: list[EdgeDefinition]
) -> bool:
    """Check whether two edge collections connect different ports."""
    if len(old_edges) != len(new_edges):
        return True

    old_keys = {edge.connection_key for edge in old_edges}
    new_keys = {edge.connection_key for edge in new_edges}
    return old_keys != new_keys


def graph_meaningfully_changed(
    old_nodes: list[NodeDefinition],
    old_edges: list[EdgeDefinition],
    new_nodes: list[NodeDefinition],
    new_edges: list[EdgeDefinition],
) -> bool:
    """Check whether either collection changed meaningfully."""
    return nodes_meaningfully_changed(
        old_nodes, new_nodes
    ) or edges_meaningfully_changed(old_edges, new_edges)


def derive_entry_type(description: str | None) -> HistoryEntryType:
    """Classify an entry from its human-readable description."""
    if not description:
        return HistoryEntryType.BATCH
    if description.startswith("Added") and " nodes" not in description:
        return HistoryEntryType.ADD_NODE
    if description.startswith("Updated"):
        return HistoryEntryType.EDIT_NODE
    if description.startswith("Moved"):
        return HistoryEntryType.MOVE_NODE
    if description.startswith("Connected"):
        return HistoryEntryType.ADD_EDGE
    if "Removed node" in description:
        return HistoryEntryType.DELETE_NODE
    if "Removed edge" in description:
        return HistoryEntryType.DELETE_EDGE
    if "Loaded graph" in description or "Graph replaced" in description:
        return HistoryEntryType.LOAD_FLOW
    return HistoryEntryType.BATCH


def create_snapshot(
    nodes: list[NodeDefinition], edges: list[EdgeDefinition]
) -> HistorySnapshot:
    """Deep-copy the collections so later edits cannot reach the snapshot."""
    return HistorySnapshot(
        nodes=[node.model_copy(deep=True) for node in nodes],
        edges=[edge.model_copy(deep=True) for edge in edges],
    )


class HistoryManager:
    """Bounded stack of graph snapshots with a cursor and drag coalescing."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        """Initialize an empty history.

        Args:
            max_depth: Maximum number of entries kept; the oldest are evicted.
        """
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self._entries: list[HistoryEntry] = []
        self._index = -1
        self._max_depth = max_depth
        self._dragging = False
        # Whether the current drag already owns an entry
        self._drag_entry_open = False

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def entries(self) -> list[HistoryEntry]:
        """Ordered entries, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def set_dragging(self, dragging: bool) -> None:
        """Toggle drag coalescing around a continuous gesture."""
        if dragging and not self._dragging:
            self._drag_entry_open = False
        self._dragging = dragging
        if not dragging:
            self._drag_entry_open = False

    def push_snapshot(
        self,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
        description: str | None = None,
        entry_type: HistoryEntryType | None = None,
    ) -> HistoryEntry:
        """Record the graph as a new entry at the cursor.

        While dragging, the first write of the gesture opens a new entry and
        every later write overwrites it in place.

        Args:
            nodes: Nodes to snapshot.
            edges: Edges to snapshot.
            description: Human-readable label for the history panel.
            entry_type: Entry category; derived from the description if omitted.

        Returns:
            The recorded (or overwritten) entry.
        """
        description = description or "Updated graph"
        entry = HistoryEntry(
            id=str(uuid.uuid4()),
            description=description,
            type=entry_type or derive_entry_type(description),
            snapshot=create_snapshot(nodes, edges),
            node_count=len(nodes),
            edge_count=len(edges),
        )

        if self._dragging and self._drag_entry_open and self._index >= 0:
            self._entries[self._index] = entry
            return entry

        # Writing discards the redo branch
        del self._entries[self._index + 1 :]
        self._entries.append(entry)
        self._index += 1

        if len(self._entries) > self._max_depth:
            evicted = len(self._entries) - self._max_depth
            del self._entries[:evicted]
            self._index -= evicted
            logger.debug(f"Evicted {evicted} history entr{'y' if evicted == 1 else 'ies'}")

        if self._dragging:
            self._drag_entry_open = True

        return entry

    def ensure_baseline(
        self,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
        description: str = "Initial state",
    ) -> bool:
        """Seed an empty history with the graph as it was before any edit.

        Without a baseline the first recorded edit could not be undone.
        Ignores the drag flag.

        Args:
            nodes: Nodes as they were before the edit.
            edges: Edges as they were before the edit.
            description: Label of the baseline entry.

        Returns:
            True if a baseline was added, False if history was not empty.
        """
        if self._entries:
            return False
        self._entries.append(
            HistoryEntry(
                id=str(uuid.uuid4()),
                description=description,
                type=HistoryEntryType.BATCH,
                snapshot=create_snapshot(nodes, edges),
                node_count=len(nodes),
                edge_count=len(edges),
            )
        )
        self._index = 0
        return True

    def undo(self) -> HistorySnapshot | None:
        """Step the cursor back, returning the snapshot now current."""
        if self._index <= 0:
            return None
        self._index -= 1
        return self._entries[self._index].snapshot.model_copy(deep=True)

    def redo(self) -> HistorySnapshot | None:
        """Step the cursor forward, returning the snapshot now current."""
        if self._index >= len(self._entries) - 1:
            return None
        self._index += 1
        return self._entries[self._index].snapshot.model_copy(deep=True)

    def jump_to_entry(self, index: int) -> HistorySnapshot | None:
        """Move the cursor directly to an entry, for a history panel.

        Args:
            index: Position of the entry, oldest first.

        Returns:
            A copy of the entry's snapshot, or None if the index is out of range.
        """
        if index < 0 or index >= len(self._entries):
            return None
        self._index = index
        return self._entries[index].snapshot.model_copy(deep=True)

    def get_state(self) -> HistoryState:
        return HistoryState(
            can_undo=self._index > 0,
            can_redo=self._index < len(self._entries) - 1,
            current_index=self._index,
            length=len(self._entries),
        )

    def clear(self) -> None:
        """Drop every entry, e.g. when a graph is loaded or unloaded."""
        self._entries = []
        self._index = -1
        self._drag_entry_open = False
