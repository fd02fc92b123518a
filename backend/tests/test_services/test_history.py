"""Tests for the undo/redo history manager."""

import pytest
from conftest import make_edge, make_node

from computeflow.models import HistoryEntryType, NodeStatus, Position
from computeflow.services.history import (
    HistoryManager,
    derive_entry_type,
    edges_meaningfully_changed,
    graph_meaningfully_changed,
    nodes_meaningfully_changed,
)


class TestSignificanceFilter:
    """Tests for deciding whether a change deserves a history entry."""

    def test_position_only_change_ignored(self):
        before = [make_node("a")]
        after = [make_node("a", position=Position(x=100, y=40))]

        assert not nodes_meaningfully_changed(before, after)

    def test_execution_fields_ignored(self):
        """Test status, progress, preview and error never count."""
        before = [make_node("a")]
        after = [
            make_node(
                "a",
                status=NodeStatus.RUNNING,
                progress=50,
                preview={"url": "x"},
                error="boom",
            )
        ]

        assert not nodes_meaningfully_changed(before, after)

    def test_label_and_params_count(self):
        before = [make_node("a")]

        assert nodes_meaningfully_changed(before, [make_node("a", label="Renamed")])
        assert nodes_meaningfully_changed(before, [make_node("a", params={"seed": 1})])

    def test_node_count_change(self):
        assert nodes_meaningfully_changed([], [make_node("a")])

    def test_edge_id_change_ignored(self):
        """Test edges are compared by the ports they connect."""
        before = [make_edge("e1", "a", "b")]
        after = [make_edge("e2", "a", "b")]

        assert not edges_meaningfully_changed(before, after)

    def test_rewired_edge_counts(self):
        before = [make_edge("e1", "a", "b")]
        after = [make_edge("e1", "a", "c")]

        assert edges_meaningfully_changed(before, after)

    def test_graph_combines_both(self):
        nodes = [make_node("a"), make_node("b")]

        assert graph_meaningfully_changed(nodes, [], nodes, [make_edge("e1", "a", "b")])
        assert not graph_meaningfully_changed(nodes, [], nodes, [])


class TestDeriveEntryType:
    """Tests for classifying entries by description."""

    @pytest.mark.parametrize(
        "description,expected",
        [
            ("Added Image Node", HistoryEntryType.ADD_NODE),
            ("Added 3 nodes and 2 edges", HistoryEntryType.BATCH),
            ("Updated Prompt", HistoryEntryType.EDIT_NODE),
            ("Moved Prompt", HistoryEntryType.MOVE_NODE),
            ("Connected A to B", HistoryEntryType.ADD_EDGE),
            ("Removed node A", HistoryEntryType.DELETE_NODE),
            ("Removed edge", HistoryEntryType.DELETE_EDGE),
            ("Loaded graph", HistoryEntryType.LOAD_FLOW),
            (None, HistoryEntryType.BATCH),
        ],
    )
    def test_classification(self, description, expected):
        assert derive_entry_type(description) == expected


class TestHistoryManager:
    """Tests for HistoryManager."""

    def test_invalid_depth(self):
        with pytest.raises(ValueError):
            HistoryManager(max_depth=0)

    def test_empty_state(self):
        manager = HistoryManager()
        state = manager.get_state()

        assert not state.can_undo
        assert not state.can_redo
        assert state.current_index == -1
        assert manager.undo() is None
        assert manager.redo() is None

    def test_undo_redo(self):
        """Test walking back and forth through entries."""
        manager = HistoryManager()
        manager.push_snapshot([], [], "Initial state")
        manager.push_snapshot([make_node("a")], [], "Added a")
        manager.push_snapshot([make_node("a"), make_node("b")], [], "Added b")

        snapshot = manager.undo()
        assert [n.id for n in snapshot.nodes] == ["a"]

        snapshot = manager.undo()
        assert snapshot.nodes == []
        assert manager.undo() is None

        snapshot = manager.redo()
        assert [n.id for n in snapshot.nodes] == ["a"]
        assert manager.get_state().can_redo

    def test_push_discards_redo_branch(self):
        manager = HistoryManager()
        manager.push_snapshot([], [], "Initial state")
        manager.push_snapshot([make_node("a")], [], "Added a")
        manager.undo()

        manager.push_snapshot([make_node("b")], [], "Added b")

        assert len(manager) == 2
        assert not manager.get_state().can_redo
        assert manager.entries[-1].description == "Added b"

    def test_depth_bound(self):
        """Test the oldest entries are evicted beyond max depth."""
        manager = HistoryManager(max_depth=3)
        for i in range(5):
            manager.push_snapshot([make_node(f"n{i}")], [], f"Added n{i}")

        assert len(manager) == 3
        assert manager.current_index == 2
        assert manager.entries[0].description == "Added n2"

    def test_snapshots_are_isolated(self):
        """Test later edits to the pushed lists do not reach the snapshot."""
        manager = HistoryManager()
        nodes = [make_node("a")]
        manager.push_snapshot(nodes, [], "Added a")

        nodes[0].label = "mutated"
        nodes.append(make_node("b"))

        stored = manager.entries[0].snapshot
        assert [n.label for n in stored.nodes] == ["a"]

        restored = manager.jump_to_entry(0)
        restored.nodes[0].label = "also mutated"
        assert manager.entries[0].snapshot.nodes[0].label == "a"

    def test_drag_coalesces_into_one_entry(self):
        """Test every push during a drag overwrites a single entry."""
        manager = HistoryManager()
        manager.push_snapshot([make_node("a")], [], "Added a")

        manager.set_dragging(True)
        for x in range(10):
            manager.push_snapshot(
                [make_node("a", position=Position(x=x, y=0))], [], "Moved a"
            )
        manager.set_dragging(False)

        assert len(manager) == 2
        assert manager.entries[-1].snapshot.nodes[0].position.x == 9

        # A second gesture opens its own entry
        manager.set_dragging(True)
        manager.push_snapshot([make_node("a", position=Position(x=50, y=0))], [], "Moved a")
        manager.set_dragging(False)
        assert len(manager) == 3

    def test_entry_counts_and_type(self):
        manager = HistoryManager()
        entry = manager.push_snapshot(
            [make_node("a"), make_node("b")], [make_edge("e1", "a", "b")], "Connected a to b"
        )

        assert entry.node_count == 2
        assert entry.edge_count == 1
        assert entry.type == HistoryEntryType.ADD_EDGE

    def test_jump_to_entry(self):
        manager = HistoryManager()
        for i in range(3):
            manager.push_snapshot([make_node(f"n{i}")], [], f"Added n{i}")

        snapshot = manager.jump_to_entry(0)

        assert snapshot.nodes[0].id == "n0"
        assert manager.current_index == 0
        assert manager.jump_to_entry(7) is None

    def test_ensure_baseline_only_when_empty(self):
        manager = HistoryManager()

        assert manager.ensure_baseline([], [])
        assert not manager.ensure_baseline([make_node("a")], [])
        assert len(manager) == 1
        assert manager.entries[0].description == "Initial state"

    def test_clear(self):
        manager = HistoryManager()
        manager.push_snapshot([], [], "Initial state")
        manager.clear()

        assert len(manager) == 0
        assert manager.current_index == -1
