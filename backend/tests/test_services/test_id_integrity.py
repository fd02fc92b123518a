"""Tests for identifier normalization and edge port reconciliation."""

import uuid

from conftest import make_edge, make_node

from computeflow.models import EdgeEndpoint
from computeflow.services.id_integrity import (
    find_invalid_ids,
    is_canonical_id,
    normalize_graph_ids,
    reconcile_edge_ports,
)


class TestCanonicalIds:
    """Tests for is_canonical_id."""

    def test_uuid_is_canonical(self):
        assert is_canonical_id(str(uuid.uuid4()))
        assert is_canonical_id(str(uuid.uuid4()).upper())

    def test_legacy_ids_are_not(self):
        assert not is_canonical_id("node-1712345-0")
        assert not is_canonical_id("n1")
        assert not is_canonical_id("")
        assert not is_canonical_id(None)


class TestNormalizeGraphIds:
    """Tests for normalize_graph_ids."""

    def test_rewrites_nodes_ports_and_edges(self):
        """Test legacy ids are replaced and every reference follows."""
        nodes = [make_node("n1"), make_node("n2")]
        edges = [make_edge("e1", "n1", "n2")]

        result = normalize_graph_ids(nodes, edges)

        assert result.changed
        assert all(is_canonical_id(node.id) for node in result.nodes)
        new_n1 = result.node_id_map["n1"]
        new_n2 = result.node_id_map["n2"]

        edge = result.edges[0]
        assert is_canonical_id(edge.id)
        assert edge.source.node_id == new_n1
        assert edge.target.node_id == new_n2
        assert edge.source.port_id == f"{new_n1}-output-0"
        assert edge.target.port_id == f"{new_n2}-input-0"

        n1 = next(node for node in result.nodes if node.id == new_n1)
        assert n1.outputs[0].id == edge.source.port_id

    def test_inputs_not_mutated(self):
        nodes = [make_node("n1")]
        normalize_graph_ids(nodes, [])

        assert nodes[0].id == "n1"
        assert nodes[0].inputs[0].id == "n1-in-in"

    def test_idempotent(self):
        """Test normalizing an already normalized graph changes nothing."""
        first = normalize_graph_ids([make_node("n1"), make_node("n2")], [make_edge("e1", "n1", "n2")])
        second = normalize_graph_ids(first.nodes, first.edges)

        assert not second.changed
        assert [n.id for n in second.nodes] == [n.id for n in first.nodes]
        assert [e.id for e in second.edges] == [e.id for e in first.edges]

    def test_canonical_ids_kept(self):
        node_id = str(uuid.uuid4())
        result = normalize_graph_ids([make_node(node_id)], [])

        assert not result.changed
        assert result.nodes[0].id == node_id

    def test_reserved_ids_reminted(self):
        """Test ids already used by the live graph are replaced."""
        node_id = str(uuid.uuid4())
        result = normalize_graph_ids([make_node(node_id)], [], reserved_ids={node_id})

        assert result.changed
        assert result.nodes[0].id != node_id
        assert is_canonical_id(result.nodes[0].id)

    def test_same_port_name_on_two_nodes(self):
        """Test port rewrites are scoped to their own node."""
        a = make_node("a").model_copy(deep=True)
        b = make_node("b").model_copy(deep=True)
        shared = "shared-port"
        a.outputs[0].id = shared
        b.outputs[0].id = shared
        c = make_node("c")
        edge = make_edge("e1", "b", "c").model_copy(
            update={"source": EdgeEndpoint(node_id="b", port_id=shared)}
        )

        result = normalize_graph_ids([a, b, c], [edge])

        new_b = result.node_id_map["b"]
        assert result.edges[0].source.port_id == f"{new_b}-output-0"


class TestReconcileEdgePorts:
    """Tests for reconcile_edge_ports."""

    def test_valid_edges_kept_as_is(self):
        nodes = [make_node("a"), make_node("b")]
        edge = make_edge("e1", "a", "b")

        kept, dropped = reconcile_edge_ports(nodes, [edge])

        assert kept == [edge]
        assert dropped == []

    def test_missing_port_falls_back_to_first(self):
        nodes = [make_node("a"), make_node("b")]
        edge = make_edge("e1", "a", "b", source_port="gone", target_port="gone")

        kept, dropped = reconcile_edge_ports(nodes, [edge])

        assert dropped == []
        assert kept[0].source.port_id == "a-out-out"
        assert kept[0].target.port_id == "b-in-in"

    def test_missing_node_dropped(self):
        kept, dropped = reconcile_edge_ports([make_node("a")], [make_edge("e1", "a", "ghost")])

        assert kept == []
        assert [e.id for e in dropped] == ["e1"]

    def test_node_without_ports_on_side_dropped(self):
        nodes = [make_node("a"), make_node("b", inputs=[])]
        kept, dropped = reconcile_edge_ports(nodes, [make_edge("e1", "a", "b")])

        assert kept == []
        assert len(dropped) == 1


class TestFindInvalidIds:
    """Tests for find_invalid_ids."""

    def test_reports_each_kind(self):
        good = str(uuid.uuid4())
        nodes = [make_node(good), make_node("legacy")]
        edges = [make_edge("e1", good, "legacy")]

        node_ids, edge_ids, edge_refs = find_invalid_ids(nodes, edges)

        assert node_ids == ["legacy"]
        assert edge_ids == ["e1"]
        assert edge_refs == ["e1"]

    def test_clean_graph(self):
        a, b = str(uuid.uuid4()), str(uuid.uuid4())
        edge = make_edge(str(uuid.uuid4()), a, b)

        assert find_invalid_ids([make_node(a), make_node(b)], [edge]) == ([], [], [])
