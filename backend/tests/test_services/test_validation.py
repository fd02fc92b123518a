"""Tests for connection validation."""

from conftest import make_edge, make_node

from computeflow.models import Port, PortDirection
from computeflow.services.validation import (
    ConnectionContext,
    is_type_compatible,
    validate_all_edges,
    validate_connection,
    would_create_cycle,
)


def _context(source, target, existing=None, source_port=None, target_port=None):
    return ConnectionContext(
        source_node=source,
        source_port=source_port or source.outputs[0],
        target_node=target,
        target_port=target_port or target.inputs[0],
        existing_edges=existing or [],
    )


class TestTypeCompatibility:
    """Tests for the type compatibility table."""

    def test_same_type(self):
        """Test identical types are compatible."""
        assert is_type_compatible("image", "image")
        assert is_type_compatible("number", "number")

    def test_text_feeds_media(self):
        """Test text can drive image and video inputs."""
        assert is_type_compatible("text", "image")
        assert is_type_compatible("text", "video")

    def test_image_cannot_feed_text(self):
        """Test image output cannot connect to a text input."""
        assert not is_type_compatible("image", "text")

    def test_case_insensitive(self):
        """Test type names are compared case-insensitively."""
        assert is_type_compatible("IMAGE", "Image")

    def test_missing_type_is_any(self):
        """Test a missing type behaves as any."""
        assert is_type_compatible(None, "image")
        assert is_type_compatible("image", None)

    def test_unknown_source_type(self):
        """Test an unknown source type only matches itself."""
        assert is_type_compatible("mesh", "mesh")
        assert not is_type_compatible("mesh", "image")


class TestCycleDetection:
    """Tests for would_create_cycle."""

    def test_self_loop(self):
        assert would_create_cycle("a", "a", [])

    def test_back_edge(self):
        """Test closing a chain back onto its start is a cycle."""
        edges = [make_edge("e1", "a", "b"), make_edge("e2", "b", "c")]
        assert would_create_cycle("c", "a", edges)

    def test_forward_edge(self):
        """Test a shortcut along the chain is not a cycle."""
        edges = [make_edge("e1", "a", "b"), make_edge("e2", "b", "c")]
        assert not would_create_cycle("a", "c", edges)

    def test_diamond(self):
        """Test a diamond with a shared sink is acyclic."""
        edges = [
            make_edge("e1", "a", "b"),
            make_edge("e2", "a", "c"),
            make_edge("e3", "b", "d"),
        ]
        assert not would_create_cycle("c", "d", edges)


class TestValidateConnection:
    """Tests for validate_connection."""

    def test_valid_connection(self):
        """Test compatible ports connect without a warning."""
        a = make_node("a", outputs=[("text", "text")])
        b = make_node("b", inputs=[("prompt", "text")])

        result = validate_connection(_context(a, b))

        assert result.valid
        assert result.error is None
        assert result.warning is None

    def test_self_connection(self):
        """Test a node cannot connect to itself."""
        a = make_node("a")
        result = validate_connection(_context(a, a))

        assert not result.valid
        assert result.error == "Cannot connect a node to itself"

    def test_type_mismatch(self):
        """Test incompatible types are rejected with both names."""
        a = make_node("a", outputs=[("image", "image")])
        b = make_node("b", inputs=[("prompt", "text")])

        result = validate_connection(_context(a, b))

        assert not result.valid
        assert result.error == "Type mismatch: image cannot connect to text"

    def test_single_cardinality_input_taken(self):
        """Test a single-cardinality input rejects a second edge."""
        a = make_node("a")
        c = make_node("c")
        b = make_node("b")
        single = b.inputs[0].model_copy(update={"cardinality": "1"})
        b = b.model_copy(update={"inputs": [single]})
        existing = [make_edge("e1", "c", "b")]

        result = validate_connection(_context(a, b, existing))

        assert not result.valid
        assert "already connected" in result.error

    def test_multi_cardinality_input_accepts_fan_in(self):
        """Test an input with cardinality n accepts several edges."""
        a = make_node("a")
        c = make_node("c")
        b = make_node("b")
        existing = [make_edge("e1", "c", "b")]

        assert validate_connection(_context(a, b, existing)).valid

    def test_cycle_rejected(self):
        """Test a connection closing a cycle is rejected."""
        a = make_node("a")
        b = make_node("b")
        existing = [make_edge("e1", "a", "b")]

        result = validate_connection(_context(b, a, existing))

        assert not result.valid
        assert "cycle" in result.error

    def test_source_must_be_output(self):
        """Test using an input port as the source is rejected."""
        a = make_node("a")
        b = make_node("b")

        result = validate_connection(_context(a, b, source_port=a.inputs[0]))

        assert not result.valid
        assert result.error == "Source must be an output port"

    def test_target_must_be_input(self):
        """Test using an output port as the target is rejected."""
        a = make_node("a")
        b = make_node("b")
        stray = Port(id="stray", data_type="any", direction=PortDirection.INPUT)

        result = validate_connection(_context(a, b, target_port=stray))

        assert not result.valid
        assert result.error == "Target must be an input port"

    def test_duplicate_connection(self):
        """Test the same port pair cannot be connected twice."""
        a = make_node("a")
        b = make_node("b")
        existing = [make_edge("e1", "a", "b")]

        result = validate_connection(_context(a, b, existing))

        assert not result.valid
        assert result.error == "This connection already exists"

    def test_any_type_warns(self):
        """Test a flexible-type connection is valid with a warning."""
        a = make_node("a", outputs=[("out", "any")])
        b = make_node("b", inputs=[("in", "image")])

        result = validate_connection(_context(a, b))

        assert result.valid
        assert result.warning is not None


class TestValidateAllEdges:
    """Tests for auditing a whole graph."""

    def test_clean_graph(self):
        nodes = [make_node("a"), make_node("b")]
        report = validate_all_edges(nodes, [make_edge("e1", "a", "b")])

        assert report.valid
        assert report.errors == []

    def test_reports_missing_node_and_port(self):
        """Test dangling references are reported per edge."""
        nodes = [make_node("a"), make_node("b")]
        edges = [
            make_edge("e1", "a", "ghost"),
            make_edge("e2", "a", "b", target_port="nope"),
        ]

        report = validate_all_edges(nodes, edges)

        assert not report.valid
        errors = {error.edge_id: error.error for error in report.errors}
        assert errors["e1"] == "Target node ghost not found"
        assert errors["e2"].startswith("Target port b-in-nope not found")

    def test_reports_type_mismatch(self):
        nodes = [
            make_node("a", outputs=[("img", "image")]),
            make_node("b", inputs=[("txt", "text")]),
        ]
        edges = [make_edge("e1", "a", "b", source_port="img", target_port="txt")]

        report = validate_all_edges(nodes, edges)

        assert not report.valid
        assert "Type mismatch" in report.errors[0].error
