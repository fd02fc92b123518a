"""Tests for graph persistence."""

import uuid

import pytest
from conftest import make_edge, make_node

from computeflow.db import graph_repository
from computeflow.errors import InvalidGraphIdsError
from computeflow.models import NodeKind, NodeStatus, Position


def _uuid() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def graph():
    a, b = _uuid(), _uuid()
    nodes = [
        make_node(
            a,
            label="Prompt",
            kind=NodeKind.PROMPT,
            inputs=[],
            outputs=[("text", "text")],
            params={"text": "a red fox"},
            position=Position(x=10, y=20),
        ),
        make_node(
            b,
            label="Image",
            kind=NodeKind.IMAGE,
            inputs=[("prompt", "text")],
            outputs=[("image", "image")],
            preview={"url": "fox.png"},
            status=NodeStatus.SUCCEEDED,
            progress=100,
        ),
    ]
    edges = [make_edge(_uuid(), a, b, source_port="text", target_port="prompt")]
    return nodes, edges


class TestGraphRepository:
    """Tests for GraphRepository."""

    async def test_save_and_load(self, graph):
        nodes, edges = graph

        await graph_repository.save_graph("p1", nodes, edges)
        loaded_nodes, loaded_edges = await graph_repository.load_graph("p1")

        assert loaded_nodes == nodes
        assert loaded_edges == edges

    async def test_unknown_project_is_empty(self):
        assert await graph_repository.load_graph("nope") == ([], [])

    async def test_save_replaces_previous_graph(self, graph):
        nodes, edges = graph
        await graph_repository.save_graph("p1", nodes, edges)

        renamed = nodes[0].model_copy(update={"label": "Renamed"})
        await graph_repository.save_graph("p1", [renamed], [])

        loaded_nodes, loaded_edges = await graph_repository.load_graph("p1")
        assert [n.label for n in loaded_nodes] == ["Renamed"]
        assert loaded_edges == []

    async def test_projects_are_isolated(self, graph):
        nodes, edges = graph
        await graph_repository.save_graph("p1", nodes, edges)

        other = make_node(_uuid())
        await graph_repository.save_graph("p2", [other], [])

        p1_nodes, _ = await graph_repository.load_graph("p1")
        assert len(p1_nodes) == 2

    async def test_invalid_ids_rejected(self, graph):
        nodes, edges = graph
        legacy = make_node("node-1712-0")

        with pytest.raises(InvalidGraphIdsError) as exc_info:
            await graph_repository.save_graph("p1", [*nodes, legacy], edges)

        assert exc_info.value.invalid_node_ids == ["node-1712-0"]
        assert await graph_repository.load_graph("p1") == ([], [])

    async def test_delete_graph(self, graph):
        nodes, edges = graph
        await graph_repository.save_graph("p1", nodes, edges)

        await graph_repository.delete_graph("p1")

        assert await graph_repository.load_graph("p1") == ([], [])
