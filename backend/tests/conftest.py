"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from computeflow.db.database import close_database, init_database
from computeflow.main import app
from computeflow.models import (
    EdgeDefinition,
    EdgeEndpoint,
    NodeDefinition,
    NodeKind,
    Port,
    PortDirection,
)
from computeflow.sessions import shutdown_session_manager


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Set up a test database for each test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    await init_database(db_path)

    yield

    # Sessions hold graph state across requests; start every test fresh
    await shutdown_session_manager()
    await close_database()
    os.unlink(db_path)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


def make_node(
    node_id: str,
    label: str | None = None,
    inputs: list[tuple[str, str]] | None = None,
    outputs: list[tuple[str, str]] | None = None,
    kind: NodeKind = NodeKind.TRANSFORM,
    **fields,
) -> NodeDefinition:
    """Build a node whose port ids are ``<node>-in-<name>`` / ``<node>-out-<name>``.

    Ports are given as (name, datatype) pairs; the default is one ``any``
    input and one ``any`` output.
    """
    inputs = [("in", "any")] if inputs is None else inputs
    outputs = [("out", "any")] if outputs is None else outputs
    return NodeDefinition(
        id=node_id,
        kind=kind,
        label=label or node_id,
        inputs=[
            Port(id=f"{node_id}-in-{name}", name=name, data_type=dt, direction=PortDirection.INPUT)
            for name, dt in inputs
        ],
        outputs=[
            Port(id=f"{node_id}-out-{name}", name=name, data_type=dt, direction=PortDirection.OUTPUT)
            for name, dt in outputs
        ],
        **fields,
    )


def make_edge(
    edge_id: str,
    source: str,
    target: str,
    source_port: str = "out",
    target_port: str = "in",
) -> EdgeDefinition:
    """Build an edge between ports created by ``make_node``."""
    return EdgeDefinition(
        id=edge_id,
        source=EdgeEndpoint(node_id=source, port_id=f"{source}-out-{source_port}"),
        target=EdgeEndpoint(node_id=target, port_id=f"{target}-in-{target_port}"),
    )
