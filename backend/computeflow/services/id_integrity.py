"""Identifier integrity for compute graphs.

Graphs may carry legacy or externally generated ids (``node-1712-0``,
``n1``). Before a graph is persisted or spliced into a live graph, every
node and edge id is made canonical (a UUID) and all cross-references are
rewritten to match.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field

from computeflow.models.edge import EdgeDefinition, EdgeEndpoint
from computeflow.models.node import NodeDefinition, PortDirection

logger = logging.getLogger(__name__)

UUID_REGEX = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_canonical_id(value: object) -> bool:
    """Check whether a value is a canonical (UUID formatted) id."""
    return isinstance(value, str) and UUID_REGEX.match(value) is not None


def generate_id() -> str:
    """Mint a new canonical id."""
    return str(uuid.uuid4())


def port_id(node_id: str, direction: PortDirection, index: int) -> str:
    """Derive a port id from its node, direction and position."""
    return f"{node_id}-{direction.value}-{index}"


@dataclass
class NormalizationResult:
    """Normalized collections plus the id rewrites that produced them."""

    nodes: list[NodeDefinition]
    edges: list[EdgeDefinition]
    changed: bool = False
    node_id_map: dict[str, str] = field(default_factory=dict)
    # (old node id, old port id) -> new port id
    port_id_map: dict[tuple[str, str], str] = field(default_factory=dict)


def normalize_graph_ids(
    nodes: list[NodeDefinition],
    edges: list[EdgeDefinition],
    reserved_ids: set[str] | None = None,
) -> NormalizationResult:
    """Replace non-canonical ids and rewrite every reference to them.

    Already canonical ids are left untouched, so a second pass over the
    result reports no change. Ids listed in ``reserved_ids`` (those already
    used by a live graph the fragment is spliced into) are re-minted as
    well. The input collections are not mutated.
    """
    reserved = reserved_ids or set()

    node_id_map: dict[str, str] = {}
    port_id_map: dict[tuple[str, str], str] = {}
    changed = False

    normalized_nodes: list[NodeDefinition] = []
    for node in nodes:
        if is_canonical_id(node.id) and node.id not in reserved:
            normalized_nodes.append(node)
            continue

        new_id = generate_id()
        node_id_map[node.id] = new_id
        changed = True

        inputs = []
        for index, port in enumerate(node.inputs):
            new_port_id = port_id(new_id, PortDirection.INPUT, index)
            port_id_map[(node.id, port.id)] = new_port_id
            inputs.append(
                port.model_copy(update={"id": new_port_id, "direction": PortDirection.INPUT})
            )

        outputs = []
        for index, port in enumerate(node.outputs):
            new_port_id = port_id(new_id, PortDirection.OUTPUT, index)
            port_id_map[(node.id, port.id)] = new_port_id
            outputs.append(
                port.model_copy(update={"id": new_port_id, "direction": PortDirection.OUTPUT})
            )

        normalized_nodes.append(
            node.model_copy(update={"id": new_id, "inputs": inputs, "outputs": outputs})
        )

    normalized_edges: list[EdgeDefinition] = []
    for edge in edges:
        updates: dict[str, object] = {}

        if not is_canonical_id(edge.id) or edge.id in reserved:
            updates["id"] = generate_id()

        source = _remap_endpoint(edge.source, node_id_map, port_id_map)
        if source != edge.source:
            updates["source"] = source

        target = _remap_endpoint(edge.target, node_id_map, port_id_map)
        if target != edge.target:
            updates["target"] = target

        if updates:
            changed = True
            normalized_edges.append(edge.model_copy(update=updates))
        else:
            normalized_edges.append(edge)

    if changed:
        logger.info(f"Normalized ids for {len(node_id_map)} node(s)")

    return NormalizationResult(
        nodes=normalized_nodes,
        edges=normalized_edges,
        changed=changed,
        node_id_map=node_id_map,
        port_id_map=port_id_map,
    )


def _remap_endpoint(
    endpoint: EdgeEndpoint,
    node_id_map: dict[str, str],
    port_id_map: dict[tuple[str, str], str],
) -> EdgeEndpoint:
    new_node_id = node_id_map.get(endpoint.node_id, endpoint.node_id)
    new_port_id = port_id_map.get((endpoint.node_id, endpoint.port_id), endpoint.port_id)
    if new_node_id == endpoint.node_id and new_port_id == endpoint.port_id:
        return endpoint
    return EdgeEndpoint(node_id=new_node_id, port_id=new_port_id)


def reconcile_edge_ports(
    nodes: list[NodeDefinition], edges: list[EdgeDefinition]
) -> tuple[list[EdgeDefinition], list[EdgeDefinition]]:
    """Make every edge reference ports that exist on its nodes.

    A missing source (target) port is replaced with the node's first output
    (input) port. Edges whose nodes are missing, or whose node has no port
    on the required side, are dropped.

    Returns:
        (kept, dropped) edge lists
    """
    node_map = {node.id: node for node in nodes}
    kept: list[EdgeDefinition] = []
    dropped: list[EdgeDefinition] = []

    for edge in edges:
        source_node = node_map.get(edge.source.node_id)
        target_node = node_map.get(edge.target.node_id)

        if source_node is None or target_node is None:
            logger.warning(f"Edge {edge.id} references a node that does not exist")
            dropped.append(edge)
            continue

        source = edge.source
        if source_node.find_port(source.port_id, PortDirection.OUTPUT) is None:
            if not source_node.outputs:
                logger.warning(f"No output ports on source node {source_node.id}")
                dropped.append(edge)
                continue
            fallback = source_node.outputs[0].id
            logger.info(f"Fixing source port id {source.port_id} -> {fallback}")
            source = EdgeEndpoint(node_id=source.node_id, port_id=fallback)

        target = edge.target
        if target_node.find_port(target.port_id, PortDirection.INPUT) is None:
            if not target_node.inputs:
                logger.warning(f"No input ports on target node {target_node.id}")
                dropped.append(edge)
                continue
            fallback = target_node.inputs[0].id
            logger.info(f"Fixing target port id {target.port_id} -> {fallback}")
            target = EdgeEndpoint(node_id=target.node_id, port_id=fallback)

        if source is edge.source and target is edge.target:
            kept.append(edge)
        else:
            kept.append(edge.model_copy(update={"source": source, "target": target}))

    return kept, dropped


def find_invalid_ids(
    nodes: list[NodeDefinition], edges: list[EdgeDefinition]
) -> tuple[list[str], list[str], list[str]]:
    """List node ids, edge ids and edge references that are not canonical."""
    invalid_node_ids = [node.id for node in nodes if not is_canonical_id(node.id)]
    invalid_edge_ids = [edge.id for edge in edges if not is_canonical_id(edge.id)]
    invalid_edge_refs = [
        edge.id
        for edge in edges
        if not is_canonical_id(edge.source.node_id)
        or not is_canonical_id(edge.target.node_id)
    ]
    return invalid_node_ids, invalid_edge_ids, invalid_edge_refs
