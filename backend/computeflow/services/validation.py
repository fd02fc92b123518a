"""Connection validation for compute graph edges.

Validation failures are returned as ``ValidationResult`` values rather than
raised, so callers can surface them inline next to the port being dragged.
"""

from dataclasses import dataclass

from computeflow.models.edge import EdgeDefinition
from computeflow.models.graph import (
    EdgeValidationError,
    GraphValidationReport,
    ValidationResult,
)
from computeflow.models.node import NodeDefinition, Port, PortDirection

# Source type -> target types it may feed
TYPE_COMPATIBILITY: dict[str, list[str]] = {
    "image": ["image", "any"],
    "video": ["video", "any"],
    "text": ["text", "string", "any", "image", "video", "audio", "json", "tensor"],
    "string": ["text", "string", "any"],
    "number": ["number", "any"],
    "boolean": ["boolean", "any"],
    "audio": ["audio", "any"],
    "json": ["json", "any"],
    "tensor": ["tensor", "any"],
    "any": ["any", "image", "text", "video", "audio", "json", "tensor"],
}


@dataclass
class ConnectionContext:
    """Everything needed to decide whether a proposed edge is allowed."""

    source_node: NodeDefinition
    source_port: Port
    target_node: NodeDefinition
    target_port: Port
    existing_edges: list[EdgeDefinition]


def _normalize_type(data_type: str | None) -> str:
    return (data_type or "any").lower()


def is_type_compatible(source_type: str | None, target_type: str | None) -> bool:
    """Check whether data of source_type may flow into a target_type port."""
    source = _normalize_type(source_type)
    target = _normalize_type(target_type)

    if source == target:
        return True

    return target in TYPE_COMPATIBILITY.get(source, [])


def would_create_cycle(
    source_node_id: str, target_node_id: str, edges: list[EdgeDefinition]
) -> bool:
    """Check whether adding source -> target closes a cycle.

    True when the target can already reach the source.
    """
    if source_node_id == target_node_id:
        return True

    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source.node_id, []).append(edge.target.node_id)

    visited: set[str] = set()
    stack = [target_node_id]

    while stack:
        current = stack.pop()
        if current == source_node_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(adjacency.get(current, []))

    return False


def validate_connection(context: ConnectionContext) -> ValidationResult:
    """Validate a proposed connection between two ports."""
    source_node = context.source_node
    source_port = context.source_port
    target_node = context.target_node
    target_port = context.target_port
    existing_edges = context.existing_edges

    if source_node.id == target_node.id:
        return ValidationResult(valid=False, error="Cannot connect a node to itself")

    source_type = _normalize_type(source_port.data_type)
    target_type = _normalize_type(target_port.data_type)

    if not is_type_compatible(source_type, target_type):
        return ValidationResult(
            valid=False,
            error=f"Type mismatch: {source_type} cannot connect to {target_type}",
        )

    input_taken = any(
        edge.target.node_id == target_node.id and edge.target.port_id == target_port.id
        for edge in existing_edges
    )
    if target_port.cardinality == "1" and input_taken:
        return ValidationResult(
            valid=False,
            error="This input is already connected. Remove the existing connection first.",
        )

    if would_create_cycle(source_node.id, target_node.id, existing_edges):
        return ValidationResult(
            valid=False, error="This connection would create a cycle in the workflow"
        )

    if source_node.find_port(source_port.id, PortDirection.OUTPUT) is None:
        return ValidationResult(valid=False, error="Source must be an output port")
    if target_node.find_port(target_port.id, PortDirection.INPUT) is None:
        return ValidationResult(valid=False, error="Target must be an input port")

    duplicate = any(
        edge.source.node_id == source_node.id
        and edge.source.port_id == source_port.id
        and edge.target.node_id == target_node.id
        and edge.target.port_id == target_port.id
        for edge in existing_edges
    )
    if duplicate:
        return ValidationResult(valid=False, error="This connection already exists")

    warning = None
    if source_type == "any" or target_type == "any":
        warning = "Using flexible type - ensure data formats are compatible at runtime"

    return ValidationResult(valid=True, warning=warning)


def validate_all_edges(
    nodes: list[NodeDefinition], edges: list[EdgeDefinition]
) -> GraphValidationReport:
    """Audit every edge of a graph against its nodes and the other edges."""
    node_map = {node.id: node for node in nodes}
    errors: list[EdgeValidationError] = []

    for edge in edges:
        source_node = node_map.get(edge.source.node_id)
        target_node = node_map.get(edge.target.node_id)

        if source_node is None:
            errors.append(
                EdgeValidationError(
                    edge_id=edge.id,
                    error=f"Source node {edge.source.node_id} not found",
                )
            )
            continue
        if target_node is None:
            errors.append(
                EdgeValidationError(
                    edge_id=edge.id,
                    error=f"Target node {edge.target.node_id} not found",
                )
            )
            continue

        source_port = source_node.find_port(edge.source.port_id, PortDirection.OUTPUT)
        target_port = target_node.find_port(edge.target.port_id, PortDirection.INPUT)

        if source_port is None:
            errors.append(
                EdgeValidationError(
                    edge_id=edge.id,
                    error=f"Source port {edge.source.port_id} not found on {source_node.label}",
                )
            )
            continue
        if target_port is None:
            errors.append(
                EdgeValidationError(
                    edge_id=edge.id,
                    error=f"Target port {edge.target.port_id} not found on {target_node.label}",
                )
            )
            continue

        others = [candidate for candidate in edges if candidate.id != edge.id]
        result = validate_connection(
            ConnectionContext(
                source_node=source_node,
                source_port=source_port,
                target_node=target_node,
                target_port=target_port,
                existing_edges=others,
            )
        )
        if not result.valid:
            errors.append(
                EdgeValidationError(
                    edge_id=edge.id, error=result.error or "Invalid connection"
                )
            )

    return GraphValidationReport(valid=not errors, errors=errors)
