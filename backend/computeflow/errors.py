"""Exceptions raised by the compute flow engine."""


class ComputeFlowError(Exception):
    """Base exception for compute flow errors."""

    def __init__(self, message: str, retriable: bool = False):
        super().__init__(message)
        self.retriable = retriable


class GraphIntegrityError(ComputeFlowError):
    """A mutation would break referential integrity of the graph."""

    pass


class DuplicateNodeError(GraphIntegrityError):
    """A node with the same id is already in the graph."""

    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id} already exists")
        self.node_id = node_id


class InvalidStatusTransitionError(ComputeFlowError):
    """A node status change is not allowed by the status state machine."""

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id


class PersistenceError(ComputeFlowError):
    """Saving or loading a graph failed."""

    def __init__(self, message: str, retriable: bool = True):
        super().__init__(message, retriable=retriable)


class InvalidGraphIdsError(PersistenceError):
    """The graph contains identifiers that are not canonical."""

    def __init__(
        self,
        invalid_node_ids: list[str],
        invalid_edge_ids: list[str],
        invalid_edge_refs: list[str],
    ):
        super().__init__("Invalid UUID format in graph data", retriable=False)
        self.invalid_node_ids = invalid_node_ids
        self.invalid_edge_ids = invalid_edge_ids
        self.invalid_edge_refs = invalid_edge_refs


class EngineError(ComputeFlowError):
    """The execution engine could not run the graph."""

    pass


class EngineRequestError(EngineError):
    """The execution engine rejected the request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, retriable=status_code is not None and status_code >= 500)
        self.status_code = status_code
