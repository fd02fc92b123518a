"""Pydantic models for compute graph nodes and their ports."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanged with the canvas using camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeKind(str, Enum):
    """Generator types available on the canvas."""

    TEXT = "Text"
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    PROMPT = "Prompt"
    UPLOAD = "Upload"
    TRANSFORM = "Transform"
    COMBINE = "Combine"
    OUTPUT = "Output"
    COMMENT = "Comment"


class NodeStatus(str, Enum):
    """Execution status of a node."""

    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class DataType(str, Enum):
    """Data types that can flow along an edge."""

    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    AUDIO = "audio"
    JSON = "json"
    TENSOR = "tensor"
    ANY = "any"


class PortDirection(str, Enum):
    """Whether a port receives or emits data."""

    INPUT = "input"
    OUTPUT = "output"


class Port(CamelModel):
    """A typed connection point on a node."""

    id: str
    name: str = ""
    # Kept as a plain string so graphs produced elsewhere with unknown
    # types still load; compatibility treats unknown types as incompatible.
    data_type: str = Field(default=DataType.ANY.value, alias="datatype")
    direction: PortDirection = PortDirection.INPUT
    cardinality: str = "n"  # "1" accepts a single incoming edge


class Position(CamelModel):
    """Canvas position of a node."""

    x: float = 0.0
    y: float = 0.0


class Size(CamelModel):
    """Rendered size of a node."""

    w: float = 420.0
    h: float = 300.0


class NodeDefinition(CamelModel):
    """A unit of work in the compute graph."""

    id: str
    kind: NodeKind
    version: str = "1.0.0"
    label: str = "Untitled Node"
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    inputs: list[Port] = Field(default_factory=list)
    outputs: list[Port] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None
    preview: dict[str, Any] | None = None
    status: NodeStatus = NodeStatus.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    is_dirty: bool = False

    def find_port(self, port_id: str, direction: PortDirection) -> Port | None:
        """Find a declared port by id on the side given by direction."""
        ports = self.inputs if direction == PortDirection.INPUT else self.outputs
        for port in ports:
            if port.id == port_id:
                return port
        return None


class NodeCreate(CamelModel):
    """Request model for creating a node from its kind."""

    kind: NodeKind
    position: Position = Field(default_factory=Position)
    label: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


NULLABLE_NODE_FIELDS = {"metadata", "preview", "error"}


class NodeUpdate(CamelModel):
    """Request model for a partial node update.

    Only fields explicitly set are merged into the node.
    """

    kind: NodeKind | None = None
    version: str | None = None
    label: str | None = None
    position: Position | None = None
    size: Size | None = None
    inputs: list[Port] | None = None
    outputs: list[Port] | None = None
    params: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    preview: dict[str, Any] | None = None
    status: NodeStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    error: str | None = None

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "NodeUpdate":
        """Only metadata, preview and error may be cleared with an explicit null."""
        cleared = sorted(
            name
            for name in self.model_fields_set - NULLABLE_NODE_FIELDS
            if getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self

    def to_partial(self) -> dict[str, Any]:
        """Return only the fields the caller set, keyed by field name."""
        return self.model_dump(exclude_unset=True)


# Default ports per kind: (name, datatype, cardinality)
NODE_KIND_PORTS: dict[NodeKind, dict[str, list[tuple[str, str, str]]]] = {
    NodeKind.PROMPT: {"inputs": [], "outputs": [("text", "text", "n")]},
    NodeKind.TEXT: {
        "inputs": [("context", "text", "n")],
        "outputs": [("text", "text", "n")],
    },
    NodeKind.IMAGE: {
        "inputs": [("prompt", "text", "1"), ("reference", "image", "n")],
        "outputs": [("image", "image", "n")],
    },
    NodeKind.VIDEO: {
        "inputs": [("prompt", "text", "1"), ("image", "image", "1")],
        "outputs": [("video", "video", "n")],
    },
    NodeKind.AUDIO: {
        "inputs": [("prompt", "text", "1")],
        "outputs": [("audio", "audio", "n")],
    },
    NodeKind.UPLOAD: {"inputs": [], "outputs": [("file", "any", "n")]},
    NodeKind.TRANSFORM: {
        "inputs": [("input", "any", "1")],
        "outputs": [("output", "any", "n")],
    },
    NodeKind.COMBINE: {
        "inputs": [("items", "any", "n")],
        "outputs": [("combined", "any", "n")],
    },
    NodeKind.OUTPUT: {"inputs": [("result", "any", "n")], "outputs": []},
    NodeKind.COMMENT: {"inputs": [], "outputs": []},
}
