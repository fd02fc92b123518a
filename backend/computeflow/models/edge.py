"""Pydantic models for compute graph edges."""

from enum import Enum
from typing import Any

from computeflow.models.node import CamelModel, DataType


class EdgeStatus(str, Enum):
    """Display status of an edge."""

    IDLE = "idle"
    ACTIVE = "active"
    ERROR = "error"


class EdgeEndpoint(CamelModel):
    """One end of an edge: a node and one of its ports."""

    node_id: str
    port_id: str


class EdgeDefinition(CamelModel):
    """A directed, typed connection from an output port to an input port."""

    id: str
    source: EdgeEndpoint
    target: EdgeEndpoint
    data_type: str = DataType.ANY.value
    status: EdgeStatus = EdgeStatus.IDLE
    metadata: dict[str, Any] | None = None

    @property
    def connection_key(self) -> str:
        """Identity of the connection independent of the edge id."""
        return (
            f"{self.source.node_id}:{self.source.port_id}"
            f"->{self.target.node_id}:{self.target.port_id}"
        )

    def touches(self, node_id: str) -> bool:
        """Whether either endpoint references the node."""
        return self.source.node_id == node_id or self.target.node_id == node_id


class EdgeCreate(CamelModel):
    """Request model for connecting two ports.

    The id is optional; a canonical one is minted when omitted.
    """

    id: str | None = None
    source: EdgeEndpoint
    target: EdgeEndpoint
    data_type: str | None = None
    metadata: dict[str, Any] | None = None


class EdgeUpdate(CamelModel):
    """Partial update for an edge inside a batch edit."""

    data_type: str | None = None
    status: EdgeStatus | None = None
    metadata: dict[str, Any] | None = None
