"""State machine for node status transitions.

    idle ──► queued ──► running ──► succeeded
      ▲        │           │
      │        │           └──────► failed
      │        └─► succeeded | failed   (engine skipped the running report)
      └──────── any status (reset)

A finished node (succeeded or failed) may be queued again for a new run.
"""

from dataclasses import dataclass

from computeflow.errors import InvalidStatusTransitionError
from computeflow.models.node import NodeStatus


@dataclass(frozen=True)
class StatusTransition:
    """An allowed move between statuses."""

    sources: tuple[NodeStatus, ...]
    target: NodeStatus
    action: str
    description: str


VALID_TRANSITIONS: list[StatusTransition] = [
    StatusTransition(
        sources=(NodeStatus.IDLE, NodeStatus.SUCCEEDED, NodeStatus.FAILED),
        target=NodeStatus.QUEUED,
        action="QUEUE",
        description="Node scheduled for execution",
    ),
    StatusTransition(
        sources=(NodeStatus.QUEUED,),
        target=NodeStatus.RUNNING,
        action="START",
        description="Node execution has begun",
    ),
    StatusTransition(
        sources=(NodeStatus.RUNNING, NodeStatus.QUEUED),
        target=NodeStatus.SUCCEEDED,
        action="COMPLETE",
        description="Node execution finished successfully",
    ),
    StatusTransition(
        sources=(NodeStatus.RUNNING, NodeStatus.QUEUED),
        target=NodeStatus.FAILED,
        action="FAIL",
        description="Node execution encountered an error",
    ),
    StatusTransition(
        sources=(
            NodeStatus.QUEUED,
            NodeStatus.RUNNING,
            NodeStatus.SUCCEEDED,
            NodeStatus.FAILED,
        ),
        target=NodeStatus.IDLE,
        action="RESET",
        description="Node reset to initial state",
    ),
]


@dataclass
class TransitionResult:
    """Outcome of checking a status transition."""

    valid: bool
    error: str | None = None
    transition: StatusTransition | None = None


def validate_status_transition(current: NodeStatus, target: NodeStatus) -> TransitionResult:
    """Check whether a node may move from current to target."""
    if current == target:
        return TransitionResult(valid=True)

    for transition in VALID_TRANSITIONS:
        if transition.target == target and current in transition.sources:
            return TransitionResult(valid=True, transition=transition)

    allowed_next = get_valid_next_statuses(current)
    required_from = sorted(
        {source.value for t in VALID_TRANSITIONS if t.target == target for source in t.sources}
    )
    error = (
        f"Invalid transition: {current.value} -> {target.value}. "
        f"From '{current.value}', valid transitions are: "
        f"[{', '.join(status.value for status in allowed_next)}]. "
        f"To reach '{target.value}', node must be in: [{', '.join(required_from)}]."
    )
    return TransitionResult(valid=False, error=error)


def get_valid_next_statuses(current: NodeStatus) -> list[NodeStatus]:
    """All statuses reachable from current in one step."""
    return [t.target for t in VALID_TRANSITIONS if current in t.sources]


def guard_status_transition(
    current: NodeStatus, target: NodeStatus, node_id: str | None = None
) -> None:
    """Raise if the transition is not allowed."""
    result = validate_status_transition(current, target)
    if not result.valid:
        context = f" (node: {node_id})" if node_id else ""
        raise InvalidStatusTransitionError(
            f"Status transition error{context}: {result.error}", node_id=node_id
        )
