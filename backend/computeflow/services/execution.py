"""Execution session controller.

Drives one run of a project's graph on the execution engine and mirrors the
engine's events onto the graph store. Every store update made here is
silent, so a run never creates history entries or marks the graph dirty.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from computeflow.errors import EngineError, InvalidStatusTransitionError
from computeflow.models.execution import CANCELLED_MESSAGE, EngineEvent, ExecutionProgress
from computeflow.models.node import NodeStatus
from computeflow.services.engine_client import ExecutionEngineClient
from computeflow.services.graph_store import GraphStore

logger = logging.getLogger(__name__)

# Engine status -> node status
ENGINE_STATUS_MAP: dict[str, NodeStatus] = {
    "running": NodeStatus.RUNNING,
    "completed": NodeStatus.SUCCEEDED,
    "succeeded": NodeStatus.SUCCEEDED,
    "failed": NodeStatus.FAILED,
    "skipped": NodeStatus.FAILED,
    "pending": NodeStatus.QUEUED,
    "queued": NodeStatus.QUEUED,
}

FINISHED_ENGINE_STATUSES = {"completed", "succeeded", "failed", "skipped"}


def map_engine_status(status: str | None) -> NodeStatus:
    """Translate an engine status string, defaulting to idle."""
    return ENGINE_STATUS_MAP.get((status or "").lower(), NodeStatus.IDLE)


def _as_preview(output: Any) -> dict[str, Any]:
    if isinstance(output, dict):
        return output
    return {"value": output}


class ExecutionSessionController:
    """Runs a graph on the engine, at most one run at a time."""

    def __init__(self, store: GraphStore, engine: ExecutionEngineClient):
        self._store = store
        self._engine = engine
        # Bumped on every start and cancel; events from older runs are dropped
        self._generation = 0
        self._abort: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._finished_nodes: set[str] = set()

    @property
    def is_running(self) -> bool:
        return self._store.execution.is_running

    async def run(self, project_id: str) -> ExecutionProgress:
        """Execute the project's graph and wait for the run to end.

        Calling this while a run is active is a no-op that returns the
        current progress.
        """
        if self.is_running:
            logger.info(f"Execution already running for project {project_id}")
            return self._store.execution

        self._generation += 1
        generation = self._generation
        abort = asyncio.Event()
        self._abort = abort
        self._finished_nodes = set()

        nodes = self._store.nodes
        self._store.error = None
        self._store.update_nodes_silent(
            {
                node.id: {"status": NodeStatus.QUEUED, "progress": 0, "error": None}
                for node in nodes
            }
        )
        self._store.set_execution(
            ExecutionProgress(
                is_running=True,
                total=len(nodes),
                started_at=datetime.now(timezone.utc),
            )
        )
        logger.info(f"Starting execution of project {project_id} ({len(nodes)} nodes)")

        consume = asyncio.create_task(self._consume(project_id, generation))
        self._task = consume
        try:
            await consume
        except asyncio.CancelledError:
            if not abort.is_set():
                consume.cancel()
                raise
            logger.info(f"Execution of project {project_id} cancelled")
        except (httpx.HTTPError, EngineError) as e:
            logger.error(f"Execution of project {project_id} failed: {e}")
            if generation == self._generation:
                self._fail(str(e))
        finally:
            if self._task is consume:
                self._task = None
            if generation == self._generation and self._store.execution.is_running:
                # Stream ended without a complete event
                self._store.update_execution(is_running=False)

        return self._store.execution

    def cancel(self) -> bool:
        """Abort the active run. Returns False when nothing is running."""
        if not self.is_running:
            return False

        self._generation += 1
        if self._abort is not None:
            self._abort.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._store.update_execution(
            is_running=False, error=CANCELLED_MESSAGE, cancelled=True
        )
        return True

    async def _consume(self, project_id: str, generation: int) -> None:
        async for event in self._engine.execute(project_id):
            if generation != self._generation:
                return
            self.handle_event(event)

    def _fail(self, message: str) -> None:
        self._store.error = message
        self._store.update_execution(is_running=False, error=message)

    # ==================== Event handling ====================

    def handle_event(self, event: EngineEvent) -> None:
        """Apply one engine event to the store.

        Events with malformed fields are skipped with a warning so the rest
        of the stream still applies.
        """
        try:
            self._apply_event(event)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed {event.event} event: {e}")

    def _apply_event(self, event: EngineEvent) -> None:
        data = event.data
        execution = self._store.execution

        run_id = data.get("run_id")
        if (
            event.event != "meta"
            and run_id
            and execution.run_id
            and run_id != execution.run_id
        ):
            logger.warning(f"Discarding {event.event} event from stale run {run_id}")
            return

        if event.event == "meta":
            self._store.update_execution(
                run_id=run_id or execution.run_id,
                total=data.get("total_nodes") or execution.total,
            )
        elif event.event == "node_status":
            self._handle_node_status(data)
        elif event.event == "node_progress":
            self._handle_node_progress(data)
        elif event.event == "complete":
            self._store.update_execution(
                is_running=False,
                completed=data.get("completed_nodes") or execution.completed,
                total=data.get("total_nodes") or execution.total,
            )
            logger.info(f"Execution run {execution.run_id} complete")
        elif event.event == "error":
            self._fail(data.get("error") or "Execution failed")
        elif event.event == "result":
            self._store.update_execution(
                run_id=data.get("runId") or data.get("run_id") or execution.run_id,
                is_running=False,
            )
        else:
            logger.debug(f"Ignoring engine event {event.event}")

    def _handle_node_status(self, data: dict[str, Any]) -> None:
        node_id = data.get("node_id")
        node = self._store.get_node(node_id) if node_id else None
        if node is None:
            logger.warning(f"Engine reported status for unknown node {node_id}")
            return

        engine_status = (data.get("status") or "").lower()
        status = map_engine_status(engine_status)
        finished = engine_status in FINISHED_ENGINE_STATUSES
        progress = 100 if finished else 50 if status == NodeStatus.RUNNING else 0
        output = data.get("output")
        preview = _as_preview(output) if output is not None else None

        try:
            self._store.set_node_status(
                node_id, status, progress=progress, error=data.get("error"), preview=preview
            )
        except InvalidStatusTransitionError as e:
            # The engine is authoritative about what actually ran
            logger.warning(str(e))
            changes: dict[str, Any] = {"status": status, "progress": progress}
            if data.get("error"):
                changes["error"] = data["error"]
            if preview is not None:
                changes["preview"] = preview
            self._store.update_node_silent(node_id, changes)

        if finished and node_id not in self._finished_nodes:
            self._finished_nodes.add(node_id)
            self._store.update_execution(completed=self._store.execution.completed + 1)

    def _handle_node_progress(self, data: dict[str, Any]) -> None:
        node_id = data.get("node_id")
        if not node_id or self._store.get_node(node_id) is None:
            logger.warning(f"Engine reported progress for unknown node {node_id}")
            return
        progress = data.get("progress")
        if progress is None:
            return
        self._store.update_node_silent(node_id, {"progress": max(0, min(100, int(progress)))})
