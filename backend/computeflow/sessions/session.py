"""GraphSession binds one project's graph store to storage and the engine."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from computeflow.db.graph_repository import GraphRepository
from computeflow.errors import PersistenceError
from computeflow.models import GraphState, SaveResult, StoreEvent
from computeflow.services.engine_client import ExecutionEngineClient
from computeflow.services.execution import ExecutionSessionController
from computeflow.services.graph_store import GraphStore
from computeflow.services.history import DEFAULT_MAX_DEPTH, HistoryManager
from computeflow.services.id_integrity import normalize_graph_ids

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Synchronous commands mutate the store in one step; asynchronous ones do I/O
SyncCommand = Callable[[GraphStore], T]
AsyncCommand = Callable[["GraphSession"], Awaitable[T]]


class GraphSession:
    """Editing session for a single project.

    Owns the in-memory graph, loads and saves it through the repository and
    runs it on the execution engine.
    """

    def __init__(
        self,
        project_id: str,
        repository: GraphRepository,
        engine: ExecutionEngineClient,
        history_max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.project_id = project_id
        self.repository = repository
        self.store = GraphStore(HistoryManager(max_depth=history_max_depth))
        self.controller = ExecutionSessionController(self.store, engine)
        self.created_at = datetime.now()
        self.last_activity = datetime.now()
        self.is_loading = False
        self.is_saving = False
        self._execution_task: asyncio.Task | None = None

    def touch(self) -> None:
        self.last_activity = datetime.now()

    def apply(self, command: SyncCommand[T]) -> T:
        """Run a synchronous store command."""
        self.touch()
        return command(self.store)

    async def dispatch(self, command: AsyncCommand[T]) -> T:
        """Run an asynchronous command such as a save or load."""
        self.touch()
        return await command(self)

    @property
    def is_executing(self) -> bool:
        return self.controller.is_running

    # ==================== Persistence ====================

    async def load(self) -> bool:
        """Replace the in-memory graph with the stored one.

        History restarts with a single "Loaded graph" entry and the graph is
        clean afterwards. On failure the current graph is kept and the error
        is exposed on the store.
        """
        self.is_loading = True
        try:
            nodes, edges = await self.repository.load_graph(self.project_id)
        except PersistenceError as e:
            logger.error(f"Failed to load project {self.project_id}: {e}")
            self.store.error = str(e)
            return False
        finally:
            self.is_loading = False

        self.controller.cancel()
        self.store.clear()
        self.store.set_graph_atomic(nodes, edges, skip_history=True, skip_dirty=True)
        self.store.history.push_snapshot(self.store.nodes, self.store.edges, "Loaded graph")
        self.store.clear_dirty_state()
        logger.info(f"Loaded project {self.project_id}: {len(nodes)} nodes, {len(edges)} edges")
        return True

    async def save(self) -> SaveResult:
        """Normalize ids and persist the graph.

        The dirty state is cleared only on success, and only when nothing
        changed while the write was in flight.
        """
        self.is_saving = True
        normalized = normalize_graph_ids(self.store.nodes, self.store.edges)
        if normalized.changed:
            self.store.set_graph_atomic(
                normalized.nodes, normalized.edges, skip_history=True, skip_dirty=True
            )

        modified_before = self.store.dirty_state.last_modified_at
        try:
            await self.repository.save_graph(self.project_id, normalized.nodes, normalized.edges)
        except PersistenceError as e:
            logger.error(f"Failed to save project {self.project_id}: {e}")
            self.store.error = str(e)
            return SaveResult(success=False, ids_normalized=normalized.changed, error=str(e))
        finally:
            self.is_saving = False

        saved_at = datetime.now(timezone.utc)
        if self.store.dirty_state.last_modified_at == modified_before:
            self.store.clear_dirty_state(saved_at)
        else:
            logger.info(f"Project {self.project_id} changed during save; keeping dirty state")
        self.store.error = None
        return SaveResult(success=True, ids_normalized=normalized.changed, saved_at=saved_at)

    # ==================== Execution ====================

    def start_execution(self) -> asyncio.Task:
        """Start a run in the background, or return the active one."""
        if self._execution_task is not None and not self._execution_task.done():
            logger.info(f"Execution already running for project {self.project_id}")
            return self._execution_task
        self._execution_task = asyncio.create_task(self.controller.run(self.project_id))
        return self._execution_task

    def cancel_execution(self) -> bool:
        return self.controller.cancel()

    async def wait_for_execution(self) -> None:
        if self._execution_task is not None:
            await self._execution_task

    # ==================== State ====================

    def get_state(self) -> GraphState:
        """Everything a canvas needs to render the project."""
        history = self.store.history_state
        return GraphState(
            project_id=self.project_id,
            nodes=self.store.nodes,
            edges=self.store.edges,
            execution=self.store.execution,
            can_undo=history.can_undo,
            can_redo=history.can_redo,
            dirty=self.store.get_dirty_summary(),
            is_loading=self.is_loading,
            is_saving=self.is_saving,
            error=self.store.error,
        )

    async def events(self) -> AsyncIterator[StoreEvent]:
        """Yield store events until the consumer stops iterating."""
        queue: asyncio.Queue[StoreEvent] = asyncio.Queue()
        unsubscribe = self.store.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    async def close(self) -> None:
        """Stop any active run and release the session."""
        self.controller.cancel()
        if self._execution_task is not None and not self._execution_task.done():
            self._execution_task.cancel()
            try:
                await self._execution_task
            except asyncio.CancelledError:
                pass
        self._execution_task = None

    def get_info(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "node_count": len(self.store.nodes),
            "edge_count": len(self.store.edges),
            "is_executing": self.is_executing,
            "is_dirty": self.store.is_dirty,
        }
