"""GraphSessionManager handles session lifecycle and storage."""

import asyncio
import logging
import os
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from computeflow.db.graph_repository import GraphRepository, graph_repository
from computeflow.services.engine_client import ExecutionEngineClient
from computeflow.services.history import DEFAULT_MAX_DEPTH
from computeflow.sessions.session import GraphSession

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_URL = "http://localhost:54321/functions/v1"

EngineFactory = Callable[[], ExecutionEngineClient]

# Singleton manager instance
_manager: "GraphSessionManager | None" = None


def default_engine_factory() -> ExecutionEngineClient:
    """Build an engine client from COMPUTE_ENGINE_URL / COMPUTE_ENGINE_TOKEN."""
    return ExecutionEngineClient(
        base_url=os.getenv("COMPUTE_ENGINE_URL", DEFAULT_ENGINE_URL),
        token=os.getenv("COMPUTE_ENGINE_TOKEN"),
    )


class GraphSessionManager:
    """Manages one editing session per project.

    Responsibilities:
    - Create sessions and load their graph on first access
    - Store active sessions (in-memory)
    - Cleanup idle sessions that are not executing
    """

    def __init__(
        self,
        session_timeout_minutes: int = 30,
        history_max_depth: int = DEFAULT_MAX_DEPTH,
        repository: GraphRepository | None = None,
        engine_factory: EngineFactory = default_engine_factory,
    ):
        """Initialize the session manager.

        Args:
            session_timeout_minutes: How long idle sessions live before cleanup.
            history_max_depth: Undo depth of each session's history.
            repository: Graph storage; defaults to the shared repository.
            engine_factory: Builds the execution engine client for a new session.
        """
        self._sessions: dict[str, GraphSession] = {}
        self._session_timeout = timedelta(minutes=session_timeout_minutes)
        self._history_max_depth = history_max_depth
        self._repository = repository or graph_repository
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task | None = None
        self.engine_factory = engine_factory

    @property
    def active_session_count(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    async def get_or_create_session(self, project_id: str) -> GraphSession:
        """Get a project's session, creating and loading it if needed.

        Args:
            project_id: The project whose graph the session edits.

        Returns:
            The active GraphSession, loaded from storage on first access.
        """
        async with self._lock:
            session = self._sessions.get(project_id)
            if session is None:
                session = GraphSession(
                    project_id=project_id,
                    repository=self._repository,
                    engine=self.engine_factory(),
                    history_max_depth=self._history_max_depth,
                )
                await session.load()
                self._sessions[project_id] = session
                logger.info(
                    f"Created graph session for project {project_id} "
                    f"(total sessions: {len(self._sessions)})"
                )
        session.touch()
        return session

    def get_session(self, project_id: str) -> GraphSession | None:
        """Get an existing session without creating one.

        Args:
            project_id: The project to look up.

        Returns:
            The GraphSession if found, None otherwise.
        """
        session = self._sessions.get(project_id)
        if session:
            session.touch()
        return session

    async def close_session(self, project_id: str) -> bool:
        """Close and remove a session. Unsaved changes are discarded.

        Args:
            project_id: The project whose session to close.

        Returns:
            True if a session was closed.
        """
        session = self._sessions.pop(project_id, None)
        if session:
            await session.close()
            logger.info(f"Closed graph session for project {project_id}")
            return True
        return False

    async def cleanup_expired(self) -> int:
        """Close sessions that have been idle too long.

        Sessions with an active run are kept regardless of idle time.

        Returns:
            Number of sessions closed.
        """
        now = datetime.now()
        expired_ids = [
            project_id
            for project_id, s in self._sessions.items()
            if now - s.last_activity > self._session_timeout and not s.is_executing
        ]

        for project_id in expired_ids:
            session = self._sessions[project_id]
            if session.store.is_dirty:
                logger.warning(f"Closing idle session {project_id} with unsaved changes")
            await self.close_session(project_id)

        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired graph session(s)")

        return len(expired_ids)

    async def start_cleanup_task(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Started graph session cleanup background task")

    async def stop_cleanup_task(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Stopped graph session cleanup background task")

    async def _cleanup_loop(self) -> None:
        """Background loop that cleans up expired sessions."""
        while True:
            try:
                await asyncio.sleep(60)
                await self.cleanup_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in graph session cleanup task: {e}")

    async def shutdown(self) -> None:
        """Shutdown the manager and close all sessions."""
        await self.stop_cleanup_task()

        for project_id in list(self._sessions.keys()):
            await self.close_session(project_id)

        logger.info("Graph session manager shutdown complete")

    def get_stats(self) -> dict[str, Any]:
        """Get session statistics for monitoring."""
        return {
            "active_sessions": len(self._sessions),
            "executing_sessions": sum(1 for s in self._sessions.values() if s.is_executing),
            "dirty_sessions": sum(1 for s in self._sessions.values() if s.store.is_dirty),
            "cleanup_task_running": self._cleanup_task is not None,
            "sessions": [s.get_info() for s in self._sessions.values()],
        }


def get_session_manager() -> GraphSessionManager:
    """Get the singleton session manager instance."""
    global _manager
    if _manager is None:
        _manager = GraphSessionManager(
            session_timeout_minutes=int(os.getenv("SESSION_TIMEOUT_MINUTES", "30")),
            history_max_depth=int(os.getenv("HISTORY_MAX_DEPTH", str(DEFAULT_MAX_DEPTH))),
        )
    return _manager


async def init_session_manager() -> GraphSessionManager:
    """Initialize the session manager and start background tasks."""
    manager = get_session_manager()
    await manager.start_cleanup_task()
    return manager


async def shutdown_session_manager() -> None:
    """Shutdown the session manager."""
    global _manager
    if _manager:
        await _manager.shutdown()
        _manager = None
