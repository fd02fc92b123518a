"""Per-project editing sessions.

- GraphSession: one project's graph store, persistence and execution
- GraphSessionManager: session lifecycle and idle cleanup
"""

from computeflow.sessions.manager import (
    GraphSessionManager,
    get_session_manager,
    init_session_manager,
    shutdown_session_manager,
)
from computeflow.sessions.session import GraphSession

__all__ = [
    "GraphSession",
    "GraphSessionManager",
    "get_session_manager",
    "init_session_manager",
    "shutdown_session_manager",
]
