"""Database module."""

from computeflow.db.database import close_database, get_db, init_database
from computeflow.db.graph_repository import GraphRepository, graph_repository

__all__ = ["get_db", "init_database", "close_database", "graph_repository", "GraphRepository"]
