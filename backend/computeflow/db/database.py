"""SQLite database connection and schema initialization."""

from pathlib import Path

import aiosqlite

# Global connection holder
_db_connection: aiosqlite.Connection | None = None


async def init_database(db_path: str) -> None:
    """Initialize the database connection and create schema."""
    global _db_connection

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    _db_connection = await aiosqlite.connect(db_path)
    _db_connection.row_factory = aiosqlite.Row

    await _db_connection.execute("PRAGMA foreign_keys = ON")

    await _create_schema(_db_connection)


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection
    if _db_connection:
        await _db_connection.close()
        _db_connection = None


async def get_db() -> aiosqlite.Connection:
    """Get the database connection."""
    if _db_connection is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _db_connection


async def _create_schema(db: aiosqlite.Connection) -> None:
    """Create the compute graph tables and indexes."""
    # One row per node; ports, params and run output are stored as JSON
    await db.execute("""
        CREATE TABLE IF NOT EXISTS compute_nodes (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            kind TEXT NOT NULL,
            version TEXT NOT NULL DEFAULT '1.0.0',
            label TEXT NOT NULL,
            position_json TEXT NOT NULL DEFAULT '{}',
            size_json TEXT NOT NULL DEFAULT '{}',
            inputs_json TEXT NOT NULL DEFAULT '[]',
            outputs_json TEXT NOT NULL DEFAULT '[]',
            params_json TEXT NOT NULL DEFAULT '{}',
            metadata_json TEXT,
            preview_json TEXT,
            status TEXT NOT NULL DEFAULT 'idle',
            progress INTEGER NOT NULL DEFAULT 0,
            error TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS compute_edges (
            id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            source_node_id TEXT NOT NULL,
            source_port_id TEXT NOT NULL,
            target_node_id TEXT NOT NULL,
            target_port_id TEXT NOT NULL,
            data_type TEXT NOT NULL DEFAULT 'any',
            status TEXT NOT NULL DEFAULT 'idle',
            metadata_json TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (source_node_id) REFERENCES compute_nodes(id) ON DELETE CASCADE,
            FOREIGN KEY (target_node_id) REFERENCES compute_nodes(id) ON DELETE CASCADE
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_compute_nodes_project
        ON compute_nodes(project_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_compute_edges_project
        ON compute_edges(project_id)
    """)

    await db.commit()
