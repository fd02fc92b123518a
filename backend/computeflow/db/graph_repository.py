"""GraphRepository - persistence of a project's compute graph."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from computeflow.db.database import get_db
from computeflow.errors import InvalidGraphIdsError, PersistenceError
from computeflow.models import EdgeDefinition, EdgeEndpoint, NodeDefinition
from computeflow.services.id_integrity import find_invalid_ids

logger = logging.getLogger(__name__)


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _dumps(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _loads(value: str | None) -> Any:
    return None if value is None else json.loads(value)


class GraphRepository:
    """Saves and loads whole graphs, one project at a time."""

    async def save_graph(
        self,
        project_id: str,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
    ) -> None:
        """Replace the stored graph of a project with the given one.

        Rows no longer present are deleted and the rest are upserted, all
        in one transaction.

        Raises:
            InvalidGraphIdsError: an id or edge reference is not canonical
            PersistenceError: the database write failed
        """
        invalid_node_ids, invalid_edge_ids, invalid_edge_refs = find_invalid_ids(nodes, edges)
        if invalid_node_ids or invalid_edge_ids or invalid_edge_refs:
            logger.error(
                f"Refusing to save project {project_id}: invalid node ids {invalid_node_ids}, "
                f"edge ids {invalid_edge_ids}, edge refs {invalid_edge_refs}"
            )
            raise InvalidGraphIdsError(invalid_node_ids, invalid_edge_ids, invalid_edge_refs)

        db = await get_db()
        now = _now()
        try:
            await self._delete_missing(db, project_id, nodes, edges)

            await db.executemany(
                """
                INSERT INTO compute_nodes
                    (id, project_id, kind, version, label, position_json, size_json,
                     inputs_json, outputs_json, params_json, metadata_json, preview_json,
                     status, progress, error, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    project_id = excluded.project_id,
                    kind = excluded.kind,
                    version = excluded.version,
                    label = excluded.label,
                    position_json = excluded.position_json,
                    size_json = excluded.size_json,
                    inputs_json = excluded.inputs_json,
                    outputs_json = excluded.outputs_json,
                    params_json = excluded.params_json,
                    metadata_json = excluded.metadata_json,
                    preview_json = excluded.preview_json,
                    status = excluded.status,
                    progress = excluded.progress,
                    error = excluded.error,
                    updated_at = excluded.updated_at
                """,
                [self._node_row(project_id, node, now) for node in nodes],
            )

            await db.executemany(
                """
                INSERT INTO compute_edges
                    (id, project_id, source_node_id, source_port_id, target_node_id,
                     target_port_id, data_type, status, metadata_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    project_id = excluded.project_id,
                    source_node_id = excluded.source_node_id,
                    source_port_id = excluded.source_port_id,
                    target_node_id = excluded.target_node_id,
                    target_port_id = excluded.target_port_id,
                    data_type = excluded.data_type,
                    status = excluded.status,
                    metadata_json = excluded.metadata_json
                """,
                [self._edge_row(project_id, edge, now) for edge in edges],
            )

            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            logger.exception(f"Failed to save graph for project {project_id}: {e}")
            raise PersistenceError(f"Failed to save graph: {e}") from e

        logger.info(f"Saved project {project_id}: {len(nodes)} nodes, {len(edges)} edges")

    async def load_graph(
        self, project_id: str
    ) -> tuple[list[NodeDefinition], list[EdgeDefinition]]:
        """Load a project's graph. An unknown project yields an empty graph."""
        db = await get_db()
        try:
            cursor = await db.execute(
                "SELECT * FROM compute_nodes WHERE project_id = ? ORDER BY created_at, rowid",
                (project_id,),
            )
            node_rows = await cursor.fetchall()

            cursor = await db.execute(
                "SELECT * FROM compute_edges WHERE project_id = ? ORDER BY created_at, rowid",
                (project_id,),
            )
            edge_rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.exception(f"Failed to load graph for project {project_id}: {e}")
            raise PersistenceError(f"Failed to load graph: {e}") from e

        nodes = [self._row_to_node(row) for row in node_rows]
        edges = [self._row_to_edge(row) for row in edge_rows]
        return nodes, edges

    async def delete_graph(self, project_id: str) -> None:
        """Delete every node and edge stored for a project."""
        db = await get_db()
        await db.execute("DELETE FROM compute_edges WHERE project_id = ?", (project_id,))
        await db.execute("DELETE FROM compute_nodes WHERE project_id = ?", (project_id,))
        await db.commit()

    # ==================== Helpers ====================

    async def _delete_missing(
        self,
        db: aiosqlite.Connection,
        project_id: str,
        nodes: list[NodeDefinition],
        edges: list[EdgeDefinition],
    ) -> None:
        node_ids = {node.id for node in nodes}
        edge_ids = {edge.id for edge in edges}

        cursor = await db.execute(
            "SELECT id FROM compute_edges WHERE project_id = ?", (project_id,)
        )
        stale_edges = [row["id"] for row in await cursor.fetchall() if row["id"] not in edge_ids]
        cursor = await db.execute(
            "SELECT id FROM compute_nodes WHERE project_id = ?", (project_id,)
        )
        stale_nodes = [row["id"] for row in await cursor.fetchall() if row["id"] not in node_ids]

        if stale_edges:
            await db.executemany(
                "DELETE FROM compute_edges WHERE id = ?", [(edge_id,) for edge_id in stale_edges]
            )
        if stale_nodes:
            await db.executemany(
                "DELETE FROM compute_nodes WHERE id = ?", [(node_id,) for node_id in stale_nodes]
            )

    def _node_row(self, project_id: str, node: NodeDefinition, now: str) -> tuple:
        return (
            node.id,
            project_id,
            node.kind.value,
            node.version,
            node.label,
            json.dumps(node.position.model_dump()),
            json.dumps(node.size.model_dump()),
            json.dumps([port.model_dump(mode="json", by_alias=True) for port in node.inputs]),
            json.dumps([port.model_dump(mode="json", by_alias=True) for port in node.outputs]),
            json.dumps(node.params),
            _dumps(node.metadata),
            _dumps(node.preview),
            node.status.value,
            node.progress,
            node.error,
            now,
            now,
        )

    def _edge_row(self, project_id: str, edge: EdgeDefinition, now: str) -> tuple:
        return (
            edge.id,
            project_id,
            edge.source.node_id,
            edge.source.port_id,
            edge.target.node_id,
            edge.target.port_id,
            edge.data_type,
            edge.status.value,
            _dumps(edge.metadata),
            now,
        )

    def _row_to_node(self, row: aiosqlite.Row) -> NodeDefinition:
        return NodeDefinition(
            id=row["id"],
            kind=row["kind"],
            version=row["version"],
            label=row["label"],
            position=json.loads(row["position_json"]),
            size=json.loads(row["size_json"]),
            inputs=json.loads(row["inputs_json"]),
            outputs=json.loads(row["outputs_json"]),
            params=json.loads(row["params_json"]),
            metadata=_loads(row["metadata_json"]),
            preview=_loads(row["preview_json"]),
            status=row["status"],
            progress=row["progress"],
            error=row["error"],
        )

    def _row_to_edge(self, row: aiosqlite.Row) -> EdgeDefinition:
        return EdgeDefinition(
            id=row["id"],
            source=EdgeEndpoint(node_id=row["source_node_id"], port_id=row["source_port_id"]),
            target=EdgeEndpoint(node_id=row["target_node_id"], port_id=row["target_port_id"]),
            data_type=row["data_type"],
            status=row["status"],
            metadata=_loads(row["metadata_json"]),
        )


graph_repository = GraphRepository()
