"""
Workflow Storage - SQLite persistence for workflows and executions

The default database is ``:memory:``, which lives as long as the storage
object. Pass a file path to keep workflows across restarts.
"""

import sqlite3
import json
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path
from contextlib import contextmanager

from pydantic import ValidationError

from .errors import (
    ConnectionNotFoundError,
    NodeNotFoundError,
    WorkflowError,
    WorkflowImportError,
    WorkflowNotFoundError,
)
from .graph import clone_node, get_node, has_node
from .models import (
    Connection,
    Position,
    Workflow,
    WorkflowCreate,
    WorkflowExecution,
    WorkflowNode,
    WorkflowUpdate,
    new_id,
    utcnow,
)
from .templates import instantiate_template

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def export_workflow_json(workflow: Workflow) -> str:
    """Serialize a workflow as pretty-printed JSON"""
    return json.dumps(workflow.model_dump(mode="json"), indent=2)


def parse_workflow_json(json_text: str) -> Workflow:
    """
    Parse an exported workflow document into a new, unsaved workflow.

    The result always gets a fresh id, version 1 and current timestamps.

    Raises:
        WorkflowImportError: the text is not JSON or not a workflow document
    """
    try:
        document = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise WorkflowImportError(f"Invalid workflow JSON: {e}")

    if not isinstance(document, dict):
        raise WorkflowImportError("Invalid workflow JSON: expected an object")

    missing = [key for key in ("name", "nodes", "connections") if key not in document]
    if missing:
        raise WorkflowImportError(f"Invalid workflow JSON: missing {', '.join(missing)}")

    now = utcnow()
    try:
        workflow = Workflow(
            id=new_id("wf"),
            name=document["name"],
            description=document.get("description"),
            version=1,
            nodes=document["nodes"],
            connections=document["connections"],
            createdAt=now,
            updatedAt=now,
        )
    except ValidationError as e:
        raise WorkflowImportError(f"Invalid workflow structure: {e}")

    return workflow


class WorkflowStorage:
    """SQLite storage for workflows and executions"""

    def __init__(self, db_path: str = MEMORY_DB):
        self.db_path = db_path
        self._shared_conn: Optional[sqlite3.Connection] = None
        if db_path == MEMORY_DB:
            self._shared_conn = sqlite3.connect(MEMORY_DB)
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with context manager"""
        conn = self._shared_conn or sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            if conn is not self._shared_conn:
                conn.close()

    def _init_database(self):
        """Initialize database tables"""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS workflows (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    nodes_json TEXT NOT NULL,
                    connections_json TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    version INTEGER DEFAULT 1
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS workflow_executions (
                    id TEXT PRIMARY KEY,
                    workflow_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    execution_json TEXT NOT NULL,
                    started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_executions_workflow
                ON workflow_executions(workflow_id)
            """)

            logger.info("Workflow database initialized")

    def close(self):
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None

    # ----- Workflow CRUD -----

    def create_workflow(self, workflow: WorkflowCreate) -> Workflow:
        """Create a new workflow"""
        now = utcnow()
        wf = Workflow(
            name=workflow.name,
            description=workflow.description,
            nodes=workflow.nodes,
            connections=workflow.connections,
            createdAt=now,
            updatedAt=now,
        )
        self._insert_workflow(wf)
        logger.info(f"Created workflow: {wf.id} - {wf.name}")
        return wf

    def save_workflow(self, workflow: Workflow) -> Workflow:
        """Insert or replace a complete workflow record"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO workflows
                (id, name, description, nodes_json, connections_json, created_at, updated_at, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, self._workflow_params(workflow))
        return workflow

    def _insert_workflow(self, workflow: Workflow):
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO workflows
                (id, name, description, nodes_json, connections_json, created_at, updated_at, version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, self._workflow_params(workflow))

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get a workflow by ID"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM workflows WHERE id = ?", (workflow_id,))
            row = cursor.fetchone()

            if not row:
                return None

            return self._row_to_workflow(row)

    def require_workflow(self, workflow_id: str) -> Workflow:
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def list_workflows(self, search: Optional[str] = None) -> List[Workflow]:
        """List workflows, most recently updated first"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            if search:
                cursor.execute("""
                    SELECT * FROM workflows
                    WHERE name LIKE ? OR description LIKE ?
                    ORDER BY updated_at DESC, rowid DESC
                """, (f"%{search}%", f"%{search}%"))
            else:
                cursor.execute("SELECT * FROM workflows ORDER BY updated_at DESC, rowid DESC")
            return [self._row_to_workflow(row) for row in cursor.fetchall()]

    def update_workflow(self, workflow_id: str, update: WorkflowUpdate) -> Optional[Workflow]:
        """
        Apply a partial update. The version is bumped unless the update
        carries one explicitly.
        """
        existing = self.get_workflow(workflow_id)
        if not existing:
            return None

        updated_data = existing.model_dump()
        for key, value in update.model_dump(exclude_unset=True).items():
            if value is not None:
                updated_data[key] = value

        if update.version is None:
            updated_data['version'] = existing.version + 1
        updated_data['updatedAt'] = utcnow()

        wf = Workflow(**updated_data)
        self.save_workflow(wf)

        logger.info(f"Updated workflow: {workflow_id} to version {wf.version}")
        return wf

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM workflows WHERE id = ?", (workflow_id,))

            if cursor.rowcount > 0:
                logger.info(f"Deleted workflow: {workflow_id}")
                return True
            return False

    # ----- Nodes -----

    def add_node(self, workflow_id: str, node: WorkflowNode) -> WorkflowNode:
        workflow = self.require_workflow(workflow_id)
        if has_node(workflow, node.id):
            raise WorkflowError(f"Node {node.id} already exists in workflow {workflow_id}")

        workflow.nodes.append(clone_node(node))
        self._touch(workflow)
        logger.debug(f"Added node {node.id} ({node.type}) to workflow {workflow_id}")
        return node

    def update_node(
        self,
        workflow_id: str,
        node_id: str,
        position: Optional[Position] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> WorkflowNode:
        """Move a node and/or merge keys into its data"""
        workflow = self.require_workflow(workflow_id)
        node = get_node(workflow, node_id)
        if node is None:
            raise NodeNotFoundError(node_id, workflow_id)

        if position is not None:
            node.position = Position(x=position.x, y=position.y)
        if data:
            merged = node.data.model_dump()
            merged.update(data)
            node.data = type(node.data)(**merged)

        self._touch(workflow)
        return clone_node(node)

    def delete_node(self, workflow_id: str, node_id: str) -> Workflow:
        """Remove a node and every connection attached to it"""
        workflow = self.require_workflow(workflow_id)
        if not has_node(workflow, node_id):
            raise NodeNotFoundError(node_id, workflow_id)

        workflow.nodes = [n for n in workflow.nodes if n.id != node_id]
        workflow.connections = [
            c for c in workflow.connections
            if c.sourceId != node_id and c.targetId != node_id
        ]
        self._touch(workflow)
        logger.debug(f"Deleted node {node_id} from workflow {workflow_id}")
        return workflow

    # ----- Connections -----

    def add_connection(
        self,
        workflow_id: str,
        source_id: str,
        target_id: str,
        label: Optional[str] = None,
    ) -> Connection:
        workflow = self.require_workflow(workflow_id)
        for node_id in (source_id, target_id):
            if not has_node(workflow, node_id):
                raise NodeNotFoundError(node_id, workflow_id)

        connection = Connection(sourceId=source_id, targetId=target_id, label=label)
        workflow.connections.append(connection)
        self._touch(workflow)
        return connection

    def delete_connection(self, workflow_id: str, connection_id: str) -> Workflow:
        workflow = self.require_workflow(workflow_id)
        remaining = [c for c in workflow.connections if c.id != connection_id]
        if len(remaining) == len(workflow.connections):
            raise ConnectionNotFoundError(connection_id)

        workflow.connections = remaining
        self._touch(workflow)
        return workflow

    def _touch(self, workflow: Workflow):
        workflow.updatedAt = utcnow()
        self.save_workflow(workflow)

    # ----- Export / Import / Templates -----

    def export_workflow(self, workflow_id: str) -> Optional[str]:
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            return None
        return export_workflow_json(workflow)

    def import_workflow(self, json_text: str) -> Workflow:
        """Store an exported document as a new workflow (nothing is stored on error)"""
        workflow = parse_workflow_json(json_text)
        self._insert_workflow(workflow)
        logger.info(f"Imported workflow: {workflow.id} - {workflow.name}")
        return workflow

    def create_from_template(self, template_id: str, name: Optional[str] = None) -> Workflow:
        workflow = instantiate_template(template_id, name=name)
        self._insert_workflow(workflow)
        logger.info(f"Created workflow {workflow.id} from template {template_id}")
        return workflow

    # ----- Executions -----

    def save_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Insert or update an execution record"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO workflow_executions (id, workflow_id, status, execution_json, started_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    execution_json = excluded.execution_json
            """, (
                execution.id,
                execution.workflowId,
                execution.status.value,
                execution.model_dump_json(),
                execution.startedAt.isoformat(),
            ))
        return execution

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get an execution by ID"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM workflow_executions WHERE id = ?", (execution_id,))
            row = cursor.fetchone()

            if not row:
                return None

            return self._row_to_execution(row)

    def list_executions(self, workflow_id: Optional[str] = None) -> List[WorkflowExecution]:
        """List executions, newest first"""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            if workflow_id:
                cursor.execute("""
                    SELECT * FROM workflow_executions
                    WHERE workflow_id = ?
                    ORDER BY started_at DESC, rowid DESC
                """, (workflow_id,))
            else:
                cursor.execute("SELECT * FROM workflow_executions ORDER BY started_at DESC, rowid DESC")
            return [self._row_to_execution(row) for row in cursor.fetchall()]

    def delete_execution(self, execution_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM workflow_executions WHERE id = ?", (execution_id,))
            return cursor.rowcount > 0

    # ----- Helpers -----

    def _workflow_params(self, wf: Workflow) -> tuple:
        return (
            wf.id,
            wf.name,
            wf.description,
            json.dumps([n.model_dump(mode="json") for n in wf.nodes]),
            json.dumps([c.model_dump(mode="json") for c in wf.connections]),
            wf.createdAt.isoformat(),
            wf.updatedAt.isoformat(),
            wf.version,
        )

    def _row_to_workflow(self, row: sqlite3.Row) -> Workflow:
        """Convert database row to Workflow model"""
        return Workflow(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            nodes=json.loads(row["nodes_json"]),
            connections=json.loads(row["connections_json"]),
            createdAt=row["created_at"],
            updatedAt=row["updated_at"],
            version=row["version"],
        )

    def _row_to_execution(self, row: sqlite3.Row) -> WorkflowExecution:
        """Convert database row to WorkflowExecution model"""
        return WorkflowExecution.model_validate_json(row["execution_json"])
