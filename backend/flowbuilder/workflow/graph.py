"""
Graph Helpers - Structural queries and value clones over the workflow model

Every helper is side-effect free. Connections are never assumed to point at
live nodes: endpoints are always re-resolved, and a connection with a missing
endpoint is treated as dead.
"""

import copy
from collections import Counter
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel

from .models import (
    Connection,
    NodeData,
    NodeType,
    Position,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
)

NodeSource = Union[Workflow, Iterable[WorkflowNode]]

_IMMUTABLE = (str, int, float, bool, bytes, type(None), datetime, date)


def _nodes_of(source: NodeSource) -> Iterable[WorkflowNode]:
    return source.nodes if isinstance(source, Workflow) else source


def get_node(source: NodeSource, node_id: Optional[str]) -> Optional[WorkflowNode]:
    """Find a node by id in a workflow or a node list"""
    if node_id is None:
        return None
    for node in _nodes_of(source):
        if node.id == node_id:
            return node
    return None


def has_node(source: NodeSource, node_id: str) -> bool:
    return get_node(source, node_id) is not None


def resolve_connection(
    workflow: Workflow,
    connection: Connection,
) -> Tuple[Optional[WorkflowNode], Optional[WorkflowNode]]:
    """Resolve both endpoints; either side is None when it does not exist"""
    return get_node(workflow, connection.sourceId), get_node(workflow, connection.targetId)


def is_live(workflow: Workflow, connection: Connection) -> bool:
    source, target = resolve_connection(workflow, connection)
    return source is not None and target is not None


def outgoing_connections(workflow: Workflow, node_id: str) -> List[Connection]:
    """Live connections leaving a node, in connection-array order"""
    return [
        c for c in workflow.connections
        if c.sourceId == node_id and is_live(workflow, c)
    ]


def incoming_connections(workflow: Workflow, node_id: str) -> List[Connection]:
    """Live connections entering a node, in connection-array order"""
    return [
        c for c in workflow.connections
        if c.targetId == node_id and is_live(workflow, c)
    ]


def find_start_node(workflow: Workflow) -> Optional[WorkflowNode]:
    for node in workflow.nodes:
        if node.type == NodeType.START.value:
            return node
    return None


def validate_workflow(workflow: Workflow) -> List[str]:
    """Validate the graph structure.

    Returns a list of error messages (empty = valid). The executor does not
    require a clean report; this is advisory for editors and importers.
    """
    errors: List[str] = []

    start_nodes = [n for n in workflow.nodes if n.type == NodeType.START.value]
    if not start_nodes:
        errors.append("Workflow must have exactly one start node.")
    elif len(start_nodes) > 1:
        errors.append("Workflow must have exactly one start node (found multiple).")

    if not any(n.type == NodeType.END.value for n in workflow.nodes):
        errors.append("Workflow must have at least one end node.")

    counts = Counter(n.id for n in workflow.nodes)
    for node_id, count in counts.items():
        if count > 1:
            errors.append(f"Duplicate node id: {node_id}")

    for conn in workflow.connections:
        source, target = resolve_connection(workflow, conn)
        if source is None:
            errors.append(f"Connection {conn.id} references unknown source node: {conn.sourceId}")
        if target is None:
            errors.append(f"Connection {conn.id} references unknown target node: {conn.targetId}")

    return errors


# ----- Clones -----


def clone_value(value: Any) -> Any:
    """Recursively clone plain values (dicts, lists, models, scalars)"""
    if isinstance(value, _IMMUTABLE):
        return value
    if isinstance(value, dict):
        return {k: clone_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [clone_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(clone_value(v) for v in value)
    if isinstance(value, set):
        return {clone_value(v) for v in value}
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)


def clone_node_data(data: NodeData) -> NodeData:
    fields = {name: clone_value(getattr(data, name)) for name in NodeData.model_fields}
    for key, value in (data.model_extra or {}).items():
        fields[key] = clone_value(value)
    return NodeData(**fields)


def clone_node(node: WorkflowNode) -> WorkflowNode:
    return WorkflowNode(
        id=node.id,
        type=node.type,
        position=Position(x=node.position.x, y=node.position.y),
        data=clone_node_data(node.data),
    )


def clone_nodes(nodes: Iterable[WorkflowNode]) -> List[WorkflowNode]:
    return [clone_node(n) for n in nodes]


def clone_connection(connection: Connection) -> Connection:
    return Connection(
        id=connection.id,
        sourceId=connection.sourceId,
        targetId=connection.targetId,
        label=connection.label,
    )


def clone_connections(connections: Iterable[Connection]) -> List[Connection]:
    return [clone_connection(c) for c in connections]


def clone_workflow(workflow: Workflow) -> Workflow:
    return Workflow(
        id=workflow.id,
        name=workflow.name,
        description=workflow.description,
        version=workflow.version,
        nodes=clone_nodes(workflow.nodes),
        connections=clone_connections(workflow.connections),
        createdAt=workflow.createdAt,
        updatedAt=workflow.updatedAt,
    )


def clone_execution(execution: WorkflowExecution) -> WorkflowExecution:
    """Snapshot handed to update sinks; later mutation of the run never leaks into it"""
    return execution.model_copy(deep=True)
