"""
Pytest configuration and fixtures for the workflow builder tests.

Sets up the Python path to properly import backend modules and provides
small builders for workflows and capability doubles.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))


def check_dependencies():
    """Check if required dependencies are available."""
    missing = []
    try:
        import pydantic
    except ImportError:
        missing.append("pydantic")
    try:
        import httpx
    except ImportError:
        missing.append("httpx")
    return missing


# Check dependencies at module load time
_missing_deps = check_dependencies()


def pytest_collection_modifyitems(config, items):
    """Skip tests that require dependencies if they're missing."""
    if _missing_deps:
        skip_marker = pytest.mark.skip(
            reason=f"Missing dependencies: {', '.join(_missing_deps)}. "
            f"Install the test extra: pip install -e '.[test]'"
        )
        for item in items:
            item.add_marker(skip_marker)


@pytest.fixture
def settings():
    """Default settings, independent of the process environment."""
    from flowbuilder.workflow.config import WorkflowSettings
    return WorkflowSettings()


@pytest.fixture
def make_node():
    """Build a WorkflowNode from (id, type, data)."""
    from flowbuilder.workflow.models import NodeData, Position, WorkflowNode

    def _make(node_id, node_type, x=0, y=0, **data):
        data.setdefault("label", node_id)
        return WorkflowNode(
            id=node_id,
            type=node_type,
            position=Position(x=x, y=y),
            data=NodeData(**data),
        )

    return _make


@pytest.fixture
def make_workflow(make_node):
    """Build a Workflow from node tuples and (source, target[, label]) edges."""
    from flowbuilder.workflow.models import Connection, Workflow

    def _make(nodes, edges, name="Test Workflow"):
        built = []
        for entry in nodes:
            node_id, node_type = entry[0], entry[1]
            data = entry[2] if len(entry) > 2 else {}
            built.append(make_node(node_id, node_type, **data))
        connections = []
        for index, edge in enumerate(edges):
            connections.append(Connection(
                id=f"conn-{index}",
                sourceId=edge[0],
                targetId=edge[1],
                label=edge[2] if len(edge) > 2 else None,
            ))
        return Workflow(id="wf-test", name=name, nodes=built, connections=connections)

    return _make


@pytest.fixture
def text_generator():
    """Text generator double that echoes a fixed reply."""
    generator = Mock()
    generator.generate = AsyncMock(return_value="Generated reply")
    return generator


@pytest.fixture
def tool_client():
    """Tool client double returning a fixed result."""
    client = Mock()
    client.call_tool = AsyncMock(return_value={"rows": [1, 2, 3]})
    return client
