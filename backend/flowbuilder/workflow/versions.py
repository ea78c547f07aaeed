"""
Workflow Versions - Named snapshots, tagging, and structural diffs
"""

import logging
from typing import Dict, List, Optional

from .models import (
    DiffBucket,
    NodeChange,
    VersionComparison,
    Workflow,
    WorkflowVersion,
    utcnow,
)
from .graph import clone_connections, clone_nodes, clone_workflow

logger = logging.getLogger(__name__)


class VersionStore:
    """
    In-memory version lists keyed by workflow id.

    ``create_version`` snapshots the workflow under its *current* ``version``
    number and never bumps it; callers bump ``workflow.version`` themselves
    between snapshots. Two snapshots taken without a bump share a number, and
    lookups by number return the one appended first.
    """

    def __init__(self):
        self._versions: Dict[str, List[WorkflowVersion]] = {}

    def create_version(self, workflow: Workflow, description: Optional[str] = None) -> WorkflowVersion:
        version = WorkflowVersion(
            workflowId=workflow.id,
            version=workflow.version,
            name=f"v{workflow.version}",
            description=description,
            nodes=clone_nodes(workflow.nodes),
            connections=clone_connections(workflow.connections),
            createdAt=utcnow(),
        )
        self._versions.setdefault(workflow.id, []).append(version)
        logger.info(f"Created version {version.name} for workflow {workflow.id}")
        return version.model_copy(deep=True)

    def _find(self, workflow_id: str, version_number: int) -> Optional[WorkflowVersion]:
        for version in self._versions.get(workflow_id, []):
            if version.version == version_number:
                return version
        return None

    def get_versions(self, workflow_id: str) -> List[WorkflowVersion]:
        """All versions, newest number first"""
        versions = self._versions.get(workflow_id, [])
        return [
            v.model_copy(deep=True)
            for v in sorted(versions, key=lambda v: v.version, reverse=True)
        ]

    def get_version(self, workflow_id: str, version_number: int) -> Optional[WorkflowVersion]:
        version = self._find(workflow_id, version_number)
        return version.model_copy(deep=True) if version is not None else None

    def compare_versions(
        self,
        workflow_id: str,
        version1: int,
        version2: int,
    ) -> Optional[VersionComparison]:
        """Diff v1 -> v2. Connections only appear in added/removed, never in modified."""
        v1 = self._find(workflow_id, version1)
        v2 = self._find(workflow_id, version2)
        if v1 is None or v2 is None:
            return None

        v1_nodes = {n.id: n for n in v1.nodes}
        v2_nodes = {n.id: n for n in v2.nodes}
        v1_conns = {c.id for c in v1.connections}
        v2_conns = {c.id for c in v2.connections}

        added = DiffBucket(
            nodes=clone_nodes(n for n in v2.nodes if n.id not in v1_nodes),
            connections=clone_connections(c for c in v2.connections if c.id not in v1_conns),
        )
        removed = DiffBucket(
            nodes=clone_nodes(n for n in v1.nodes if n.id not in v2_nodes),
            connections=clone_connections(c for c in v1.connections if c.id not in v2_conns),
        )

        modified = []
        for node in v2.nodes:
            old = v1_nodes.get(node.id)
            if old is not None and old.model_dump() != node.model_dump():
                modified.append(NodeChange(old=old.model_copy(deep=True), new=node.model_copy(deep=True)))

        return VersionComparison(added=added, removed=removed, modified=modified)

    def tag_version(self, workflow_id: str, version_number: int, tag: str) -> bool:
        version = self._find(workflow_id, version_number)
        if version is None:
            return False
        if tag not in version.tags:
            version.tags.append(tag)
        return True

    def untag_version(self, workflow_id: str, version_number: int, tag: str) -> bool:
        version = self._find(workflow_id, version_number)
        if version is None:
            return False
        if tag in version.tags:
            version.tags.remove(tag)
        return True

    def delete_version(self, workflow_id: str, version_number: int) -> bool:
        """Remove every entry with that number"""
        versions = self._versions.get(workflow_id, [])
        remaining = [v for v in versions if v.version != version_number]
        if len(remaining) == len(versions):
            return False
        self._versions[workflow_id] = remaining
        logger.info(f"Deleted version v{version_number} of workflow {workflow_id}")
        return True

    def restore_version(self, workflow: Workflow, version_number: int) -> Optional[Workflow]:
        """Copy of ``workflow`` carrying the snapshot's nodes and connections"""
        version = self._find(workflow.id, version_number)
        if version is None:
            return None
        restored = clone_workflow(workflow)
        restored.nodes = clone_nodes(version.nodes)
        restored.connections = clone_connections(version.connections)
        restored.updatedAt = utcnow()
        return restored
