"""
Auto Layout - Hierarchical, collision-free placement of workflow nodes

Nodes are assigned to levels by a multi-source breadth-first walk, then placed
on a fixed grid: one row (or column) per level, nodes side by side within it.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from pydantic import BaseModel

from .models import Connection, NodeType, Position, WorkflowNode
from .graph import clone_node

logger = logging.getLogger(__name__)


class LayoutConfig(BaseModel):
    """Spacing constants in canvas units"""
    nodeWidth: float = 280
    nodeHeight: float = 80
    horizontalSpacing: float = 200
    verticalSpacing: float = 120
    startX: float = 100
    startY: float = 100
    direction: str = "TB"  # TB: levels stack downwards, LR: levels run rightwards


class AutoLayout:
    """
    Layered DAG layout.

    1. Build a deduplicated child adjacency map.
    2. Roots are start nodes plus any node without an incoming connection.
    3. BFS from all roots at once; a node takes the level of its first visit.
    4. Unvisited nodes go one level past the deepest level, in array order.
    5. Positions come from the level index and the index within the level.
    """

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def apply_layout(
        self,
        nodes: List[WorkflowNode],
        connections: List[Connection],
    ) -> List[WorkflowNode]:
        """Return the full node set with new positions; other fields untouched"""
        if not nodes:
            return nodes

        children = self._build_adjacency(nodes, connections)
        levels = self._assign_levels(nodes, connections, children)
        positions = self._calculate_positions(levels)

        result = []
        for node in nodes:
            placed = clone_node(node)
            if node.id in positions:
                placed.position = positions[node.id]
            result.append(placed)

        logger.debug(f"Auto layout placed {len(result)} nodes on {len(levels)} levels")
        return result

    def _build_adjacency(
        self,
        nodes: List[WorkflowNode],
        connections: List[Connection],
    ) -> Dict[str, List[str]]:
        children: Dict[str, List[str]] = {node.id: [] for node in nodes}
        for conn in connections:
            targets = children.get(conn.sourceId)
            if targets is None or conn.targetId not in children:
                continue
            if conn.targetId not in targets:
                targets.append(conn.targetId)
        return children

    def _assign_levels(
        self,
        nodes: List[WorkflowNode],
        connections: List[Connection],
        children: Dict[str, List[str]],
    ) -> List[List[str]]:
        node_ids = {node.id for node in nodes}
        has_incoming = {
            conn.targetId for conn in connections
            if conn.sourceId in node_ids and conn.targetId in node_ids
        }

        roots = [
            node.id for node in nodes
            if node.type == NodeType.START.value or node.id not in has_incoming
        ]

        levels: List[List[str]] = []
        visited = set()
        queue: Deque[Tuple[str, int]] = deque((node_id, 0) for node_id in roots)

        while queue:
            node_id, level = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)

            while len(levels) <= level:
                levels.append([])
            levels[level].append(node_id)

            for child_id in children[node_id]:
                if child_id not in visited:
                    queue.append((child_id, level + 1))

        orphans = []
        for node in nodes:
            if node.id not in visited:
                visited.add(node.id)
                orphans.append(node.id)
        if orphans:
            levels.append(orphans)

        return levels

    def _calculate_positions(self, levels: List[List[str]]) -> Dict[str, Position]:
        cfg = self.config
        across = cfg.nodeWidth + cfg.horizontalSpacing
        down = cfg.nodeHeight + cfg.verticalSpacing

        positions: Dict[str, Position] = {}
        for level_index, level in enumerate(levels):
            for node_index, node_id in enumerate(level):
                if cfg.direction == "LR":
                    x = cfg.startX + level_index * across
                    y = cfg.startY + node_index * down
                else:
                    x = cfg.startX + node_index * across
                    y = cfg.startY + level_index * down
                positions[node_id] = Position(x=x, y=y)
        return positions

    def center_offset(
        self,
        nodes: List[WorkflowNode],
        viewport_width: float,
        viewport_height: float,
    ) -> Position:
        """Translation that centres the drawing inside a viewport"""
        if not nodes:
            return Position(x=0, y=0)

        cfg = self.config
        min_x = min(n.position.x for n in nodes)
        max_x = max(n.position.x + cfg.nodeWidth for n in nodes)
        min_y = min(n.position.y for n in nodes)
        max_y = max(n.position.y + cfg.nodeHeight for n in nodes)

        return Position(
            x=(viewport_width - (max_x - min_x)) / 2 - min_x,
            y=(viewport_height - (max_y - min_y)) / 2 - min_y,
        )


def apply_layout(
    nodes: List[WorkflowNode],
    connections: List[Connection],
    config: Optional[LayoutConfig] = None,
) -> List[WorkflowNode]:
    return AutoLayout(config).apply_layout(nodes, connections)
