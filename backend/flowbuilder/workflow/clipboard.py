"""
Workflow Clipboard - Single-slot copy/paste of nodes
"""

import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import Position, WorkflowNode, new_id
from .graph import clone_nodes

DEFAULT_PASTE_OFFSET = (50.0, 50.0)


@dataclass
class ClipboardData:
    nodes: List[WorkflowNode]
    timestamp: float


class ClipboardManager:
    """Holds the last copied node set for one workflow.

    ``paste`` never mutates the stored nodes, so repeated pastes land at the
    same offset from the original copy rather than drifting.
    """

    def __init__(self, offset: Tuple[float, float] = DEFAULT_PASTE_OFFSET):
        self.offset = offset
        self._clipboard: Optional[ClipboardData] = None

    def copy(self, nodes: List[WorkflowNode]) -> None:
        self._clipboard = ClipboardData(nodes=clone_nodes(nodes), timestamp=time.time())

    def paste(self) -> Optional[List[WorkflowNode]]:
        if self._clipboard is None:
            return None

        dx, dy = self.offset
        pasted = clone_nodes(self._clipboard.nodes)
        for node in pasted:
            node.id = new_id("node")
            node.position = Position(x=node.position.x + dx, y=node.position.y + dy)
        return pasted

    def has_clipboard(self) -> bool:
        return self._clipboard is not None

    def clear(self) -> None:
        self._clipboard = None
