"""
Workflow History - Undo/redo stacks over full workflow snapshots
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from .models import Workflow
from .graph import clone_workflow

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50


@dataclass
class HistoryState:
    workflow: Workflow
    timestamp: float


class HistoryManager:
    """
    Undo/redo for one workflow.

    Callers must call ``save_state`` with the workflow as it is *before*
    applying an edit. The undo stack is bounded and evicts its oldest entry;
    the redo stack is cleared by every new save. Every entry is an independent
    copy, and every returned workflow is a fresh copy.
    """

    def __init__(self, max_history_size: int = DEFAULT_MAX_HISTORY):
        self.max_history_size = max_history_size
        self._undo: Deque[HistoryState] = deque(maxlen=max_history_size)
        self._redo: List[HistoryState] = []

    def save_state(self, workflow: Workflow) -> None:
        self._undo.append(self._snapshot(workflow))
        self._redo.clear()

    def can_undo(self) -> bool:
        return len(self._undo) > 0

    def can_redo(self) -> bool:
        return len(self._redo) > 0

    def undo(self, current_workflow: Workflow) -> Optional[Workflow]:
        """Return the previous workflow, or None when there is nothing to undo"""
        if not self.can_undo():
            return None
        self._redo.append(self._snapshot(current_workflow))
        previous = self._undo.pop()
        return clone_workflow(previous.workflow)

    def redo(self, current_workflow: Workflow) -> Optional[Workflow]:
        """Return the next workflow, or None when there is nothing to redo"""
        if not self.can_redo():
            return None
        self._undo.append(self._snapshot(current_workflow))
        following = self._redo.pop()
        return clone_workflow(following.workflow)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def status(self) -> Dict[str, object]:
        return {
            "canUndo": self.can_undo(),
            "canRedo": self.can_redo(),
            "undoCount": len(self._undo),
            "redoCount": len(self._redo),
        }

    @staticmethod
    def _snapshot(workflow: Workflow) -> HistoryState:
        return HistoryState(workflow=clone_workflow(workflow), timestamp=time.time())
