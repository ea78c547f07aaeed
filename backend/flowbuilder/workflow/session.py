"""
Workflow Sessions - Per-workflow editing state with an explicit lifecycle

Each open workflow owns one history and one clipboard. Sessions are created
when a workflow is opened for editing and dropped when it is closed, so the
registry only grows with the number of workflows actually open.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .config import WorkflowSettings, get_settings
from .history import HistoryManager
from .clipboard import ClipboardManager
from .models import utcnow

logger = logging.getLogger(__name__)


@dataclass
class WorkflowSession:
    workflow_id: str
    history: HistoryManager
    clipboard: ClipboardManager
    opened_at: datetime = field(default_factory=utcnow)


class SessionManager:
    """Registry of open workflow sessions keyed by workflow id"""

    def __init__(self, settings: Optional[WorkflowSettings] = None):
        self.settings = settings or get_settings()
        self._sessions: Dict[str, WorkflowSession] = {}

    def open(self, workflow_id: str) -> WorkflowSession:
        """Return the workflow's session, creating it on first open"""
        session = self._sessions.get(workflow_id)
        if session is None:
            session = WorkflowSession(
                workflow_id=workflow_id,
                history=HistoryManager(max_history_size=self.settings.historySize),
                clipboard=ClipboardManager(offset=tuple(self.settings.pasteOffset)),
            )
            self._sessions[workflow_id] = session
            logger.info(f"Opened editing session for workflow {workflow_id}")
        return session

    def get(self, workflow_id: str) -> Optional[WorkflowSession]:
        return self._sessions.get(workflow_id)

    def close(self, workflow_id: str) -> bool:
        session = self._sessions.pop(workflow_id, None)
        if session is None:
            return False
        session.history.clear()
        session.clipboard.clear()
        logger.info(f"Closed editing session for workflow {workflow_id}")
        return True

    def close_all(self) -> None:
        for workflow_id in list(self._sessions):
            self.close(workflow_id)

    def open_workflow_ids(self) -> List[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._sessions
