"""
Workflow Builder Module

Provides agent workflow editing utilities and step-by-step execution.
"""

from .models import (
    Workflow,
    WorkflowNode,
    NodeData,
    Position,
    Connection,
    WorkflowExecution,
    ExecutionLog,
    ExecutionStatus,
    LogType,
    NodeType,
    WorkflowVersion,
    VersionComparison,
)
from .errors import (
    WorkflowError,
    WorkflowNotFoundError,
    NodeNotFoundError,
    ConnectionNotFoundError,
    WorkflowImportError,
    TemplateError,
    ExpressionError,
    ExecutionStateError,
    ExecutionNotFoundError,
)
from .config import WorkflowSettings, get_settings
from .layout import AutoLayout, LayoutConfig
from .history import HistoryManager
from .clipboard import ClipboardManager
from .versions import VersionStore
from .session import SessionManager, WorkflowSession
from .storage import WorkflowStorage
from .engine import WorkflowEngine, WorkflowExecutor

__all__ = [
    'Workflow',
    'WorkflowNode',
    'NodeData',
    'Position',
    'Connection',
    'WorkflowExecution',
    'ExecutionLog',
    'ExecutionStatus',
    'LogType',
    'NodeType',
    'WorkflowVersion',
    'VersionComparison',
    'WorkflowError',
    'WorkflowNotFoundError',
    'NodeNotFoundError',
    'ConnectionNotFoundError',
    'WorkflowImportError',
    'TemplateError',
    'ExpressionError',
    'ExecutionStateError',
    'ExecutionNotFoundError',
    'WorkflowSettings',
    'get_settings',
    'AutoLayout',
    'LayoutConfig',
    'HistoryManager',
    'ClipboardManager',
    'VersionStore',
    'SessionManager',
    'WorkflowSession',
    'WorkflowStorage',
    'WorkflowEngine',
    'WorkflowExecutor',
]
