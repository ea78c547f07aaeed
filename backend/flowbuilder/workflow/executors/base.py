"""
Base Node Executor - Abstract base class for all node executors
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional
from dataclasses import dataclass, field
import logging
import time

from ..config import WorkflowSettings
from ..models import (
    ExecutionLog,
    LogType,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
)

logger = logging.getLogger(__name__)


@dataclass
class NodeExecutionResult:
    """Outcome of one node handler"""
    success: bool
    output: Any = None
    error: Optional[str] = None
    logs: List[ExecutionLog] = field(default_factory=list)
    next_node_id: Optional[str] = None
    awaiting_approval: bool = False


@dataclass
class ExecutionContext:
    """Context passed to node executors during execution"""

    workflow: Workflow
    execution: WorkflowExecution
    settings: WorkflowSettings

    # Capabilities (populated by the executor's owner)
    text_generator: Any = None
    tool_client: Any = None
    document_searcher: Any = None

    approval_mode: str = "auto"
    last_output: Any = None
    notify: Optional[Callable[[], Awaitable[None]]] = None

    @property
    def execution_id(self) -> str:
        return self.execution.id

    @property
    def input(self) -> str:
        return self.execution.context.input

    @property
    def variables(self) -> Dict[str, Any]:
        return self.execution.context.variables

    async def push_update(self) -> None:
        if self.notify is not None:
            await self.notify()


class NodeExecutor(ABC):
    """
    Abstract base class for node executors.

    One instance handles one visit of one node. Subclasses implement
    ``execute`` and either return ``self.succeed(...)`` / ``self.fail(...)``
    or raise; ``run`` turns raised exceptions into a failed result carrying
    an error log, so a handler can never crash the run.
    """

    # Node metadata (override in subclasses)
    node_type: str = "base"
    display_name: str = "Base Node"
    category: str = "general"
    description: str = "Base node executor"

    def __init__(self, node: WorkflowNode):
        self.node = node
        self.data = node.data
        self.logs: List[ExecutionLog] = []
        self._started = time.monotonic()
        self._execution_id: Optional[str] = None

    async def run(self, context: ExecutionContext) -> NodeExecutionResult:
        self._execution_id = context.execution_id
        self._started = time.monotonic()
        try:
            return await self.execute(context)
        except Exception as e:
            message = str(e) or f"{type(e).__name__} in {self.node_type} node"
            logger.error(f"[{context.execution_id}] Node execution failed: {self.node.id} - {message}")
            return self.fail(message)

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        """
        Execute the node logic.

        Args:
            context: Execution context with the live run and capabilities

        Returns:
            NodeExecutionResult with logs, optional output and branch choice
        """
        raise NotImplementedError

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def log(
        self,
        log_type: LogType,
        message: str,
        data: Any = None,
        timed: bool = False,
    ) -> ExecutionLog:
        """Add a log entry for this node and mirror it to the module logger"""
        entry = ExecutionLog(
            nodeId=self.node.id,
            type=log_type,
            message=message,
            data=data,
            duration=self.elapsed_ms() if timed else None,
        )
        self.logs.append(entry)
        level = logging.ERROR if log_type == LogType.ERROR else logging.INFO
        logger.log(level, f"[{self._execution_id}] {self.node.id}: {message}")
        return entry

    def succeed(self, output: Any = None, next_node_id: Optional[str] = None) -> NodeExecutionResult:
        return NodeExecutionResult(
            success=True,
            output=output,
            logs=self.logs,
            next_node_id=next_node_id,
        )

    def fail(self, error: str, data: Any = None) -> NodeExecutionResult:
        self.log(LogType.ERROR, error, data=data, timed=True)
        return NodeExecutionResult(success=False, error=error, logs=self.logs)


class SkipExecutor(NodeExecutor):
    """Fallback for node types without a handler"""

    node_type = "skip"
    display_name = "Skip"
    description = "Logs and passes over nodes that have no behaviour"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        self.log(LogType.INFO, f"Skipping node type: {self.node.type}")
        return self.succeed()
