"""
Workflow Engine - Executes workflows by walking the node graph
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from .config import WorkflowSettings, get_settings
from .errors import ExecutionNotFoundError, ExecutionStateError
from .graph import (
    clone_execution,
    clone_workflow,
    find_start_node,
    get_node,
    outgoing_connections,
)
from .models import (
    ChatMessage,
    ExecutionContextData,
    ExecutionLog,
    ExecutionStatus,
    LogType,
    NodeType,
    NodeTypeDefinition,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
    utcnow,
)
from .executors import NODE_EXECUTORS, get_executor
from .executors.base import ExecutionContext, NodeExecutionResult, NodeExecutor, SkipExecutor

logger = logging.getLogger(__name__)

SYSTEM_NODE_ID = "system"

UpdateSink = Callable[[WorkflowExecution], Any]


class WorkflowExecutor:
    """
    Runs one workflow once.

    The executor walks the graph one node at a time starting from the start
    node. At each node it:
    1. Records ``currentNodeId`` and notifies the update sink
    2. Dispatches to the node type's executor
    3. Appends the executor's logs and stores its output by node id
    4. Follows the executor's branch choice, else the first live outgoing
       connection, and notifies again

    Every run ends ``completed`` or ``failed`` (or ``paused`` while waiting
    on a manual approval). ``execute`` never raises for problems inside the
    run; they are recorded on the execution instead.
    """

    def __init__(
        self,
        workflow: Workflow,
        input: str,
        on_update: Optional[UpdateSink] = None,
        *,
        text_generator: Any = None,
        tool_client: Any = None,
        document_searcher: Any = None,
        settings: Optional[WorkflowSettings] = None,
        approval_mode: Optional[str] = None,
        max_steps: Optional[int] = None,
    ):
        self.settings = settings or get_settings()
        self.workflow = clone_workflow(workflow)
        self.on_update = on_update
        self.approval_mode = approval_mode or self.settings.approvalMode
        if self.approval_mode not in ("auto", "manual"):
            raise ValueError(f"Unknown approval mode: {self.approval_mode}")
        # an acyclic run visits each node at most once
        if max_steps is None:
            max_steps = max(self.settings.maxSteps, len(self.workflow.nodes))
        self.max_steps = max_steps

        self.execution = WorkflowExecution(
            workflowId=workflow.id,
            status=ExecutionStatus.RUNNING,
            context=ExecutionContextData(
                input=input,
                messages=[ChatMessage(role="user", content=input)],
            ),
        )
        self.context = ExecutionContext(
            workflow=self.workflow,
            execution=self.execution,
            settings=self.settings,
            text_generator=text_generator,
            tool_client=tool_client,
            document_searcher=document_searcher,
            approval_mode=self.approval_mode,
            notify=self._notify,
        )

        self._started = False
        self._cancelled = False
        self._steps = 0

    @property
    def execution_id(self) -> str:
        return self.execution.id

    def get_execution(self) -> WorkflowExecution:
        """Snapshot of the current execution record"""
        return clone_execution(self.execution)

    async def execute(self) -> WorkflowExecution:
        """
        Run the workflow from its start node.

        Returns:
            Snapshot of the execution once it is completed, failed, or
            suspended for manual approval
        """
        if self._started:
            raise ExecutionStateError(f"Execution {self.execution_id} has already been started")
        self._started = True

        logger.info(f"Starting workflow execution: {self.execution_id} (workflow {self.workflow.id})")

        start = find_start_node(self.workflow)
        if start is None:
            self._append_log(SYSTEM_NODE_ID, LogType.ERROR, "No start node found in workflow")
            self._mark_failed("No start node found in workflow")
            await self._notify()
            return self.get_execution()

        return await self._run_from(start.id)

    async def resume(self, approved: bool, comment: Optional[str] = None) -> WorkflowExecution:
        """Continue a run suspended at a user-approval node"""
        node_id = self.execution.pendingApprovalNodeId
        if self.execution.status != ExecutionStatus.PAUSED or node_id is None:
            raise ExecutionStateError(
                f"Execution {self.execution_id} is not awaiting approval (status: {self.execution.status.value})"
            )

        self.execution.pendingApprovalNodeId = None
        self.execution.status = ExecutionStatus.RUNNING
        data = {"approved": approved, "comment": comment}

        if not approved:
            message = "User approval rejected"
            if comment:
                message = f"{message}: {comment}"
            self._append_log(node_id, LogType.ERROR, message, data=data)
            self._mark_failed(message)
            await self._notify()
            return self.get_execution()

        self._append_log(node_id, LogType.SUCCESS, "User approval received", data=data)
        logger.info(f"Resuming execution {self.execution_id} after approval at {node_id}")

        next_node_id = self._default_next_node_id(node_id)
        if next_node_id is None:
            await self._fail_exhausted(node_id)
            return self.get_execution()
        return await self._run_from(next_node_id)

    async def cancel(self) -> bool:
        """
        Request cancellation. A running execution stops before its next node;
        a suspended one fails immediately. Returns False once terminal.
        """
        if self.execution.is_terminal:
            return False

        logger.info(f"Cancellation requested for: {self.execution_id}")
        if self.execution.status == ExecutionStatus.PAUSED and self.execution.pendingApprovalNodeId:
            self.execution.pendingApprovalNodeId = None
            self._append_log(SYSTEM_NODE_ID, LogType.ERROR, "Execution cancelled")
            self._mark_failed("Execution cancelled")
            await self._notify()
            return True

        self._cancelled = True
        return True

    async def _run_from(self, node_id: str) -> WorkflowExecution:
        try:
            await self._walk(node_id)
        except Exception as e:
            logger.error(f"Workflow execution failed: {self.execution_id} - {e}")
            self._append_log(SYSTEM_NODE_ID, LogType.ERROR, f"Execution error: {e}")
            self._mark_failed(str(e) or type(e).__name__)
            await self._notify()
        return self.get_execution()

    async def _walk(self, node_id: str) -> None:
        current_id: Optional[str] = node_id

        while True:
            if self._cancelled:
                self._append_log(SYSTEM_NODE_ID, LogType.ERROR, "Execution cancelled")
                self._mark_failed("Execution cancelled")
                await self._notify()
                return

            node = get_node(self.workflow, current_id)
            if node is None:
                await self._fail_exhausted(self.execution.currentNodeId, missing_id=current_id)
                return

            self._steps += 1
            if self._steps > self.max_steps:
                message = f"Execution exceeded the maximum of {self.max_steps} steps"
                self._append_log(node.id, LogType.ERROR, message)
                self._mark_failed(message)
                await self._notify()
                return

            self.execution.currentNodeId = node.id
            await self._notify()

            if node.type == NodeType.END.value:
                await self._complete(node)
                return

            if node.type == NodeType.START.value:
                self._append_log(node.id, LogType.INFO, "Workflow started")
                next_node_id = self._default_next_node_id(node.id)
            else:
                result = await self._execute_node(node)
                self.execution.logs.extend(result.logs)

                if not result.success:
                    error = result.error or f"Node {node.id} failed"
                    if not any(log.type == LogType.ERROR for log in result.logs):
                        self._append_log(node.id, LogType.ERROR, error)
                    self._mark_failed(error)
                    await self._notify()
                    return

                if result.output is not None:
                    self.execution.context.variables[node.id] = result.output
                    self.context.last_output = result.output

                if result.awaiting_approval:
                    self.execution.status = ExecutionStatus.PAUSED
                    self.execution.pendingApprovalNodeId = node.id
                    logger.info(f"Execution {self.execution_id} waiting for approval at {node.id}")
                    await self._notify()
                    return

                next_node_id = result.next_node_id or self._default_next_node_id(node.id)

            await self._notify()

            if next_node_id is None:
                await self._fail_exhausted(node.id)
                return
            current_id = next_node_id

    async def _execute_node(self, node: WorkflowNode) -> NodeExecutionResult:
        """Execute a single node"""
        executor_class = get_executor(node.type) or SkipExecutor
        executor: NodeExecutor = executor_class(node)
        return await executor.run(self.context)

    def _default_next_node_id(self, node_id: str) -> Optional[str]:
        outgoing = outgoing_connections(self.workflow, node_id)
        return outgoing[0].targetId if outgoing else None

    async def _complete(self, end_node: WorkflowNode) -> None:
        self.execution.status = ExecutionStatus.COMPLETED
        self.execution.completedAt = utcnow()
        self.execution.finalOutput = self.context.last_output
        self._append_log(end_node.id, LogType.SUCCESS, "Workflow completed")
        logger.info(f"Workflow execution completed: {self.execution_id}")
        await self._notify()

    async def _fail_exhausted(self, node_id: Optional[str], missing_id: Optional[str] = None) -> None:
        if missing_id is not None:
            message = f"Workflow graph exhausted: next node {missing_id} does not exist"
        else:
            message = f"Workflow graph exhausted at node {node_id} before reaching an end node"
        self._append_log(node_id or SYSTEM_NODE_ID, LogType.ERROR, message)
        self._mark_failed(message)
        await self._notify()

    def _mark_failed(self, error: str) -> None:
        self.execution.status = ExecutionStatus.FAILED
        self.execution.error = error
        self.execution.completedAt = utcnow()
        logger.error(f"Workflow execution failed: {self.execution_id} - {error}")

    def _append_log(self, node_id: str, log_type: LogType, message: str, data: Any = None) -> None:
        self.execution.logs.append(ExecutionLog(nodeId=node_id, type=log_type, message=message, data=data))

    async def _notify(self) -> None:
        """Hand a snapshot to the update sink; sink errors never affect the run"""
        if self.on_update is None:
            return
        try:
            result = self.on_update(clone_execution(self.execution))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Execution update callback error: {e}")


class WorkflowEngine:
    """
    Executes workflows and keeps track of their runs.

    The engine:
    1. Creates a ``WorkflowExecutor`` per run with the configured capabilities
    2. Persists every execution snapshot to storage
    3. Keeps suspended runs so they can be resumed or cancelled later
    """

    def __init__(
        self,
        storage,
        text_generator: Any = None,
        tool_client: Any = None,
        document_searcher: Any = None,
        settings: Optional[WorkflowSettings] = None,
    ):
        self.storage = storage
        self.text_generator = text_generator
        self.tool_client = tool_client
        self.document_searcher = document_searcher
        self.settings = settings or get_settings()
        self.running_executions: Dict[str, WorkflowExecutor] = {}
        self.suspended_executions: Dict[str, WorkflowExecutor] = {}
        self.progress_callbacks: Dict[str, UpdateSink] = {}

    async def execute_workflow(
        self,
        workflow: Workflow,
        input: str,
        on_update: Optional[UpdateSink] = None,
        approval_mode: Optional[str] = None,
    ) -> WorkflowExecution:
        """
        Execute a workflow from start to finish (or to a manual approval).

        Args:
            workflow: The workflow to execute
            input: Text input that seeds the conversation
            on_update: Callback receiving execution snapshots
            approval_mode: "auto" or "manual"; defaults to settings

        Returns:
            WorkflowExecution with final status and logs
        """
        executor = WorkflowExecutor(
            workflow,
            input,
            text_generator=self.text_generator,
            tool_client=self.tool_client,
            document_searcher=self.document_searcher,
            settings=self.settings,
            approval_mode=approval_mode,
        )
        execution_id = executor.execution_id
        executor.on_update = self._make_sink(execution_id)
        if on_update:
            self.progress_callbacks[execution_id] = on_update

        self.running_executions[execution_id] = executor
        try:
            execution = await executor.execute()
        finally:
            self.running_executions.pop(execution_id, None)

        return self._settle(executor, execution)

    async def resume_execution(
        self,
        execution_id: str,
        approved: bool,
        comment: Optional[str] = None,
    ) -> WorkflowExecution:
        """Resume a run suspended at a user-approval node"""
        executor = self.suspended_executions.pop(execution_id, None)
        if executor is None:
            raise ExecutionNotFoundError(execution_id)

        self.running_executions[execution_id] = executor
        try:
            execution = await executor.resume(approved, comment)
        finally:
            self.running_executions.pop(execution_id, None)

        return self._settle(executor, execution)

    async def cancel_execution(self, execution_id: str) -> bool:
        """Cancel a running or suspended execution"""
        executor = self.running_executions.get(execution_id)
        if executor is not None:
            return await executor.cancel()

        executor = self.suspended_executions.pop(execution_id, None)
        if executor is not None:
            cancelled = await executor.cancel()
            self._settle(executor, executor.get_execution())
            return cancelled
        return False

    def get_suspended_execution_ids(self) -> List[str]:
        return list(self.suspended_executions)

    def _settle(self, executor: WorkflowExecutor, execution: WorkflowExecution) -> WorkflowExecution:
        if execution.status == ExecutionStatus.PAUSED and execution.pendingApprovalNodeId:
            self.suspended_executions[execution.id] = executor
        else:
            self.progress_callbacks.pop(execution.id, None)
        self.storage.save_execution(execution)
        return execution

    def _make_sink(self, execution_id: str) -> UpdateSink:
        async def sink(snapshot: WorkflowExecution) -> None:
            self.storage.save_execution(snapshot)
            await self._notify_progress(execution_id, snapshot)
        return sink

    async def _notify_progress(self, execution_id: str, snapshot: WorkflowExecution) -> None:
        """Notify progress callback"""
        callback = self.progress_callbacks.get(execution_id)
        if callback:
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def get_available_node_types(self) -> List[NodeTypeDefinition]:
        """Get list of available node types"""
        node_types = [
            NodeTypeDefinition(
                type=NodeType.START.value,
                displayName="Start",
                category="flow",
                description="Entry point of the workflow",
            ),
            NodeTypeDefinition(
                type=NodeType.END.value,
                displayName="End",
                category="flow",
                description="Completes the workflow",
            ),
        ]

        for node_type, executor_class in NODE_EXECUTORS.items():
            node_types.append(NodeTypeDefinition(
                type=node_type,
                displayName=getattr(executor_class, 'display_name', node_type),
                category=getattr(executor_class, 'category', 'general'),
                description=getattr(executor_class, 'description', ''),
            ))

        return node_types
