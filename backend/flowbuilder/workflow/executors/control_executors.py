"""
Control Flow Node Executors - Branching and approval gates
"""

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult
from ..errors import ExpressionError
from ..expressions import build_scope, evaluate_condition
from ..graph import outgoing_connections
from ..models import ExecutionStatus, LogType


class ConditionExecutor(NodeExecutor):
    """Branch based on condition"""

    node_type = "condition"
    display_name = "Condition"
    category = "control"
    description = "Branch execution based on a condition"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        expression = (self.data.condition or "").strip() or "true"

        self.log(LogType.INFO, f"Evaluating condition: {expression}")

        labels = {n.id: n.data.label for n in context.workflow.nodes}
        scope = build_scope(context.input, context.variables, context.last_output, labels)
        try:
            result = evaluate_condition(expression, scope)
        except ExpressionError as e:
            raise ExpressionError(f"Condition evaluation failed: {e}") from e

        wanted = "true" if result else "false"
        outgoing = outgoing_connections(context.workflow, self.node.id)
        chosen = next(
            (c for c in outgoing if (c.label or "").strip().lower() == wanted),
            outgoing[0] if outgoing else None,
        )

        self.log(
            LogType.SUCCESS,
            f"Condition evaluated to: {wanted}",
            data={"result": result, "branch": chosen.label if chosen else None},
            timed=True,
        )
        return self.succeed(next_node_id=chosen.targetId if chosen else None)


class UserApprovalExecutor(NodeExecutor):
    """
    Pause for a human decision.

    In ``auto`` mode the pause is announced and approval is simulated right
    away. In ``manual`` mode the result asks the engine to suspend the run
    until ``resume`` is called.
    """

    node_type = "user-approval"
    display_name = "User Approval"
    category = "control"
    description = "Wait for a user to approve before continuing"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        self.log(LogType.INFO, "Pausing for user approval")

        if context.approval_mode == "manual":
            return NodeExecutionResult(success=True, logs=self.logs, awaiting_approval=True)

        context.execution.status = ExecutionStatus.PAUSED
        await context.push_update()

        self.log(LogType.SUCCESS, "User approval received (simulated)", timed=True)
        context.execution.status = ExecutionStatus.RUNNING
        return self.succeed()
