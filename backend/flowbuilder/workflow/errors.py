"""
Workflow Errors - Typed failures reported synchronously to callers
"""


class WorkflowError(Exception):
    """Base class for structural workflow errors"""


class WorkflowNotFoundError(WorkflowError):
    """Raised when a workflow id does not resolve"""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class NodeNotFoundError(WorkflowError):
    """Raised when a node id referenced by an edit does not exist"""

    def __init__(self, node_id: str, workflow_id: str = None):
        self.node_id = node_id
        self.workflow_id = workflow_id
        where = f" in workflow {workflow_id}" if workflow_id else ""
        super().__init__(f"Node not found{where}: {node_id}")


class ConnectionNotFoundError(WorkflowError):
    """Raised when a connection id does not exist"""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection not found: {connection_id}")


class WorkflowImportError(WorkflowError, ValueError):
    """Raised when an imported document is not a valid workflow"""


class TemplateError(WorkflowError, ValueError):
    """Raised when a template cannot be turned into a live workflow"""


class ExpressionError(WorkflowError, ValueError):
    """Raised when a condition expression cannot be parsed or evaluated"""


class ExecutionStateError(WorkflowError):
    """Raised when an execution is asked to do something its state forbids"""


class ExecutionNotFoundError(WorkflowError):
    """Raised when no tracked execution has the given id"""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")
