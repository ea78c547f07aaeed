"""
Node Executors - Implementations for each workflow node type
"""

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult, SkipExecutor
from .llm_executors import AgentExecutor
from .guardrail_executors import GuardrailExecutor, GUARDRAIL_CHECKS, get_guardrail_check
from .control_executors import ConditionExecutor, UserApprovalExecutor
from .mcp_executors import MCPToolExecutor
from .search_executors import FileSearchExecutor

# Registry of all node executors. start and end are handled by the engine.
NODE_EXECUTORS = {
    # LLM
    'agent': AgentExecutor,

    # Safety
    'guardrail': GuardrailExecutor,

    # Control
    'condition': ConditionExecutor,
    'user-approval': UserApprovalExecutor,

    # MCP
    'mcp': MCPToolExecutor,

    # Retrieval
    'file-search': FileSearchExecutor,
}

def get_executor(node_type: str) -> type:
    """Get executor class for a node type"""
    return NODE_EXECUTORS.get(node_type)

__all__ = [
    'NodeExecutor',
    'ExecutionContext',
    'NodeExecutionResult',
    'SkipExecutor',
    'GUARDRAIL_CHECKS',
    'get_guardrail_check',
    'NODE_EXECUTORS',
    'get_executor',
]
