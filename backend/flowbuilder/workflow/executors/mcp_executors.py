"""
MCP (Model Context Protocol) Node Executors
Call tools on MCP servers through the configured tool client
"""

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult
from ..graph import clone_value
from ..models import LogType


class MCPToolExecutor(NodeExecutor):
    """Call a tool on an MCP server"""

    node_type = "mcp"
    display_name = "MCP Tool"
    category = "mcp"
    description = "Call a tool on an MCP server"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        server = self.data.mcpServer
        tool_name = self.data.tool

        if not server or not tool_name:
            raise ValueError("MCP server and tool name are required")

        if self.data.arguments is not None:
            arguments = clone_value(self.data.arguments)
        else:
            arguments = {"input": context.input}

        self.log(LogType.INFO, f"Calling MCP server: {server}")

        if context.tool_client is None:
            raise ValueError("No tool client configured for MCP nodes")

        self.log(
            LogType.TOOL_CALL,
            f"Calling tool {tool_name} on {server}",
            data={"server": server, "tool": tool_name, "arguments": arguments},
        )

        result = await context.tool_client.call_tool(server, tool_name, arguments)

        self.log(
            LogType.TOOL_RESULT,
            f"MCP tool result received from {tool_name}",
            data={"result": result},
            timed=True,
        )
        return self.succeed(output=result)
