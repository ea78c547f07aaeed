"""
Search Node Executors - File search over attached documents
"""

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult
from ..models import LogType


class FileSearchExecutor(NodeExecutor):
    """Search files for the run input (or a configured query)"""

    node_type = "file-search"
    display_name = "File Search"
    category = "retrieval"
    description = "Search uploaded files for relevant content"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        query = self.data.query or context.input
        file_types = list(self.data.fileTypes)

        suffix = f" ({', '.join(file_types)})" if file_types else ""
        self.log(LogType.INFO, f"Searching files{suffix}")

        if context.document_searcher is not None:
            results = list(await context.document_searcher.search(query, file_types))
            message = "File search completed"
        else:
            results = []
            message = "File search completed (simulated)"

        self.log(LogType.SUCCESS, message, data={"filesFound": len(results)}, timed=True)
        return self.succeed(output={
            "query": query,
            "fileTypes": file_types,
            "filesFound": len(results),
            "results": results,
        })
