"""
External Capabilities - Text generation, tool calling, and document search

The executor only depends on the abstract interfaces; the httpx-backed
implementations talk to an OpenAI-compatible chat endpoint and to an MCP
proxy. Both can be swapped for test doubles or other backends.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from .config import WorkflowSettings, get_settings

logger = logging.getLogger(__name__)


class TextGenerator(ABC):
    """Produces a text completion for a conversation"""

    @abstractmethod
    async def generate(
        self,
        model: str,
        system_prompt: str,
        messages: List[Dict[str, str]],
    ) -> str:
        raise NotImplementedError


class ToolClient(ABC):
    """Invokes a named tool on an MCP server"""

    @abstractmethod
    async def call_tool(self, server: str, tool: str, arguments: Dict[str, Any]) -> Any:
        raise NotImplementedError


class DocumentSearcher(ABC):
    """Searches documents for a query, optionally filtered by file type"""

    @abstractmethod
    async def search(self, query: str, file_types: List[str]) -> List[Dict[str, Any]]:
        raise NotImplementedError


class HttpTextGenerator(TextGenerator):
    """Chat completion via an OpenAI-compatible /v1/chat/completions endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        settings: Optional[WorkflowSettings] = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.llmApiUrl).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.llmTimeout
        self.api_key = api_key

    async def generate(
        self,
        model: str,
        system_prompt: str,
        messages: List[Dict[str, str]],
    ) -> str:
        payload_messages = list(messages)
        if system_prompt:
            payload_messages = [{"role": "system", "content": system_prompt}] + payload_messages

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.debug(f"Requesting completion from {self.base_url} with model {model}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/v1/chat/completions",
                headers=headers,
                json={
                    "model": model,
                    "messages": payload_messages,
                },
            )
            response.raise_for_status()
            data = response.json()

        choices = data.get("choices") or [{}]
        message = choices[0].get("message", {})
        return message.get("content", "") or ""


class MCPProxyToolClient(ToolClient):
    """Calls tools through an HTTP MCP proxy (POST /tools/call)"""

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[WorkflowSettings] = None,
    ):
        settings = settings or get_settings()
        self.proxy_url = (proxy_url or settings.mcpProxyUrl).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.mcpTimeout

    async def call_tool(self, server: str, tool: str, arguments: Dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.proxy_url}/tools/call",
                    json={
                        "server": server,
                        "tool": tool,
                        "arguments": arguments,
                    },
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            raise ValueError(f"MCP tool call failed: {e}")

        if isinstance(result, dict) and "result" in result:
            return result["result"]
        return result
