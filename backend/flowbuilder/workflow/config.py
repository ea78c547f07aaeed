"""
Workflow Settings - Environment-driven configuration for the workflow core
"""

import os
import logging
from functools import lru_cache
from typing import Tuple

from pydantic import BaseModel, Field, validator

logger = logging.getLogger(__name__)


class WorkflowSettings(BaseModel):
    """Runtime settings shared by the executor and the editing utilities"""

    # External capabilities
    llmApiUrl: str = "http://llamacpp-api:8080"
    llmTimeout: float = 120.0
    mcpProxyUrl: str = "http://localhost:3100"
    mcpTimeout: float = 30.0

    # Agent defaults
    defaultModel: str = "openai/gpt-4o"
    defaultSystemPrompt: str = "You are a helpful assistant."

    # Execution
    maxSteps: int = 100  # floor; runs always allow one visit per node
    approvalMode: str = "auto"  # auto | manual

    # Editing utilities
    historySize: int = 50
    pasteOffset: Tuple[float, float] = Field(default=(50.0, 50.0))

    @validator("approvalMode")
    def valid_approval_mode(cls, value: str) -> str:
        if value not in ("auto", "manual"):
            raise ValueError("approvalMode must be 'auto' or 'manual'")
        return value

    @validator("maxSteps", "historySize")
    def positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Value must be at least 1")
        return value

    @classmethod
    def from_env(cls) -> "WorkflowSettings":
        """Build settings from environment variables, falling back to defaults"""
        values = {}
        env_map = {
            "llmApiUrl": "LLM_API_URL",
            "llmTimeout": "LLM_TIMEOUT",
            "mcpProxyUrl": "MCP_PROXY_URL",
            "mcpTimeout": "MCP_TIMEOUT",
            "defaultModel": "WORKFLOW_DEFAULT_MODEL",
            "defaultSystemPrompt": "WORKFLOW_DEFAULT_SYSTEM_PROMPT",
            "maxSteps": "WORKFLOW_MAX_STEPS",
            "approvalMode": "WORKFLOW_APPROVAL_MODE",
            "historySize": "WORKFLOW_HISTORY_SIZE",
        }
        for field_name, env_name in env_map.items():
            raw = os.environ.get(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw

        # "50,50" or "50"
        offset = os.environ.get("WORKFLOW_PASTE_OFFSET")
        if offset:
            parts = [p.strip() for p in offset.split(",") if p.strip()]
            if len(parts) == 1:
                parts = parts * 2
            values["pasteOffset"] = (float(parts[0]), float(parts[1]))

        settings = cls(**values)
        logger.debug(f"Workflow settings loaded: approvalMode={settings.approvalMode}, maxSteps={settings.maxSteps}")
        return settings


@lru_cache(maxsize=1)
def get_settings() -> WorkflowSettings:
    """Return the process-wide settings, read once from the environment"""
    return WorkflowSettings.from_env()
