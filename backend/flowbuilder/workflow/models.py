"""
Workflow Data Models
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional
from enum import Enum
from datetime import datetime, timezone
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class NodeType(str, Enum):
    """Node types understood by the executor"""
    START = "start"
    END = "end"
    AGENT = "agent"
    GUARDRAIL = "guardrail"
    CONDITION = "condition"
    MCP = "mcp"
    USER_APPROVAL = "user-approval"
    FILE_SEARCH = "file-search"


class GuardrailType(str, Enum):
    """Named guardrail checks"""
    PII = "pii"
    JAILBREAK = "jailbreak"
    MODERATION = "moderation"
    HALLUCINATION = "hallucination"


class ExecutionStatus(str, Enum):
    """Status of a workflow execution"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class LogType(str, Enum):
    """Kinds of execution log entries"""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"


class Position(BaseModel):
    """Position on the canvas"""
    x: float
    y: float


class NodeData(BaseModel):
    """Per-type node payload. Only the fields relevant to the node type are read."""
    model_config = ConfigDict(extra="allow", protected_namespaces=())

    label: str
    description: Optional[str] = None

    # agent
    model: Optional[str] = None
    systemPrompt: Optional[str] = None
    tools: List[str] = Field(default_factory=list)

    # guardrail
    guardrailType: Optional[str] = None

    # condition
    condition: Optional[str] = None

    # mcp
    mcpServer: Optional[str] = None
    tool: Optional[str] = None
    arguments: Optional[Dict[str, Any]] = None

    # file-search
    fileTypes: List[str] = Field(default_factory=list)
    query: Optional[str] = None


class WorkflowNode(BaseModel):
    """A node in the workflow"""
    id: str = Field(default_factory=lambda: new_id("node"))
    type: str  # NodeType value; unknown types are skipped by the executor
    position: Position = Field(default_factory=lambda: Position(x=0, y=0))
    data: NodeData


class Connection(BaseModel):
    """A directed connection between two nodes"""
    id: str = Field(default_factory=lambda: new_id("conn"))
    sourceId: str
    targetId: str
    label: Optional[str] = None  # branch tag, e.g. "true" / "false"


class Workflow(BaseModel):
    """Complete workflow definition"""
    id: str = Field(default_factory=lambda: new_id("wf"))
    name: str
    description: Optional[str] = None
    version: int = 1
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class WorkflowCreate(BaseModel):
    """Request model for creating a workflow"""
    name: str
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)


class WorkflowUpdate(BaseModel):
    """Partial update for a workflow"""
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[int] = None
    nodes: Optional[List[WorkflowNode]] = None
    connections: Optional[List[Connection]] = None


class ChatMessage(BaseModel):
    role: str
    content: str


class ExecutionContextData(BaseModel):
    """Conversation and variable state carried through a run"""
    input: str
    variables: Dict[str, Any] = Field(default_factory=dict)  # nodeId -> output
    messages: List[ChatMessage] = Field(default_factory=list)


class ExecutionLog(BaseModel):
    """A single entry in an execution's audit trail"""
    id: str = Field(default_factory=lambda: new_id("log"))
    nodeId: str
    timestamp: datetime = Field(default_factory=utcnow)
    type: LogType
    message: str
    data: Optional[Any] = None
    duration: Optional[int] = None  # Milliseconds


class WorkflowExecution(BaseModel):
    """Execution state of a workflow"""
    id: str = Field(default_factory=lambda: new_id("exec"))
    workflowId: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    startedAt: datetime = Field(default_factory=utcnow)
    completedAt: Optional[datetime] = None
    currentNodeId: Optional[str] = None
    pendingApprovalNodeId: Optional[str] = None
    context: ExecutionContextData
    logs: List[ExecutionLog] = Field(default_factory=list)
    finalOutput: Optional[Any] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class WorkflowVersion(BaseModel):
    """Named snapshot of a workflow's nodes and connections"""
    id: str = Field(default_factory=lambda: new_id("ver"))
    workflowId: str
    version: int
    name: str
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=utcnow)
    tags: List[str] = Field(default_factory=list)  # set semantics, insertion ordered


class DiffBucket(BaseModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)


class NodeChange(BaseModel):
    old: WorkflowNode
    new: WorkflowNode


class VersionComparison(BaseModel):
    """Structural diff between two versions"""
    added: DiffBucket = Field(default_factory=DiffBucket)
    removed: DiffBucket = Field(default_factory=DiffBucket)
    modified: List[NodeChange] = Field(default_factory=list)


class NodeTypeDefinition(BaseModel):
    """Definition of a node type for the registry"""
    type: str
    displayName: str
    category: str = "general"
    description: str
