"""
Workflow Templates - Pre-built agent workflows for common use cases

Template nodes carry no ids. Connections refer to nodes by position with
``node-<index>`` placeholders, which ``instantiate_template`` replaces with
freshly generated node ids.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from .errors import TemplateError
from .graph import clone_value
from .models import Connection, NodeData, Position, Workflow, WorkflowNode, new_id, utcnow

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"^node-(\d+)$")

# Pre-built workflow templates
WORKFLOW_TEMPLATES = [
    {
        "id": "customer-support-routing",
        "name": "Customer Support Routing",
        "description": "Intelligent routing system that classifies customer inquiries and routes them to specialized agents",
        "category": "customer-support",
        "tags": ["support", "classification", "routing", "multi-agent"],
        "usageCount": 245,
        "nodes": [
            {
                "type": "start",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Customer Inquiry"},
            },
            {
                "type": "agent",
                "position": {"x": 350, "y": 150},
                "data": {
                    "label": "Classifier Agent",
                    "description": "Classifies inquiry type",
                    "model": "openai/gpt-4o",
                    "systemPrompt": (
                        "You are a customer inquiry classifier. Analyze the customer message and "
                        "classify it as: technical, billing, or general. Respond with only one word."
                    ),
                },
            },
            {
                "type": "condition",
                "position": {"x": 600, "y": 200},
                "data": {
                    "label": "Route by Type",
                    "condition": "classifier_agent contains 'technical'",
                },
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 100},
                "data": {
                    "label": "Technical Support Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "You are a technical support specialist. Help customers resolve technical issues.",
                    "tools": ["web-search"],
                },
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 250},
                "data": {
                    "label": "Billing Support Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "You are a billing support specialist. Help customers with payment and billing questions.",
                },
            },
            {
                "type": "end",
                "position": {"x": 1100, "y": 200},
                "data": {"label": "Response Sent"},
            },
        ],
        "connections": [
            {"sourceId": "node-0", "targetId": "node-1"},
            {"sourceId": "node-1", "targetId": "node-2"},
            {"sourceId": "node-2", "targetId": "node-3", "label": "true"},
            {"sourceId": "node-2", "targetId": "node-4", "label": "false"},
            {"sourceId": "node-3", "targetId": "node-5"},
            {"sourceId": "node-4", "targetId": "node-5"},
        ],
    },
    {
        "id": "content-moderation",
        "name": "Content Moderation Pipeline",
        "description": "Multi-stage content moderation with guardrails and human approval for edge cases",
        "category": "automation",
        "tags": ["moderation", "guardrails", "approval", "safety"],
        "usageCount": 189,
        "nodes": [
            {
                "type": "start",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Content Submitted"},
            },
            {
                "type": "guardrail",
                "position": {"x": 350, "y": 200},
                "data": {"label": "PII Detection", "guardrailType": "pii"},
            },
            {
                "type": "guardrail",
                "position": {"x": 600, "y": 200},
                "data": {"label": "Jailbreak Detection", "guardrailType": "jailbreak"},
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 200},
                "data": {
                    "label": "Content Analyzer",
                    "model": "openai/gpt-4o",
                    "systemPrompt": (
                        "Analyze content for policy violations. Rate as: safe, review-needed, "
                        "or unsafe. Provide reasoning."
                    ),
                },
            },
            {
                "type": "condition",
                "position": {"x": 1100, "y": 200},
                "data": {
                    "label": "Check Safety",
                    "condition": "not (content_analyzer contains 'unsafe' or content_analyzer contains 'review')",
                },
            },
            {
                "type": "user-approval",
                "position": {"x": 1350, "y": 120},
                "data": {"label": "Human Review", "description": "Requires manual approval"},
            },
            {
                "type": "end",
                "position": {"x": 1600, "y": 200},
                "data": {"label": "Decision Made"},
            },
        ],
        "connections": [
            {"sourceId": "node-0", "targetId": "node-1"},
            {"sourceId": "node-1", "targetId": "node-2"},
            {"sourceId": "node-2", "targetId": "node-3"},
            {"sourceId": "node-3", "targetId": "node-4"},
            {"sourceId": "node-4", "targetId": "node-6", "label": "true"},
            {"sourceId": "node-4", "targetId": "node-5", "label": "false"},
            {"sourceId": "node-5", "targetId": "node-6"},
        ],
    },
    {
        "id": "research-assistant",
        "name": "Research & Analysis Assistant",
        "description": "Comprehensive research workflow with web search, file analysis, and report generation",
        "category": "research",
        "tags": ["research", "analysis", "web-search", "file-search"],
        "usageCount": 312,
        "nodes": [
            {
                "type": "start",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Research Query"},
            },
            {
                "type": "agent",
                "position": {"x": 350, "y": 150},
                "data": {
                    "label": "Research Planner",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Create a research plan with specific search queries and analysis steps.",
                },
            },
            {
                "type": "agent",
                "position": {"x": 600, "y": 100},
                "data": {
                    "label": "Web Researcher",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Search the web and summarize findings.",
                    "tools": ["web-search"],
                },
            },
            {
                "type": "file-search",
                "position": {"x": 600, "y": 250},
                "data": {"label": "Document Search", "fileTypes": ["pdf", "docx"]},
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 175},
                "data": {
                    "label": "Report Generator",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Synthesize research findings into a comprehensive report.",
                },
            },
            {
                "type": "end",
                "position": {"x": 1100, "y": 200},
                "data": {"label": "Report Complete"},
            },
        ],
        "connections": [
            {"sourceId": "node-0", "targetId": "node-1"},
            {"sourceId": "node-1", "targetId": "node-2"},
            {"sourceId": "node-1", "targetId": "node-3"},
            {"sourceId": "node-2", "targetId": "node-4"},
            {"sourceId": "node-3", "targetId": "node-4"},
            {"sourceId": "node-4", "targetId": "node-5"},
        ],
    },
    {
        "id": "data-analysis-pipeline",
        "name": "Data Analysis Pipeline",
        "description": "Automated data processing with MCP integration for database queries and visualization",
        "category": "data-analysis",
        "tags": ["data", "analysis", "mcp", "automation"],
        "usageCount": 156,
        "nodes": [
            {
                "type": "start",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Analysis Request"},
            },
            {
                "type": "mcp",
                "position": {"x": 350, "y": 200},
                "data": {"label": "Fetch Data", "mcpServer": "database-server", "tool": "query"},
            },
            {
                "type": "agent",
                "position": {"x": 600, "y": 200},
                "data": {
                    "label": "Data Analyzer",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Analyze data patterns, trends, and anomalies. Provide insights.",
                },
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 200},
                "data": {
                    "label": "Visualization Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Generate visualization recommendations and create chart specifications.",
                },
            },
            {
                "type": "end",
                "position": {"x": 1100, "y": 200},
                "data": {"label": "Analysis Complete"},
            },
        ],
        "connections": [
            {"sourceId": "node-0", "targetId": "node-1"},
            {"sourceId": "node-1", "targetId": "node-2"},
            {"sourceId": "node-2", "targetId": "node-3"},
            {"sourceId": "node-3", "targetId": "node-4"},
        ],
    },
    {
        "id": "content-creation-workflow",
        "name": "Content Creation Workflow",
        "description": "Multi-agent content creation with research, writing, editing, and approval stages",
        "category": "content-creation",
        "tags": ["content", "writing", "editing", "approval"],
        "usageCount": 423,
        "nodes": [
            {
                "type": "start",
                "position": {"x": 100, "y": 200},
                "data": {"label": "Content Brief"},
            },
            {
                "type": "agent",
                "position": {"x": 350, "y": 200},
                "data": {
                    "label": "Research Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Research the topic and gather relevant information and sources.",
                    "tools": ["web-search"],
                },
            },
            {
                "type": "agent",
                "position": {"x": 600, "y": 200},
                "data": {
                    "label": "Writer Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Write engaging, well-structured content based on research and brief.",
                },
            },
            {
                "type": "agent",
                "position": {"x": 850, "y": 200},
                "data": {
                    "label": "Editor Agent",
                    "model": "openai/gpt-4o",
                    "systemPrompt": "Review and improve content for clarity, grammar, and style.",
                },
            },
            {
                "type": "user-approval",
                "position": {"x": 1100, "y": 200},
                "data": {"label": "Final Approval"},
            },
            {
                "type": "end",
                "position": {"x": 1350, "y": 200},
                "data": {"label": "Content Published"},
            },
        ],
        "connections": [
            {"sourceId": "node-0", "targetId": "node-1"},
            {"sourceId": "node-1", "targetId": "node-2"},
            {"sourceId": "node-2", "targetId": "node-3"},
            {"sourceId": "node-3", "targetId": "node-4"},
            {"sourceId": "node-4", "targetId": "node-5"},
        ],
    },
]


def get_workflow_templates() -> List[Dict[str, Any]]:
    """Get all available workflow templates."""
    return [
        {
            "id": t["id"],
            "name": t["name"],
            "description": t["description"],
            "category": t["category"],
            "tags": list(t["tags"]),
            "usageCount": t["usageCount"],
            "nodeCount": len(t["nodes"]),
        }
        for t in WORKFLOW_TEMPLATES
    ]


def get_workflow_template(template_id: str) -> Optional[Dict[str, Any]]:
    """Get a specific workflow template by ID."""
    for t in WORKFLOW_TEMPLATES:
        if t["id"] == template_id:
            return clone_value(t)
    return None


def get_templates_by_category(category: str) -> List[Dict[str, Any]]:
    return [clone_value(t) for t in WORKFLOW_TEMPLATES if t["category"] == category]


def search_templates(query: str) -> List[Dict[str, Any]]:
    """Case-insensitive match on name, description or any tag"""
    needle = query.lower()
    return [
        clone_value(t)
        for t in WORKFLOW_TEMPLATES
        if needle in t["name"].lower()
        or needle in t["description"].lower()
        or any(needle in tag.lower() for tag in t["tags"])
    ]


def get_popular_templates(limit: int = 5) -> List[Dict[str, Any]]:
    ranked = sorted(WORKFLOW_TEMPLATES, key=lambda t: t["usageCount"], reverse=True)
    return [clone_value(t) for t in ranked[:limit]]


def _resolve_placeholder(placeholder: str, node_ids: List[str], template_id: str) -> str:
    match = _PLACEHOLDER_RE.match(placeholder or "")
    if not match:
        raise TemplateError(f"Template {template_id} has an invalid node reference: {placeholder!r}")
    index = int(match.group(1))
    if index >= len(node_ids):
        raise TemplateError(f"Template {template_id} references missing node {placeholder}")
    return node_ids[index]


def instantiate_template(
    template: Union[str, Dict[str, Any]],
    name: Optional[str] = None,
) -> Workflow:
    """
    Build a live workflow from a template.

    Args:
        template: Template dict or template id
        name: Name for the new workflow (defaults to the template name)

    Raises:
        TemplateError: unknown template id, malformed node, or a connection
            placeholder that does not resolve to a template node
    """
    if isinstance(template, str):
        template_id = template
        template = get_workflow_template(template_id)
        if template is None:
            raise TemplateError(f"Template not found: {template_id}")

    template_id = template.get("id", "custom")
    node_ids = [new_id("node") for _ in template.get("nodes", [])]

    nodes = []
    for node_id, entry in zip(node_ids, template.get("nodes", [])):
        if not entry.get("type") or "label" not in entry.get("data", {}):
            raise TemplateError(f"Template {template_id} has a node without a type or label")
        position = entry.get("position") or {"x": 0, "y": 0}
        nodes.append(WorkflowNode(
            id=node_id,
            type=entry["type"],
            position=Position(x=position["x"], y=position["y"]),
            data=NodeData(**clone_value(entry["data"])),
        ))

    connections = [
        Connection(
            sourceId=_resolve_placeholder(conn.get("sourceId"), node_ids, template_id),
            targetId=_resolve_placeholder(conn.get("targetId"), node_ids, template_id),
            label=conn.get("label"),
        )
        for conn in template.get("connections", [])
    ]

    now = utcnow()
    workflow = Workflow(
        name=name or template.get("name", "Untitled Workflow"),
        description=template.get("description"),
        nodes=nodes,
        connections=connections,
        createdAt=now,
        updatedAt=now,
    )
    logger.info(f"Instantiated template {template_id} as workflow {workflow.id}")
    return workflow
