"""
LLM Node Executors - Agent nodes backed by a text generation capability
"""

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult
from ..models import ChatMessage, LogType


class AgentExecutor(NodeExecutor):
    """Run the conversation through a language model and append its reply"""

    node_type = "agent"
    display_name = "Agent"
    category = "llm"
    description = "Generate a reply with a language model"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        model = self.data.model or context.settings.defaultModel
        system_prompt = self.data.systemPrompt or context.settings.defaultSystemPrompt
        conversation = context.execution.context.messages

        self.log(LogType.INFO, f"Executing agent: {self.data.label}", data={"model": model})

        if context.text_generator is None:
            raise ValueError("No text generator configured for agent nodes")

        messages = [{"role": m.role, "content": m.content} for m in conversation]
        text = await context.text_generator.generate(model, system_prompt, messages)
        if text is None:
            text = ""

        conversation.append(ChatMessage(role="assistant", content=text))

        self.log(
            LogType.SUCCESS,
            "Agent response generated",
            data={"model": model, "response": text},
            timed=True,
        )
        return self.succeed(output=text)
