"""
Guardrail Node Executors - Content checks over the latest conversation message
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from .base import NodeExecutor, ExecutionContext, NodeExecutionResult
from ..models import GuardrailType, LogType

# (passed, findings)
CheckResult = Tuple[bool, List[str]]

_PII_PATTERNS = {
    "email": re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "card": re.compile(r"\b(?:\d[ -]?){13,16}\b"),
    "phone": re.compile(r"(?:\+?\d{1,2}[ .-]?)?\(?\d{3}\)?[ .-]?\d{3}[ .-]?\d{4}\b"),
}

_JAILBREAK_PHRASES = (
    "ignore previous instructions",
    "ignore all previous instructions",
    "ignore the above instructions",
    "disregard your instructions",
    "disregard previous instructions",
    "you are now dan",
    "do anything now",
    "pretend you have no restrictions",
    "without any restrictions",
    "developer mode",
    "reveal your system prompt",
)


def check_pii(text: str) -> CheckResult:
    findings = []
    for name, pattern in _PII_PATTERNS.items():
        if pattern.search(text):
            findings.append(name)
    return not findings, findings


def check_jailbreak(text: str) -> CheckResult:
    lowered = " ".join(text.lower().split())
    findings = [phrase for phrase in _JAILBREAK_PHRASES if phrase in lowered]
    return not findings, findings


GUARDRAIL_CHECKS: Dict[str, Callable[[str], CheckResult]] = {
    GuardrailType.PII.value: check_pii,
    GuardrailType.JAILBREAK.value: check_jailbreak,
}


def get_guardrail_check(guardrail_type: str) -> Optional[Callable[[str], CheckResult]]:
    return GUARDRAIL_CHECKS.get(guardrail_type)


class GuardrailExecutor(NodeExecutor):
    """Block the run when the latest message fails a named check"""

    node_type = "guardrail"
    display_name = "Guardrail"
    category = "safety"
    description = "Check the latest message for PII or jailbreak attempts"

    async def execute(self, context: ExecutionContext) -> NodeExecutionResult:
        guardrail_type = self.data.guardrailType or GuardrailType.MODERATION.value
        messages = context.execution.context.messages
        text = messages[-1].content if messages else context.input

        self.log(LogType.INFO, f"Checking guardrail: {guardrail_type}")

        check = get_guardrail_check(guardrail_type)
        if check is None:
            self.log(
                LogType.SUCCESS,
                f"Guardrail check passed (no check registered for {guardrail_type})",
                data={"guardrailType": guardrail_type, "passed": True},
                timed=True,
            )
            return self.succeed()

        passed, findings = check(text)
        if not passed:
            return self.fail(
                f"Guardrail check failed: {guardrail_type} ({', '.join(findings)})",
                data={"guardrailType": guardrail_type, "passed": False, "findings": findings},
            )

        self.log(
            LogType.SUCCESS,
            "Guardrail check passed",
            data={"guardrailType": guardrail_type, "passed": True},
            timed=True,
        )
        return self.succeed()
