"""Facts accumulated while one multi-step plan runs."""

import logging
from typing import (
    Any,
    Dict,
    List,
    NamedTuple,
)

from switchboard.agent.extractors import extract_facts
from switchboard.core.schema import AgentResult

logger = logging.getLogger(__name__)


class StepOutput(NamedTuple):
    """Result of one successful step, kept in execution order."""

    tool_name: str
    agent_name: str | None
    result: AgentResult


class ExecutionContext:
    """
    Key/value facts plus the ordered outputs of the steps run so far.

    ``values[tool_name]`` holds the text of that tool's latest result; derived keys such as
    ``previous_result_city`` come from :mod:`switchboard.agent.extractors`.  Keys are overwritten
    when a tool runs again but never removed while the plan runs.
    """

    def __init__(self) -> None:
        self.values: Dict[str, Any] = {}
        self.outputs: List[StepOutput] = []

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        return default if value in (None, "") else value

    def record(self, tool_name: str, agent_name: str | None, result: AgentResult) -> None:
        """Store a successful result and every fact extracted from it."""
        self.outputs.append(StepOutput(tool_name, agent_name, result))
        self.values[tool_name] = result.text
        self.values.update(extract_facts(tool_name, result))

    def latest(self, *tool_names: str) -> AgentResult | None:
        """Most recent result produced by any of *tool_names*."""
        for output in reversed(self.outputs):
            if output.tool_name in tool_names:
                return output.result
        return None

    def latest_from_agent(self, agent_name: str) -> AgentResult | None:
        """Most recent result produced by any tool of *agent_name*."""
        for output in reversed(self.outputs):
            if output.agent_name == agent_name:
                return output.result
        return None

    @property
    def last_result(self) -> AgentResult | None:
        """Result of the most recently executed step."""
        return self.outputs[-1].result if self.outputs else None
