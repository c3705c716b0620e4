"""
Shared fixtures.

Agent micro-services are replaced by an ``httpx.MockTransport`` that answers per tool name, and
LLM providers by a planner that replays scripted replies.
"""

import json
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Tuple,
)

import httpx
import pytest

from switchboard.agent.invoker import AgentInvoker
from switchboard.agent.planner_interface import (
    DEFAULT_SYSTEM_PROMPT,
    BasePlanner,
)
from switchboard.core.errors import PlanningError

FIXED_NOW = datetime(2025, 7, 17, 10, 30)


def fixed_clock() -> datetime:
    """Thursday 17 July 2025, 10:30."""
    return FIXED_NOW


Reply = Any  # str | dict | httpx.Response | Callable[[dict], ...]


class FakeAgents:
    """Stand-in for every agent service: records calls and answers from a per-tool table."""

    def __init__(self, replies: Dict[str, Reply] | None = None) -> None:
        self.replies: Dict[str, Reply] = dict(replies or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        tool = payload.pop("tool")
        self.calls.append((tool, payload))

        reply = self.replies.get(tool)
        if callable(reply):
            reply = reply(payload)
        if reply is None:
            return httpx.Response(404, json={"error": f"no fake reply for {tool}"})
        if isinstance(reply, httpx.Response):
            return reply
        if isinstance(reply, str):
            return httpx.Response(200, json={"content": {"text": reply}})
        return httpx.Response(200, json=reply)

    @property
    def tools_called(self) -> List[str]:
        return [tool for tool, _ in self.calls]

    def params_for(self, tool_name: str) -> List[Dict[str, Any]]:
        return [params for tool, params in self.calls if tool == tool_name]


class ScriptedPlanner(BasePlanner):
    """Planner whose LLM replies are scripted up front."""

    def __init__(self, replies: List[Any], clock: Callable[[], datetime] = fixed_clock) -> None:
        super().__init__(clock)
        self.replies = list(replies)
        self.prompts: List[str] = []

    async def complete(self, prompt: str, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise PlanningError("No scripted reply left")
        reply = self.replies.pop(0)
        return reply if isinstance(reply, str) else json.dumps(reply)


@pytest.fixture
def agents() -> FakeAgents:
    return FakeAgents()


@pytest.fixture
def invoker(agents: FakeAgents) -> AgentInvoker:
    return AgentInvoker(client=httpx.AsyncClient(transport=httpx.MockTransport(agents.handler)))
