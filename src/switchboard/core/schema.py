"""
Schema definitions for registry <-> planner <-> executor messages.

These data models serve as the contract between the tool catalog, the planner LLM, the multi-step
executor and the HTTP layer.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.
"""

import json
from enum import Enum
from typing import (
    Annotated,
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------
class ParameterSpec(BaseModel):
    """Type and description of a single tool parameter."""

    model_config = ConfigDict(frozen=True)

    type: str = "string"
    description: str = ""
    required: bool = False


class HttpInvocation(BaseModel):
    """Tool is served by an agent micro-service reachable over HTTP."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["http"] = "http"
    url: str


class FunctionInvocation(BaseModel):
    """Tool is served by an in-process (sync or async) function."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["function"] = "function"
    handle: Callable[..., Union[Any, Awaitable[Any]]]


Invocation = Annotated[Union[HttpInvocation, FunctionInvocation], Field(discriminator="kind")]


class ToolDescriptor(BaseModel):
    """Immutable catalog entry for one capability."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name")
    agent_name: str = Field(..., description="Agent that owns the tool")
    description: str = ""
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    invocation: Invocation

    @property
    def required_params(self) -> FrozenSet[str]:
        """Names of the parameters that must be present and non-empty."""
        return frozenset(name for name, spec in self.parameters.items() if spec.required)

    @property
    def optional_params(self) -> List[str]:
        """Names of the parameters that may be omitted, in declaration order."""
        return [name for name, spec in self.parameters.items() if not spec.required]


class AgentDescriptor(BaseModel):
    """An integration service exposing one or more tools."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    base_url: str
    path: str = "/a2a"

    @property
    def endpoint(self) -> str:
        """Full URL that tool calls are POSTed to."""
        return f"{self.base_url.rstrip('/')}{self.path}"


# ---------------------------------------------------------------------------
# Agent results
# ---------------------------------------------------------------------------
class AgentResult(BaseModel):
    """Canonical result of one tool invocation."""

    text: str
    raw: Any = None

    def as_json(self) -> Any:
        """Return the structured payload carried by this result, if there is one."""
        try:
            return json.loads(self.text)
        except ValueError:
            pass
        if isinstance(self.raw, (dict, list)):
            return self.raw
        return None


# ---------------------------------------------------------------------------
# Execution plans
# ---------------------------------------------------------------------------
class PlanStep(BaseModel):
    """One tool invocation inside a multi-step plan."""

    tool_name: str
    agent_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    condition: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_short_tool_key(cls, data: Any) -> Any:
        # Plans written by the LLM use either "tool" or "tool_name".
        if isinstance(data, dict) and "tool_name" not in data and "tool" in data:
            data = {**data, "tool_name": data["tool"]}
        if isinstance(data, dict) and data.get("parameters") is None:
            data = {**data, "parameters": {}}
        return data


class DirectAnswer(BaseModel):
    """The LLM answered the user without any tool."""

    kind: Literal["direct_answer"] = "direct_answer"
    text: str


class SingleCall(BaseModel):
    """Exactly one tool call."""

    kind: Literal["single_call"] = "single_call"
    tool_name: str
    agent_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class MissingParameters(BaseModel):
    """The request cannot run until the user supplies more information."""

    kind: Literal["missing_parameters"] = "missing_parameters"
    tool_name: Optional[str] = None
    agent_name: Optional[str] = None
    missing: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class CompletedCall(BaseModel):
    """The LLM reported a call whose result is already embedded in its reply."""

    kind: Literal["completed_call"] = "completed_call"
    tool_name: Optional[str] = None
    agent_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    response: Any = None


class MultiStep(BaseModel):
    """An ordered list of dependent tool calls."""

    kind: Literal["multi_step"] = "multi_step"
    steps: List[PlanStep] = Field(default_factory=list)


ExecutionPlan = Annotated[
    Union[DirectAnswer, SingleCall, MissingParameters, CompletedCall, MultiStep],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Execution audit trail
# ---------------------------------------------------------------------------
class StepStatus(str, Enum):
    """Outcome of one step."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """A single entry in the executor's audit trail."""

    step_number: int
    tool_name: str
    agent_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: StepStatus
    result: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[str] = None
    skip_reason: Optional[str] = None
    condition: Optional[str] = None
    weather_assessment: Optional[str] = None


class ExecutionReport(BaseModel):
    """What a multi-step run produced."""

    total_steps: int = 0
    step_details: List[StepResult] = Field(default_factory=list)
    results: List[str] = Field(default_factory=list)
    weather_assessment: Optional[str] = None
    missing: Optional[MissingParameters] = None

    @property
    def completed_steps(self) -> int:
        """Number of steps that ran successfully."""
        return sum(1 for s in self.step_details if s.status == StepStatus.SUCCESS)

    @property
    def failed_steps(self) -> int:
        """Number of steps whose invocation failed."""
        return sum(1 for s in self.step_details if s.status == StepStatus.FAILED)

    @property
    def skipped_steps(self) -> int:
        """Number of steps skipped by a condition or redundancy check."""
        return sum(1 for s in self.step_details if s.status == StepStatus.SKIPPED)

    @property
    def aborted(self) -> bool:
        """True when the required-parameter gate stopped the plan."""
        return self.missing is not None


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------
class ConversationTurn(BaseModel):
    """A single user or assistant message recorded in a session."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None
