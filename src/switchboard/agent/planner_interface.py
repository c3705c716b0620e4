"""
Planner interface for switchboard.

This module is the only place that *directly* calls an LLM.  Everything else (executor, tools,
sessions) stays model-agnostic.

We support three back-ends out of the box:

1. **OpenAI** via the public API (``OPENAI_API_KEY``).
2. **Azure OpenAI** deployments (``AZURE_ENDPOINT`` + ``AZURE_DEPLOYMENT_NAME``).
3. **Anthropic** Claude models (``ANTHROPIC_API_KEY``).

Additional providers can be added by subclassing :class:`BasePlanner`, implementing
:meth:`BasePlanner.complete`, and registering via :func:`register_planner`.
"""

import logging
import re
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Sequence,
    Type,
)

from switchboard.agent.plan_parser import (
    decode_plan,
    parse_llm_json,
)
from switchboard.agent.prompts import build_prompt
from switchboard.common import (
    Clock,
    system_clock,
)
from switchboard.config import settings
from switchboard.core.errors import PlanningError
from switchboard.core.schema import (
    ConversationTurn,
    ExecutionPlan,
    MissingParameters,
    MultiStep,
)

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

IATA_SYSTEM_PROMPT = (
    "You are an expert in airport codes. Only respond with the 3-letter IATA code, nothing else."
)

# ---------------------------------------------------------------------------
# Vague meeting guard
# ---------------------------------------------------------------------------
MEETING_TOOL = "zoom_create_meeting"
VAGUE_TIME_PHRASES = ("this week", "next week", "soon", "asap", "when convenient", "when available")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
CLOCK_TIMES = (
    "morning", "afternoon", "evening", "9am", "10am", "11am", "12pm", "1pm", "2pm", "3pm", "4pm",
    "5pm", "6pm",
)  # fmt: skip
MEETING_CLARIFICATION = (
    "Sure! I'd be happy to help schedule that meeting. What day this week would work best for "
    "you? And would an hour-long meeting be good, or do you need a different duration?\n\n"
    "Just let me know your preferred day and time, and I'll get everything set up with the "
    "meeting details."
)


def vague_meeting_guard(plan: ExecutionPlan, user_input: str) -> ExecutionPlan:
    """
    Replace a multi-step plan that schedules a meeting at a vague time with a clarification request.

    The plan is returned unchanged unless it creates a meeting and the user's text names a vague
    period ("this week", "soon", ...) without any weekday or clock time.
    """
    if not isinstance(plan, MultiStep):
        return plan
    if not any(step.tool_name == MEETING_TOOL for step in plan.steps):
        return plan

    text = user_input.lower()
    vague = any(phrase in text for phrase in VAGUE_TIME_PHRASES)
    concrete = any(day in text for day in WEEKDAYS) or any(t in text for t in CLOCK_TIMES)
    if vague and not concrete:
        logger.info("Vague meeting time in request; asking for a day and time first")
        return MissingParameters(
            tool_name="meeting_scheduling",
            agent_name="Orchestrator",
            missing=["meeting_day", "meeting_time"],
            message=MEETING_CLARIFICATION,
        )
    return plan


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str | None = None, **kwargs: Any) -> "BasePlanner":
    """
    Factory that returns an instantiated planner.

    Fallback order:
    1. *name* arg
    2. ``settings.PLANNER`` env option
    """
    target = name or settings.PLANNER
    cls = _PLANNER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Planner '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that converts a user request (plus session history) into an execution plan."""

    def __init__(self, clock: Clock = system_clock) -> None:
        self.clock = clock

    @abstractmethod
    async def complete(self, prompt: str, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
        """Send one chat completion and return the reply text."""

    async def plan(
        self,
        user_input: str,
        history: Sequence[ConversationTurn] | None = None,
        last_request: str | None = None,
    ) -> ExecutionPlan:
        """
        Ask the LLM for a plan and decode it.

        Raises
        ------
        PlanningError
            If the LLM call fails or its reply cannot be decoded; ``raw_reply`` holds the reply.
        """
        prompt = build_prompt(user_input, self.clock(), history, last_request)
        logger.debug("Full prompt sent to LLM:\n%s", prompt)

        reply = await self.complete(prompt)
        logger.debug("LLM reply: %s", reply)

        plan = decode_plan(parse_llm_json(reply), raw_reply=reply)
        return vague_meeting_guard(plan, user_input)

    async def lookup_iata(self, city: str) -> str | None:
        """Single-shot LLM lookup of the IATA code for *city*; None if the model gives no code."""
        prompt = (
            f'What is the IATA airport code for the city "{city}"? '
            "Respond with only the 3-letter code, nothing else."
        )
        try:
            reply = await self.complete(prompt, IATA_SYSTEM_PROMPT)
        except PlanningError as exc:
            logger.warning("LLM fallback for IATA code of %s failed: %s", city, exc)
            return None
        match = re.search(r"\b([A-Z]{3})\b", reply)
        return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
class _ChatCompletionsPlanner(BasePlanner):
    """Shared request code for the OpenAI-compatible chat completions API."""

    model: str = ""

    def __init__(self, client: Any = None, clock: Clock = system_clock) -> None:
        super().__init__(clock)
        self._client = client

    def _make_client(self) -> Any:
        raise NotImplementedError

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._make_client()
        return self._client

    async def complete(self, prompt: str, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS,
            )
        except openai.OpenAIError as exc:
            logger.error("%s error: %s", type(self).__name__, exc)
            raise PlanningError(f"Error calling the LLM: {exc}") from exc

        content = resp.choices[0].message.content
        if not content:
            logger.error("%s returned an empty response", type(self).__name__)
            raise PlanningError("Empty response from the LLM", "")
        return str(content)


@register_planner("openai")
class OpenAIPlanner(_ChatCompletionsPlanner):
    """OpenAI-based planner."""

    @property
    def model(self) -> str:  # type: ignore[override]
        return settings.OPENAI_MODEL

    def _make_client(self) -> Any:
        import openai  # pylint: disable=import-outside-toplevel

        return openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


@register_planner("azure")
class AzureOpenAIPlanner(_ChatCompletionsPlanner):
    """Planner backed by an Azure OpenAI deployment."""

    @property
    def model(self) -> str:  # type: ignore[override]
        return settings.AZURE_DEPLOYMENT_NAME or settings.OPENAI_MODEL

    def _make_client(self) -> Any:
        import openai  # pylint: disable=import-outside-toplevel

        if not settings.AZURE_ENDPOINT:
            raise PlanningError("AZURE_ENDPOINT is not configured")
        return openai.AsyncAzureOpenAI(
            api_key=settings.OPENAI_API_KEY,
            azure_endpoint=settings.AZURE_ENDPOINT,
            azure_deployment=settings.AZURE_DEPLOYMENT_NAME,
            api_version=settings.AZURE_API_VERSION,
        )


@register_planner("anthropic")
class AnthropicPlanner(BasePlanner):
    """Anthropic Claude-based planner."""

    def __init__(self, client: Any = None, clock: Clock = system_clock) -> None:
        super().__init__(clock)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            self._client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        return self._client

    async def complete(self, prompt: str, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        try:
            response = await self.client.messages.create(
                model=settings.ANTHROPIC_MODEL,
                max_tokens=settings.LLM_MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.LLM_TEMPERATURE,
            )
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic planner error: %s", exc)
            raise PlanningError(f"Error calling Anthropic: {exc}") from exc

        # Handle different content block types from Anthropic API
        if response.content and response.content[0].type == "text":
            return str(response.content[0].text)
        return str(response.content[0]) if response.content else ""
