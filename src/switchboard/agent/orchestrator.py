"""
Request orchestration: plan, execute, summarize.

:class:`Orchestrator` turns one user utterance into a JSON-ready envelope.  It asks the planner
for an :data:`~switchboard.core.schema.ExecutionPlan`, dispatches on the plan variant and never
raises: every failure becomes a ``success: False`` envelope.
"""

import json
import logging
from typing import (
    Any,
    Dict,
)

from switchboard.agent.executor import MultiStepExecutor
from switchboard.agent.iata import IataResolver
from switchboard.agent.invoker import AgentInvoker
from switchboard.agent.planner_interface import BasePlanner
from switchboard.common import (
    Clock,
    system_clock,
)
from switchboard.core.errors import (
    AgentInvocationError,
    MissingRequiredParameterError,
    PlanningError,
    SwitchboardError,
    UnknownToolError,
)
from switchboard.core.schema import (
    AgentResult,
    CompletedCall,
    DirectAnswer,
    ExecutionPlan,
    MissingParameters,
    MultiStep,
    SingleCall,
)
from switchboard.formatting.summaries import (
    missing_parameters_message,
    summarize_multi_step,
    summarize_single_step,
)
from switchboard.memory.session_store import ConversationSession
from switchboard.tools import find_tool

logger = logging.getLogger(__name__)

Envelope = Dict[str, Any]

INVALID_FORMAT = "Invalid agent call format"


class Orchestrator:
    """Glue between the planner, the invoker and the multi-step executor."""

    def __init__(
        self,
        planner: BasePlanner,
        invoker: AgentInvoker,
        clock: Clock = system_clock,
        executor: MultiStepExecutor | None = None,
    ) -> None:
        self.planner = planner
        self.invoker = invoker
        self.clock = clock
        self.executor = executor or MultiStepExecutor(
            invoker, IataResolver(invoker, planner), clock=clock
        )

    def _now(self) -> str:
        return self.clock().isoformat()

    async def run(self, user_input: str, session: ConversationSession | None = None) -> Envelope:
        """Plan and execute *user_input*; return the response envelope."""
        history = list(session.history) if session else None
        last_request = session.last_request if session else None
        try:
            plan = await self.planner.plan(user_input, history, last_request)
        except PlanningError as exc:
            logger.warning("Planning failed: %s", exc)
            if exc.raw_reply is None:
                return {"success": False, "error": str(exc), "timestamp": self._now()}
            if str(exc).startswith(INVALID_FORMAT):
                return {"success": False, "error": INVALID_FORMAT, "agentCall": exc.raw_reply}
            return {
                "success": False,
                "error": "Could not parse LLM response",
                "llmResponse": exc.raw_reply,
            }

        logger.info("Plan for %r: %s", user_input, plan.kind)
        try:
            return await self._dispatch(user_input, plan, session)
        except SwitchboardError as exc:
            logger.exception("Orchestration failed")
            return {"success": False, "error": str(exc), "timestamp": self._now()}

    async def _dispatch(
        self, user_input: str, plan: ExecutionPlan, session: ConversationSession | None
    ) -> Envelope:
        if isinstance(plan, SingleCall):
            return await self._single_call(user_input, plan)
        if isinstance(plan, MultiStep):
            return await self._multi_step(user_input, plan, session)
        if isinstance(plan, MissingParameters):
            return self._missing(user_input, plan)
        if isinstance(plan, CompletedCall):
            return self._completed(user_input, plan)
        return self._direct(user_input, plan)

    # ------------------------------------------------------------------
    # Plan variants
    # ------------------------------------------------------------------
    async def _single_call(self, user_input: str, plan: SingleCall) -> Envelope:
        tool = find_tool(plan.tool_name)
        agent_name = plan.agent_name or (tool.agent_name if tool else None)
        base = {
            "userInput": user_input,
            "type": "single_agent",
            "agent_used": agent_name,
            "tool_used": plan.tool_name,
            "parameters": plan.parameters,
        }
        try:
            result = await self.invoker.invoke(plan.tool_name, plan.parameters)
        except MissingRequiredParameterError as exc:
            return self._missing(
                user_input,
                MissingParameters(
                    tool_name=exc.tool_name, agent_name=agent_name, missing=exc.missing
                ),
            )
        except UnknownToolError as exc:
            return {**base, "success": False, "error": str(exc), "timestamp": self._now()}
        except AgentInvocationError as exc:
            return {
                **base,
                "success": False,
                "error": exc.user_message,
                "final_result": exc.user_message,
                "timestamp": self._now(),
            }

        return {
            "success": True,
            **base,
            "final_result": summarize_single_step(user_input, plan.tool_name, result),
            "result": result.text,
            "timestamp": self._now(),
        }

    async def _multi_step(
        self, user_input: str, plan: MultiStep, session: ConversationSession | None
    ) -> Envelope:
        report = await self.executor.execute(plan.steps, session.history if session else ())

        if report.missing is not None:
            missing = report.missing
            return {
                "success": True,
                "userInput": user_input,
                "status": "missing_parameters",
                "final_result": missing.message,
                "agent_name": missing.agent_name,
                "tool_name": missing.tool_name,
                "missing_parameters": missing.missing,
                "step_details": [s.model_dump(mode="json") for s in report.step_details],
                "results": report.results,
                "timestamp": self._now(),
            }

        return {
            "success": True,
            "userInput": user_input,
            "type": "multi_step",
            "final_result": summarize_multi_step(user_input, report),
            "total_steps": report.total_steps,
            "completed_steps": report.completed_steps,
            "failed_steps": report.failed_steps,
            "skipped_steps": report.skipped_steps,
            "step_details": [s.model_dump(mode="json") for s in report.step_details],
            "results": report.results,
            "weather_assessment": report.weather_assessment,
            "timestamp": self._now(),
        }

    def _missing(self, user_input: str, plan: MissingParameters) -> Envelope:
        return {
            "success": True,
            "userInput": user_input,
            "status": "missing_parameters",
            "final_result": (
                plan.message or missing_parameters_message(plan.tool_name, plan.missing)
            ),
            "agent_name": plan.agent_name,
            "tool_name": plan.tool_name,
            "missing_parameters": plan.missing,
            "suggestions": plan.suggestions,
            "timestamp": self._now(),
        }

    def _direct(self, user_input: str, plan: DirectAnswer) -> Envelope:
        return {
            "success": True,
            "userInput": user_input,
            "response": plan.text,
            "final_result": plan.text,
            "timestamp": self._now(),
        }

    def _completed(self, user_input: str, plan: CompletedCall) -> Envelope:
        response = plan.response
        text = response if isinstance(response, str) else json.dumps(response)
        tool_name = plan.tool_name or "unknown_tool"
        return {
            "success": True,
            "userInput": user_input,
            "type": "single_agent",
            "final_result": summarize_single_step(
                user_input, tool_name, AgentResult(text=text, raw=response)
            ),
            "agent_used": plan.agent_name or "UnknownAgent",
            "tool_used": tool_name,
            "parameters": plan.parameters,
            "result": text,
            "timestamp": self._now(),
        }
