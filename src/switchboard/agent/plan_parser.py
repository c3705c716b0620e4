"""
Tolerant decoding of planner replies.

LLMs are asked for a bare JSON object but regularly wrap it in code fences, add prose around it,
or leave raw newlines inside string values.  :func:`parse_llm_json` applies a fixed sequence of
repairs; :func:`decode_plan` maps the ``status`` discriminator onto the typed plan variants.
"""

import ast
import json
import logging
import re
from typing import (
    Any,
    Dict,
    List,
)

from pydantic import ValidationError

from switchboard.core.errors import PlanningError
from switchboard.core.schema import (
    CompletedCall,
    DirectAnswer,
    ExecutionPlan,
    MissingParameters,
    MultiStep,
    PlanStep,
    SingleCall,
)
from switchboard.tools import find_tool

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")
_STRING_LITERAL = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)


# ---------------------------------------------------------------------------
# JSON repair
# ---------------------------------------------------------------------------
def strip_code_fences(content: str) -> str:
    """Remove markdown code fences around a reply, if present."""
    content = content.strip()
    if "```" in content:
        match = _FENCE.search(content)
        if match:
            return match.group(1).strip()
        content = re.sub(r"^```(?:json)?", "", content, flags=re.IGNORECASE)
        content = re.sub(r"```$", "", content)
    return content.strip()


def _largest_span(content: str) -> str | None:
    """The longest ``{...}`` or ``[...]`` span in *content*."""
    matches = (_OBJECT_SPAN.search(content), _ARRAY_SPAN.search(content))
    candidates = [m.group(0) for m in matches if m]
    if not candidates:
        return None
    return max(candidates, key=len)


def escape_string_controls(candidate: str) -> str:
    """Escape raw newlines, carriage returns and tabs that appear inside JSON string literals."""

    def _escape(match: re.Match) -> str:
        body = match.group(1).replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
        return f'"{body}"'

    return _STRING_LITERAL.sub(_escape, candidate)


_JSON_NAMES = {"true": True, "false": False, "null": None}


class _JsonNames(ast.NodeTransformer):
    """Turn bare ``true``/``false``/``null`` names into constants; string contents are untouched."""

    def visit_Name(self, node: ast.Name) -> ast.AST:  # pylint: disable=invalid-name
        if node.id in _JSON_NAMES:
            return ast.copy_location(ast.Constant(_JSON_NAMES[node.id]), node)
        return node


def _literal_eval(candidate: str) -> Any:
    tree = _JsonNames().visit(ast.parse(candidate.strip(), mode="eval"))
    return ast.literal_eval(tree)


def parse_llm_json(raw_reply: str) -> Any:
    """
    Parse an LLM reply into a JSON value.

    Strategies, in order: direct parse of the fence-stripped text; the largest ``{...}``/``[...]``
    span with control characters inside strings escaped; a double-encoded JSON string; and finally
    a Python literal evaluation of the span.

    Raises
    ------
    PlanningError
        If every strategy fails.  The raw reply is attached for diagnosis.
    """
    cleaned = strip_code_fences(raw_reply)
    try:
        value = json.loads(cleaned)
    except ValueError:
        pass
    else:
        if isinstance(value, str):
            # Double-encoded: the model returned a JSON string holding the object.
            try:
                return json.loads(value)
            except ValueError as exc:
                raise PlanningError("LLM reply is a plain string, not a plan", raw_reply) from exc
        return value

    span = _largest_span(cleaned)
    if span is None:
        logger.warning("No JSON found in LLM reply")
        raise PlanningError("No JSON found in LLM response", raw_reply)

    repaired = escape_string_controls(span)
    try:
        return json.loads(repaired)
    except ValueError:
        logger.warning("JSON repair failed, falling back to literal evaluation")

    try:
        value = _literal_eval(repaired)
    except (ValueError, SyntaxError, MemoryError, RecursionError) as exc:
        logger.error("Could not parse LLM reply: %s", raw_reply[:200])
        raise PlanningError("Could not parse LLM response", raw_reply) from exc
    if not isinstance(value, (dict, list)):
        raise PlanningError("Could not parse LLM response", raw_reply)
    return value


# ---------------------------------------------------------------------------
# Plan decoding
# ---------------------------------------------------------------------------
def _agent_for(tool_name: str | None, agent_name: str | None) -> str | None:
    if agent_name or not tool_name:
        return agent_name
    tool = find_tool(tool_name)
    return tool.agent_name if tool else None


def _steps(raw_steps: List[Any]) -> List[PlanStep]:
    steps = []
    for raw in raw_steps:
        step = PlanStep.model_validate(raw)
        step.agent_name = _agent_for(step.tool_name, step.agent_name)
        steps.append(step)
    return steps


def _missing_list(value: Any) -> List[str]:
    # Accept both ["source", "date"] and {"source": "...", "date": "..."}.
    if isinstance(value, dict):
        return [k for k, v in value.items() if v]
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value or []]


def decode_plan(payload: Any, raw_reply: str = "") -> ExecutionPlan:
    """
    Map a parsed planner reply onto an :data:`ExecutionPlan` variant.

    ``status`` 0 is a direct answer, 1 a single call, 2 missing parameters (or, when it carries a
    ``response`` instead, a call already completed by the model), 3 a multi-step plan.  A bare list
    is taken as a list of steps.

    Raises
    ------
    PlanningError
        If the reply does not match any variant.
    """
    if isinstance(payload, list):
        payload = {"status": 3, "steps": payload}
    if not isinstance(payload, dict):
        raise PlanningError("Invalid agent call format", raw_reply)

    try:
        status = int(payload.get("status"))  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise PlanningError("Invalid agent call format: missing status", raw_reply) from exc

    tool_name = payload.get("tool_name") or payload.get("tool")
    agent_name = _agent_for(tool_name, payload.get("agent_name"))
    parameters: Dict[str, Any] = payload.get("parameters") or {}

    try:
        if status == 0:
            return DirectAnswer(text=str(payload.get("response") or ""))
        if status == 1 and tool_name:
            return SingleCall(tool_name=tool_name, agent_name=agent_name, parameters=parameters)
        if status == 2 and payload.get("missing_parameters"):
            return MissingParameters(
                tool_name=tool_name,
                agent_name=agent_name,
                missing=_missing_list(payload["missing_parameters"]),
                suggestions=[str(s) for s in payload.get("suggestions") or []],
            )
        if status == 2 and payload.get("response") is not None:
            response = payload["response"]
            if isinstance(response, str):
                try:
                    response = json.loads(response)
                except ValueError:
                    pass
            return CompletedCall(
                tool_name=tool_name,
                agent_name=agent_name,
                parameters=parameters,
                response=response,
            )
        if status == 3 and isinstance(payload.get("steps"), list):
            return MultiStep(steps=_steps(payload["steps"]))
    except ValidationError as exc:
        logger.warning("Planner reply failed validation: %s", exc)
        raise PlanningError(f"Invalid agent call format: {exc}", raw_reply) from exc

    raise PlanningError("Invalid agent call format", raw_reply)
