"""
Tool registry for the orchestrator.

This module holds the catalog of every capability the planner may call, keyed by tool name, and the
agents that own them.  Entries are added once at import time (see :mod:`switchboard.tools.catalog`)
and are read-only afterwards.  In-process tools can be added with the :func:`register_tool`
decorator.
"""

import inspect
import logging
from typing import (
    Callable,
    Dict,
    List,
    Mapping,
    get_type_hints,
)

from switchboard.core.schema import (
    AgentDescriptor,
    FunctionInvocation,
    ParameterSpec,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, ToolDescriptor] = {}
"""Global registry of tool descriptors, keyed by tool name."""

AGENT_REGISTRY: Dict[str, AgentDescriptor] = {}
"""Global registry of agents, keyed by agent name (insertion order is catalog order)."""

FUNCTION_AGENT = "LocalFunctions"


def register_agent(agent: AgentDescriptor) -> AgentDescriptor:
    """Add *agent* to the registry, replacing an earlier entry of the same name."""
    AGENT_REGISTRY[agent.name] = agent
    return agent


def add_tool(descriptor: ToolDescriptor) -> ToolDescriptor:
    """
    Add a tool descriptor to the registry.

    Raises
    ------
    ValueError
        If a tool with the same name is already registered.
    """
    if descriptor.name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{descriptor.name}' is already registered.")
    logger.debug("Registering tool '%s' (agent=%s)", descriptor.name, descriptor.agent_name)
    TOOL_REGISTRY[descriptor.name] = descriptor
    return descriptor


def register_tool(
    name: str, description: str | None = None, agent_name: str = FUNCTION_AGENT
) -> Callable:
    """
    Register an in-process function as a tool with the given name.

    The function is registered as a decorator, so it can be used like this:
        @register_tool("my_tool")
        async def my_tool_function(city: str, days: int = 1):
            ...

    The parameter schema is derived from the function signature: parameters without a default are
    required.  The function receives the plan parameters as keyword arguments and may be sync or
    async.

    Parameters
    ----------
    name: str
        The name of the tool.  This must be unique across the whole catalog.
    description: str, optional
        Description shown to the planner; defaults to the function docstring.
    agent_name: str
        Agent the tool is listed under.

    Returns
    -------
    Callable
        A decorator that registers the function with the given name.

    Raises
    ------
    ValueError
        If a tool with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")

    def wrapper(fn: Callable) -> Callable:
        add_tool(
            ToolDescriptor(
                name=name,
                agent_name=agent_name,
                description=description or (fn.__doc__ or "").strip(),
                parameters=_signature_schema(fn),
                invocation=FunctionInvocation(handle=fn),
            )
        )
        return fn

    return wrapper


def _signature_schema(fn: Callable) -> Dict[str, ParameterSpec]:
    """Extract parameter information from a function signature."""
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    params: Dict[str, ParameterSpec] = {}
    for param_name, param in sig.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        param_type = type_hints.get(param_name, "any")
        param_type_name = getattr(param_type, "__name__", str(param_type))
        params[param_name] = ParameterSpec(
            type=param_type_name, required=param.default is inspect.Parameter.empty
        )
    return params


def unregister_tool(name: str) -> None:
    """Remove a tool from the registry (used by tests that register throwaway tools)."""
    TOOL_REGISTRY.pop(name, None)


def find_tool(name: str) -> ToolDescriptor | None:
    """Return the descriptor registered under *name*, or None."""
    return TOOL_REGISTRY.get(name)


def list_tools() -> List[ToolDescriptor]:
    """Return every registered tool in registration order."""
    return list(TOOL_REGISTRY.values())


def tools_by_agent() -> Mapping[str, List[ToolDescriptor]]:
    """Group the registered tools by owning agent, in catalog order."""
    grouped: Dict[str, List[ToolDescriptor]] = {name: [] for name in AGENT_REGISTRY}
    for tool in TOOL_REGISTRY.values():
        grouped.setdefault(tool.agent_name, []).append(tool)
    return grouped


# Populate the static catalog on first import.
from switchboard.tools import catalog  # noqa: E402,F401  pylint: disable=wrong-import-position
