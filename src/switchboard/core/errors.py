"""Exception hierarchy shared by the planner, the invoker and the executor."""

from typing import (
    Iterable,
    List,
)


class SwitchboardError(RuntimeError):
    """Base class for every orchestration error."""


class PlanningError(SwitchboardError):
    """Raised when the LLM reply cannot be turned into an execution plan."""

    def __init__(self, message: str, raw_reply: str | None = None) -> None:
        super().__init__(message)
        self.raw_reply = raw_reply


class UnknownToolError(SwitchboardError):
    """Raised when a plan names a tool that is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' is not registered.")
        self.tool_name = tool_name


class MissingRequiredParameterError(SwitchboardError):
    """Raised before any outbound call when required parameters are absent or empty."""

    def __init__(self, tool_name: str, missing: Iterable[str]) -> None:
        self.tool_name = tool_name
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Missing required parameters for '{tool_name}': {', '.join(self.missing)}"
        )


class PlaceholderResolutionError(SwitchboardError):
    """Raised when a step depends on a fact that no earlier step produced."""


class AgentInvocationError(SwitchboardError):
    """
    Raised when an agent call fails.

    ``user_message`` is a short sentence fit to show to the end user; ``str(exc)`` keeps the
    technical detail for the logs.
    """

    def __init__(
        self, message: str, user_message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.user_message = user_message
        self.status_code = status_code
