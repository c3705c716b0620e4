"""Dispatches tool calls registered in ``switchboard.tools`` and wraps errors."""

import inspect
import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

import httpx

from switchboard.config import settings
from switchboard.core.errors import (
    AgentInvocationError,
    MissingRequiredParameterError,
    UnknownToolError,
)
from switchboard.core.schema import (
    AgentResult,
    FunctionInvocation,
    HttpInvocation,
    ToolDescriptor,
)
from switchboard.tools import find_tool

logger = logging.getLogger(__name__)

# User-facing sentences keyed by HTTP status.
STATUS_MESSAGES: Dict[int, str] = {
    400: "Invalid request parameters. Please provide the correct information.",
    401: "Authentication with the service failed. Please check the service credentials.",
    403: "Authentication with the service failed. Please check the service credentials.",
    404: "The requested information could not be found. Please check your input and try again.",
    429: "The service is rate limited right now. Please wait a moment and retry.",
    500: "A server error occurred. Please try again later.",
}
UNAVAILABLE_MESSAGE = "The service is currently unavailable. Please try again later."
TIMEOUT_MESSAGE = "The service took too long to respond. Please try again later."
EMAIL_MESSAGE = "Email could not be sent. Please check the email address and try again."
GENERIC_MESSAGE = "An error occurred while processing your request. Please try again."


# ---------------------------------------------------------------------------
# Parameter checks
# ---------------------------------------------------------------------------
def is_absent(value: Any) -> bool:
    """A parameter counts as absent when it is None or an empty string."""
    return value is None or (isinstance(value, str) and value.strip() == "")


def missing_required(tool: ToolDescriptor, parameters: Mapping[str, Any]) -> List[str]:
    """Return the required parameters of *tool* that are absent from *parameters*, in schema order."""
    return [
        name
        for name, spec in tool.parameters.items()
        if spec.required and is_absent(parameters.get(name))
    ]


def resolve_tool(tool_name: str) -> ToolDescriptor:
    """
    Look up *tool_name* in the registry.

    Raises
    ------
    UnknownToolError
        If no tool of that name is registered.
    """
    tool = find_tool(tool_name)
    if tool is None:
        raise UnknownToolError(tool_name)
    return tool


# ---------------------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------------------
def _text_field(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    content = body.get("content")
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    if isinstance(content, list):
        # MCP style: [{"type": "text", "text": "..."}]
        texts = [c.get("text") for c in content if isinstance(c, dict) and c.get("text")]
        if texts:
            return "\n".join(texts)
    if isinstance(body.get("text"), str):
        return body["text"]
    return None


def normalize_response(body: Any) -> AgentResult:
    """
    Collapse the agents' heterogeneous response shapes into one :class:`AgentResult`.

    Accepted shapes are ``{"content": {"text": ...}}``, ``{"text": ...}``, arbitrary JSON and plain
    strings.  A string that itself holds one of the JSON shapes is unwrapped once.
    """
    if isinstance(body, str):
        stripped = body.strip()
        if stripped.startswith("{"):
            try:
                decoded = json.loads(stripped)
            except ValueError:
                return AgentResult(text=body, raw=body)
            text = _text_field(decoded)
            return AgentResult(text=body if text is None else text, raw=decoded)
        return AgentResult(text=body, raw=body)

    text = _text_field(body)
    if text is not None:
        return AgentResult(text=text, raw=body)
    if body is None:
        return AgentResult(text="", raw=None)
    return AgentResult(text=json.dumps(body, indent=2, ensure_ascii=False), raw=body)


def translate_status(status_code: int | None, tool_name: str = "") -> str:
    """Map an HTTP status (or None for transport failures) to a short user-facing sentence."""
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    if status_code is not None and status_code >= 500:
        return STATUS_MESSAGES[500]
    if tool_name.startswith("outlook") or "email" in tool_name:
        return EMAIL_MESSAGE
    return GENERIC_MESSAGE


# ---------------------------------------------------------------------------
# Invoker
# ---------------------------------------------------------------------------
class AgentInvoker:
    """
    Performs exactly one call per tool invocation, over HTTP or in-process.

    The :class:`httpx.AsyncClient` can be injected (tests pass one built on ``httpx.MockTransport``);
    otherwise one is created lazily and closed by :meth:`aclose`.
    """

    def __init__(
        self, client: httpx.AsyncClient | None = None, timeout: float | None = None
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else settings.AGENT_TIMEOUT

    @property
    def client(self) -> httpx.AsyncClient:
        """The shared HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this invoker created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def invoke(self, tool_name: str, parameters: Dict[str, Any] | None = None) -> AgentResult:
        """
        Validate *parameters* against the registry and call the tool once.

        Raises
        ------
        UnknownToolError
            If the tool is not registered.
        MissingRequiredParameterError
            If a required parameter is absent; no outbound call is made.
        AgentInvocationError
            If the call itself fails.
        """
        if parameters is None:
            parameters = {}

        tool = resolve_tool(tool_name)
        missing = missing_required(tool, parameters)
        if missing:
            raise MissingRequiredParameterError(tool_name, missing)

        logger.info("Invoking %s.%s", tool.agent_name, tool_name)
        logger.debug("Parameters for '%s': %s", tool_name, parameters)

        if isinstance(tool.invocation, FunctionInvocation):
            return await self._invoke_function(tool, parameters)
        return await self._invoke_http(tool, tool.invocation, parameters)

    async def _invoke_http(
        self, tool: ToolDescriptor, invocation: HttpInvocation, parameters: Dict[str, Any]
    ) -> AgentResult:
        payload = {"tool": tool.name, **parameters}
        try:
            resp = await self.client.post(invocation.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("Agent %s returned HTTP %d for '%s'", tool.agent_name, status, tool.name)
            raise AgentInvocationError(
                f"{tool.agent_name} returned HTTP {status} for '{tool.name}'",
                user_message=translate_status(status, tool.name),
                status_code=status,
            ) from exc
        except httpx.ConnectError as exc:
            logger.error("Agent %s is unreachable at %s", tool.agent_name, invocation.url)
            raise AgentInvocationError(
                f"Connection to {tool.agent_name} refused: {exc}",
                user_message=UNAVAILABLE_MESSAGE,
            ) from exc
        except httpx.TimeoutException as exc:
            logger.error("Agent %s timed out on '%s'", tool.agent_name, tool.name)
            raise AgentInvocationError(
                f"{tool.agent_name} timed out: {exc}", user_message=TIMEOUT_MESSAGE
            ) from exc
        except httpx.HTTPError as exc:
            logger.exception("Transport error calling %s", tool.agent_name)
            raise AgentInvocationError(
                f"Transport error calling {tool.agent_name}: {exc}",
                user_message=translate_status(None, tool.name),
            ) from exc

        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        result = normalize_response(body)
        logger.debug("'%s' returned: %s", tool.name, result.text[:500])
        return result

    async def _invoke_function(
        self, tool: ToolDescriptor, parameters: Dict[str, Any]
    ) -> AgentResult:
        handle = tool.invocation.handle  # type: ignore[union-attr]
        try:
            value = handle(**parameters)
            if inspect.isawaitable(value):
                value = await value
        except TypeError as exc:
            # Argument mismatch: give the caller a clean exception.
            logger.exception("Argument error while executing tool '%s'", tool.name)
            raise AgentInvocationError(
                f"Invalid arguments for tool '{tool.name}': {exc}",
                user_message=STATUS_MESSAGES[400],
            ) from exc
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error in tool '%s'", tool.name)
            raise AgentInvocationError(
                f"Tool '{tool.name}' raised an error: {exc}",
                user_message=translate_status(None, tool.name),
            ) from exc
        return normalize_response(value)
