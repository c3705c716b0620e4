"""
Tests for the agent invoker: the required-parameter gate, response normalization and error
translation.
"""

import httpx
import pytest

from switchboard.agent.invoker import (
    UNAVAILABLE_MESSAGE,
    AgentInvoker,
    normalize_response,
    translate_status,
)
from switchboard.core.errors import (
    AgentInvocationError,
    MissingRequiredParameterError,
    UnknownToolError,
)
from switchboard.tools import (
    list_tools,
    register_tool,
    unregister_tool,
)

TOOLS_WITH_REQUIRED = [tool for tool in list_tools() if tool.required_params]


@pytest.mark.asyncio
@pytest.mark.parametrize("tool", TOOLS_WITH_REQUIRED, ids=lambda t: t.name)
@pytest.mark.parametrize("empty", [None, "", "   "])
async def test_gate_blocks_every_tool_before_any_call(agents, invoker, tool, empty) -> None:
    """A required parameter that is absent, None or blank never reaches the agent."""
    params = {name: "x" for name in tool.required_params}
    missing = sorted(tool.required_params)[0]
    params[missing] = empty

    with pytest.raises(MissingRequiredParameterError) as info:
        await invoker.invoke(tool.name, params)

    assert missing in info.value.missing
    assert agents.calls == []


@pytest.mark.asyncio
async def test_gate_lists_all_missing_in_schema_order(agents, invoker) -> None:
    """Every absent required parameter is named."""
    with pytest.raises(MissingRequiredParameterError) as info:
        await invoker.invoke("search_flights", {})
    assert info.value.missing == ["source", "destination", "date"]
    assert agents.calls == []


@pytest.mark.asyncio
async def test_unknown_tool(invoker) -> None:
    """Unregistered tools raise *UnknownToolError*."""
    with pytest.raises(UnknownToolError) as info:
        await invoker.invoke("not_a_tool", {})
    assert "not_a_tool" in str(info.value)


@pytest.mark.asyncio
async def test_posts_tool_and_parameters(agents, invoker) -> None:
    """The body is ``{"tool": name, **parameters}`` and the text is unwrapped."""
    agents.replies["get_current_weather_by_city"] = "Current Weather in Paris: 18°C, clear sky"

    result = await invoker.invoke("get_current_weather_by_city", {"city": "Paris"})

    assert agents.calls == [("get_current_weather_by_city", {"city": "Paris"})]
    assert result.text == "Current Weather in Paris: 18°C, clear sky"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, expected",
    [
        (400, "Invalid request parameters"),
        (401, "Authentication"),
        (404, "could not be found"),
        (429, "rate limited"),
        (500, "server error"),
        (503, "server error"),
    ],
)
async def test_http_errors_are_translated(agents, invoker, status, expected) -> None:
    """HTTP failures become short user-facing sentences."""
    agents.replies["get_all_tables"] = httpx.Response(status, json={"error": "boom"})

    with pytest.raises(AgentInvocationError) as info:
        await invoker.invoke("get_all_tables", {})

    assert expected in info.value.user_message
    assert info.value.status_code == status
    assert len(agents.calls) == 1


@pytest.mark.asyncio
async def test_connection_refused_is_unavailable() -> None:
    """A refused connection means the service is unavailable; it is not retried."""
    attempts = []

    def refuse(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    invoker = AgentInvoker(client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
    with pytest.raises(AgentInvocationError) as info:
        await invoker.invoke("get_live_location", {})

    assert info.value.user_message == UNAVAILABLE_MESSAGE
    assert len(attempts) == 1


def test_translate_status_email_fallback() -> None:
    """Unknown failures of the email tool get the email-specific sentence."""
    assert "Email could not be sent" in translate_status(None, "outlook_send_email")


def test_normalize_content_text() -> None:
    result = normalize_response({"content": {"text": "hello"}})
    assert result.text == "hello"
    assert result.raw == {"content": {"text": "hello"}}


def test_normalize_mcp_content_list() -> None:
    result = normalize_response({"content": [{"type": "text", "text": "a"}, {"text": "b"}]})
    assert result.text == "a\nb"


def test_normalize_text_field() -> None:
    assert normalize_response({"text": "plain"}).text == "plain"


def test_normalize_raw_json() -> None:
    """Bodies without a text field are JSON-stringified and kept as ``raw``."""
    result = normalize_response({"meetings": [{"id": 1}]})
    assert '"meetings"' in result.text
    assert result.raw == {"meetings": [{"id": 1}]}
    assert result.as_json() == {"meetings": [{"id": 1}]}


def test_normalize_plain_and_encoded_strings() -> None:
    assert normalize_response("just text").text == "just text"
    assert normalize_response('{"text": "inner"}').text == "inner"


# This is a stub tool for testing purposes.
@register_tool("add_numbers")
def _add(a: int, b: int) -> int:
    """Return the sum of two integers."""
    return a + b


@register_tool("async_echo")
async def _echo(message: str) -> dict:
    """Echo the message back."""
    return {"text": message}


@pytest.mark.asyncio
async def test_function_tools(agents, invoker) -> None:
    """In-process tools run without HTTP; coroutine handles are awaited."""
    assert (await invoker.invoke("add_numbers", {"a": 2, "b": 3})).text == "5"
    assert (await invoker.invoke("async_echo", {"message": "hi"})).text == "hi"
    assert agents.calls == []


@pytest.mark.asyncio
async def test_function_tool_bad_args(invoker) -> None:
    """Argument mismatches surface as *AgentInvocationError*."""
    with pytest.raises(AgentInvocationError) as info:
        await invoker.invoke("add_numbers", {"a": 2, "b": 3, "c": 4})
    assert "Invalid arguments" in str(info.value)


def test_register_tool_rejects_duplicates() -> None:
    """Tool names are unique."""
    with pytest.raises(ValueError):
        register_tool("add_numbers")(lambda a: a)


def test_unregister_tool() -> None:
    register_tool("throwaway")(lambda: "x")
    unregister_tool("throwaway")
    assert "throwaway" not in [tool.name for tool in list_tools()]
