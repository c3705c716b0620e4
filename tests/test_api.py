"""Tests for the HTTP routes, with the orchestrator and session store injected."""

import pytest
from fastapi.testclient import TestClient

from switchboard.agent.orchestrator import Orchestrator
from switchboard.api.app import (
    MISSING_INPUT_ERROR,
    app,
    get_orchestrator,
    get_sessions,
)
from switchboard.memory.session_store import SessionStore
from conftest import (
    ScriptedPlanner,
    fixed_clock,
)

PARIS = "Current Weather in Paris:\nTemperature: 18.2°C\nCondition: clear sky"


@pytest.fixture
def planner() -> ScriptedPlanner:
    return ScriptedPlanner([])


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(clock=fixed_clock, ttl_minutes=30)


@pytest.fixture
def client(planner, invoker, store):
    orchestrator = Orchestrator(planner, invoker, clock=fixed_clock)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_sessions] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert "WeatherAgent" in body["available_agents"]
    assert "search_flights" in body["available_tools"]


def test_agents_lists_capabilities(client) -> None:
    response = client.get("/agents")
    assert response.status_code == 200
    agents = {agent["name"]: agent for agent in response.json()["agents"]}
    flight_tools = [tool["tool"] for tool in agents["FlightSearchAgent"]["capabilities"]]
    assert "search_flights" in flight_tools
    assert agents["FlightSearchAgent"]["url"].endswith("/a2a")


def test_chat_requires_message(client) -> None:
    response = client.post("/api/chat", json={"sessionId": "abc"})
    assert response.status_code == 400
    assert response.json()["error"] == MISSING_INPUT_ERROR
    assert "example" in response.json()


def test_orchestrate_requires_user_input(client) -> None:
    response = client.post("/orchestrate", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing 'userInput' field"}


def test_unknown_session(client) -> None:
    response = client.get("/session/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found", "sessionId": "nope"}


def test_chat_turn_is_recorded(client, agents, planner, store) -> None:
    agents.replies["get_current_weather_by_city"] = PARIS
    planner.replies.append(
        {"status": 1, "tool_name": "get_current_weather_by_city", "parameters": {"city": "Paris"}}
    )

    response = client.post("/api/chat", json={"message": "weather in Paris", "sessionId": "abc"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["sessionId"] == "abc"
    assert body["isFollowUp"] is False
    assert "processedInput" not in body
    assert body["allUserInputs"] == ["weather in Paris"]
    assert [turn["role"] for turn in body["conversationHistory"]] == ["assistant", "user"]
    assert "18.2°C" in body["final_result"]

    session = client.get("/session/abc").json()
    assert session["sessionId"] == "abc"
    assert session["activeSessions"] == 1
    assert session["context"]["lastRequest"] == "weather in Paris"


def test_chat_follow_up_is_merged(client, agents, planner) -> None:
    planner.replies.extend(
        [
            {
                "status": 2,
                "tool_name": "search_flights",
                "missing_parameters": ["date"],
            },
            {
                "status": 1,
                "tool_name": "search_flights",
                "parameters": {"source": "BLR", "destination": "DEL", "date": "2025-08-01"},
            },
        ]
    )
    agents.replies["search_flights"] = "No flights found."

    first = client.post("/api/chat", json={"query": "flights from BLR to DEL", "sessionId": "t"})
    assert first.json()["status"] == "missing_parameters"

    second = client.post("/api/chat", json={"prompt": "2025-08-01", "sessionId": "t"})
    body = second.json()
    assert body["isFollowUp"] is True
    assert body["processedInput"] == "flights from BLR to DEL on 2025-08-01"
    assert body["allUserInputs"] == ["flights from BLR to DEL", "2025-08-01"]
    assert body["conversationHistory"][-1]["content"] == "2025-08-01"
    assert planner.prompts[1].rstrip().endswith(
        "User: flights from BLR to DEL on 2025-08-01\nAssistant:"
    )
    session = client.get("/session/t").json()
    assert session["context"]["lastRequest"] == "flights from BLR to DEL on 2025-08-01"


def test_orchestrate(client, planner) -> None:
    planner.replies.append({"status": 0, "response": "Hi!"})
    response = client.post("/orchestrate", json={"userInput": "hello"})
    assert response.status_code == 200
    assert response.json()["response"] == "Hi!"
