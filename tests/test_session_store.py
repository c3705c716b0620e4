"""Tests for conversation sessions, follow-up merging and idle eviction."""

import asyncio
from datetime import timedelta

import pytest

from switchboard.memory.session_store import (
    ConversationSession,
    PendingRequest,
    SessionStore,
    assistant_content,
)
from conftest import FIXED_NOW


def _session(last_request: str | None = None, missing: list | None = None) -> ConversationSession:
    session = ConversationSession(session_id="s1", last_touched=FIXED_NOW)
    session.last_request = last_request
    if missing:
        session.pending = PendingRequest(tool_name="search_flights", missing_params=missing)
    return session


class _Clock:
    def __init__(self) -> None:
        self.now = FIXED_NOW

    def __call__(self):
        return self.now


# ---------------------------------------------------------------------------
# Follow-ups
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "text",
    ["2025-08-01", "August 1", "1 August", "tomorrow", "01/08/2025", "yes", "ok, go ahead"],
)
def test_follow_up_patterns(text) -> None:
    assert _session().is_follow_up(text)


@pytest.mark.parametrize("text", ["show me the weather in Paris", "Chennai", "2025-08-01 please"])
def test_new_requests_are_not_follow_ups(text) -> None:
    assert not _session().is_follow_up(text)


def test_bare_place_is_follow_up_only_when_a_place_is_missing() -> None:
    assert _session("flights to DEL", ["source"]).is_follow_up("Chennai")
    assert not _session("flights to DEL", ["date"]).is_follow_up("Chennai")
    assert not _session("flights to DEL", ["source"]).is_follow_up("find me a cheap hotel in Goa")


def test_merge_date() -> None:
    session = _session("flights from BLR to DEL", ["date"])
    assert session.merge_follow_up("2025-08-01") == "flights from BLR to DEL on 2025-08-01"


def test_merge_destination_before_date() -> None:
    session = _session("flights from BLR", ["destination", "date"])
    assert session.merge_follow_up("Delhi") == "flights from BLR to Delhi"


def test_merge_source() -> None:
    session = _session("flights to DEL on 2025-08-01", ["source"])
    assert session.merge_follow_up("Chennai") == "flights to DEL on 2025-08-01 from Chennai"


def test_merge_without_pending_request_returns_text() -> None:
    assert _session("weather in Paris").merge_follow_up("tomorrow") == "tomorrow"


# ---------------------------------------------------------------------------
# Recording turns
# ---------------------------------------------------------------------------
def test_update_context_success() -> None:
    session = _session()
    envelope = {
        "success": True,
        "type": "single_agent",
        "agent_used": "WeatherAgent",
        "tool_used": "get_current_weather_by_city",
        "parameters": {"city": "Paris"},
        "result": "Current Weather in Paris: 18°C",
    }

    session.update_context("weather in Paris", envelope, FIXED_NOW)

    assert [turn.role for turn in session.history] == ["assistant", "user"]
    assistant = session.history[0]
    assert assistant.content == "Current Weather in Paris: 18°C"
    assert assistant.metadata["tool_used"] == "get_current_weather_by_city"
    assert session.last_request == "weather in Paris"
    assert session.user_inputs == ["weather in Paris"]
    assert session.pending is None


def test_update_context_failure_records_only_user_turn() -> None:
    session = _session()
    session.update_context("weather in Paris", {"success": False, "error": "boom"}, FIXED_NOW)
    assert [turn.role for turn in session.history] == ["user"]


def test_update_context_remembers_missing_parameters() -> None:
    session = _session()
    envelope = {
        "success": True,
        "status": "missing_parameters",
        "agent_name": "FlightSearchAgent",
        "tool_name": "search_flights",
        "missing_parameters": ["date"],
        "final_result": "I need the travel date.",
    }

    session.update_context("flights from BLR to DEL", envelope, FIXED_NOW)

    assert session.pending == PendingRequest(
        agent_name="FlightSearchAgent", tool_name="search_flights", missing_params=["date"]
    )
    assert session.merge_follow_up("2025-08-01") == "flights from BLR to DEL on 2025-08-01"


def test_update_context_keeps_typed_text_and_merged_request() -> None:
    session = _session("flights from BLR", ["destination", "date"])
    merged = session.merge_follow_up("Delhi")

    session.update_context("Delhi", {"success": False}, FIXED_NOW, request=merged)

    assert session.user_inputs == ["Delhi"]
    assert session.history[-1].content == "Delhi"
    assert session.last_request == "flights from BLR to Delhi"


def test_history_keeps_newest_turns() -> None:
    session = ConversationSession(session_id="s1", last_touched=FIXED_NOW, max_turns=4)
    for n in range(5):
        envelope = {"success": True, "response": f"answer {n}"}
        session.update_context(f"question {n}", envelope, FIXED_NOW)

    assert [turn.content for turn in session.history] == [
        "answer 3",
        "question 3",
        "answer 4",
        "question 4",
    ]
    assert len(session.user_inputs) == 5


def test_assistant_content_for_multi_step_drops_errors() -> None:
    envelope = {"type": "multi_step", "results": ["City: Pune", "Error: service down", "Sunny"]}
    assert assistant_content(envelope) == "City: Pune\n\nSunny"


def test_as_context() -> None:
    session = _session("flights to DEL", ["source"])
    context = session.as_context()
    assert context["lastRequest"] == "flights to DEL"
    assert context["pendingParameters"]["missing_params"] == ["source"]
    assert context["conversationHistory"] == []


# ---------------------------------------------------------------------------
# Store and eviction
# ---------------------------------------------------------------------------
def test_get_or_create_reuses_sessions() -> None:
    store = SessionStore(clock=_Clock(), ttl_minutes=30)
    first = store.get_or_create("abc")
    assert store.get_or_create("abc") is first
    assert "abc" in store
    assert len(store) == 1
    assert store.get("missing") is None


def test_idle_sessions_are_evicted_after_ttl() -> None:
    clock = _Clock()
    store = SessionStore(clock=clock, ttl_minutes=30)
    store.get_or_create("idle")
    store.get_or_create("busy")

    clock.now = FIXED_NOW + timedelta(minutes=20)
    store.get_or_create("busy")

    assert store.evict(FIXED_NOW + timedelta(minutes=30)) == []
    assert store.evict(FIXED_NOW + timedelta(minutes=31)) == ["idle"]
    assert "idle" not in store
    assert "busy" in store

    clock.now = FIXED_NOW + timedelta(minutes=51)
    assert store.sweep() == ["busy"]
    assert len(store) == 0


@pytest.mark.asyncio
async def test_sweeper_can_be_cancelled() -> None:
    store = SessionStore(clock=_Clock(), ttl_minutes=30)
    task = asyncio.create_task(store.run_sweeper(interval_minutes=60))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
