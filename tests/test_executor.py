"""
Tests for the multi-step executor: placeholder resolution, conditions, the forecast veto, the
required-parameter gate and meeting-id fan-out.
"""

import httpx
import pytest

from switchboard.agent.executor import (
    CONDITION_NOT_MET,
    LIVE_LOCATION_CITY_ERROR,
    MultiStepExecutor,
)
from switchboard.agent.iata import IataResolver
from switchboard.core.schema import (
    ConversationTurn,
    PlanStep,
    StepStatus,
)
from switchboard.formatting.summaries import (
    EMAIL_ADDRESS_PROMPT,
    FLIGHT_SKIP_PREFIX,
)
from conftest import (
    ScriptedPlanner,
    fixed_clock,
)

FLIGHT_TEXT = (
    "Found 1 flights:\n"
    "1. AI 101 | BLR → DEL\n"
    "Departure: 2025-08-01T06:00:00 | Arrival: 2025-08-01T08:45:00\n"
    "Duration: PT2H45M\n"
    "Price: $120.50 EUR"
)


def _plan(*steps: dict) -> list:
    return [PlanStep.model_validate(step) for step in steps]


@pytest.fixture
def executor(invoker) -> MultiStepExecutor:
    return MultiStepExecutor(
        invoker, IataResolver(invoker), clock=fixed_clock, default_timezone="Asia/Kolkata"
    )


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_found_city_comes_from_live_location(agents, executor) -> None:
    agents.replies["get_live_location"] = "Latitude: 19.07\nCity: Mumbai\nTimezone: Asia/Kolkata"
    agents.replies["get_current_weather_by_city"] = (
        "Current Weather in Mumbai:\nTemperature: 30.1°C\nCondition: haze"
    )

    report = await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {"tool": "get_current_weather_by_city", "parameters": {"city": "FOUND_CITY"}},
        )
    )

    assert agents.params_for("get_current_weather_by_city") == [{"city": "Mumbai"}]
    assert report.completed_steps == 2
    assert report.step_details[1].parameters == {"city": "Mumbai"}


@pytest.mark.asyncio
async def test_flight_source_from_live_location_uses_search_locations(agents, executor) -> None:
    """A city missing from the built-in table is looked up with the flight agent."""
    agents.replies["get_live_location"] = "City: Nashik"
    agents.replies["search_locations"] = "Nashik Airport (ISK)"
    agents.replies["search_flights"] = FLIGHT_TEXT

    await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {
                "tool": "search_flights",
                "parameters": {
                    "source": "FOUND_CITY_CODE",
                    "destination": "DEL",
                    "date": "2025-08-01",
                },
            },
        )
    )

    assert agents.tools_called == ["get_live_location", "search_locations", "search_flights"]
    assert agents.params_for("search_locations") == [{"keyword": "Nashik"}]
    assert agents.params_for("search_flights") == [
        {"source": "ISK", "destination": "DEL", "date": "2025-08-01"}
    ]


@pytest.mark.asyncio
async def test_iata_falls_back_to_llm(agents, invoker) -> None:
    """When the location search fails the planner's LLM is asked for the code."""
    agents.replies["get_live_location"] = "City: Nashik"
    agents.replies["search_flights"] = FLIGHT_TEXT
    planner = ScriptedPlanner(["ISK"])
    executor = MultiStepExecutor(invoker, IataResolver(invoker, planner), clock=fixed_clock)

    await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {
                "tool": "search_flights",
                "parameters": {"source": "", "destination": "DEL", "date": "2025-08-01"},
            },
        )
    )

    assert len(planner.prompts) == 1
    assert '"Nashik"' in planner.prompts[0]
    assert agents.params_for("search_flights")[0]["source"] == "ISK"


@pytest.mark.asyncio
async def test_live_location_without_city_fails_flight_step(agents, executor) -> None:
    agents.replies["get_live_location"] = "Location lookup returned no address"

    report = await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {
                "tool": "search_flights",
                "parameters": {"source": "FOUND_CITY", "destination": "DEL", "date": "2025-08-01"},
            },
        )
    )

    assert "search_flights" not in agents.tools_called
    assert report.failed_steps == 1
    assert report.step_details[1].error == LIVE_LOCATION_CITY_ERROR
    assert report.results[-1] == f"Error: {LIVE_LOCATION_CITY_ERROR}"


@pytest.mark.asyncio
async def test_flight_destination_from_database_row(agents, executor) -> None:
    """Region tokens read the first database row; the region is then turned into a code."""
    agents.replies["execute_query"] = {"data": [{"region": "Mumbai", "total_sales": "1000"}]}
    agents.replies["search_flights"] = FLIGHT_TEXT

    await executor.execute(
        _plan(
            {"tool": "execute_query", "parameters": {"query": "SELECT region FROM sales"}},
            {
                "tool": "search_flights",
                "parameters": {
                    "source": "Bangalore",
                    "destination": "FOUND_REGION_CODE",
                    "date": "2025-08-01",
                },
            },
        )
    )

    assert agents.params_for("search_flights") == [
        {"source": "BLR", "destination": "BOM", "date": "2025-08-01"}
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["tomorrow", "{{tomorrow_date}}"])
async def test_relative_dates(agents, executor, value) -> None:
    agents.replies["search_flights"] = FLIGHT_TEXT

    await executor.execute(
        _plan(
            {
                "tool": "search_flights",
                "parameters": {"source": "BLR", "destination": "DEL", "date": value},
            }
        )
    )

    assert agents.params_for("search_flights")[0]["date"] == "2025-07-18"


@pytest.mark.asyncio
async def test_meeting_start_time_and_timezone(agents, executor) -> None:
    """Without a forecast the meeting goes on tomorrow afternoon in the user's timezone."""
    agents.replies["get_live_location"] = "City: Pune\nTimezone: Asia/Kolkata"
    agents.replies["zoom_create_meeting"] = {"id": 42, "join_url": "https://zoom.us/j/42"}

    await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {
                "tool": "zoom_create_meeting",
                "parameters": {
                    "topic": "Planning",
                    "type": 2,
                    "start_time": "INCLUDE_SUITABLE_DATE_TIME_HERE",
                    "duration": 60,
                    "timezone": "INCLUDE_TIMEZONE_FROM_LIVE_LOCATION",
                    "agenda": "Quarter planning",
                },
            },
        )
    )

    params = agents.params_for("zoom_create_meeting")[0]
    assert params["start_time"] == "2025-07-18T14:00:00"
    assert params["timezone"] == "Asia/Kolkata"


@pytest.mark.asyncio
async def test_tokens_inside_message_text_are_filled_in_place(agents, executor) -> None:
    """City, time and timezone tokens in a subject or message keep the surrounding text."""
    agents.replies["get_live_location"] = "City: Mumbai\nTimezone: Asia/Kolkata"
    agents.replies["outlook_send_email"] = "Email sent successfully"
    agents.replies["teams_send_message"] = "Message sent to Teams"

    await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {
                "tool": "outlook_send_email",
                "parameters": {
                    "to_email": ["team@example.com"],
                    "subject": "Weather in INCLUDE_CITY_HERE",
                    "body": "Dear Team,\n\nWe meet on INCLUDE_SELECTED_DATE_HERE.",
                },
            },
            {
                "tool": "teams_send_message",
                "parameters": {"message": "Hello team in FOUND_CITY, zone INCLUDE_TIMEZONE_HERE"},
            },
        )
    )

    email = agents.params_for("outlook_send_email")[0]
    assert email["subject"] == "Weather in Mumbai"
    assert email["body"].startswith("Dear Team,")
    assert "We meet on 2025-07-18T14:00:00." in email["body"]
    assert agents.params_for("teams_send_message") == [
        {"message": "Hello team in Mumbai, zone Asia/Kolkata"}
    ]


@pytest.mark.asyncio
async def test_longer_token_names_are_not_split(agents, executor) -> None:
    agents.replies["get_live_location"] = "City: Mumbai"
    agents.replies["teams_send_message"] = "Message sent to Teams"

    await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {"tool": "teams_send_message", "parameters": {"message": "Code: FOUND_CITY_CODE"}},
        )
    )

    assert agents.params_for("teams_send_message") == [{"message": "Code: FOUND_CITY_CODE"}]


# ---------------------------------------------------------------------------
# Conditions and the forecast veto
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "condition, runs",
    [
        ("clear sky", True),
        ("scattered clouds", True),
        ("thunderstorm", False),
        ("Heavy rain expected", False),
    ],
)
async def test_weather_condition_gates_next_step(agents, executor, condition, runs) -> None:
    agents.replies["get_current_weather_by_city"] = (
        f"Current Weather in Delhi:\nTemperature: 29.0°C\nCondition: {condition}"
    )
    agents.replies["search_flights"] = FLIGHT_TEXT

    report = await executor.execute(
        _plan(
            {"tool": "get_current_weather_by_city", "parameters": {"city": "Delhi"}},
            {
                "tool": "search_flights",
                "parameters": {"source": "HYD", "destination": "DEL", "date": "2025-07-18"},
                "condition": "if weather is good",
            },
        )
    )

    flight = report.step_details[1]
    if runs:
        assert flight.status == StepStatus.SUCCESS
        assert agents.params_for("search_flights") == [
            {"source": "HYD", "destination": "DEL", "date": "2025-07-18"}
        ]
    else:
        assert flight.status == StepStatus.SKIPPED
        assert flight.skip_reason == CONDITION_NOT_MET
        assert "search_flights" not in agents.tools_called


@pytest.mark.asyncio
async def test_unrecognised_condition_runs_step(agents, executor) -> None:
    agents.replies["get_live_location"] = "City: Pune"

    report = await executor.execute(
        _plan({"tool": "get_live_location", "condition": "if the user is free"})
    )

    assert report.step_details[0].status == StepStatus.SUCCESS


@pytest.mark.asyncio
async def test_location_forecast_flight_chain(agents, executor) -> None:
    """Location, forecast and flights run in order, each feeding the next."""
    agents.replies["get_live_location"] = "City: Pune"
    agents.replies["get_weather_forecast_by_city"] = (
        "Weather Forecast for Pune:\n2025-07-18: sunny, 27°C\n2025-07-19: light rain, 24°C"
    )
    agents.replies["search_flights"] = FLIGHT_TEXT

    report = await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {"tool": "get_weather_forecast_by_city", "parameters": {"city": "FOUND_CITY"}},
            {
                "tool": "search_flights",
                "parameters": {
                    "source": "FOUND_CITY",
                    "destination": "Delhi",
                    "date": "FOUND_SUNNY_DAY",
                },
            },
        )
    )

    assert agents.tools_called == [
        "get_live_location",
        "get_weather_forecast_by_city",
        "search_flights",
    ]
    assert agents.params_for("search_flights") == [
        {"source": "PNQ", "destination": "DEL", "date": "2025-07-18"}
    ]
    assert report.weather_assessment == "good"
    assert report.completed_steps == 3


@pytest.mark.asyncio
async def test_bad_forecast_skips_flight_search(agents, executor) -> None:
    agents.replies["get_weather_forecast_by_city"] = (
        "Weather Forecast for Goa:\n2025-07-18: thunderstorm, 25°C"
    )

    report = await executor.execute(
        _plan(
            {"tool": "get_weather_forecast_by_city", "parameters": {"city": "Goa"}},
            {
                "tool": "search_flights",
                "parameters": {"source": "BOM", "destination": "GOI", "date": "2025-07-18"},
            },
        )
    )

    assert "search_flights" not in agents.tools_called
    assert report.weather_assessment == "bad"
    skipped = report.step_details[1]
    assert skipped.status == StepStatus.SKIPPED
    assert skipped.step_number == 2
    assert skipped.skip_reason.startswith(FLIGHT_SKIP_PREFIX)
    assert "Goa" in skipped.skip_reason
    assert report.results[-1] == skipped.skip_reason


# ---------------------------------------------------------------------------
# Required-parameter gate
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_missing_email_address_stops_the_plan(agents, executor) -> None:
    """No later step runs once a step lacks a required parameter."""
    agents.replies["search_flights"] = FLIGHT_TEXT

    report = await executor.execute(
        _plan(
            {
                "tool": "search_flights",
                "parameters": {"source": "BLR", "destination": "DEL", "date": "2025-08-01"},
            },
            {
                "tool": "outlook_send_email",
                "parameters": {"subject": "Flights", "body": "INCLUDE_FLIGHT_RESULTS_HERE"},
            },
            {"tool": "teams_send_message", "parameters": {"message": "Flights sent"}},
        )
    )

    assert agents.tools_called == ["search_flights"]
    assert report.aborted
    assert report.missing.tool_name == "outlook_send_email"
    assert report.missing.missing == ["to_email"]
    assert report.missing.message == EMAIL_ADDRESS_PROMPT


@pytest.mark.asyncio
async def test_email_gets_flight_table_and_recipient_list(agents, executor) -> None:
    agents.replies["search_flights"] = FLIGHT_TEXT
    agents.replies["outlook_send_email"] = "Email sent successfully"

    report = await executor.execute(
        _plan(
            {
                "tool": "search_flights",
                "parameters": {"source": "BLR", "destination": "DEL", "date": "2025-08-01"},
            },
            {
                "tool": "outlook_send_email",
                "parameters": {
                    "to": "traveller@example.com",
                    "subject": "Flights",
                    "body": "<p>Options:</p>INCLUDE_FLIGHT_RESULTS_HERE",
                },
            },
        )
    )

    sent = agents.params_for("outlook_send_email")[0]
    assert "to" not in sent
    assert sent["to_email"] == ["traveller@example.com"]
    assert "<table" in sent["body"]
    assert "AI 101" in sent["body"]
    assert "INCLUDE_FLIGHT_RESULTS_HERE" not in sent["body"]
    assert report.completed_steps == 2


# ---------------------------------------------------------------------------
# Failures, redundancy and unknown tools
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_failed_step_does_not_stop_the_plan(agents, executor) -> None:
    agents.replies["get_live_location"] = httpx.Response(500, json={"error": "boom"})
    agents.replies["get_current_weather_by_city"] = (
        "Current Weather in Paris:\nTemperature: 18.2°C\nCondition: clear sky"
    )

    report = await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {"tool": "get_current_weather_by_city", "parameters": {"city": "Paris"}},
        )
    )

    assert report.failed_steps == 1
    assert report.completed_steps == 1
    assert "server error" in report.step_details[0].error
    assert report.results[0].startswith("Error: ")


@pytest.mark.asyncio
async def test_unknown_tool_fails_only_its_step(agents, executor) -> None:
    agents.replies["get_live_location"] = "City: Pune"

    report = await executor.execute(
        _plan({"tool": "not_a_tool"}, {"tool": "get_live_location"})
    )

    assert report.step_details[0].status == StepStatus.FAILED
    assert "not_a_tool" in report.step_details[0].error
    assert report.step_details[1].status == StepStatus.SUCCESS


@pytest.mark.asyncio
async def test_location_from_history_is_reused(agents, executor) -> None:
    """A location already given earlier in the conversation is not fetched again."""
    history = [
        ConversationTurn(role="user", content="where am I?", timestamp=1.0),
        ConversationTurn(
            role="assistant", content="City: Pune\nTimezone: Asia/Kolkata", timestamp=2.0
        ),
    ]
    agents.replies["get_current_weather_by_city"] = (
        "Current Weather in Pune:\nTemperature: 26.0°C\nCondition: overcast clouds"
    )

    report = await executor.execute(
        _plan(
            {"tool": "get_live_location"},
            {"tool": "get_current_weather_by_city", "parameters": {"city": "FOUND_CITY"}},
        ),
        history,
    )

    assert agents.tools_called == ["get_current_weather_by_city"]
    assert agents.params_for("get_current_weather_by_city") == [{"city": "Pune"}]
    assert report.step_details[0].status == StepStatus.SKIPPED


# ---------------------------------------------------------------------------
# Meeting ids
# ---------------------------------------------------------------------------
MEETINGS = {"meetings": [{"id": 111}, {"id": 222}, {"id": 333}], "total_records": 3}


@pytest.mark.asyncio
async def test_delete_all_meetings_fans_out(agents, executor) -> None:
    agents.replies["zoom_list_meetings"] = MEETINGS
    agents.replies["zoom_delete_meeting"] = "Meeting operation completed successfully"

    report = await executor.execute(
        _plan(
            {"tool": "zoom_list_meetings"},
            {"tool": "zoom_delete_meeting", "parameters": {"meetingId": "FOUND_MEETING_ID"}},
        )
    )

    deleted = [params["meetingId"] for params in agents.params_for("zoom_delete_meeting")]
    assert deleted == ["111", "222", "333"]
    assert report.total_steps == 4
    assert report.completed_steps == 4
    assert [s.step_number for s in report.step_details] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_indexed_meeting_id(agents, executor) -> None:
    agents.replies["zoom_list_meetings"] = MEETINGS
    agents.replies["zoom_delete_meeting"] = "Meeting operation completed successfully"

    report = await executor.execute(
        _plan(
            {"tool": "zoom_list_meetings"},
            {
                "tool": "zoom_delete_meeting",
                "parameters": {"meetingId": "PLACEHOLDER_FOR_MEETING_ID_2"},
            },
        )
    )

    assert agents.params_for("zoom_delete_meeting") == [{"meetingId": "222"}]
    assert report.total_steps == 2


@pytest.mark.asyncio
async def test_delete_without_listing_is_skipped(agents, executor) -> None:
    report = await executor.execute(
        _plan({"tool": "zoom_delete_meeting", "parameters": {"meetingId": "FOUND_MEETING_ID"}})
    )

    assert agents.calls == []
    assert report.step_details[0].status == StepStatus.SKIPPED
    assert report.step_details[0].skip_reason == "No meetings found to delete"


@pytest.mark.asyncio
async def test_plan_steps_are_not_mutated(agents, executor) -> None:
    agents.replies["zoom_list_meetings"] = MEETINGS
    agents.replies["zoom_delete_meeting"] = "Meeting operation completed successfully"
    plan = _plan(
        {"tool": "zoom_list_meetings"},
        {"tool": "zoom_delete_meeting", "parameters": {"meetingId": "FOUND_MEETING_ID"}},
    )

    await executor.execute(plan)

    assert len(plan) == 2
    assert plan[1].parameters == {"meetingId": "FOUND_MEETING_ID"}
