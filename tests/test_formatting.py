"""Tests for the HTML/Markdown renderers, narrative summaries and content injection."""

import pytest

from switchboard.agent.context import ExecutionContext
from switchboard.agent.injection import (
    inject_email_body,
    inject_teams_message,
)
from switchboard.core.schema import (
    AgentResult,
    ExecutionReport,
    StepResult,
    StepStatus,
)
from switchboard.formatting.summaries import (
    gate_message,
    missing_parameters_message,
    summarize,
    summarize_multi_step,
    summarize_single_step,
)
from switchboard.formatting.tables import (
    format_date_time,
    format_duration,
    format_value,
    parse_flights,
    render_db_table,
    render_flight_table,
    render_sales_report,
    render_weather_table,
)
from conftest import FIXED_NOW

FLIGHTS = (
    "Found 2 flights:\n"
    "1. AI 101 | BLR → DEL\n"
    "Departure: 2025-08-01T06:00:00 | Arrival: 2025-08-01T08:45:00\n"
    "Duration: PT2H45M\n"
    "Price: $120.50 EUR\n\n"
    "2. 6E 2042 | BLR → DEL\n"
    "Departure: 2025-08-01T18:10:00 | Arrival: 2025-08-01T21:00:00\n"
    "Duration: PT2H50M\n"
    "Price: $98.00 EUR"
)
PARIS = "Current Weather in Paris:\nTemperature: 18.2°C\nCondition: clear sky\nHumidity: 60%"


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
def test_parse_flights() -> None:
    flights = parse_flights(FLIGHTS)
    assert [f.flight_id for f in flights] == ["AI 101", "6E 2042"]
    assert flights[0].source == "BLR"
    assert flights[0].destination == "DEL"
    assert flights[1].price == "$98.00 EUR"


def test_render_flight_table() -> None:
    html = render_flight_table(parse_flights(FLIGHTS))
    assert html.startswith("<div")
    assert "Aug 1, 06:00 AM" in html
    assert "2h 45m" in html
    assert "$120.50 EUR" in html
    assert render_flight_table(parse_flights(FLIGHTS)) == html


def test_render_flight_table_empty() -> None:
    assert render_flight_table([]) == "No flights found."


@pytest.mark.parametrize(
    "value, expected",
    [("PT2H50M", "2h 50m"), ("PT3H", "3h"), ("PT45M", "45m"), (None, "N/A"), ("P1D", "P1D")],
)
def test_format_duration(value, expected) -> None:
    assert format_duration(value) == expected


def test_format_date_time() -> None:
    assert format_date_time("2025-07-18T14:05:00") == "Jul 18, 02:05 PM"
    assert format_date_time("soon") == "soon"


def test_format_value() -> None:
    assert format_value("deal_value", "1234.5") == "$1,234.50"
    assert format_value("units", "3") == "3.00"
    assert format_value("region", "North") == "North"
    assert format_value("region", None) == ""


def test_render_db_table_variants() -> None:
    assert "The database query returned 0 results." in render_db_table([])

    single = render_db_table([{"deal_name": "Acme", "deal_value": "1234.5"}])
    assert "Sales Deal Analysis Report" in single
    assert "Deal Value" in single
    assert "$1,234.50" in single

    regional = render_db_table(
        [{"region": "West", "total_sales": "1000"}, {"region": "East", "total_sales": "2000"}]
    )
    assert "Regional Sales Performance Report" in regional
    assert "Top 2 performing regions" in regional
    assert "combined sales value of $3,000.00" in regional


def test_db_cells_are_escaped() -> None:
    html = render_db_table([{"note": "<script>alert(1)</script>"}])
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_render_weather_table() -> None:
    html = render_weather_table(PARIS)
    assert "18.2°C" in html
    assert "clear sky" in html
    assert "60%" in html
    assert render_weather_table(None) == "<p>Weather information not available</p>"


def test_render_sales_report_without_rows() -> None:
    report = render_sales_report([], FIXED_NOW)
    assert "No Data Available" in report
    assert "July 17, 2025 at 10:30 AM" in report


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------
def test_summarize_current_weather_names_city_and_temperature() -> None:
    text = summarize("get_current_weather_by_city", AgentResult(text=PARIS))
    assert "Paris" in text
    assert "18.2°C" in text


def test_summarize_fixed_sentences() -> None:
    result = AgentResult(text="ok")
    assert summarize("outlook_send_email", result).startswith("📧 Email sent successfully")
    assert summarize("get_live_location", None) == "No result available"


def test_summarize_single_step_weather() -> None:
    text = summarize_single_step(
        "weather in Paris", "get_current_weather_by_city", AgentResult(text=PARIS)
    )
    assert text.startswith("✅ Weather information retrieved!")
    assert "Paris" in text
    assert "18.2°C" in text


def test_summarize_single_step_meeting_listing() -> None:
    listing = AgentResult(
        text=(
            '{"total_records": 1, "meetings": [{"topic": "Standup", '
            '"start_time": "2025-07-18T09:00:00Z", "duration": 15, "agenda": "Daily", '
            '"join_url": "https://zoom.us/j/1"}]}'
        )
    )
    text = summarize_single_step("list my meetings", "zoom_list_meetings", listing)
    assert "You currently have **1 meeting scheduled**" in text
    assert "**1. Standup**" in text


def test_missing_flight_parameters_lists_every_field() -> None:
    text = missing_parameters_message("search_flights", ["source", "destination", "date"])
    assert "departure city or airport (source)" in text
    assert "destination city or airport (destination)" in text
    assert "travel date (date)" in text


def test_missing_parameters_generic() -> None:
    text = missing_parameters_message("zoom_get_meeting_details", ["meetingId"])
    assert "meetingId" in text
    assert "**meetingId**" in gate_message("zoom_get_meeting_details", ["meetingId"])


def test_multi_step_summary_reports_skipped_travel() -> None:
    report = ExecutionReport(
        total_steps=2,
        step_details=[
            StepResult(
                step_number=1,
                tool_name="get_current_weather_by_city",
                status=StepStatus.SUCCESS,
                result="Current Weather in Delhi:\nCondition: thunderstorm",
            ),
            StepResult(
                step_number=2,
                tool_name="search_flights",
                status=StepStatus.SKIPPED,
                skip_reason="Condition not met: weather is not good",
            ),
        ],
    )
    text = summarize_multi_step("check weather in Delhi and if good, find flights", report)
    assert "Travel is not recommended" in text
    assert "Flight Search" not in text


# ---------------------------------------------------------------------------
# Injection
# ---------------------------------------------------------------------------
def test_email_injection_without_results_uses_neutral_sentences() -> None:
    body = inject_email_body(
        "INCLUDE_FLIGHT_RESULTS_HERE\n"
        "INCLUDE_MEETING_LINK_HERE\n"
        "INCLUDE_DATABASE_RESULTS_TABLE_HERE",
        ExecutionContext(),
    )
    assert "Flight search was performed but no results were found." in body
    assert "Meeting link not available due to a previous error." in body
    assert "The database query returned 0 results." in body
    assert "INCLUDE_" not in body


def test_email_injection_meeting_and_db_fields() -> None:
    ctx = ExecutionContext()
    ctx.record(
        "execute_query", "PostgresAgent", AgentResult(text="", raw={"data": [{"region": "West"}]})
    )
    ctx.record(
        "zoom_create_meeting",
        "TeamsAgent",
        AgentResult(text='{"id": 9, "topic": "Review", "join_url": "https://zoom.us/j/9"}'),
    )

    body = inject_email_body("Region: INCLUDE_REGION_HERE\nJoin: INCLUDE_MEETING_LINK_HERE", ctx)

    assert body == "Region: West\nJoin: https://zoom.us/j/9"


def test_teams_injection() -> None:
    ctx = ExecutionContext()
    missing = inject_teams_message("Weather:\nINCLUDE_WEATHER_RESULTS_HERE", ctx, FIXED_NOW)
    assert missing == "Weather:\nWeather information is not available due to a previous error."

    ctx.record("get_current_weather_by_city", "WeatherAgent", AgentResult(text=PARIS))
    message = inject_teams_message("Weather:\nINCLUDE_WEATHER_RESULTS_HERE", ctx, FIXED_NOW)
    assert "• Temperature: 18.2°C" in message


def test_text_without_tokens_is_unchanged() -> None:
    assert inject_email_body("<p>Hello</p>", ExecutionContext()) == "<p>Hello</p>"
