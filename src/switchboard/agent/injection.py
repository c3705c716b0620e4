"""
Deferred content injection.

Email bodies and Teams messages written by the planner carry ``INCLUDE_*_HERE`` tokens standing in
for results the plan has not produced yet.  Just before such a step runs, each token is replaced by
a rendering of the most recent matching result, or by a neutral sentence when there is none.
"""

import logging
from datetime import datetime
from typing import (
    Any,
    Dict,
)

from switchboard.agent.context import ExecutionContext
from switchboard.agent.extractors import (
    extract_db_rows,
    structured,
)
from switchboard.common import collapse_blank_lines
from switchboard.core.placeholders import (
    LEGACY_FIELD,
    Token,
)
from switchboard.formatting.tables import (
    parse_flights,
    render_db_table,
    render_flight_table,
    render_meeting_details_html,
    render_meeting_details_markdown,
    render_sales_report,
    render_weather_bullets,
    render_weather_table,
)

logger = logging.getLogger(__name__)

DATABASE_AGENT = "PostgresAgent"
WEATHER_RESULT_TOOLS = (
    "get_current_weather_by_city",
    "get_weather_forecast_by_city",
    "get_location_weather",
)


def _meeting(ctx: ExecutionContext) -> tuple[bool, Dict[str, Any] | None, str]:
    """(created?, meeting JSON, raw text) for the latest meeting creation."""
    result = ctx.latest("zoom_create_meeting")
    if result is None:
        return False, None, ""
    return True, structured(result), result.text


def _fill(text: str, token: Token, replacement: str) -> str:
    if token.value not in text:
        return text
    logger.debug("Injecting %s", token.value)
    return text.replace(token.value, replacement)


def _legacy_fields(text: str, row: Dict[str, Any]) -> str:
    # INCLUDE_<FIELD>_HERE for each column of the first database row
    for match in set(LEGACY_FIELD.findall(text)):
        key = match.lower()
        if key in row and row[key] not in (None, ""):
            text = text.replace(f"INCLUDE_{match}_HERE", str(row[key]))
    return text


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------
def inject_email_body(body: str, ctx: ExecutionContext) -> str:
    """Replace every injection token in an HTML email body."""
    if Token.INCLUDE_FLIGHT_RESULTS_HERE.value in body:
        flights = ctx.latest("search_flights")
        if flights is None:
            rendered = "Flight search was performed but no results were found."
        elif "Departure:" in flights.text and parse_flights(flights.text):
            rendered = render_flight_table(parse_flights(flights.text))
        else:
            rendered = flights.text
        body = _fill(body, Token.INCLUDE_FLIGHT_RESULTS_HERE, rendered)

    if Token.INCLUDE_LOCATION_RESULTS_HERE.value in body:
        location = ctx.latest("get_live_location")
        body = _fill(
            body,
            Token.INCLUDE_LOCATION_RESULTS_HERE,
            location.text
            if location is not None
            else "Location information was retrieved but details are not available.",
        )

    if Token.INCLUDE_WEATHER_RESULTS_HERE.value in body:
        weather = ctx.latest(*WEATHER_RESULT_TOOLS)
        body = _fill(
            body,
            Token.INCLUDE_WEATHER_RESULTS_HERE,
            render_weather_table(weather.text)
            if weather is not None
            else "<p>Weather information was retrieved but details are not available.</p>",
        )

    created, meeting, meeting_text = _meeting(ctx)
    if Token.INCLUDE_MEETING_DETAILS_HERE.value in body:
        if meeting:
            rendered = render_meeting_details_html(meeting)
        elif created:
            rendered = meeting_text
        else:
            rendered = "Meeting details are not available. Please check the meeting creation status."
        body = _fill(body, Token.INCLUDE_MEETING_DETAILS_HERE, rendered)

    if Token.INCLUDE_MEETING_LINK_HERE.value in body:
        body = _fill(body, Token.INCLUDE_MEETING_LINK_HERE, _meeting_link(created, meeting))

    db_result = ctx.latest_from_agent(DATABASE_AGENT)
    table_token = Token.INCLUDE_DATABASE_RESULTS_TABLE_HERE.value
    if db_result is not None:
        rows = extract_db_rows(db_result)
        if table_token in body:
            body = _fill(body, Token.INCLUDE_DATABASE_RESULTS_TABLE_HERE, render_db_table(rows))
        elif rows:
            body = _legacy_fields(body, rows[0])
    elif table_token in body:
        body = _fill(body, Token.INCLUDE_DATABASE_RESULTS_TABLE_HERE, render_db_table([]))

    return collapse_blank_lines(body)


def _meeting_link(created: bool, meeting: Dict[str, Any] | None) -> str:
    if not created:
        return "Meeting link not available due to a previous error."
    if meeting and meeting.get("join_url"):
        return str(meeting["join_url"])
    return "Meeting link not available"


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------
def inject_teams_message(message: str, ctx: ExecutionContext, now: datetime) -> str:
    """Replace every injection token in a Markdown Teams message."""
    if Token.INCLUDE_WEATHER_RESULTS_HERE.value in message:
        weather = ctx.latest(*WEATHER_RESULT_TOOLS)
        message = _fill(
            message,
            Token.INCLUDE_WEATHER_RESULTS_HERE,
            render_weather_bullets(weather.text)
            if weather is not None
            else "Weather information is not available due to a previous error.",
        )

    if Token.INCLUDE_DATABASE_RESULTS_TABLE_HERE.value in message:
        db_result = ctx.latest_from_agent(DATABASE_AGENT)
        message = _fill(
            message,
            Token.INCLUDE_DATABASE_RESULTS_TABLE_HERE,
            render_sales_report(extract_db_rows(db_result), now)
            if db_result is not None
            else "No database results available due to a previous error.",
        )

    if Token.INCLUDE_FLIGHT_RESULTS_HERE.value in message:
        flights = ctx.latest("search_flights")
        message = _fill(
            message,
            Token.INCLUDE_FLIGHT_RESULTS_HERE,
            flights.text if flights is not None else "Flight results are not available.",
        )

    if Token.INCLUDE_LOCATION_RESULTS_HERE.value in message:
        location = ctx.latest("get_live_location")
        message = _fill(
            message,
            Token.INCLUDE_LOCATION_RESULTS_HERE,
            location.text if location is not None else "Location information is not available.",
        )

    created, meeting, _ = _meeting(ctx)
    if Token.INCLUDE_MEETING_DETAILS_HERE.value in message:
        if meeting:
            rendered = render_meeting_details_markdown(meeting)
        elif created:
            rendered = "Meeting details are not available."
        else:
            rendered = "Meeting details are not available due to a previous error."
        message = _fill(message, Token.INCLUDE_MEETING_DETAILS_HERE, rendered)

    if Token.INCLUDE_MEETING_LINK_HERE.value in message:
        message = _fill(message, Token.INCLUDE_MEETING_LINK_HERE, _meeting_link(created, meeting))

    return collapse_blank_lines(message)
