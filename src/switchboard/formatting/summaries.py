"""
First-person narrative summaries of tool results.

:func:`summarize` describes one result; :func:`summarize_single_step` and
:func:`summarize_multi_step` build the ``final_result`` text of a whole request; and
:func:`missing_parameters_message` asks the user for whatever a plan could not resolve.
"""

import json
import logging
import re
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from switchboard.core.schema import (
    AgentResult,
    ExecutionReport,
    StepResult,
    StepStatus,
)
from switchboard.formatting.tables import (
    format_long_date_time,
    parse_current_weather,
)

logger = logging.getLogger(__name__)

WEATHER_TOOLS = ("get_weather_forecast_by_city", "get_current_weather_by_city")
FLIGHT_SKIP_PREFIX = "⚠️ FLIGHT SEARCH SKIPPED"

_CURRENT_CITY = re.compile(r"Current Weather in ([^:*\n]+)")
_FORECAST_CITY = re.compile(r"Weather Forecast for ([^:*\n]+)")
_ROWS_RETURNED = re.compile(r"Rows returned:\s*(\d+)")


def _json_object(result: AgentResult) -> Dict[str, Any] | None:
    value = result.as_json()
    return value if isinstance(value, dict) else None


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


# ---------------------------------------------------------------------------
# Per-result narrative
# ---------------------------------------------------------------------------
def _zoom_created(result: AgentResult) -> str | None:
    meeting = _json_object(result)
    if not meeting or not meeting.get("topic"):
        return None
    return (
        "I have successfully created a Zoom meeting. The meeting is scheduled for "
        f"{format_long_date_time(str(meeting.get('start_time', '')))} with a duration of "
        f"{meeting.get('duration')} minutes. The meeting topic is \"{meeting['topic']}\" and the "
        f"agenda is \"{meeting.get('agenda')}\". The join URL is {meeting.get('join_url')} and the "
        f"password is {meeting.get('password')}. The meeting ID is {meeting.get('id')} for "
        "reference."
    )


def _zoom_listed(result: AgentResult) -> str | None:
    data = _json_object(result)
    if not data or not isinstance(data.get("meetings"), list):
        return None
    meetings = data["meetings"]
    total = data.get("total_records") or len(meetings)
    listing = "; ".join(
        f"{i}. \"{m.get('topic')}\" scheduled for "
        f"{format_long_date_time(str(m.get('start_time', '')))} ({m.get('duration')} minutes)"
        for i, m in enumerate(meetings, start=1)
    )
    return f"I found {_plural(int(total), 'Zoom meeting')} in the system: {listing}."


def _location(result: AgentResult) -> str | None:
    match = re.search(r"City:\s*([^\n]+)", result.text)
    if not match:
        return None
    return (
        f"I have determined that the user is located in {match.group(1).strip()}. This location "
        "information can be used for weather analysis and meeting scheduling."
    )


def _current_weather(result: AgentResult) -> str | None:
    match = _CURRENT_CITY.search(result.text)
    if not match:
        return None
    city = match.group(1).strip()
    readings = parse_current_weather(result.text)
    if "temperature" in readings:
        condition = f" with {readings['condition']}" if readings.get("condition") else ""
        return (
            f"I have retrieved the current weather conditions for {city}: "
            f"{readings['temperature']}°C{condition}. This can be used for meeting scheduling "
            "decisions."
        )
    return (
        f"I have retrieved the current weather conditions for {city}. The weather data shows "
        "current conditions that can be used for meeting scheduling decisions."
    )


def _forecast(result: AgentResult) -> str | None:
    match = _FORECAST_CITY.search(result.text)
    if not match:
        return None
    return (
        f"I have analyzed the 5-day weather forecast for {match.group(1).strip()}. The forecast "
        "shows weather patterns for the upcoming week, which I can use to recommend the best day "
        "for scheduling the meeting based on weather conditions."
    )


def _flights(result: AgentResult) -> str | None:
    if "Departure:" in result.text:
        return (
            "I have completed the flight search and found available flights. The search results "
            "show flight options with departure times, arrival times, and pricing information that "
            "can be used for travel planning."
        )
    return "I have completed the flight search operation and the results are ready for review."


_FIXED = {
    "outlook_send_email": "📧 Email sent successfully with all requested information.",
    "teams_send_message": (
        "I have successfully sent the Teams message with the requested information."
    ),
    "search_locations": (
        "I have searched for location information and found the requested airport or city codes "
        "that can be used for flight searches."
    ),
    "execute_query": (
        "I have executed the database query and retrieved the requested information. The query "
        "results contain the data needed for analysis and reporting."
    ),
}

_NARRATORS = {
    "zoom_create_meeting": _zoom_created,
    "zoom_list_meetings": _zoom_listed,
    "get_live_location": _location,
    "get_current_weather_by_city": _current_weather,
    "get_weather_forecast_by_city": _forecast,
    "search_flights": _flights,
}


def summarize(tool_name: str, result: AgentResult | None) -> str:
    """Short first-person sentence describing *result*."""
    if result is None or (not result.text and result.raw is None):
        return "No result available"
    if tool_name in _FIXED:
        return _FIXED[tool_name]

    narrator = _NARRATORS.get(tool_name)
    if narrator is not None:
        sentence = narrator(result)
        if sentence:
            return sentence
        if tool_name in ("get_live_location",) + WEATHER_TOOLS:
            return result.text
        return f"I have completed the {tool_name} operation successfully."

    if isinstance(result.raw, (dict, list)) and not result.text:
        return (
            f"I have successfully completed the {tool_name} operation and the results are "
            "available for the next step."
        )
    if "successfully" in result.text or "completed" in result.text:
        return (
            f"I have successfully completed the {tool_name} operation. The task has been "
            "executed as requested."
        )
    if result.text:
        return f"I have completed the {tool_name} operation. {result.text}"
    return f"I have completed the {tool_name} operation successfully."


# ---------------------------------------------------------------------------
# Single-step final result
# ---------------------------------------------------------------------------
def _meeting_listing(data: Dict[str, Any], today_and_tomorrow: bool) -> str | None:
    meetings = data.get("meetings") or []
    total = data.get("total_meetings_scheduled") or data.get("total_records")
    if total is None or not meetings:
        return None

    lines: List[str] = []
    if today_and_tomorrow:
        lines.append("✅ Successfully retrieved your Zoom meetings for today and tomorrow!\n")
        date_range = data.get("date_range")
        if isinstance(date_range, dict):
            lines.append(f"📅 **Date Range:** {date_range.get('from')} to {date_range.get('to')}\n")
    else:
        lines.append("✅ Successfully retrieved your Zoom meetings!\n")
    lines.append(f"You currently have **{_plural(int(total), 'meeting')} scheduled**:\n")

    for index, meeting in enumerate(meetings, start=1):
        lines.append(f"**{index}. {meeting.get('topic')}**")
        lines.append(
            f"- 📅 **Date & Time:** {format_long_date_time(str(meeting.get('start_time', '')))}"
        )
        lines.append(f"- ⏱️ **Duration:** {meeting.get('duration')} minutes")
        lines.append(f"- 📝 **Agenda:** {meeting.get('agenda')}")
        lines.append(f"- 🔗 **Join Link:** [Click here to join]({meeting.get('join_url')})\n")

    lines.append("---\n")
    lines.append("**📊 Summary:**")
    lines.append(f"- **Total Meetings:** {total}")
    summary = data.get("summary")
    if today_and_tomorrow and isinstance(summary, dict):
        lines.append(f"- **Today's Meetings:** {summary.get('today_meetings')}")
        lines.append(f"- **Tomorrow's Meetings:** {summary.get('tomorrow_meetings')}")
    lines.append(
        f"- **Next Meeting:** {format_long_date_time(str(meetings[0].get('start_time', '')))}"
    )
    lines.append(f"- **All meetings are {meetings[0].get('duration')} minutes long**\n")
    if today_and_tomorrow and data.get("metrics"):
        lines.append(
            "📈 **Metrics Data Available:** Meeting analytics and insights are included.\n"
        )
    scope = " for today and tomorrow" if today_and_tomorrow else ""
    lines.append(
        f"The system successfully accessed your Zoom account and retrieved all scheduled "
        f"meetings{scope}. All meetings appear to be properly configured with topics, agendas, and "
        "join links ready for participants."
    )
    return "\n".join(lines)


_SINGLE_HEADLINES = {
    "get_weather_forecast_by_city": (
        "✅ Weather information retrieved! I checked the weather forecast for your location.",
        "🌤️ Weather Data: Current conditions and forecast available",
    ),
    "get_current_weather_by_city": (
        "✅ Weather information retrieved! I checked the weather forecast for your location.",
        "🌤️ Weather Data: Current conditions and forecast available",
    ),
    "get_live_location": (
        "✅ Location information retrieved! I determined your current location.",
        "📍 Location Data: Current location coordinates and city information",
    ),
    "search_flights": (
        "✅ Flight search completed! I found available flights matching your criteria.",
        "✈️ Flight Results: Available flights with pricing and timing details",
    ),
    "execute_query": (
        "✅ Database query executed! I retrieved the requested data from the database.",
        "📊 Database Results: Data retrieved and analyzed successfully",
    ),
    "zoom_create_meeting": (
        "✅ Zoom meeting created! I scheduled the meeting as requested.",
        "📅 Meeting Details: Zoom meeting scheduled with join link and password",
    ),
    "outlook_send_email": (
        "✅ Email sent successfully! I sent the email to the specified recipients.",
        "📧 Email Status: Message delivered to recipients",
    ),
    "teams_send_message": (
        "✅ Teams message sent! I posted the message to the specified channel.",
        "💬 Teams Status: Message posted to channel successfully",
    ),
    "zoom_list_meetings": (
        "✅ Zoom meetings list retrieved! I found all your scheduled meetings.",
        "📋 Meeting List: Retrieved all Zoom meetings",
    ),
    "zoom_delete_meeting": (
        "✅ Zoom meeting deleted! I successfully removed the specified meeting.",
        "🗑️ Meeting Deletion: Meeting removed from schedule",
    ),
}


def summarize_single_step(user_input: str, tool_name: str, result: AgentResult) -> str:
    """``final_result`` text for a request answered by exactly one tool call."""
    if tool_name in ("zoom_list_meetings", "zoom_list_today_meetings"):
        data = _json_object(result)
        if data:
            listing = _meeting_listing(data, tool_name == "zoom_list_today_meetings")
            if listing:
                return listing

    headline, detail = _SINGLE_HEADLINES.get(
        tool_name,
        (
            "✅ Operation completed successfully! I executed the requested task.",
            f"🔧 Tool Used: {tool_name}",
        ),
    )
    details = [detail]

    narrative = summarize(tool_name, result)
    if narrative and narrative != result.text:
        details.append(narrative)

    text = result.text
    if "Weather" in text or "Temperature" in text:
        details.append("🌡️ Weather Details: Current conditions and forecast information provided")
    elif "Found" in text and "flights" in text:
        details.append("✈️ Flight Options: Multiple flight options with pricing and schedules")
    elif "Meeting operation completed successfully" in text:
        details.append("📅 Meeting Created: Zoom meeting scheduled with all details")
    elif "Query executed successfully" in text:
        details.append("📊 Data Retrieved: Database query completed with results")

    return headline + "\n\n" + "\n".join(details)


# ---------------------------------------------------------------------------
# Multi-step final result
# ---------------------------------------------------------------------------
def _ran(steps: Sequence[StepResult], *tool_names: str) -> List[StepResult]:
    return [s for s in steps if s.tool_name in tool_names and s.status != StepStatus.SKIPPED]


def _headline(request: str, has: Dict[str, bool]) -> str:
    # pylint: disable=too-many-return-statements,too-many-branches
    if "weather" in request and "meeting" in request:
        if has["weather"] and has["zoom"] and has["email"]:
            return (
                "✅ Successfully scheduled a weather-optimized meeting! I checked the weather "
                "forecast, found a suitable day, created a Zoom meeting, and sent an email "
                "invitation."
            )
        if has["weather"] and has["zoom"]:
            return (
                "✅ Weather check completed and Zoom meeting scheduled! I analyzed the weather "
                "forecast and created a meeting."
            )
        if has["weather"]:
            return "✅ Weather analysis completed! I checked the weather forecast for your location."
    elif "sales" in request and "region" in request:
        if has["query"] and has["zoom"] and has["email"]:
            return (
                "✅ Sales analysis and meeting setup completed! I analyzed the top regions by sales "
                "performance, identified the best-performing region, scheduled a Zoom meeting, and "
                "sent a comprehensive email with the data summary."
            )
        if has["query"] and has["email"]:
            return (
                "✅ Sales analysis completed! I retrieved the top regions by sales performance and "
                "sent the data summary via email."
            )
        if has["query"]:
            return (
                "✅ Sales data analysis completed! I retrieved and analyzed the top regions by "
                "sales performance."
            )
    elif "meeting" in request and "zoom" in request:
        if has["zoom"] and has["email"]:
            return (
                "✅ Zoom meeting successfully created and invitation sent! I scheduled the meeting "
                "and sent an email with the meeting details."
            )
        if has["zoom"]:
            return "✅ Zoom meeting successfully created! I scheduled the meeting."
    elif "flight" in request:
        if has["flights"]:
            return "✅ Flight search completed! I found available flights matching your criteria."
    elif "weather" in request:
        if has["weather"]:
            return "✅ Weather information retrieved! I checked the weather forecast for your location."
    elif "location" in request:
        if has["location"]:
            return "✅ Location information retrieved! I determined your current location."
    elif ("cancel" in request or "delete" in request) and "meeting" in request:
        if has["zoom_list"] and has["zoom_delete"]:
            return (
                "✅ Meeting cancellation completed! I listed all Zoom meetings and deleted the "
                "specified meetings."
            )
        if has["zoom_list"]:
            return "✅ Meeting list retrieved! I found all your Zoom meetings."
        if has["zoom_delete"]:
            return (
                "✅ Meeting deletion completed! I successfully deleted the specified Zoom meeting."
            )
    else:
        if has["zoom_list"] and has["zoom_delete"]:
            return "✅ Meeting management completed! I listed and processed Zoom meetings."
        if has["zoom_list"]:
            return "✅ Meeting list retrieved! I found all your Zoom meetings."
        if has["zoom_delete"]:
            return "✅ Meeting deletion completed! I processed the meeting deletion request."
        if has["zoom"]:
            return "✅ Zoom meeting operation completed! I processed your meeting request."
        if has["query"]:
            return "✅ Database operation completed! I executed the requested database query."
        if has["weather"]:
            return "✅ Weather information retrieved! I checked the weather conditions."
        if has["flights"]:
            return "✅ Flight search completed! I found available flights."
        return "✅ Task completed successfully! I executed all requested operations."
    return ""


def _zoom_list_detail(step: StepResult) -> str:
    try:
        data = json.loads(step.result or "")
    except ValueError:
        return "📋 Meeting List: Retrieved all Zoom meetings"
    if isinstance(data, dict) and data.get("total_records") is not None:
        return f"📋 Meeting List: Found {data['total_records']} Zoom meetings"
    return "📋 Meeting List: Retrieved all Zoom meetings"


def flight_skipped_for_weather(report: ExecutionReport) -> bool:
    """True when a flight search was skipped because the weather check failed."""
    return any(
        s.tool_name == "search_flights"
        and s.status == StepStatus.SKIPPED
        and "weather" in (s.skip_reason or "").lower()
        for s in report.step_details
    )


def summarize_multi_step(user_input: str, report: ExecutionReport) -> str:
    """``final_result`` text for a multi-step plan: headline, detail lines and notes."""
    request = user_input.lower()
    steps = report.step_details
    has = {
        "weather": bool(_ran(steps, *WEATHER_TOOLS)),
        "location": bool(_ran(steps, "get_live_location")),
        "query": bool(_ran(steps, "execute_query")),
        "zoom": bool(_ran(steps, "zoom_create_meeting")),
        "email": bool(_ran(steps, "outlook_send_email")),
        "teams": bool(_ran(steps, "teams_send_message")),
        "flights": bool(_ran(steps, "search_flights")),
        "zoom_list": bool(_ran(steps, "zoom_list_meetings")),
        "zoom_delete": bool(_ran(steps, "zoom_delete_meeting")),
    }
    summary = _headline(request, has)

    details: List[str] = []
    if has["weather"] and report.weather_assessment:
        details.append(f"🌤️ Weather Assessment: {report.weather_assessment}")
    if has["query"]:
        match = _ROWS_RETURNED.search(_ran(steps, "execute_query")[-1].result or "")
        if match:
            details.append(f"📊 Database Analysis: Retrieved {match.group(1)} records from sales data")
    if has["zoom"]:
        details.append("📅 Zoom Meeting: Created successfully with meeting details")
    if has["email"]:
        details.append("📧 Email Sent: Meeting invitation and data summary sent")
    if has["teams"]:
        details.append("💬 Teams Message: Sent to the specified channel")
    if has["flights"]:
        details.append("✈️ Flight Search: Available flights found and presented")
    if has["zoom_list"]:
        details.append(_zoom_list_detail(_ran(steps, "zoom_list_meetings")[-1]))
    if has["zoom_delete"]:
        deleted = [
            s
            for s in _ran(steps, "zoom_delete_meeting")
            if "Meeting operation completed successfully" in (s.result or "")
        ]
        if deleted:
            details.append(f"🗑️ Meeting Deletion: Successfully deleted {len(deleted)} meeting(s)")
        else:
            details.append("🗑️ Meeting Deletion: Attempted to delete meetings")

    notes: List[str] = []
    if flight_skipped_for_weather(report):
        notes.append(
            "🚫 Travel is not recommended: the weather check did not come back favourable, so "
            "the flight search was skipped."
        )
    if report.failed_steps:
        notes.append(
            f"⚠️ Note: {report.failed_steps} operation(s) encountered issues but the main task was "
            "completed."
        )

    parts = [summary] if summary else []
    if details:
        parts.append("\n".join(details))
    if notes:
        parts.append("\n".join(notes))
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Missing parameters
# ---------------------------------------------------------------------------
MISSING_PREFIX = "I need some additional information to help you with your request. "

FRIENDLY_NAMES = {
    "source": "departure location",
    "destination": "destination location",
    "date": "date",
    "city": "city name",
    "message": "message content",
    "to_email": "email address",
    "topic": "meeting topic",
    "start_time": "start time",
    "duration": "duration",
    "timezone": "timezone",
    "agenda": "meeting agenda",
    "query": "database query",
}

_FLIGHT_NAMES = {
    "source": "departure city or airport",
    "destination": "destination city or airport",
    "date": "travel date",
}

_TOOL_REQUESTS = {
    "get_current_weather_by_city": (
        "I need to know which city you'd like weather information for. Please specify the city "
        "name."
    ),
    "get_weather_forecast_by_city": (
        "I need to know which city you'd like weather information for. Please specify the city "
        "name."
    ),
    "outlook_send_email": (
        "I need an email address to send the message to. Please provide the recipient's email "
        "address."
    ),
    "teams_send_message": (
        "I need a message to send to Teams. Please provide the message content."
    ),
    "zoom_create_meeting": (
        "I need meeting details like topic, date, time, and duration to create a Zoom meeting. "
        "Please provide these details."
    ),
    "execute_query": (
        "I need a database query to execute. Please specify what data you'd like me to retrieve "
        "or analyze."
    ),
}


def missing_parameters_message(tool_name: str | None, missing: Sequence[str]) -> str:
    """User prompt asking for the parameters a planned call is missing."""
    if tool_name == "search_flights":
        wanted = [f"{label} ({name})" for name, label in _FLIGHT_NAMES.items() if name in missing]
        if wanted:
            return (
                f"{MISSING_PREFIX}For flight search, I need: {', '.join(wanted)}. Please provide "
                "these details so I can find the best flights for you."
            )
        return MISSING_PREFIX.rstrip()
    if tool_name in _TOOL_REQUESTS:
        return MISSING_PREFIX + _TOOL_REQUESTS[tool_name]
    if missing:
        names = ", ".join(FRIENDLY_NAMES.get(name, name) for name in missing)
        return (
            f"{MISSING_PREFIX}I need the following information: {names}. Please provide these "
            "details."
        )
    return (
        f"{MISSING_PREFIX}I need additional information to complete your request. Please provide "
        "the required details."
    )


EMAIL_ADDRESS_PROMPT = (
    "I need your email address to send you the flight information. Please provide your email "
    "address (e.g., \"my email is john@example.com\")."
)


def gate_message(tool_name: str, missing: Sequence[str]) -> str:
    """Prompt used when a step of a running plan still lacks required parameters."""
    if tool_name == "outlook_send_email" and "to_email" in missing:
        return EMAIL_ADDRESS_PROMPT
    fields = ", ".join(f"**{name}**" for name in missing)
    return (
        f"To use the '{tool_name}' tool, I need the following information: {fields}. Please "
        "provide these details."
    )
