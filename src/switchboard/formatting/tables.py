"""
HTML and Markdown artifacts embedded into outgoing emails and Teams messages.

Every renderer is a pure function of its input; the HTML ones go through the Jinja2 templates in
``formatting/templates``.
"""

import math
import re
from datetime import datetime
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    NamedTuple,
    Sequence,
)

from jinja2 import (
    Environment,
    FileSystemLoader,
    select_autoescape,
)

NOT_AVAILABLE = "N/A"

# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------
_MONEY_FIELDS = ("deal_value", "price", "amount")


def format_field_name(key: str) -> str:
    """``deal_value`` -> ``Deal Value``."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))


def _as_number(value: Any) -> float | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def format_value(key: str, value: Any) -> Any:
    """
    Render one database cell.

    Numeric strings get two decimals, with a ``$`` and thousands separators for money columns.
    Everything else is shown as-is (``None`` as an empty cell).
    """
    if value is None:
        return ""
    number = _as_number(value)
    if number is None:
        return value
    if any(field in key.lower() for field in _MONEY_FIELDS):
        return f"${number:,.2f}"
    return f"{number:.2f}"


def format_date_time(value: str) -> str:
    """``2025-07-18T14:05:00`` -> ``Jul 18, 02:05 PM``; unparsable input is returned unchanged."""
    try:
        moment = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return value
    return f"{moment.strftime('%b')} {moment.day}, {moment.strftime('%I:%M %p')}"


def format_long_date_time(value: str) -> str:
    """``2025-07-18T14:00:00Z`` -> ``Friday, July 18, 2025 at 02:00 PM UTC``."""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return value
    text = f"{moment.strftime('%A, %B')} {moment.day}, {moment.strftime('%Y at %I:%M %p')}"
    zone = moment.tzname()
    return f"{text} {zone}" if zone else text


def format_duration(value: str | None) -> str:
    """ISO-8601 duration ``PT2H50M`` -> ``2h 50m``."""
    if not value or value == NOT_AVAILABLE:
        return NOT_AVAILABLE
    hours_match = re.search(r"(\d+)H", value)
    minutes_match = re.search(r"(\d+)M", value)
    hours = int(hours_match.group(1)) if hours_match else 0
    minutes = int(minutes_match.group(1)) if minutes_match else 0
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    if minutes:
        return f"{minutes}m"
    return value


def _temperature_color(temperature: float | None) -> str:
    if temperature is None:
        return "#4caf50"
    if temperature > 35:
        return "#ff6b6b"
    if temperature > 30:
        return "#ffa726"
    return "#4caf50"


def _condition_icon(condition: str | None) -> str:
    condition = condition or ""
    if "rain" in condition:
        return "🌧️"
    if "cloud" in condition:
        return "☁️"
    if "clear" in condition:
        return "☀️"
    return "🌤️"


_env = Environment(
    loader=FileSystemLoader(Path(__file__).parent / "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters.update(
    field_name=format_field_name,
    cell=lambda value, key: format_value(key, value),
    date_time=format_date_time,
    duration=format_duration,
    temperature_color=_temperature_color,
    condition_icon=_condition_icon,
)


def _render(template: str, **context: Any) -> str:
    return _env.get_template(template).render(**context).strip()


# ---------------------------------------------------------------------------
# Flights
# ---------------------------------------------------------------------------
class Flight(NamedTuple):
    """One itinerary parsed from the flight agent's text."""

    number: int
    flight_id: str
    source: str
    destination: str
    departure: str
    arrival: str
    duration: str
    price: str


_FLIGHT_BLOCK = re.compile(
    r"(\d+)\.\s+([A-Z0-9]+\s+\d+)\s+\|\s+([A-Z]{3})\s+→\s+([A-Z]{3})\s*\n"
    r"Departure:\s*(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})\s*\|\s*"
    r"Arrival:\s*(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})\s*\n"
    r"Duration:\s*(PT\d+H\d*M?)\s*\n"
    r"Price:\s*\$([\d.]+)\s*EUR"
)


def parse_flights(text: str) -> List[Flight]:
    """Extract every itinerary block from a ``search_flights`` reply."""
    return [
        Flight(int(m[1]), m[2], m[3], m[4], m[5], m[6], m[7], f"${m[8]} EUR")
        for m in _FLIGHT_BLOCK.finditer(text or "")
    ]


def render_flight_table(flights: Sequence[Flight]) -> str:
    """HTML itinerary table, or ``No flights found.`` when *flights* is empty."""
    if not flights:
        return "No flights found."
    return _render("flights.html", flights=flights)


# ---------------------------------------------------------------------------
# Database rows
# ---------------------------------------------------------------------------
def _total(rows: Sequence[Mapping[str, Any]], field: str) -> float:
    total = 0.0
    for row in rows:
        value = row.get(field)
        number = _as_number(str(value)) if value is not None else None
        if number is not None:
            total += number
    return total


def render_db_single(row: Mapping[str, Any]) -> str:
    """Field/value table for a one-row result."""
    if not row:
        return "<p>No data available</p>"
    return _render("db_single.html", row=row)


def render_db_multi(rows: Sequence[Mapping[str, Any]]) -> str:
    """Grid over the union of all row fields, with a combined total where one applies."""
    if not rows:
        return "<p>No data available</p>"

    fields: List[str] = []
    for row in rows:
        fields.extend(key for key in row if key not in fields)
    lowered = [f.lower() for f in fields]

    count = len(rows)
    regional = "region" in lowered and any("sales" in f for f in lowered)
    if regional:
        title = "📊 Regional Sales Performance Report"
        subtitle = f"Top {count} performing regions based on sales analysis"
        combined = (
            f", with a combined sales value of ${_total(rows, 'total_sales'):,.2f}"
            if "total_sales" in lowered
            else ""
        )
        summary = (
            f"This report shows the top {count} regions in the sales database{combined}, "
            "showcasing exceptional performance in regional sales generation."
        )
    else:
        title = "📊 Sales Performance Analysis Report"
        subtitle = f"Top {count} performing deals based on deal value analysis"
        combined = (
            f", with a combined deal value of ${_total(rows, 'deal_value'):,.2f}"
            if "deal_value" in lowered
            else ""
        )
        summary = (
            f"This report shows the top {count} deals in the sales database{combined}, "
            "showcasing exceptional performance in deal value generation."
        )

    return _render(
        "db_multi.html", title=title, subtitle=subtitle, summary=summary, fields=fields, rows=rows
    )


def render_db_table(rows: Sequence[Mapping[str, Any]]) -> str:
    """Pick the single-row or multi-row layout by row count; empty results get a notice."""
    if not rows:
        return _render("db_empty.html")
    if len(rows) == 1:
        return render_db_single(rows[0])
    return render_db_multi(rows)


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------
_CURRENT_FIELDS = {
    "temperature": re.compile(r"Temperature:\s*([\d.]+)°C"),
    "condition": re.compile(r"Condition:\s*(.+)"),
    "humidity": re.compile(r"Humidity:\s*(\d+)%"),
    "wind": re.compile(r"Wind:\s*([\d.]+)\s*m/s"),
    "pressure": re.compile(r"Pressure:\s*(\d+)\s*hPa"),
    "visibility": re.compile(r"Visibility:\s*([\d.]+)\s*km"),
}
_FORECAST_LINE = re.compile(r"(\d+)\.\s*(\d{2}:\d{2})\s*(?:AM|PM)\s*-\s*([\d.]+)°C,\s*(.+)")


def parse_current_weather(text: str) -> Dict[str, str]:
    """Named readings from a current-conditions reply."""
    readings: Dict[str, str] = {}
    for name, pattern in _CURRENT_FIELDS.items():
        match = pattern.search(text)
        if match:
            readings[name] = match.group(1).strip()
    return readings


def _current_weather_rows(readings: Dict[str, str]) -> List[tuple]:
    temperature = readings.get("temperature")
    condition = readings.get("condition")
    return [
        (
            "🌡️ Temperature",
            f"{temperature or NOT_AVAILABLE}°C",
            f" color: {_temperature_color(float(temperature) if temperature else None)};"
            " font-weight: bold;",
        ),
        ("🌤️ Condition", f"{_condition_icon(condition)} {condition or NOT_AVAILABLE}", ""),
        ("💧 Humidity", f"{readings.get('humidity', NOT_AVAILABLE)}%", ""),
        ("💨 Wind Speed", f"{readings.get('wind', NOT_AVAILABLE)} m/s", ""),
        ("📊 Pressure", f"{readings.get('pressure', NOT_AVAILABLE)} hPa", ""),
        ("👁️ Visibility", f"{readings.get('visibility', NOT_AVAILABLE)} km", ""),
    ]


def render_weather_table(text: str | None) -> str:
    """Current-conditions table, slot-by-slot forecast table, or the text as a paragraph."""
    if not text:
        return "<p>Weather information not available</p>"

    if "Current Weather" in text or "Temperature:" in text:
        rows = _current_weather_rows(parse_current_weather(text))
        return _render("weather_current.html", rows=rows)

    slots = []
    for line in text.splitlines():
        match = _FORECAST_LINE.search(line)
        if match:
            slots.append(
                {
                    "time": f"{match.group(2)} {'PM' if 'PM' in line else 'AM'}",
                    "temperature": float(match.group(3)),
                    "condition": match.group(4).strip(),
                }
            )
    if slots:
        return _render("weather_forecast.html", slots=slots)

    return _render("weather_text.html", lines=text.split("\n"))


def render_weather_bullets(text: str) -> str:
    """Weather reply as a bulleted list for chat messages."""
    return "\n".join(f"• {line}" for line in text.split("\n"))


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------
def _field(meeting: Mapping[str, Any], key: str) -> Any:
    value = meeting.get(key)
    return NOT_AVAILABLE if value in (None, "") else value


def render_meeting_details_html(meeting: Mapping[str, Any]) -> str:
    """Key/value card for a created meeting, for HTML email bodies."""
    start = meeting.get("start_time")
    rows = [
        ("📋 Topic:", _field(meeting, "topic")),
        ("🆔 Meeting ID:", _field(meeting, "id")),
        ("⏰ Start Time:", format_long_date_time(start) if start else NOT_AVAILABLE),
        ("⏱️ Duration:", f"{_field(meeting, 'duration')} minutes"),
        ("🌍 Timezone:", _field(meeting, "timezone")),
        ("🔗 Join URL:", _field(meeting, "join_url")),
        ("🔐 Password:", _field(meeting, "password")),
        ("📝 Agenda:", _field(meeting, "agenda")),
    ]
    return _render("meeting_details.html", rows=rows, join_url=meeting.get("join_url") or "#")


def render_meeting_details_markdown(meeting: Mapping[str, Any]) -> str:
    """Bulleted meeting block for Teams messages."""
    return "\n".join(
        [
            "**Meeting Details:**",
            f"• **Topic:** {_field(meeting, 'topic')}",
            f"• **Meeting ID:** {_field(meeting, 'id')}",
            f"• **Start Time:** {_field(meeting, 'start_time')}",
            f"• **Duration:** {_field(meeting, 'duration')} minutes",
            f"• **Join URL:** {_field(meeting, 'join_url')}",
            f"• **Password:** {_field(meeting, 'password')}",
        ]
    )


# ---------------------------------------------------------------------------
# Teams sales report
# ---------------------------------------------------------------------------
def _report_stamp(now: datetime) -> str:
    return f"{now.strftime('%B')} {now.day}, {now.strftime('%Y at %I:%M %p')}"


def render_sales_report(rows: Sequence[Mapping[str, Any]], now: datetime) -> str:
    """Teams-ready sales update wrapping the multi-row table, or a no-data notice."""
    footer = (
        f"🕒 **Report Generated:** {_report_stamp(now)}\n\n"
        "---\n*This report was automatically generated by the Sales Analytics System*"
    )
    if not rows:
        return (
            "📊 **Sales Analysis Report**\n\n"
            "⚠️ **No Data Available**\n"
            "No sales data found for the specified criteria. This could be due to:\n"
            "• No deals in the specified time period\n"
            "• Database query returned 0 results\n"
            "• Data may need to be refreshed\n\n" + footer
        )
    return (
        "🚀 **Sales Performance Update**\n\n"
        "Here are the top sales deals based on deal value analysis from our sales database:\n\n"
        + render_db_multi(rows)
        + "\n\n📈 **Key Insights:**\n"
        "• These represent the highest-value deals in our current sales pipeline\n"
        "• The deals showcase exceptional performance in revenue generation\n"
        "• This data can be used for benchmarking and performance analysis\n\n" + footer
    )
