"""
Static catalog of the agent micro-services and the tools they expose.

Each agent is reached with ``POST <base_url>/a2a`` and a body of ``{"tool": <name>, ...params}``.
Base URLs come from :mod:`switchboard.config`.
"""

from typing import (
    Dict,
    Iterable,
    Tuple,
)

from switchboard.config import settings
from switchboard.core.schema import (
    AgentDescriptor,
    HttpInvocation,
    ParameterSpec,
    ToolDescriptor,
)
from switchboard.tools import (
    add_tool,
    register_agent,
)

# (name, type, description, required)
_Param = Tuple[str, str, str, bool]


def _req(name: str, description: str, type_: str = "string") -> _Param:
    return (name, type_, description, True)


def _opt(name: str, description: str, type_: str = "string") -> _Param:
    return (name, type_, description, False)


def _register(
    agent: AgentDescriptor, tools: Iterable[Tuple[str, str, Iterable[_Param]]]
) -> None:
    register_agent(agent)
    for tool_name, description, params in tools:
        parameters: Dict[str, ParameterSpec] = {
            name: ParameterSpec(type=type_, description=desc, required=required)
            for name, type_, desc, required in params
        }
        add_tool(
            ToolDescriptor(
                name=tool_name,
                agent_name=agent.name,
                description=description,
                parameters=parameters,
                invocation=HttpInvocation(url=agent.endpoint),
            )
        )


# ---------------------------------------------------------------------------
# Flights, e-mail and Zoom (served by the flight agent)
# ---------------------------------------------------------------------------
FLIGHT_AGENT = AgentDescriptor(
    name="FlightSearchAgent",
    description="Flight search and booking agent with Amadeus API integration, Outlook, and Zoom tools",
    base_url=settings.FLIGHT_AGENT_URL,
)

_register(
    FLIGHT_AGENT,
    [
        (
            "search_flights",
            "Search for available flights between two cities or airports on a specific date "
            "using the Amadeus API.",
            [
                _req("source", "Departure IATA code (e.g. BLR)"),
                _req("destination", "Arrival IATA code (e.g. DEL)"),
                _req("date", "Departure date (YYYY-MM-DD)"),
                _opt("adults", "Number of adult passengers", "number"),
                _opt("max", "Maximum number of offers to return", "number"),
            ],
        ),
        (
            "book_flight",
            "Book a flight using a validated flight offer and traveler information via the "
            "Amadeus API.",
            [
                _req("flightOffer", "Flight offer object returned by search_flights", "object"),
                _req("travelerInfo", "Traveler details", "object"),
            ],
        ),
        (
            "search_locations",
            "Find IATA airport/city codes for a given city name using the Amadeus API.",
            [_req("keyword", "City or airport name")],
        ),
        (
            "outlook_send_email",
            "Send an email using Microsoft Outlook/Exchange Online via Microsoft Graph API",
            [
                _req("to_email", "Recipient email addresses", "array"),
                _req("subject", "Email subject"),
                _req("body", "Email body (plain text or HTML)"),
                _opt("cc", "CC recipients", "array"),
                _opt("bcc", "BCC recipients", "array"),
                _opt("isHtml", "Whether the body is HTML", "boolean"),
            ],
        ),
        ("zoom_list_meetings", "List all meetings for the authenticated Zoom user.", []),
        (
            "zoom_list_today_meetings",
            "List meetings for today and tomorrow with metrics data and date range information.",
            [],
        ),
        (
            "zoom_get_meeting_details",
            "Get details for a specific Zoom meeting by meetingId.",
            [_req("meetingId", "Zoom meeting ID")],
        ),
        (
            "zoom_create_meeting",
            "Create a new Zoom meeting for the authenticated user.",
            [
                _req("topic", "Meeting topic"),
                _req("type", "Meeting type (2 = scheduled)", "number"),
                _req("start_time", "Start time (YYYY-MM-DDTHH:MM:SS)"),
                _req("duration", "Duration in minutes", "number"),
                _req("timezone", "IANA timezone name"),
                _req("agenda", "Meeting agenda"),
                _opt("password", "Meeting password"),
                _opt("host_email", "Host email address"),
                _opt("settings", "Zoom meeting settings", "object"),
            ],
        ),
        (
            "zoom_delete_meeting",
            "Delete a Zoom meeting by meetingId.",
            [_req("meetingId", "Zoom meeting ID")],
        ),
        (
            "zoom_list_past_meeting_participants",
            "List participants of a past Zoom meeting by meetingUUID.",
            [_req("meetingUUID", "UUID of the past meeting")],
        ),
    ],
)

# ---------------------------------------------------------------------------
# Microsoft Teams
# ---------------------------------------------------------------------------
TEAMS_AGENT = AgentDescriptor(
    name="TeamsAgent",
    description="Microsoft Teams integration agent for sending messages, alerts, and reports",
    base_url=settings.TEAMS_AGENT_URL,
)

_register(
    TEAMS_AGENT,
    [
        (
            "teams_send_message",
            "Send a message to a Microsoft Teams channel using webhook integration",
            [
                _req("message", "The message content to send to Teams channel (supports markdown)"),
                _opt("channel", "The specific channel name"),
                _opt("priority", "Message priority level"),
                _opt("attachments", "Array of file attachments or rich content", "array"),
            ],
        ),
        (
            "teams_send_alert",
            "Send an alert notification to Microsoft Teams with enhanced formatting and urgency "
            "indicators",
            [
                _req("title", "Alert title that will be prominently displayed"),
                _req("message", "Detailed alert message content (supports markdown)"),
                _req("severity", "Alert severity level"),
                _opt("channel", "Target channel name for the alert"),
                _opt("actions", "Array of action buttons for the alert", "array"),
                _opt("data", "Additional data to include in the alert", "object"),
            ],
        ),
        (
            "teams_send_report",
            "Send a formatted report to Microsoft Teams with structured data and visual elements",
            [
                _req("reportType", "Type of report to generate"),
                _req("title", "Report title"),
                _req("content", "Structured report content with sections and data", "object"),
            ],
        ),
    ],
)

# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------
WEATHER_AGENT = AgentDescriptor(
    name="WeatherAgent",
    description="Weather information agent with OpenWeatherMap API integration",
    base_url=settings.WEATHER_AGENT_URL,
)

_register(
    WEATHER_AGENT,
    [
        (
            "get_current_weather_by_city",
            "Get current weather information for a specific city using OpenWeatherMap API.",
            [_req("city", "City name to get weather for")],
        ),
        (
            "get_weather_forecast_by_city",
            "Get 5-day weather forecast for a specific city using OpenWeatherMap API.",
            [_req("city", "City name to get the forecast for")],
        ),
        (
            "get_current_weather_by_coordinates",
            "Get current weather information for specific coordinates using OpenWeatherMap API.",
            [_req("lat", "Latitude", "number"), _req("lon", "Longitude", "number")],
        ),
    ],
)

# ---------------------------------------------------------------------------
# Live location
# ---------------------------------------------------------------------------
LOCATION_AGENT = AgentDescriptor(
    name="LiveLocationAgent",
    description="Live location and geolocation services agent with comprehensive location-based "
    "capabilities",
    base_url=settings.LOCATION_AGENT_URL,
)

_register(
    LOCATION_AGENT,
    [
        (
            "get_live_location",
            "Get current location information based on IP address using geolocation services.",
            [],
        ),
        (
            "get_location_by_ip",
            "Get location information for a specific IP address using geolocation services.",
            [_opt("ip", "IP address to look up")],
        ),
        (
            "get_location_by_coordinates",
            "Get location information for specific latitude and longitude coordinates using "
            "reverse geocoding.",
            [_req("lat", "Latitude", "number"), _req("lon", "Longitude", "number")],
        ),
        (
            "get_nearby_airports",
            "Find nearby airports based on current location or provided coordinates.",
            [
                _req("latitude", "Latitude", "number"),
                _req("longitude", "Longitude", "number"),
                _opt("radius", "Search radius in km", "number"),
            ],
        ),
        (
            "get_location_weather",
            "Get current weather information for the user's current location.",
            [],
        ),
        (
            "get_location_timezone",
            "Get timezone information for the current location or specified coordinates.",
            [_opt("lat", "Latitude", "number"), _opt("lon", "Longitude", "number")],
        ),
        (
            "get_location_details",
            "Get comprehensive location details including city, country, coordinates, timezone, "
            "and nearby points of interest.",
            [
                _opt("include_weather", "Include current weather", "boolean"),
                _opt("include_timezone", "Include timezone details", "boolean"),
                _opt("include_airports", "Include nearby airports", "boolean"),
            ],
        ),
    ],
)

# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------
POSTGRES_AGENT = AgentDescriptor(
    name="PostgresAgent",
    description="PostgreSQL database agent with comprehensive CRUD operations, query execution, "
    "and database management capabilities",
    base_url=settings.POSTGRES_AGENT_URL,
)

_register(
    POSTGRES_AGENT,
    [
        (
            "execute_query",
            "Execute any SQL query and return results. Use for complex queries, stored "
            "procedures, or custom operations.",
            [
                _req("query", "SQL query to execute"),
                _opt("params", "Query parameters for prepared statements", "array"),
            ],
        ),
        (
            "get_table_info",
            "Get detailed information about a specific table including column names, data types, "
            "and constraints.",
            [_req("tableName", "Name of the table")],
        ),
        (
            "get_all_tables",
            "Get a list of all tables in the database with their types and basic information.",
            [],
        ),
        (
            "execute_select_query",
            "Execute a SELECT query with pagination support. Use for retrieving data with limit "
            "and offset.",
            [
                _req("query", "SELECT query"),
                _opt("params", "Query parameters", "array"),
                _opt("limit", "Maximum number of rows to return (default: 100)", "number"),
                _opt("offset", "Number of rows to skip (default: 0)", "number"),
            ],
        ),
        (
            "execute_insert_query",
            "Insert a new row into a table. Returns the inserted row with generated values.",
            [_req("tableName", "Name of the table"), _req("data", "Column values", "object")],
        ),
        (
            "execute_update_query",
            "Update existing rows in a table based on a WHERE condition. Returns the updated rows.",
            [
                _req("tableName", "Name of the table"),
                _req("data", "Column names and new values", "object"),
                _req("whereCondition", "WHERE condition with placeholders"),
            ],
        ),
        (
            "execute_delete_query",
            "Delete rows from a table based on a WHERE condition. Returns the deleted rows.",
            [
                _req("tableName", "Name of the table"),
                _req("whereCondition", "WHERE condition with placeholders"),
            ],
        ),
        (
            "get_database_health",
            "Check the health and status of the PostgreSQL database connection.",
            [],
        ),
        (
            "get_database_stats",
            "Get comprehensive database statistics including table counts, row counts, database "
            "size, and active connections.",
            [],
        ),
    ],
)
