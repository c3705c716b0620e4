"""
Placeholder token vocabulary shared by the planner prompt and the executor.

The LLM writes these tokens into plan parameters as forward/back references to data produced by
other steps.  The strings are part of the wire contract with the prompt text, so they must never be
renamed.
"""

import re
from enum import Enum


class Token(str, Enum):
    """Reserved placeholder strings."""

    # Values resolved from the execution context
    FOUND_CITY = "FOUND_CITY"
    FOUND_CODE = "FOUND_CODE"
    FOUND_CITY_CODE = "FOUND_CITY_CODE"
    FOUND_REGION_CODE = "FOUND_REGION_CODE"
    FOUND_REGION_IATA_CODE = "FOUND_REGION_IATA_CODE"
    FOUND_NEXT_GOOD_WEATHER_DATE = "FOUND_NEXT_GOOD_WEATHER_DATE"
    FOUND_SUNNY_DAY = "FOUND_SUNNY_DAY"
    FOUND_GOOD_WEATHER_DATE = "FOUND_GOOD_WEATHER_DATE"
    FOUND_MEETING_ID = "FOUND_MEETING_ID"

    # Content injected into message/body text
    INCLUDE_FLIGHT_RESULTS_HERE = "INCLUDE_FLIGHT_RESULTS_HERE"
    INCLUDE_DATABASE_RESULTS_TABLE_HERE = "INCLUDE_DATABASE_RESULTS_TABLE_HERE"
    INCLUDE_MEETING_DETAILS_HERE = "INCLUDE_MEETING_DETAILS_HERE"
    INCLUDE_MEETING_LINK_HERE = "INCLUDE_MEETING_LINK_HERE"
    INCLUDE_WEATHER_RESULTS_HERE = "INCLUDE_WEATHER_RESULTS_HERE"
    INCLUDE_LOCATION_RESULTS_HERE = "INCLUDE_LOCATION_RESULTS_HERE"
    INCLUDE_MEETING_ID_HERE = "INCLUDE_MEETING_ID_HERE"

    # Relative dates
    TODAY_DATE = "{{today_date}}"
    TOMORROW_DATE = "{{tomorrow_date}}"

    def __str__(self) -> str:
        return self.value


CITY_TOKENS = (
    "INCLUDE_CITY_HERE",
    "INCLUDE_CITY_NAME_HERE",
    "INCLUDE_CITY_FROM_LIVE_LOCATION",
    Token.FOUND_CITY.value,
)

START_TIME_TOKENS = (
    "INCLUDE_SUITABLE_DATE_HERE",
    "INCLUDE_SUITABLE_DATE_TIME_HERE",
    "INCLUDE_SELECTED_DATE_AND_TIME",
    "FOUND_SUITABLE_DATE_TIME",
    "INCLUDE_SELECTED_DATE_HERE",
)

TIMEZONE_TOKENS = (
    "INCLUDE_TIMEZONE_HERE",
    "INCLUDE_TIMEZONE_FROM_LIVE_LOCATION",
)

# Context key holding the value for each FOUND_* date/city/code token.
CONTEXT_KEYS = {
    Token.FOUND_CITY.value: "previous_result_city",
    Token.FOUND_CODE.value: "previous_result_iata",
    Token.FOUND_NEXT_GOOD_WEATHER_DATE.value: "previous_result_next_good_weather_date",
    Token.FOUND_SUNNY_DAY.value: "previous_result_sunny_day",
    Token.FOUND_GOOD_WEATHER_DATE.value: "previous_result_good_weather_date",
}

WEATHER_DATE_TOKENS = (
    Token.FOUND_NEXT_GOOD_WEATHER_DATE.value,
    Token.FOUND_SUNNY_DAY.value,
    Token.FOUND_GOOD_WEATHER_DATE.value,
)

# Meeting-id tokens meaning "every meeting from the latest listing".
DELETE_ALL_MEETING_TOKENS = (
    Token.INCLUDE_MEETING_ID_HERE.value,
    Token.FOUND_MEETING_ID.value,
)

INDEXED_MEETING_ID = re.compile(r"PLACEHOLDER_FOR_MEETING_ID_(\d+)")
TEMPLATE = re.compile(r"^\{\{\s*([^}]+?)\s*\}\}$")
LEGACY_FIELD = re.compile(r"INCLUDE_([A-Z0-9_]+?)_HERE")
WEATHER_DATE_HINT = re.compile(r"SUNNY|GOOD_WEATHER", re.IGNORECASE)


def is_meeting_id_placeholder(value: object) -> bool:
    """Return True if *value* is any of the meeting-id placeholder spellings."""
    if not isinstance(value, str):
        return False
    return "PLACEHOLDER_FOR_MEETING_ID" in value or any(
        token in value for token in DELETE_ALL_MEETING_TOKENS
    )


def contains_any(value: object, tokens: tuple) -> bool:
    """Return True if the string *value* contains any of *tokens*."""
    return isinstance(value, str) and any(token in value for token in tokens)
