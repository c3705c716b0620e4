"""Keyword heuristics over the weather agent's plain-text replies."""

import logging
import re
from datetime import timedelta

from switchboard.common import (
    Clock,
    iso_date,
    system_clock,
)

logger = logging.getLogger(__name__)

GOOD_WEATHER = re.compile(
    r"good|clear|sunny|fine|excellent|scattered clouds|partly cloudy|overcast clouds|fair",
    re.IGNORECASE,
)

BAD_TRAVEL_INDICATORS = (
    "heavy rain", "thunderstorm", "storm", "cyclone", "typhoon", "hurricane", "blizzard",
    "snowstorm", "fog", "mist", "haze", "smog", "extreme", "severe", "dangerous", "poor visibility",
)  # fmt: skip
GOOD_TRAVEL_INDICATORS = (
    "clear sky", "sunny", "partly cloudy", "scattered clouds", "light rain", "drizzle",
    "good visibility", "mild",
)  # fmt: skip

# "05:30 PM - 27.84°C, light rain"
FORECAST_SLOT = re.compile(r"(\d{1,2}:\d{2})\s*(AM|PM)\s*-\s*[\d.]+°C,\s*(.+)")
_SLOT_BAD_WORDS = ("storm", "thunder", "heavy", "snow")


def weather_is_good(text: str | None) -> bool:
    """True when *text* mentions any of the good-weather keywords."""
    if not text:
        return False
    return GOOD_WEATHER.search(text) is not None


def assess_forecast(text: str) -> str:
    """
    Grade a forecast for travel as ``"bad"``, ``"good"`` or ``"moderate"``.

    Bad indicators are checked first, so "sunny with a storm later" is bad.
    """
    lowered = text.lower()
    if any(indicator in lowered for indicator in BAD_TRAVEL_INDICATORS):
        return "bad"
    if any(indicator in lowered for indicator in GOOD_TRAVEL_INDICATORS):
        return "good"
    return "moderate"


def _slot_is_good(condition: str) -> bool:
    if any(word in condition for word in _SLOT_BAD_WORDS):
        return False
    return (
        "clear" in condition
        or "sunny" in condition
        or ("cloud" in condition and "rain" not in condition)
        or "light rain" in condition
    )


def find_next_sunny_day(text: str | None, clock: Clock = system_clock) -> str | None:
    """
    Pick a date with usable weather from a slot-by-slot forecast.

    Returns today's date if any slot is good, otherwise tomorrow's.  Returns None for an empty
    forecast.
    """
    if not text:
        return None

    today = clock().date()
    for line in text.splitlines():
        match = FORECAST_SLOT.search(line)
        if match and _slot_is_good(match.group(3).lower().strip()):
            logger.debug("Good weather at %s %s: %s", *match.group(1, 2, 3))
            return iso_date(today)

    logger.debug("No good weather slot today, using tomorrow")
    return iso_date(today + timedelta(days=1))
