"""
Per-tool fact extractors.

Agents answer in loosely formatted text ("City: Pune", "Mumbai (BOM)", a JSON dump of meetings).
Each extractor turns one such reply into named context keys; :data:`EXTRACTORS` maps a tool name to
the extractor that runs after it succeeds.
"""

import json
import logging
import re
from typing import (
    Any,
    Callable,
    Dict,
    List,
)

from switchboard.core.schema import AgentResult

logger = logging.getLogger(__name__)

CITY_LINE = re.compile(r"City:\s*([^\n]+)", re.IGNORECASE)
TIMEZONE_LINE = re.compile(r"Timezone:\s*([^\n]+)", re.IGNORECASE)
IATA_PAREN = re.compile(r"\(([A-Z]{3})\)")
SUNNY_DATE = re.compile(r"(\d{4}-\d{2}-\d{2}).*?(sunny|clear|good|excellent)", re.IGNORECASE)
DATA_ARRAY = re.compile(r"Data:\s*(\[[\s\S]*\])")
JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

Facts = Dict[str, Any]


# ---------------------------------------------------------------------------
# Text matchers
# ---------------------------------------------------------------------------
def extract_city(text: str) -> str | None:
    """City from a ``City: X`` line."""
    match = CITY_LINE.search(text or "")
    return match.group(1).strip() if match else None


def extract_timezone(text: str) -> str | None:
    """Timezone from a ``Timezone: X`` line."""
    match = TIMEZONE_LINE.search(text or "")
    return match.group(1).strip() if match else None


def extract_iata(text: str) -> str | None:
    """First parenthesised three-letter airport code, e.g. ``Pune Airport (PNQ)``."""
    match = IATA_PAREN.search(text or "")
    return match.group(1) if match else None


def extract_sunny_date(text: str) -> str | None:
    """First ``YYYY-MM-DD`` date followed on the same line by a fair-weather word."""
    match = SUNNY_DATE.search(text or "")
    return match.group(1) if match else None


def parse_json_object(text: str) -> Dict[str, Any] | None:
    """Decode *text* as a JSON object, or the first ``{...}`` span inside it."""
    if not text:
        return None
    candidates = [text]
    match = JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    return None


def is_envelope(raw: Any) -> bool:
    """True for ``{"content": ...}`` / ``{"text": ...}`` wrappers whose payload lives in the text."""
    return isinstance(raw, dict) and ("content" in raw or "text" in raw)


def structured(result: AgentResult) -> Dict[str, Any] | None:
    """The JSON object carried by *result*, if any."""
    if not is_envelope(result.raw):
        value = result.as_json()
        if isinstance(value, dict):
            return value
    return parse_json_object(result.text)


def extract_meeting_ids(result: AgentResult) -> List[str]:
    """Meeting ids from a meeting listing, in listing order."""
    data = structured(result)
    if not data:
        logger.warning("Meeting listing is not JSON; no meeting ids found")
        return []
    return [str(m["id"]) for m in data.get("meetings") or [] if isinstance(m, dict) and "id" in m]


def extract_db_rows(result: AgentResult) -> List[Dict[str, Any]]:
    """Rows from a database agent reply: ``{"data": [...]}`` or a ``Data: [...]`` text block."""
    raw = result.raw
    if isinstance(raw, dict) and isinstance(raw.get("data"), list):
        return [row for row in raw["data"] if isinstance(row, dict)]

    match = DATA_ARRAY.search(result.text or "")
    if not match:
        return []
    try:
        rows = json.loads(match.group(1))
    except ValueError:
        logger.warning("Could not decode database rows from agent reply")
        return []
    return [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []


# ---------------------------------------------------------------------------
# Extractor table
# ---------------------------------------------------------------------------
def _city_facts(result: AgentResult) -> Facts:
    city = extract_city(result.text)
    if not city:
        return {}
    return {"previous_result_city": city, "previous_result.city": city}


def _iata_facts(result: AgentResult) -> Facts:
    code = extract_iata(result.text)
    if not code:
        return {}
    return {"previous_result_iata": code, "previous_result.iata": code}


def _forecast_facts(result: AgentResult) -> Facts:
    day = extract_sunny_date(result.text)
    if not day:
        return {}
    return {
        "previous_result_sunny_day": day,
        "previous_result_good_weather_date": day,
        "previous_result_next_good_weather_date": day,
    }


def _meeting_facts(result: AgentResult) -> Facts:
    ids = extract_meeting_ids(result)
    return {"meeting_ids": ids} if ids else {}


EXTRACTORS: Dict[str, Callable[[AgentResult], Facts]] = {
    "get_live_location": _city_facts,
    "search_locations": _iata_facts,
    "get_weather_forecast_by_city": _forecast_facts,
    "zoom_list_meetings": _meeting_facts,
    "zoom_list_today_meetings": _meeting_facts,
}


def structured_facts(result: AgentResult) -> Facts:
    """``previous_result_<k>`` and ``previous_result.<k>`` for each top-level field of a JSON object."""
    if not isinstance(result.raw, dict) or is_envelope(result.raw):
        return {}
    facts: Facts = {}
    for key, value in result.raw.items():
        facts[f"previous_result_{key}"] = value
        facts[f"previous_result.{key}"] = value
    if result.raw.get("city"):
        facts["previous_result_city"] = result.raw["city"]
        facts["previous_result.city"] = result.raw["city"]
    return facts


def extract_facts(tool_name: str, result: AgentResult) -> Facts:
    """All context keys derived from one successful call of *tool_name*."""
    facts = structured_facts(result)
    extractor = EXTRACTORS.get(tool_name)
    if extractor is not None:
        facts.update(extractor(result))
    if facts:
        logger.debug("Extracted from %s: %s", tool_name, sorted(facts))
    return facts
