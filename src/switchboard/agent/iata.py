"""City name to IATA airport code resolution."""

import logging
import re
from typing import (
    TYPE_CHECKING,
    Dict,
)

from switchboard.agent.extractors import extract_iata
from switchboard.core.errors import SwitchboardError

if TYPE_CHECKING:
    from switchboard.agent.invoker import AgentInvoker
    from switchboard.agent.planner_interface import BasePlanner

logger = logging.getLogger(__name__)

# Well-known cities, looked up before any network call.
CITY_TO_IATA: Dict[str, str] = {
    "bengaluru": "BLR",
    "bangalore": "BLR",
    "delhi": "DEL",
    "mumbai": "BOM",
    "bombay": "BOM",
    "chennai": "MAA",
    "madras": "MAA",
    "kolkata": "CCU",
    "calcutta": "CCU",
    "hyderabad": "HYD",
    "pune": "PNQ",
    "ahmedabad": "AMD",
    "kochi": "COK",
    "cochin": "COK",
    "trivandrum": "TRV",
    "thiruvananthapuram": "TRV",
}

# Spellings the location agent reports that the flight agent's search does not know.
CITY_NAME_MAP: Dict[str, str] = {
    "bangalore": "Bengaluru",
    "bengaluru": "Bengaluru",
    "mumbai": "Bombay",
}

_IATA_CODE = re.compile(r"^[A-Z]{3}$")


def normalize_city(city: str) -> str:
    """Map a city to the spelling the flight search expects."""
    return CITY_NAME_MAP.get(city.strip().lower(), city)


def known_iata(city: str) -> str | None:
    """Code from the built-in table, or None."""
    return CITY_TO_IATA.get(city.strip().lower())


class IataResolver:
    """
    Resolve a place name to an IATA code.

    Lookup order: the value itself when it already is a code, the built-in table, the flight agent's
    ``search_locations`` tool, and finally a single-shot question to the planner's LLM.
    """

    def __init__(self, invoker: "AgentInvoker", planner: "BasePlanner | None" = None) -> None:
        self.invoker = invoker
        self.planner = planner

    async def resolve(self, place: str) -> str | None:
        place = place.strip()
        if not place:
            return None
        if _IATA_CODE.match(place):
            return place

        code = known_iata(place)
        if code:
            logger.debug("IATA code for %s from table: %s", place, code)
            return code

        try:
            result = await self.invoker.invoke("search_locations", {"keyword": place})
        except SwitchboardError as exc:
            logger.warning("search_locations failed for %s: %s", place, exc)
        else:
            code = extract_iata(result.text)
            if code:
                logger.debug("IATA code for %s from search_locations: %s", place, code)
                return code

        if self.planner is not None:
            code = await self.planner.lookup_iata(place)
            if code:
                logger.debug("IATA code for %s from LLM: %s", place, code)
                return code

        logger.warning("Could not resolve an IATA code for %s", place)
        return None
