"""Common utility functions for the project."""

import re
from datetime import (
    date,
    datetime,
    timedelta,
)
from enum import Enum
from typing import (
    Any,
    Callable,
)

Clock = Callable[[], datetime]
"""Zero-argument callable returning the current time; injected where tests need control."""


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(f"{color.value}{text}\033[0m", *args, **kwargs)  # ANSI reset at the end


def system_clock() -> datetime:
    """Default clock: local wall time."""
    return datetime.now()


def iso_date(day: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return day.strftime("%Y-%m-%d")


def today_iso(clock: Clock = system_clock) -> str:
    """Today's date as ``YYYY-MM-DD``."""
    return iso_date(clock().date())


def tomorrow_iso(clock: Clock = system_clock) -> str:
    """Tomorrow's date as ``YYYY-MM-DD``."""
    return iso_date(clock().date() + timedelta(days=1))


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of blank lines down to a single blank line."""
    return re.sub(r"\n\s*\n\s*\n", "\n\n", text)
