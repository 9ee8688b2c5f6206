"""Human-readable duration parsing.

Token lifetimes are configured with short duration strings such as ``"15m"``
or ``"7d"``. This module converts them to :class:`datetime.timedelta` so that
configuration errors surface when settings are built, never while a request
is being served.

Supported units:
    ms, s, m, h, d, w, y (365 days). A bare number is read as milliseconds.
"""

import re
from datetime import timedelta
from typing import Union

_DURATION_PATTERN = re.compile(
    r"^\s*(?P<amount>-?\d+(?:\.\d+)?)\s*(?P<unit>ms|msecs?|milliseconds?|s|secs?|seconds?|"
    r"m|mins?|minutes?|h|hrs?|hours?|d|days?|w|weeks?|y|yrs?|years?)?\s*$",
    re.IGNORECASE,
)

_UNIT_MILLISECONDS = {
    "ms": 1,
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
    "y": 31_536_000_000,
}


def _canonical_unit(unit: str) -> str:
    unit = unit.lower()
    if unit.startswith("ms") or unit.startswith("milli"):
        return "ms"
    if unit.startswith("mi") or unit == "m":
        return "m"
    return unit[0]


def parse_duration_ms(value: Union[str, int, float]) -> int:
    """Parses a duration into whole milliseconds.

    Args:
        value: A duration string (``"30s"``, ``"15m"``, ``"7d"``) or a number
            of milliseconds.

    Returns:
        int: The duration in milliseconds.

    Raises:
        ValueError: If the value is empty, negative, zero or not understood.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        milliseconds = int(value)
    else:
        match = _DURATION_PATTERN.match(value or "")
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        unit = _canonical_unit(match.group("unit") or "ms")
        milliseconds = int(float(match.group("amount")) * _UNIT_MILLISECONDS[unit])

    if milliseconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return milliseconds


def parse_duration(value: Union[str, int, float]) -> timedelta:
    """Parses a duration into a :class:`datetime.timedelta`."""
    return timedelta(milliseconds=parse_duration_ms(value))
