"""Best-effort parsing of the numeric text fields in a GTFS feed.

Every feed field is text. Call sites apply the documented fallback themselves:
coordinates default to 0.0, and a missing sequence number takes that stop_time
out of any ordering comparison.
"""

import math
import re
from typing import Optional

# int() alone would also accept padding and digit separators
_SEQUENCE_RE = re.compile(r"[+-]?[0-9]+")


def parse_sequence(value: Optional[str]) -> Optional[int]:
    """Parse a stop_sequence value, returning None when it is not a plain integer.

    Surrounding whitespace makes the value unparseable, so " 3" is dropped from
    ordering rather than read as 3.
    """
    if not isinstance(value, str) or not _SEQUENCE_RE.fullmatch(value):
        return None
    return int(value)


def parse_coordinate(value: Optional[str]) -> Optional[float]:
    """Parse a latitude/longitude value, returning None when it is not a finite number."""
    if value is None:
        return None
    try:
        number = float(value.strip())
    except (ValueError, AttributeError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coordinate_or_zero(value: Optional[str]) -> float:
    parsed = parse_coordinate(value)
    return parsed if parsed is not None else 0.0
