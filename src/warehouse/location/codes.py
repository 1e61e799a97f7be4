"""Storage location codes.

A location is a Row (letter A-Z), a Level (1-4, counted from the floor) and a
Position (1-99 along the row). The canonical form is ``ROW/LEVEL/POSITION``
with a two-digit position, e.g. ``A/1/05``.

Input is forgiving: any of ``/``, ``-``, ``.`` or whitespace may separate the
three parts, case is ignored, and the compact ``<row><position>/<level>`` form
(``A5/1``, ``A05-1``) is also understood.
"""

import re
from typing import NamedTuple

from protean.exceptions import ValidationError

MAX_LEVEL = 4
MAX_POSITION = 99

_SEPARATORS = re.compile(r"[\s/.\-]+")
_ROW_POSITION = re.compile(r"^([A-Z])(\d{1,2})$")


class LocationParts(NamedTuple):
    row: str
    level: int
    position: int


def _invalid(raw, reason: str) -> ValidationError:
    return ValidationError({"location": [f"Invalid location code {raw!r}: {reason}"]})


def parse_location_code(raw: str) -> LocationParts:
    """Split a location code in any accepted format into its parts."""
    if not isinstance(raw, str) or not raw.strip():
        raise _invalid(raw, "empty")

    parts = [p for p in _SEPARATORS.split(raw.strip().upper()) if p]
    if len(parts) == 3:
        row, level, position = parts
    elif len(parts) == 2 and _ROW_POSITION.match(parts[0]):
        row, position = _ROW_POSITION.match(parts[0]).groups()
        level = parts[1]
    else:
        raise _invalid(raw, "expected ROW/LEVEL/POSITION")

    if len(row) != 1 or not ("A" <= row <= "Z"):
        raise _invalid(raw, "row must be a single letter A-Z")
    if not level.isdigit() or not position.isdigit():
        raise _invalid(raw, "level and position must be numbers")

    level, position = int(level), int(position)
    if not 1 <= level <= MAX_LEVEL:
        raise _invalid(raw, f"level must be between 1 and {MAX_LEVEL}")
    if not 1 <= position <= MAX_POSITION:
        raise _invalid(raw, f"position must be between 1 and {MAX_POSITION}")

    return LocationParts(row, level, position)


def format_location_code(row: str, level: int, position: int) -> str:
    return f"{row}/{level}/{position:02d}"


def normalize_location_code(raw: str) -> str:
    """Return the canonical ``ROW/LEVEL/POSITION`` form of ``raw``.

    Raises ``ValidationError`` for malformed codes.
    """
    return format_location_code(*parse_location_code(raw))


def is_valid_location_code(raw: str) -> bool:
    try:
        parse_location_code(raw)
    except ValidationError:
        return False
    return True


def location_sort_key(code: str) -> tuple[str, int, int]:
    """Order by row, then level, then position."""
    parts = parse_location_code(code)
    return parts.row, parts.level, parts.position


def route_sort_key(code: str) -> tuple[str, int, int]:
    """Walking order: along each row by position, lower levels first."""
    parts = parse_location_code(code)
    return parts.row, parts.position, parts.level
