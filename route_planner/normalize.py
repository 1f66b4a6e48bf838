from __future__ import annotations
import hashlib
import re
from typing import Iterable, Tuple

ABBREVIATIONS = {
    "st": "street",
    "ave": "avenue",
    "blvd": "boulevard",
    "dr": "drive",
    "rd": "road",
    "ln": "lane",
    "ct": "court",
    "pkwy": "parkway",
    "pl": "place",
    "cir": "circle",
    "hwy": "highway",
    "apt": "apartment",
    "ste": "suite",
    "fl": "floor",
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "ne": "northeast",
    "nw": "northwest",
    "se": "southeast",
    "sw": "southwest",
}

_UNIT_MARKER = re.compile(r"#\s*\w+")
_WORD = re.compile(r"\b(\w+)\b")
_SPACES = re.compile(r"\s+")
_INNER_PERIODS = re.compile(r"\.+\s")
_TRAILING_PERIODS = re.compile(r"\.+$")


def normalize_address(address: str) -> str:
    """
    Canonical form used for geocode cache keys, so "1839 W Valley Blvd # 6"
    and "1839 west valley boulevard" land on the same entry.
    """
    s = (address or "").lower().strip()
    s = _UNIT_MARKER.sub("", s)
    s = _SPACES.sub(" ", s)
    s = _WORD.sub(lambda m: ABBREVIATIONS.get(m.group(1), m.group(1)), s)
    s = _INNER_PERIODS.sub(" ", s)
    s = _TRAILING_PERIODS.sub("", s)
    return _SPACES.sub(" ", s).strip()


def generate_cache_key(kind: str, value: str) -> str:
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]
    return f"{kind}:{digest}"


def format_directions_cache_input(
    origin: Tuple[float, float],
    destination: Tuple[float, float],
    waypoints: Iterable[Tuple[float, float]],
) -> str:
    base = f"{origin[0]},{origin[1]}>{destination[0]},{destination[1]}"
    wp = "|".join(f"{lat},{lng}" for lat, lng in waypoints)
    return f"{base}|{wp}" if wp else base
