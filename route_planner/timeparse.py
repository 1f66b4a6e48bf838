# route_planner/timeparse.py
from __future__ import annotations
import re
from typing import Iterable, Optional, Tuple

UNPARSEABLE = 999
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)?$")

def try_parse_time(t) -> Optional[int]:
    """
    "8:30 AM" / "08:30AM" / "14:05" -> minutes since midnight, else None.
    """
    if t is None:
        return None
    s = str(t).strip().upper()
    m = _CLOCK.match(s)
    if not m:
        return None
    hours = int(m.group(1))
    minutes = int(m.group(2))
    period = m.group(3)
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return hours * 60 + minutes

def parse_time(t) -> int:
    """Minutes since midnight; 999 for empty or unparseable input."""
    m = try_parse_time(t)
    return UNPARSEABLE if m is None else m

def time_sort_key(t) -> Tuple[bool, int]:
    # 999 alone would sort before real times after 16:39
    m = try_parse_time(t)
    return (m is None, m if m is not None else UNPARSEABLE)

def classify_time_window(avg_minutes: float) -> str:
    if avg_minutes <= 600:
        return "Morning"
    if avg_minutes <= 780:
        return "Midday"
    return "Afternoon"

def average_time_label(times: Iterable[str]) -> Optional[str]:
    valid = [m for m in (try_parse_time(t) for t in times) if m is not None]
    if not valid:
        return None
    return classify_time_window(sum(valid) / len(valid))
