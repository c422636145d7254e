# urnik_api/core/date_utils.py
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import List, Optional, Tuple

from .constants import TIME_SLOTS, WEEKDAY_NAMES

log = logging.getLogger(__name__)

# --- Regular Expressions for Date Parsing ---
# Matches D.M.YYYY format (week labels, e.g. "6.10.2025")
PERIOD_DATE_FULL = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
# Matches D.M. inside a day header (e.g. "Torek 7.10.")
PERIOD_DATE_SHORT = re.compile(r"(\d{1,2})\.(\d{1,2})\.?")


def iso_week_info(d: date) -> Tuple[int, int]:
    """Returns (iso_week, iso_year) for a date."""
    iso_calendar = d.isocalendar()
    return iso_calendar[1], iso_calendar[0]


def monday_of_iso_week(week: int, year: int) -> date:
    """Returns the Monday of an ISO week."""
    return date.fromisocalendar(year, week, 1)


def format_dmy(d: date) -> str:
    """Formats a date as D.M.YYYY without zero padding (e.g. '6.10.2025')."""
    return f"{d.day}.{d.month}.{d.year}"


def format_dm(d: date) -> str:
    return f"{d.day}.{d.month}."


def candidate_weeks(today: date, before: int, after: int) -> List[int]:
    """
    Lists ISO week numbers around the current week, in probing order.

    Weeks outside 1..53 are dropped rather than wrapped into the adjacent year.
    """
    current_week, _ = iso_week_info(today)
    weeks: List[int] = []
    for i in range(-before, after + 1):
        week = current_week + i
        if 1 <= week <= 53 and week not in weeks:
            weeks.append(week)
    return weeks


@dataclass(frozen=True)
class WeekDescription:
    """A week label expanded for display."""
    label: str
    display: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: bool = False


def parse_week_label(label: str) -> Optional[date]:
    """Parses a D.M.YYYY week label into the week's Monday."""
    match = PERIOD_DATE_FULL.match((label or "").strip())
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        log.warning(f"Week label '{label}' is not a valid date.")
        return None


def describe_week(label: str, today: Optional[date] = None) -> WeekDescription:
    """
    Expands a week label ("6.10.2025") into a Monday-Friday display range.

    Args:
        label: The week label, D.M.YYYY of the week's Monday.
        today: Reference date for `is_current`; defaults to the system date.

    Returns:
        A WeekDescription. Labels that do not parse are returned as-is for display.
    """
    start = parse_week_label(label)
    if start is None:
        return WeekDescription(label=label, display=label)
    end = start + timedelta(days=4)
    today = today or date.today()
    return WeekDescription(
        label=label,
        display=f"{format_dm(start)} - {format_dm(end)}",
        start_date=start,
        end_date=end,
        is_current=start <= today <= end,
    )


def week_label_for(week: int, today: Optional[date] = None) -> str:
    """Builds the D.M.YYYY label of an ISO week in the current ISO year."""
    today = today or date.today()
    _, year = iso_week_info(today)
    try:
        return format_dmy(monday_of_iso_week(week, year))
    except ValueError:
        log.warning(f"Week {week} does not exist in ISO year {year}.")
        return ""


def weekday_index(day_label: str) -> Optional[int]:
    """Returns 0 (Monday) .. 4 (Friday) for a day header, or None."""
    for index, name in enumerate(WEEKDAY_NAMES):
        if name in (day_label or ""):
            return index
    return None


def day_label_to_date(day_label: str, week_start: date) -> Optional[date]:
    """
    Resolves a day header such as "Torek 7.10." to a calendar date.

    The header carries no year; it is taken from `week_start`, moving to the
    next year when the header date falls far before the week start (a week
    spanning New Year). The result is checked against the weekday name.

    Args:
        day_label: The day header text.
        week_start: Monday of the week the header belongs to.

    Returns:
        The date, or None if the header has no date or it contradicts the weekday.
    """
    match = PERIOD_DATE_SHORT.search(day_label or "")
    if not match:
        log.debug(f"No D.M. date in day label '{day_label}'.")
        return None
    day, month = int(match.group(1)), int(match.group(2))
    try:
        resolved = date(week_start.year, month, day)
        if resolved < week_start - timedelta(days=7):
            resolved = date(week_start.year + 1, month, day)
    except ValueError:
        log.warning(f"Day label '{day_label}' does not contain a valid date.")
        return None

    expected = weekday_index(day_label)
    if expected is not None and resolved.weekday() != expected:
        log.warning(
            f"Day label '{day_label}' resolved to {resolved.isoformat()}, "
            f"which is not a {WEEKDAY_NAMES[expected]}."
        )
        return None
    return resolved


@lru_cache(maxsize=128)
def slot_time_range(slot: int, duration: float = 1) -> Optional[Tuple[str, str]]:
    """
    Maps a slot and a duration in slots to wall-clock start and end times.

    Fractional durations round up to whole slots; an end slot past the
    table falls back to the start slot's end.

    Returns:
        A tuple (start, end) such as ("8:05", "8:50"), or None for an unknown slot.
    """
    start_slot = TIME_SLOTS.get(slot)
    if not start_slot:
        log.debug(f"Unknown time slot: {slot}")
        return None
    end_slot_id = slot + max(math.ceil(duration), 1) - 1
    end_slot = TIME_SLOTS.get(end_slot_id, start_slot)
    return start_slot[0], end_slot[1]


def parse_clock(value: str) -> Tuple[int, int]:
    """Splits 'H:MM' into (hour, minute)."""
    hour, minute = value.split(":")
    return int(hour), int(minute)
