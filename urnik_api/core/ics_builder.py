"""ICS calendar export for parsed weekly schedules."""

import logging
import re
from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from icalendar import Calendar, Event

from .constants import ICS_PRODID, ICS_UID_DOMAIN, SCHOOL_TIMEZONE
from .date_utils import day_label_to_date, parse_clock, slot_time_range
from ..models.models import ClassEntry, WeeklySchedule

log = logging.getLogger(__name__)

TZ = ZoneInfo(SCHOOL_TIMEZONE)

_RE_FILENAME_SPACES = re.compile(r"\s+")


def _at(day: date, clock: str) -> datetime:
    hour, minute = parse_clock(clock)
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


def event_uid(entry: ClassEntry, day: date, start: str) -> str:
    """Stable UID: subject, date and start time."""
    hour, minute = parse_clock(start)
    return f"{entry.subject}-{day:%d%m%Y}-{hour:02d}{minute:02d}@{ICS_UID_DOMAIN}"


def event_summary(entry: ClassEntry) -> str:
    if entry.sub_group_label:
        return f"{entry.subject} - {entry.sub_group_label}"
    return entry.subject


def build_event(
    entry: ClassEntry,
    class_name: str,
    week_start: date,
    stamp: Optional[datetime] = None,
) -> Optional[Event]:
    """
    Builds the VEVENT of one class entry.

    `stamp` is the DTSTAMP (creation time of the calendar); defaults to now, in UTC.

    Returns None when the entry's date or slot cannot be resolved.
    """
    day = day_label_to_date(entry.day_label, week_start)
    if day is None:
        log.warning(f"Skipping '{entry.subject}': no valid date in '{entry.day_label}'.")
        return None
    times = slot_time_range(entry.time_slot, entry.duration_slots)
    if times is None:
        log.warning(f"Skipping '{entry.subject}' on '{entry.day_label}': unknown slot {entry.time_slot}.")
        return None
    start, end = times

    event = Event()
    event.add("uid", event_uid(entry, day, start))
    event.add("dtstamp", stamp or datetime.now(timezone.utc))
    event.add("dtstart", _at(day, start))
    event.add("dtend", _at(day, end))
    event.add("summary", event_summary(entry))
    event.add(
        "description",
        f"Class: {class_name}\nTeacher: {entry.teacher or 'N/A'}\nRoom: {entry.room or 'N/A'}",
    )
    event.add("location", f"Room {entry.room or 'TBD'}")
    return event


def build_calendar(schedule: WeeklySchedule, week_start: date, stamp: Optional[datetime] = None) -> bytes:
    """
    Serializes all class entries of a schedule into an iCalendar document.

    Args:
        schedule: The (optionally filtered) schedule.
        week_start: Monday of the schedule's week, used to date the day headers.
        stamp: DTSTAMP shared by all events; defaults to now, in UTC.

    Returns:
        The calendar as bytes, ready to be served as text/calendar.
    """
    cal = Calendar()
    cal.add("prodid", ICS_PRODID)
    cal.add("version", "2.0")
    cal.add("X-WR-TIMEZONE", SCHOOL_TIMEZONE)
    if schedule.class_name:
        cal.add("X-WR-CALNAME", schedule.class_name)

    stamp = stamp or datetime.now(timezone.utc)
    count = 0
    for entry in schedule.entries():
        event = build_event(entry, schedule.class_name, week_start, stamp)
        if event is not None:
            cal.add_component(event)
            count += 1
    log.info(f"Built calendar for '{schedule.class_name}' with {count} events.")
    return cal.to_ical()


def calendar_filename(class_name: str, week: str) -> str:
    name = _RE_FILENAME_SPACES.sub("_", class_name.strip()) or "urnik"
    return f"{name}_week_{week}.ics"
