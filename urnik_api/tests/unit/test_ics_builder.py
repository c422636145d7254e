import pytest
from datetime import date, datetime, timezone

from icalendar import Calendar

from urnik_api.core.ics_builder import (TZ, build_calendar, build_event,
                                        calendar_filename, event_summary,
                                        event_uid)
from urnik_api.models.models import ClassEntry, DayBlock, WeeklySchedule

WEEK_START = date(2025, 10, 6)


def entry(subject="RSR lv", slot=2, duration=1, day="Torek 7.10.", room="253", teacher="Uhan", group=None):
    return ClassEntry(
        time_slot=slot,
        duration_slots=duration,
        subject=subject,
        teacher=teacher,
        room=room,
        sub_group_label=f"Skupina {group}" if group else "",
        sub_group_number=group,
        day_label=day,
    )


def test_event_uid_and_summary():
    assert event_uid(entry(), date(2025, 10, 7), "8:05") == "RSR lv-07102025-0805@sckranj.si"
    assert event_summary(entry()) == "RSR lv"
    assert event_summary(entry(group=2)) == "RSR lv - Skupina 2"


def test_build_event():
    event = build_event(entry(group=2), "RAI 2.l", WEEK_START)

    assert str(event["uid"]) == "RSR lv-07102025-0805@sckranj.si"
    assert str(event["summary"]) == "RSR lv - Skupina 2"
    assert event.decoded("dtstart") == datetime(2025, 10, 7, 8, 5, tzinfo=TZ)
    assert event.decoded("dtend") == datetime(2025, 10, 7, 8, 50, tzinfo=TZ)
    assert str(event["location"]) == "Room 253"
    assert str(event["description"]) == "Class: RAI 2.l\nTeacher: Uhan\nRoom: 253"


def test_build_event_multi_slot_and_missing_fields():
    event = build_event(entry(slot=4, duration=3, room="", teacher=""), "RAI 2.l", WEEK_START)
    assert event.decoded("dtstart") == datetime(2025, 10, 7, 9, 45, tzinfo=TZ)
    assert event.decoded("dtend") == datetime(2025, 10, 7, 12, 10, tzinfo=TZ)
    assert str(event["location"]) == "Room TBD"
    assert "Teacher: N/A" in str(event["description"])


@pytest.mark.parametrize(
    "bad_entry",
    [
        entry(day="Sreda 7.10."),  # weekday does not match the date
        entry(day="Torek"),
        entry(slot=17),
    ],
)
def test_build_event_skips_unresolvable_entries(bad_entry):
    assert build_event(bad_entry, "RAI 2.l", WEEK_START) is None


def test_build_calendar():
    schedule = WeeklySchedule(
        class_name="RAI 2.l",
        days=[
            DayBlock(day_label="Ponedeljek 6.10.", classes=[entry(day="Ponedeljek 6.10.", slot=1)]),
            DayBlock(day_label="Torek 7.10.", classes=[entry(), entry(subject="EPP", slot=17)]),
        ],
    )

    cal = Calendar.from_ical(build_calendar(schedule, WEEK_START))
    events = cal.walk("VEVENT")

    assert str(cal["X-WR-CALNAME"]) == "RAI 2.l"
    assert str(cal["version"]) == "2.0"
    assert [str(e["uid"]) for e in events] == [
        "RSR lv-06102025-0715@sckranj.si",
        "RSR lv-07102025-0805@sckranj.si",
    ]


def test_build_calendar_empty_schedule():
    cal = Calendar.from_ical(build_calendar(WeeklySchedule(), WEEK_START))
    assert cal.walk("VEVENT") == []


def test_calendar_filename():
    assert calendar_filename("RAI 2.l", "41") == "RAI_2.l_week_41.ics"
    assert calendar_filename("  ", "41") == "urnik_week_41.ics"


def test_dtstamp_is_creation_time_in_utc():
    stamp = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)
    event = build_event(entry(), "RAI 2.l", WEEK_START, stamp)
    assert event.decoded("dtstamp") == stamp

    before = datetime.now(timezone.utc).replace(microsecond=0)
    event = build_event(entry(), "RAI 2.l", WEEK_START)
    assert event.decoded("dtstamp") >= before
    assert event.decoded("dtstamp") != event.decoded("dtstart")


def test_calendar_events_share_one_dtstamp():
    schedule = WeeklySchedule(
        class_name="RAI 2.l",
        days=[DayBlock(day_label="Torek 7.10.", classes=[entry(), entry(subject="EPP", slot=4)])],
    )
    stamp = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

    cal = Calendar.from_ical(build_calendar(schedule, WEEK_START, stamp))

    assert [e.decoded("dtstamp") for e in cal.walk("VEVENT")] == [stamp, stamp]
