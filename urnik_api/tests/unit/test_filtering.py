import pytest

from urnik_api.core.filtering import (filter_schedule, should_show_class,
                                      sub_groups_by_subject)
from urnik_api.models.api_models import SchedulePreferences
from urnik_api.models.models import ClassEntry, DayBlock, WeeklySchedule


def entry(subject, group=None, slot=1, day="Torek 7.10."):
    return ClassEntry(
        time_slot=slot,
        duration_slots=1,
        subject=subject,
        sub_group_label=f"Skupina {group}" if group else "",
        sub_group_number=group,
        day_label=day,
    )


@pytest.fixture
def schedule():
    return WeeklySchedule(
        class_name="RAI 2.l",
        week_label="6.10. - 10.10.",
        days=[
            DayBlock(day_label="Ponedeljek 6.10.", note="Pred začetkom šol.leta"),
            DayBlock(day_label="Torek 7.10.", classes=[
                entry("RSR lv", 2, slot=3),
                entry("RSR lv", 1, slot=3),
                entry("EPP", slot=4),
                entry("ZBP2 lv", 3, slot=6),
            ]),
        ],
        warnings=["Row 4: example"],
    )


def test_no_preferences_shows_everything():
    assert should_show_class(entry("RSR lv", 2), None) is True


def test_hidden_subject_is_never_shown():
    preferences = SchedulePreferences(hidden_subjects=["EPP", "RSR lv"])
    assert should_show_class(entry("EPP"), preferences) is False
    assert should_show_class(entry("RSR lv", 1), preferences) is False


def test_entry_without_sub_group_is_always_shown():
    preferences = SchedulePreferences(selected_sub_groups={"EPP": 1})
    assert should_show_class(entry("EPP"), preferences) is True


@pytest.mark.parametrize("group, expected", [(1, True), (2, False)])
def test_selected_sub_group_must_match(group, expected):
    preferences = SchedulePreferences(selected_sub_groups={"RSR lv": 1})
    assert should_show_class(entry("RSR lv", group), preferences) is expected


def test_subject_without_selection_shows_all_sub_groups():
    preferences = SchedulePreferences(selected_sub_groups={"ZBP2 lv": 3})
    assert should_show_class(entry("RSR lv", 2), preferences) is True


def test_preferences_accept_camel_case_aliases():
    preferences = SchedulePreferences.model_validate({"selectedSubGroups": {"RSR lv": 2}, "hiddenSubjects": ["EPP"]})
    assert preferences.selected_sub_groups == {"RSR lv": 2}
    assert preferences.hidden_subjects == ["EPP"]


def test_filter_schedule(schedule):
    preferences = SchedulePreferences(selected_sub_groups={"RSR lv": 2}, hidden_subjects=["ZBP2 lv"])
    filtered = filter_schedule(schedule, preferences)

    assert [(c.subject, c.sub_group_number) for c in filtered.entries()] == [("RSR lv", 2), ("EPP", None)]
    assert filtered.days[0].note == "Pred začetkom šol.leta"
    assert filtered.class_name == schedule.class_name
    assert filtered.warnings == schedule.warnings
    # The source schedule is left untouched
    assert len(schedule.entries()) == 4


def test_filter_schedule_without_preferences_returns_same_schedule(schedule):
    assert filter_schedule(schedule, None) is schedule


def test_sub_groups_by_subject(schedule):
    assert sub_groups_by_subject(schedule) == {"RSR lv": {1, 2}, "ZBP2 lv": {3}}
