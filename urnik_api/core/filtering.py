# urnik_api/core/filtering.py
import logging
from typing import Dict, List, Optional, Set

from ..models.api_models import SchedulePreferences
from ..models.models import ClassEntry, DayBlock, WeeklySchedule

log = logging.getLogger(__name__)


def sub_groups_by_subject(schedule: WeeklySchedule) -> Dict[str, Set[int]]:
    """Collects the sub-group numbers seen for each subject."""
    subjects: Dict[str, Set[int]] = {}
    for entry in schedule.entries():
        if entry.sub_group_number is not None and entry.subject:
            subjects.setdefault(entry.subject, set()).add(entry.sub_group_number)
    return subjects


def should_show_class(entry: ClassEntry, preferences: Optional[SchedulePreferences]) -> bool:
    """
    Decides whether a class entry is visible under the user's preferences.

    Hidden subjects are never shown. Entries without a sub-group are always
    shown; entries with one are shown when no sub-group is selected for the
    subject or when the selection matches.
    """
    if preferences is None:
        return True
    if entry.subject in preferences.hidden_subjects:
        return False
    if entry.sub_group_number is None:
        return True
    selected = preferences.selected_sub_groups.get(entry.subject)
    if selected is None:
        return True
    return entry.sub_group_number == selected


def filter_schedule(schedule: WeeklySchedule, preferences: Optional[SchedulePreferences]) -> WeeklySchedule:
    """Returns a copy of the schedule with only the visible class entries."""
    if preferences is None:
        return schedule
    days: List[DayBlock] = []
    hidden = 0
    for day in schedule.days:
        visible = [entry for entry in day.classes if should_show_class(entry, preferences)]
        hidden += len(day.classes) - len(visible)
        days.append(day.model_copy(update={"classes": visible}))
    log.debug(f"Filtered out {hidden} class entries for '{schedule.class_name}'.")
    return schedule.model_copy(update={"days": days})
