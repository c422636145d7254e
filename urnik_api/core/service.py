import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

import httpx

# Core module imports (using relative paths)
from .cache_service import UpstreamCache
from .client import (TimetableNotFoundError, UrnikClientError,
                     build_timetable_url, fetch_timetable_html, page_exists)
from .constants import (MAX_CLASS_ID, MAX_CONSECUTIVE_MISSES, URNIK_BASE_URL,
                        WEEK_PROBE_ANCHORS, WEEKS_AFTER_CURRENT,
                        WEEKS_BEFORE_CURRENT)
from .date_utils import (candidate_weeks, describe_week, format_dmy,
                         iso_week_info, monday_of_iso_week)
from .filtering import sub_groups_by_subject
from .parsers import parse_class_label, parse_timetable_html

# Model imports
from ..models.api_models import ClassOption, OptionsResponse, WeekOption
from ..models.models import WeeklySchedule

# Setup module logger
log = logging.getLogger(__name__)


async def get_timetable_html(
    client: httpx.AsyncClient,
    cache: UpstreamCache,
    week: int,
    class_id: str,
    base_url: str = URNIK_BASE_URL,
) -> str:
    """
    Returns the raw HTML of a class timetable page, from cache when fresh.

    Raises:
        TimetableNotFoundError / UrnikClientError from the client on fetch failure.
    """
    url = build_timetable_url(week, class_id, base_url)
    cached = cache.get_timetable(url)
    if cached is not None:
        return cached
    log.info(f"Fetching: {url}")
    html = await fetch_timetable_html(client, url)
    cache.store_timetable(url, html)
    return html


async def get_weekly_schedule(
    client: httpx.AsyncClient,
    cache: UpstreamCache,
    week: int,
    class_id: str,
    week_label: str = "",
    base_url: str = URNIK_BASE_URL,
) -> WeeklySchedule:
    """Fetches (or reuses) a timetable page and parses it into a WeeklySchedule."""
    html = await get_timetable_html(client, cache, week, class_id, base_url)
    return parse_timetable_html(html, week_label)


async def week_exists(client: httpx.AsyncClient, week: int, base_url: str = URNIK_BASE_URL) -> bool:
    """A week is published when any of the anchor class pages exists."""
    for anchor in WEEK_PROBE_ANCHORS:
        if await page_exists(client, build_timetable_url(week, anchor, base_url)):
            return True
    return False


async def probe_available_weeks(
    client: httpx.AsyncClient,
    today: Optional[date] = None,
    base_url: str = URNIK_BASE_URL,
) -> List[WeekOption]:
    """
    Finds published weeks around the current ISO week.

    Args:
        client: The shared httpx.AsyncClient.
        today: Reference date; defaults to the system date.
        base_url: Root of the published timetables.

    Returns:
        WeekOption entries in probing order, labelled with their Monday.
    """
    today = today or date.today()
    _, year = iso_week_info(today)
    weeks: List[WeekOption] = []
    for week in candidate_weeks(today, WEEKS_BEFORE_CURRENT, WEEKS_AFTER_CURRENT):
        if not await week_exists(client, week, base_url):
            log.debug(f"Week {week} is not published.")
            continue
        try:
            label = format_dmy(monday_of_iso_week(week, year))
        except ValueError:
            log.warning(f"Week {week} is published but does not exist in ISO year {year}, skipping.")
            continue
        description = describe_week(label, today)
        weeks.append(WeekOption(
            value=str(week),
            label=label,
            display=description.display,
            is_current=description.is_current,
        ))
    log.info(f"Found {len(weeks)} published weeks: {[w.value for w in weeks]}")
    return weeks


async def discover_classes(
    client: httpx.AsyncClient,
    week: int,
    base_url: str = URNIK_BASE_URL,
) -> List[ClassOption]:
    """
    Scans class pages of one week and reads their banner names.

    Scanning stops after MAX_CONSECUTIVE_MISSES missing or unnamed pages.
    """
    classes: List[ClassOption] = []
    consecutive_misses = 0
    for class_number in range(1, MAX_CLASS_ID + 1):
        if consecutive_misses >= MAX_CONSECUTIVE_MISSES:
            log.debug(f"Stopping class scan at {class_number} after {consecutive_misses} misses.")
            break
        url = build_timetable_url(week, class_number, base_url)
        try:
            html = await fetch_timetable_html(client, url)
        except UrnikClientError:
            consecutive_misses += 1
            continue
        label = parse_class_label(html)
        if label:
            classes.append(ClassOption(value=str(class_number), label=label))
            consecutive_misses = 0
        else:
            consecutive_misses += 1
    log.info(f"Discovered {len(classes)} classes in week {week}.")
    return classes


async def get_options(
    client: httpx.AsyncClient,
    cache: UpstreamCache,
    use_cache: bool = True,
    today: Optional[date] = None,
    base_url: str = URNIK_BASE_URL,
) -> OptionsResponse:
    """
    Lists published weeks and classes, cached for OPTIONS_CACHE_TTL.

    With use_cache=False the cache is neither read nor written, and any
    cached payload is dropped.
    """
    if use_cache:
        cached = cache.get_options()
        if cached is not None:
            log.debug("Options cache hit.")
            return cached

    today = today or date.today()
    weeks = await probe_available_weeks(client, today, base_url)
    scan_week = int(weeks[0].value) if weeks else iso_week_info(today)[0]
    classes = await discover_classes(client, scan_week, base_url)
    options = OptionsResponse(weeks=weeks, classes=classes)

    if use_cache:
        cache.store_options(options)
    else:
        cache.clear_options()
    return options


async def collect_sub_groups(
    client: httpx.AsyncClient,
    cache: UpstreamCache,
    class_id: str,
    weeks: Iterable[int],
    base_url: str = URNIK_BASE_URL,
) -> Dict[str, List[int]]:
    """
    Collects, per subject, every sub-group number a class has over several weeks.

    Weeks that cannot be fetched are skipped.

    Returns:
        A mapping of subject to sorted sub-group numbers.
    """
    merged: Dict[str, set] = {}
    for week in weeks:
        try:
            schedule = await get_weekly_schedule(client, cache, week, class_id, base_url=base_url)
        except TimetableNotFoundError:
            log.debug(f"No timetable for class {class_id} in week {week}.")
            continue
        except UrnikClientError as e:
            log.warning(f"Skipping week {week} for class {class_id}: {e}")
            continue
        for subject, numbers in sub_groups_by_subject(schedule).items():
            merged.setdefault(subject, set()).update(numbers)
    return {subject: sorted(numbers) for subject, numbers in sorted(merged.items())}
