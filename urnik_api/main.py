import os
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Dict, List, NoReturn, Optional, Tuple
from urllib.parse import quote

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Path, Query, Request, status
from fastapi.responses import HTMLResponse, ORJSONResponse, Response

# Model and Core Service imports
from .models.api_models import OptionsResponse, SchedulePreferences
from .models.models import WeeklySchedule
from .core import constants
from .core.cache_service import UpstreamCache
from .core.client import TimetableNotFoundError, UrnikClientError, create_http_client
from .core.date_utils import describe_week, monday_of_iso_week, iso_week_info, parse_week_label, week_label_for
from .core.filtering import filter_schedule
from .core.ics_builder import build_calendar, calendar_filename
from .core.service import collect_sub_groups, get_options, get_timetable_html, get_weekly_schedule


# Load environment variables from .env file located in the same directory as this script
# or any parent directory.
load_dotenv()

# --- Configuration ---
URNIK_BASE_URL = os.getenv("URNIK_BASE_URL", constants.URNIK_BASE_URL)
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", constants.HTTP_TIMEOUT))
TIMETABLE_CACHE_TTL = float(os.getenv("TIMETABLE_CACHE_TTL", constants.TIMETABLE_CACHE_TTL))
OPTIONS_CACHE_TTL = float(os.getenv("OPTIONS_CACHE_TTL", constants.OPTIONS_CACHE_TTL))
PARSER_LOG_LEVEL = os.getenv("PARSER_LOG_LEVEL", "INFO").upper()

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger(__name__) # Get logger for this module


# --- Lifespan Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Lifespan: Starting Urnik API.")

    # --- In-Memory Caches ---
    app.state.cache = UpstreamCache(timetable_ttl=TIMETABLE_CACHE_TTL, options_ttl=OPTIONS_CACHE_TTL)
    log.info(f"Lifespan startup: Caches ready (timetables {TIMETABLE_CACHE_TTL:.0f}s, options {OPTIONS_CACHE_TTL:.0f}s).")

    # --- HTTP Client Setup ---
    try:
        app.state.http_client = create_http_client(timeout=HTTP_TIMEOUT)
        log.info(f"Lifespan startup: Upstream HTTPX client created (timeout {HTTP_TIMEOUT:.0f}s).")
    except Exception as e:
        log.error(f"Lifespan startup: HTTPX client creation failed: {e}", exc_info=True)
        app.state.http_client = None # Indicate client is not available

    # --- Parser Logger Configuration ---
    parser_logger = logging.getLogger("urnik_api.core.parsers")
    parser_logger.setLevel(getattr(logging, PARSER_LOG_LEVEL, logging.INFO))
    log.info(f"Lifespan startup: 'urnik_api.core.parsers' logger level set to {PARSER_LOG_LEVEL}.")

    log.info(f"Lifespan: Startup complete, serving timetables from {URNIK_BASE_URL}.")
    yield # Application runs here
    log.info("Lifespan: Shutting down.")

    # Close the HTTP client
    if getattr(app.state, "http_client", None):
        try:
            if not app.state.http_client.is_closed:
                await app.state.http_client.aclose()
                log.info("Lifespan shutdown: HTTPX client closed.")
        except Exception as e:
            log.error(f"Lifespan shutdown: Error closing HTTPX client: {e}", exc_info=True)

    log.info("Lifespan: Shutdown complete.")


app = FastAPI(
    title="Urnik API",
    description="API for browsing ŠC Kranj class timetables as structured data and calendar files.",
    version="0.1.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan
)


# --- Helpers ---

def _services(request: Request) -> Tuple[httpx.AsyncClient, UpstreamCache]:
    http_client: Optional[httpx.AsyncClient] = getattr(request.app.state, "http_client", None)
    cache: Optional[UpstreamCache] = getattr(request.app.state, "cache", None)
    if not http_client or cache is None:
        log.error("Request failed: HTTP client or cache not available.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Core services are unavailable.")
    return http_client, cache


def _raise_for_upstream(error: UrnikClientError, week: int, class_num: str) -> NoReturn:
    if isinstance(error, TimetableNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No timetable for class {class_num} in week {week}.",
        ) from error
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error)) from error


def parse_group_selections(groups: List[str]) -> Dict[str, int]:
    """
    Parses repeated `group` query values of the form SUBJECT=N.

    Subjects may contain spaces ("RSR lv=2"); the number follows the last '='.
    """
    selections: Dict[str, int] = {}
    for raw in groups:
        subject, separator, number = raw.rpartition("=")
        subject = subject.strip()
        if not separator or not subject:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Invalid group selection '{raw}', expected SUBJECT=N.")
        try:
            selections[subject] = int(number)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Invalid sub-group number in '{raw}'.")
    return selections


def _preferences(group: List[str], hide: List[str]) -> Optional[SchedulePreferences]:
    if not group and not hide:
        return None
    return SchedulePreferences(selected_sub_groups=parse_group_selections(group), hidden_subjects=hide)


def _week_label(cache: UpstreamCache, week: int) -> str:
    """Display label of a week, preferring the label published in the cached options."""
    options = cache.get_options()
    if options:
        for option in options.weeks:
            if option.value == str(week):
                return option.display
    return describe_week(week_label_for(week)).display


def _week_start(cache: UpstreamCache, week: int) -> Optional[date]:
    """Monday of a week, preferring the published week label over the ISO calendar."""
    published = cache.get_options()
    if published:
        for option in published.weeks:
            if option.value == str(week):
                return parse_week_label(option.label)
    try:
        return monday_of_iso_week(week, iso_week_info(date.today())[1])
    except ValueError:
        log.warning(f"Week {week} does not exist in the current ISO year.")
        return None


async def _load_schedule(request: Request, week: int, class_num: str, group: List[str], hide: List[str]) -> WeeklySchedule:
    http_client, cache = _services(request)
    preferences = _preferences(group, hide)
    try:
        schedule = await get_weekly_schedule(
            http_client, cache, week, class_num, _week_label(cache, week), base_url=URNIK_BASE_URL
        )
    except UrnikClientError as e:
        _raise_for_upstream(e, week, class_num)
    return filter_schedule(schedule, preferences)


# --- Routes ---

@app.get("/")
async def read_root():
    """
    Root endpoint for the Urnik API.
    Returns a simple message indicating the API is running.
    """
    return {"message": "Urnik API is running"}


@app.get(
    "/api/options",
    response_model=OptionsResponse,
    summary="Published weeks and classes",
    tags=["Timetable"],
)
async def options(request: Request, nocache: Optional[str] = Query(None, description="Set to 1 or true to bypass the cache.")):
    """
    Lists the weeks that currently have published timetables and the classes
    found in them. The result is cached.
    """
    http_client, cache = _services(request)
    use_cache = not (nocache and nocache.lower() in ("1", "true"))
    try:
        return await get_options(http_client, cache, use_cache=use_cache, base_url=URNIK_BASE_URL)
    except Exception as e:
        log.error(f"Error fetching options: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@app.get(
    "/api/timetable/{week}/{class_num}",
    response_class=HTMLResponse,
    summary="Raw upstream timetable page",
    tags=["Timetable"],
)
async def timetable_html(
    request: Request,
    week: int = Path(..., ge=1, le=53, description="ISO week number."),
    class_num: str = Path(..., pattern=r"^\d{1,5}$", description="Class number, padded or not."),
):
    """Proxies the upstream HTML page of one class and week (cached)."""
    http_client, cache = _services(request)
    try:
        html = await get_timetable_html(http_client, cache, week, class_num, base_url=URNIK_BASE_URL)
    except UrnikClientError as e:
        _raise_for_upstream(e, week, class_num)
    return HTMLResponse(content=html)


@app.get(
    "/api/schedule/{week}/{class_num}",
    response_model=WeeklySchedule,
    summary="Parsed weekly schedule",
    tags=["Timetable"],
)
async def schedule(
    request: Request,
    week: int = Path(..., ge=1, le=53, description="ISO week number."),
    class_num: str = Path(..., pattern=r"^\d{1,5}$", description="Class number, padded or not."),
    group: List[str] = Query([], description="Selected sub-group per subject, as SUBJECT=N. Repeatable."),
    hide: List[str] = Query([], description="Subject to hide. Repeatable."),
):
    """Returns the structured schedule of one class and week, filtered by the given preferences."""
    return await _load_schedule(request, week, class_num, group, hide)


@app.get(
    "/api/schedule/{week}/{class_num}/ics",
    summary="Weekly schedule as an iCalendar file",
    tags=["Timetable"],
)
async def schedule_ics(
    request: Request,
    week: int = Path(..., ge=1, le=53, description="ISO week number."),
    class_num: str = Path(..., pattern=r"^\d{1,5}$", description="Class number, padded or not."),
    group: List[str] = Query([], description="Selected sub-group per subject, as SUBJECT=N. Repeatable."),
    hide: List[str] = Query([], description="Subject to hide. Repeatable."),
):
    """Exports every visible class of the week as a calendar event."""
    schedule = await _load_schedule(request, week, class_num, group, hide)
    _, cache = _services(request)
    week_start = _week_start(cache, week)
    if week_start is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Week {week} does not exist this year.")

    filename = calendar_filename(schedule.class_name, str(week))
    return Response(
        content=build_calendar(schedule, week_start),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@app.get(
    "/api/skupinas/{class_num}",
    response_model=Dict[str, List[int]],
    summary="Sub-groups per subject across published weeks",
    tags=["Timetable"],
)
async def skupinas(
    request: Request,
    class_num: str = Path(..., pattern=r"^\d{1,5}$", description="Class number, padded or not."),
):
    """
    Collects every sub-group (skupina) number of each subject of a class over
    all published weeks, so a user can pick theirs before a week shows it.
    """
    http_client, cache = _services(request)
    try:
        available = await get_options(http_client, cache, base_url=URNIK_BASE_URL)
    except Exception as e:
        log.error(f"Error fetching options for sub-groups: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    weeks = [int(w.value) for w in available.weeks]
    return await collect_sub_groups(http_client, cache, class_num, weeks, base_url=URNIK_BASE_URL)
