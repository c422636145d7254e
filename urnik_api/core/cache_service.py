import logging
import time
from typing import Optional

from cachetools import TTLCache

from .constants import OPTIONS_CACHE_TTL, TIMETABLE_CACHE_MAXSIZE, TIMETABLE_CACHE_TTL
from ..models.api_models import OptionsResponse

log = logging.getLogger(__name__)

OPTIONS_KEY = "options"


class UpstreamCache:
    """
    In-memory TTL caches for upstream pages and the options payload.

    Timetable HTML is keyed by page URL. The options payload is a single
    entry that is only stored when it lists both weeks and classes.
    """

    def __init__(
        self,
        timetable_ttl: float = TIMETABLE_CACHE_TTL,
        options_ttl: float = OPTIONS_CACHE_TTL,
        maxsize: int = TIMETABLE_CACHE_MAXSIZE,
        timer=time.monotonic,
    ):
        self.timetables: TTLCache = TTLCache(maxsize=maxsize, ttl=timetable_ttl, timer=timer)
        self.options: TTLCache = TTLCache(maxsize=1, ttl=options_ttl, timer=timer)

    def get_timetable(self, url: str) -> Optional[str]:
        html = self.timetables.get(url)
        if html is not None:
            log.debug(f"Timetable cache hit: {url}")
        return html

    def store_timetable(self, url: str, html: str) -> None:
        self.timetables[url] = html
        log.debug(f"Cached timetable page {url} ({len(self.timetables)} pages cached).")

    def get_options(self) -> Optional[OptionsResponse]:
        return self.options.get(OPTIONS_KEY)

    def store_options(self, options: OptionsResponse) -> None:
        if not options.weeks or not options.classes:
            log.warning(
                f"Not caching incomplete options ({len(options.weeks)} weeks, {len(options.classes)} classes)."
            )
            self.clear_options()
            return
        self.options[OPTIONS_KEY] = options
        log.info(f"Cached options: {len(options.weeks)} weeks, {len(options.classes)} classes.")

    def clear_options(self) -> None:
        self.options.clear()

    def clear(self) -> None:
        self.timetables.clear()
        self.options.clear()
