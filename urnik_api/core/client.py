# urnik_api/core/client.py
import logging
from typing import Optional, Union

import httpx

from .constants import (CLASS_ID_WIDTH, CLASS_PAGE_TEMPLATE, DEFAULT_HEADERS,
                        HTTP_TIMEOUT, URNIK_BASE_URL)

# Basic logging setup
logging.basicConfig(level=logging.INFO, format='[%(asctime)s] %(levelname)s - %(name)s - %(message)s')
log = logging.getLogger(__name__)


class UrnikClientError(Exception):
    """Raised when the upstream timetable server cannot deliver a page."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TimetableNotFoundError(UrnikClientError):
    """Raised when the requested (week, class) page does not exist upstream."""


def pad_class_id(class_id: Union[int, str]) -> str:
    """Pads a class number to the 5 digits used in page names ('2' -> '00002')."""
    return str(class_id).strip().zfill(CLASS_ID_WIDTH)


def build_timetable_url(week: Union[int, str], class_id: Union[int, str], base_url: str = URNIK_BASE_URL) -> str:
    """
    Builds the URL of a class timetable page.

    Args:
        week: ISO week number.
        class_id: Class number, padded or not.
        base_url: Root of the published timetables.

    Returns:
        The page URL, e.g. https://sckr.si/vss/urniki/c/41/c00002.htm
    """
    return CLASS_PAGE_TEMPLATE.format(
        base_url=base_url.rstrip("/"),
        week=str(week).strip(),
        class_id=pad_class_id(class_id),
    )


def create_http_client(timeout: float = HTTP_TIMEOUT) -> httpx.AsyncClient:
    """Creates the shared AsyncClient used for all upstream requests."""
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers=DEFAULT_HEADERS.copy(),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        http2=True,
    )


async def fetch_timetable_html(client: httpx.AsyncClient, url: str) -> str:
    """
    Fetches one timetable page. No retries; callers cache successful pages.

    Args:
        client: The shared httpx.AsyncClient.
        url: Absolute page URL (see build_timetable_url).

    Returns:
        The page HTML.

    Raises:
        TimetableNotFoundError: If the upstream answers 404.
        UrnikClientError: On any other HTTP status error, timeout or network error.
    """
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        if status_code == 404:
            log.info(f"Timetable page not found: {url}")
            raise TimetableNotFoundError(f"Timetable page not found: {url}", status_code=404) from e
        log.error(f"HTTP error {status_code} fetching {url}")
        raise UrnikClientError(f"HTTP error {status_code} fetching {url}", status_code=status_code) from e
    except httpx.TimeoutException as e:
        log.error(f"Timeout fetching {url}: {e}")
        raise UrnikClientError(f"Timeout occurred fetching {url}") from e
    except httpx.RequestError as e:
        log.error(f"Connection error fetching {url}: {e}")
        raise UrnikClientError(f"Connection error fetching {url}: {e}") from e

    log.debug(f"Fetched {url} ({len(response.text)} characters).")
    return response.text


async def page_exists(client: httpx.AsyncClient, url: str) -> bool:
    """Checks a page with a HEAD request. Any failure counts as missing."""
    try:
        response = await client.head(url)
    except httpx.HTTPError as e:
        log.debug(f"HEAD {url} failed: {type(e).__name__}")
        return False
    return response.is_success
