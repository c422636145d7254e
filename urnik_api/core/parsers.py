# urnik_api/core/parsers.py
import logging
import re
from dataclasses import dataclass, field
from itertools import groupby
from operator import attrgetter
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

# Use relative imports for components within the 'urnik_api.core' package
from .constants import (COLUMNS_PER_SLOT, DAY_NOTE_MARKERS, MAX_COLUMNS,
                        SUB_GROUP_MARKER, TIME_SLOTS, WEEKDAY_NAMES)
from .grid import CellDescriptor, ResolvedCell, resolve
from ..models.models import ClassEntry, DayBlock, WeeklySchedule

# Basic logging setup
logging.basicConfig(level=logging.INFO, format='[%(asctime)s] %(levelname)s - %(name)s - %(message)s')
log = logging.getLogger(__name__)

_RE_SUB_GROUP_NUMBER = re.compile(rf"{SUB_GROUP_MARKER}\s*(\d+)", re.IGNORECASE)
_RE_ROOM = re.compile(r"^\d+$")

# Selectors for the upstream markup
CLASS_NAME_SELECTOR = 'font[size="7"][color="#0000FF" i]'
SCHEDULE_TABLE_SELECTOR = 'table[border="3"]'
DAY_HEADER_SELECTOR = 'font[size="4"] b'
NOTE_FONT_SELECTOR = 'font[size="3"]'
SMALL_FONT_SELECTOR = 'font[size="2"]'
SUBJECT_SELECTOR = 'font[size="3"] b'


def _clean_text(text: Optional[str]) -> str:
    """Collapses whitespace (including &nbsp;) into single spaces."""
    if not text:
        return ""
    return " ".join(text.split())


def _parse_span(cell: Tag, attribute: str) -> int:
    try:
        return max(int(cell.get(attribute, 1)), 1)
    except (ValueError, TypeError):
        log.debug(f"Could not parse {attribute} '{cell.get(attribute)}', defaulting to 1.")
        return 1


def slot_for_column(start_column: int) -> int:
    """
    Maps a resolved start column to a 1-based time slot.

    Column 0 is the day label column; columns 1-2 are slot 1, 3-4 slot 2, etc.
    Returns 0 for column 0, which callers treat as an unresolved position.
    """
    if start_column <= 0:
        return 0
    return (start_column - 1) // COLUMNS_PER_SLOT + 1


def duration_for_colspan(col_span: int) -> float:
    return col_span / COLUMNS_PER_SLOT


# --- Page Level Parsers ---

def parse_class_name(soup: BeautifulSoup) -> str:
    """Extracts the class name from the large blue banner font."""
    banner = soup.select_one(CLASS_NAME_SELECTOR)
    if not banner:
        log.debug("Class name banner not found.")
        return ""
    return _clean_text(banner.get_text())


def parse_class_label(html: Optional[str]) -> Optional[str]:
    """
    Extracts only the class name from a timetable page.

    Used when probing which class pages exist.

    Args:
        html: The HTML content string, or None.

    Returns:
        The class name, or None if the page has no banner.
    """
    if not html:
        return None
    soup = BeautifulSoup(html, "lxml")
    banner = soup.select_one('font[size="7"]')
    if not banner:
        return None
    return _clean_text(banner.get_text()) or None


def _find_day_label(cell: Tag) -> Optional[str]:
    bold = cell.select_one(DAY_HEADER_SELECTOR)
    if not bold:
        return None
    text = bold.get_text()
    if any(name in text for name in WEEKDAY_NAMES):
        return _clean_text(text)
    return None


def _find_note(cell: Tag) -> Optional[str]:
    for font in cell.select(NOTE_FONT_SELECTOR):
        text = font.get_text()
        if any(marker in text for marker in DAY_NOTE_MARKERS):
            return _clean_text(text)
    return None


def describe_cell(cell: Tag) -> CellDescriptor:
    """Builds the placement descriptor of a schedule table cell."""
    return CellDescriptor(
        day_label=_find_day_label(cell),
        has_bg_color=bool(cell.get("bgcolor")),
        has_inner_table=cell.find("table") is not None,
        col_span=_parse_span(cell, "colspan"),
        row_span=_parse_span(cell, "rowspan"),
        element=cell,
    )


def _table_rows(table: Tag) -> List[List[Tag]]:
    """Returns the direct cells of each row that belongs to `table` itself."""
    rows = []
    for tr in table.find_all("tr"):
        if tr.find_parent("table") is not table:
            continue # Row of a nested class table
        rows.append(tr.find_all("td", recursive=False))
    return rows


# --- Class Cell Parser ---

@dataclass
class ClassFields:
    """Fields read from the nested two-row table of a class cell."""
    subject: str = ""
    teacher: str = ""
    room: str = ""
    sub_group_label: str = ""
    sub_group_number: Optional[int] = None
    special_notes: List[str] = field(default_factory=list)

    @property
    def special_note(self) -> str:
        return ", ".join(self.special_notes)


def parse_class_fields(inner_table: Tag) -> ClassFields:
    """
    Reads teacher, sub-group, subject, room and special notes from a class cell.

    Row 0 holds the teacher and optionally a "Skupina N" label, row 1 holds
    the bold subject, the room number and (in newer pages) free-text notes.
    """
    fields = ClassFields()
    inner_rows = inner_table.find_all("tr")

    if inner_rows:
        for td in inner_rows[0].find_all("td"):
            font = td.select_one(SMALL_FONT_SELECTOR)
            if not font:
                continue
            text = _clean_text(font.get_text())
            if SUB_GROUP_MARKER in text:
                fields.sub_group_label = text
                match = _RE_SUB_GROUP_NUMBER.search(text)
                if match:
                    fields.sub_group_number = int(match.group(1))
            elif text and not fields.teacher:
                fields.teacher = text

    if len(inner_rows) > 1:
        for td in inner_rows[1].find_all("td"):
            bold_subject = td.select_one(SUBJECT_SELECTOR)
            if bold_subject:
                fields.subject = _clean_text(bold_subject.get_text())
            for font in td.select(SMALL_FONT_SELECTOR):
                text = _clean_text(font.get_text())
                if not text or SUB_GROUP_MARKER in text:
                    continue
                if _RE_ROOM.match(text):
                    fields.room = text
                else:
                    fields.special_notes.append(text)

    return fields


# --- Timetable Parser ---

class _DayCollector:
    """Accumulates DayBlocks in encounter order while walking resolved cells."""

    def __init__(self):
        self.order: List[str] = []
        self.notes: Dict[str, Optional[str]] = {}
        self.classes: Dict[str, List[ClassEntry]] = {}

    def open(self, day: str, note: Optional[str]) -> None:
        if day in self.notes:
            return
        self.order.append(day)
        self.notes[day] = note
        self.classes[day] = []

    def is_open(self, day: Optional[str]) -> bool:
        return day is not None and day in self.notes

    def accepts_classes(self, day: str) -> bool:
        return self.notes.get(day) is None

    def add(self, day: str, entry: ClassEntry) -> None:
        self.classes[day].append(entry)

    def blocks(self) -> List[DayBlock]:
        result = []
        for day in self.order:
            # sorted() is stable: parallel sub-groups keep document order
            classes = sorted(self.classes[day], key=lambda entry: entry.time_slot)
            result.append(DayBlock(day_label=day, classes=classes, note=self.notes[day]))
        return result


def _build_entry(resolved: ResolvedCell, warnings: List[str]) -> Optional[ClassEntry]:
    cell = resolved.descriptor.element
    fields = parse_class_fields(cell.find("table"))
    if not fields.subject:
        log.debug(f"Row {resolved.row_index}: Dropping class-shaped cell without subject.")
        return None

    slot = slot_for_column(resolved.start_column)
    if slot == 0:
        warning_msg = (
            f"Row {resolved.row_index}: Could not resolve the column of '{fields.subject}' "
            f"on '{resolved.day}', assuming slot 1."
        )
        log.warning(warning_msg)
        warnings.append(warning_msg)
        slot = 1
    elif slot > len(TIME_SLOTS):
        warning_msg = (
            f"Row {resolved.row_index}: '{fields.subject}' on '{resolved.day}' starts at column "
            f"{resolved.start_column}, past the last time slot. Dropping it."
        )
        log.warning(warning_msg)
        warnings.append(warning_msg)
        return None

    # Spans past the last column are clipped
    col_span = min(resolved.col_span, MAX_COLUMNS - resolved.start_column)
    return ClassEntry(
        time_slot=slot,
        duration_slots=duration_for_colspan(col_span),
        subject=fields.subject,
        teacher=fields.teacher,
        room=fields.room,
        sub_group_label=fields.sub_group_label,
        sub_group_number=fields.sub_group_number,
        background_color=cell.get("bgcolor"),
        special_note=fields.special_note,
        day_label=resolved.day,
    )


def parse_timetable_html(html_content: Optional[str], week_label: str = "") -> WeeklySchedule:
    """
    Parses a class timetable page into a WeeklySchedule.

    The page is third-party markup, so nothing here raises on unexpected
    structure: a missing table or missing day headers produce an empty or
    sparse schedule, and questionable placements are reported in `warnings`.

    Args:
        html_content: The HTML content string of one (week, class) page.
        week_label: Display label of the requested week, supplied by the caller.

    Returns:
        The parsed WeeklySchedule.
    """
    if not html_content or not html_content.strip():
        log.warning("parse_timetable_html received None or empty HTML content.")
        return WeeklySchedule(week_label=week_label)

    soup = BeautifulSoup(html_content, "lxml")
    class_name = parse_class_name(soup)
    warnings: List[str] = []

    table = soup.select_one(SCHEDULE_TABLE_SELECTOR)
    if not table:
        log.warning(f"Schedule table ({SCHEDULE_TABLE_SELECTOR}) not found in HTML.")
        return WeeklySchedule(class_name=class_name, week_label=week_label)

    rows = [[describe_cell(cell) for cell in row] for row in _table_rows(table)]
    resolved_cells = resolve(rows)

    collector = _DayCollector()

    for row_index, group in groupby(resolved_cells, key=attrgetter("row_index")):
        row_cells = list(group)
        first = row_cells[0]
        if first.opens_day and not collector.is_open(first.day):
            note = next((n for n in (_find_note(c.descriptor.element) for c in row_cells) if n), None)
            collector.open(first.day, note)
            if note:
                log.info(f"Row {row_index}: Day '{first.day}' carries note '{note}', skipping its classes.")

        for resolved in row_cells:
            if resolved.clipped:
                continue
            if not resolved.descriptor.looks_like_class_cell or not collector.is_open(resolved.day):
                continue
            if not collector.accepts_classes(resolved.day):
                continue
            entry = _build_entry(resolved, warnings)
            if entry:
                collector.add(resolved.day, entry)

    schedule = WeeklySchedule(
        class_name=class_name,
        week_label=week_label,
        days=collector.blocks(),
        warnings=warnings,
    )
    log.info(
        f"Parsing finished for '{class_name}': {len(schedule.days)} days, "
        f"{len(schedule.entries())} classes, {len(warnings)} warnings."
    )
    return schedule
