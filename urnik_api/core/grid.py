# urnik_api/core/grid.py
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from .constants import MAX_COLUMNS

log = logging.getLogger(__name__)


# --- Dataclasses ---

@dataclass(frozen=True)
class CellDescriptor:
    """Shape of one source <td> as far as column placement is concerned."""
    day_label: Optional[str] = None # Bold weekday text, if this is a day header cell
    has_bg_color: bool = False
    has_inner_table: bool = False
    col_span: int = 1
    row_span: int = 1
    element: Any = field(default=None, compare=False, repr=False) # Source tag, opaque to the resolver

    @property
    def has_day_header_text(self) -> bool:
        return self.day_label is not None

    @property
    def looks_like_class_cell(self) -> bool:
        return self.has_bg_color and self.has_inner_table


@dataclass(frozen=True)
class ResolvedCell:
    """A source cell annotated with its logical grid position."""
    descriptor: CellDescriptor
    row_index: int
    start_column: int
    day: Optional[str] = None # Day that was active when the cell was placed
    opens_day: bool = False # True for cells in the row that opened `day`
    clipped: bool = False # Starts at or past the column ceiling

    @property
    def col_span(self) -> int:
        return self.descriptor.col_span

    @property
    def row_span(self) -> int:
        return self.descriptor.row_span


@dataclass(frozen=True)
class ResolverState:
    """Day context threaded through the row loop."""
    current_day: Optional[str] = None
    day_start_row: int = -1
    colspans_by_day: Mapping[str, Mapping[int, int]] = field(default_factory=dict)
    seen_days: FrozenSet[str] = frozenset()

    def day_colspans(self) -> Mapping[int, int]:
        if self.current_day is None:
            return {}
        return self.colspans_by_day.get(self.current_day, {})


class OccupancyGrid:
    """
    Sparse (row, column) occupancy table.

    Claims are only ever added, never overwritten. Columns at or past
    `max_columns` and rows at or past `max_rows` (when set) are silently dropped.
    """

    def __init__(self, max_columns: int = MAX_COLUMNS, max_rows: Optional[int] = None):
        self.max_columns = max_columns
        self.max_rows = max_rows
        self._rows: Dict[int, Set[int]] = {}

    def is_occupied(self, row: int, column: int) -> bool:
        return column in self._rows.get(row, ())

    def next_free_column(self, row: int, start: int) -> int:
        column = start
        while column < self.max_columns and self.is_occupied(row, column):
            column += 1
        return column

    def first_occupied_column(self, row: int) -> Optional[int]:
        occupied = self._rows.get(row)
        if not occupied:
            return None
        return min(occupied)

    def claim(self, row: int, column: int, row_span: int, col_span: int) -> None:
        last_row = row + row_span
        if self.max_rows is not None:
            last_row = min(last_row, self.max_rows)
        for r in range(row, last_row):
            claimed = self._rows.setdefault(r, set())
            for c in range(column, min(column + col_span, self.max_columns)):
                # First claim wins
                claimed.add(c)


@dataclass(frozen=True)
class PlacementContext:
    """Everything a column recovery strategy may look at."""
    cell: CellDescriptor
    row_index: int
    state: ResolverState
    grid: OccupancyGrid


# A strategy returns a start column, or None when it cannot decide
ColumnStrategy = Callable[[PlacementContext], Optional[int]]


# --- Column Recovery Strategies ---
# Concurrent-class rows carry no positional information in the markup, so
# these are best-effort guesses, tried in order.

def colspan_lookup_strategy(context: PlacementContext) -> Optional[int]:
    """Reuse the column where a cell of the same colspan started in the day's header row."""
    return context.state.day_colspans().get(context.cell.col_span)


def occupied_column_strategy(context: PlacementContext) -> Optional[int]:
    """Snap to the first column of this row already held by a carried-over rowspan."""
    return context.grid.first_occupied_column(context.row_index)


DEFAULT_STRATEGIES: Tuple[ColumnStrategy, ...] = (
    colspan_lookup_strategy,
    occupied_column_strategy,
)


# --- Row Processing ---

def _open_day(state: ResolverState, row_index: int, row: Sequence[CellDescriptor]) -> ResolverState:
    """Returns the state after looking for a day header cell in `row`."""
    header = next((cell for cell in row if cell.has_day_header_text), None)
    if header is None:
        return state
    if header.day_label in state.seen_days:
        log.debug(f"Row {row_index}: Ignoring repeated day header '{header.day_label}'.")
        return state
    log.debug(f"Row {row_index}: Opening day '{header.day_label}'.")
    colspans = dict(state.colspans_by_day)
    colspans[header.day_label] = {}
    return ResolverState(
        current_day=header.day_label,
        day_start_row=row_index,
        colspans_by_day=colspans,
        seen_days=state.seen_days | {header.day_label},
    )


def _record_colspan(state: ResolverState, col_span: int, column: int) -> ResolverState:
    day_map = state.day_colspans()
    if col_span in day_map:
        return state # First seen wins
    colspans = dict(state.colspans_by_day)
    colspans[state.current_day] = {**day_map, col_span: column}
    return replace(state, colspans_by_day=colspans)


def _needs_recovery(cell: CellDescriptor, row: Sequence[CellDescriptor], column: int, state: ResolverState) -> bool:
    return (
        column == 0
        and len(row) == 1
        and cell.looks_like_class_cell
        and state.current_day is not None
    )


def resolve_row(
    row_index: int,
    row: Sequence[CellDescriptor],
    state: ResolverState,
    grid: OccupancyGrid,
    strategies: Sequence[ColumnStrategy] = DEFAULT_STRATEGIES,
) -> Tuple[List[ResolvedCell], ResolverState]:
    """
    Places the cells of a single table row.

    Args:
        row_index: Index of the row within the schedule table.
        row: Cell descriptors of the row, in document order.
        state: Day context produced by the previous row.
        grid: Occupancy grid shared by all rows of the table.
        strategies: Column recovery strategies for lone concurrent-class cells.

    Returns:
        The resolved cells of the row and the state for the next row.
    """
    state = _open_day(state, row_index, row)
    is_day_start_row = state.current_day is not None and row_index == state.day_start_row
    resolved: List[ResolvedCell] = []
    cursor = 0

    for cell in row:
        column = grid.next_free_column(row_index, cursor)

        if _needs_recovery(cell, row, column, state):
            context = PlacementContext(cell=cell, row_index=row_index, state=state, grid=grid)
            for strategy in strategies:
                recovered = strategy(context)
                if recovered is not None:
                    log.debug(
                        f"Row {row_index}: Placed lone class cell (colspan {cell.col_span}) "
                        f"at column {recovered} via {getattr(strategy, '__name__', strategy)}."
                    )
                    column = recovered
                    break
            else:
                log.debug(f"Row {row_index}: No strategy could place lone class cell, leaving it at column 0.")

        clipped = column >= grid.max_columns
        if clipped:
            log.debug(f"Row {row_index}: Cell at column {column} is past the column ceiling, clipping it.")
        else:
            if is_day_start_row and cell.looks_like_class_cell:
                state = _record_colspan(state, cell.col_span, column)
            grid.claim(row_index, column, cell.row_span, cell.col_span)

        resolved.append(ResolvedCell(
            descriptor=cell,
            row_index=row_index,
            start_column=column,
            day=state.current_day,
            opens_day=is_day_start_row,
            clipped=clipped,
        ))
        cursor = column + cell.col_span

    return resolved, state


def resolve(
    rows: Sequence[Sequence[CellDescriptor]],
    strategies: Sequence[ColumnStrategy] = DEFAULT_STRATEGIES,
) -> List[ResolvedCell]:
    """
    Resolves the logical starting column of every cell of a schedule table.

    Rowspans from earlier rows occupy columns in later rows, so each row's
    column cursor skips already claimed columns. Lone class cells that would
    otherwise land in the day-label column are re-placed using `strategies`.
    Spans reaching past the table's last row or column are clipped, and
    cells starting past the last column are flagged `clipped`.

    Args:
        rows: Ordered table rows, each a list of cell descriptors.
        strategies: Ordered column recovery strategies.

    Returns:
        All cells in document order, each tagged with its start column.
    """
    grid = OccupancyGrid(max_rows=len(rows))
    state = ResolverState()
    cells: List[ResolvedCell] = []
    for row_index, row in enumerate(rows):
        if not row:
            continue
        row_cells, state = resolve_row(row_index, row, state, grid, strategies)
        cells.extend(row_cells)
    return cells
