"""Bead grid projection.

A grid is a list of ``cols`` columns, each a list of ``rows`` cells. Records
fill it in chronological order (oldest first), top to bottom within a
column, then left to right. ``project`` rebuilds a grid from scratch;
``slide`` appends a single record and, once the newest column is full,
evicts the oldest column as a whole so existing cells never change rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .records import PARITY, Record


DEFAULT_COLS = 44
DEFAULT_ROWS = 6


@dataclass(frozen=True)
class GridCell:
    type: Optional[str] = None  # ODD | EVEN | BIG | SMALL, None when empty
    value: Optional[int] = None
    block_height: Optional[int] = None

    @property
    def empty(self) -> bool:
        return self.type is None


EMPTY = GridCell()

Grid = List[List[GridCell]]


def _cell(record: Record, key: str) -> GridCell:
    return GridCell(type=getattr(record, key), value=record.result_value, block_height=record.height)


def empty_grid(cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS) -> Grid:
    return [[EMPTY] * rows for _ in range(cols)]


def project(
    records: Sequence[Record],
    key: str = PARITY,
    cols: int = DEFAULT_COLS,
    rows: int = DEFAULT_ROWS,
) -> Grid:
    cols = cols if cols > 0 else DEFAULT_COLS
    rows = rows if rows > 0 else DEFAULT_ROWS
    grid = empty_grid(cols, rows)
    if not records:
        return grid
    chronological = sorted(records, key=lambda r: r.height)[-(cols * rows):]
    for idx, record in enumerate(chronological):
        grid[idx // rows][idx % rows] = _cell(record, key)
    return grid


def slide(grid: Grid, record: Record, key: str = PARITY) -> Grid:
    """Return ``grid`` with ``record`` appended at the next free cell."""
    out = [list(column) for column in grid]
    if not out:
        return out
    if all(not cell.empty for cell in out[-1]):
        rows = len(out[-1])
        out = out[1:] + [[EMPTY] * rows]
    for column in out:
        for row, cell in enumerate(column):
            if cell.empty:
                column[row] = _cell(record, key)
                return out
    return out


def slide_retained(n: int, cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS) -> int:
    """How many of ``n`` records remain after folding ``slide`` over them."""
    cap = cols * rows
    if n <= cap:
        return n
    return cap - rows + (n - cap - 1) % rows + 1


def grid_heights(grid: Grid) -> List[int]:
    # Column-major order, i.e. chronological for grids built by project/slide
    return [cell.block_height for column in grid for cell in column if cell.block_height is not None]
