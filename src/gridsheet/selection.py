"""
Range selection and merged-cell handling.

This module provides:
- Selection: The anchor/extent rectangle driven by pointer and keyboard events
- Merge lookups: which merge covers a cell, and how a cell renders under merges
- merge_selection / unmerge_selection: Merge lifecycle against a Grid
- layout: The render plan of a grid (visible cells with spans, display text and style)

Everything here works in index space: positions in the grid's current row and
column order.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from gridsheet.exceptions import InvalidOperationError
from gridsheet.formula import FormulaEngine
from gridsheet.spreadsheet.grid import Grid, validate_merge
from gridsheet.spreadsheet.model import CellStyle, Merge, Range, effective_style

logger = logging.getLogger(__name__)

__all__ = [
    "Selection",
    "CellLayout",
    "merge_at",
    "merge_anchored_at",
    "cell_span",
    "is_editable",
    "validate_merge",
    "merge_selection",
    "unmerge_selection",
    "layout",
]


class Selection:
    """The active selection rectangle.

    Pointer-down sets both anchor and extent and starts a drag; pointer-enter
    moves only the extent while dragging; pointer-up ends the drag. The
    rectangle between anchor and extent is normalized on every read, so the
    drag direction does not matter.

    Attributes:
        anchor: (row, col) where the selection started, or None
        extent: (row, col) of the opposite corner, or None
        selecting: True between pointer-down and pointer-up
    """

    def __init__(self) -> None:
        self.anchor: Optional[Tuple[int, int]] = None
        self.extent: Optional[Tuple[int, int]] = None
        self.selecting = False

    def pointer_down(self, row: int, col: int) -> None:
        self.anchor = (row, col)
        self.extent = (row, col)
        self.selecting = True

    def pointer_enter(self, row: int, col: int) -> None:
        if self.selecting:
            self.extent = (row, col)

    def pointer_up(self) -> None:
        self.selecting = False

    def move_to(self, row: int, col: int) -> None:
        """Collapse the selection onto one cell (keyboard navigation)."""
        self.anchor = (row, col)
        self.extent = (row, col)
        self.selecting = False

    def clear(self) -> None:
        self.anchor = None
        self.extent = None
        self.selecting = False

    @property
    def is_empty(self) -> bool:
        return self.anchor is None

    @property
    def anchor_cell(self) -> Optional[Tuple[int, int]]:
        """Top-left cell of the normalized rectangle."""
        bounds = self.bounds()
        if bounds is None:
            return None
        return bounds.row, bounds.col

    def bounds(self) -> Optional[Range]:
        """Normalized rectangle, or None when nothing is selected."""
        if self.anchor is None or self.extent is None:
            return None
        (row_a, col_a), (row_b, col_b) = self.anchor, self.extent
        return Range.normalized(row_a, col_a, row_b, col_b)

    def contains(self, row: int, col: int) -> bool:
        bounds = self.bounds()
        return bounds is not None and bounds.contains(row, col)

    def is_single_cell(self) -> bool:
        bounds = self.bounds()
        return bounds is not None and bounds.is_single_cell()

    def __repr__(self) -> str:
        bounds = self.bounds()
        return f"Selection({bounds.to_a1() if bounds else None!r})"


def merge_at(merges: Iterable[Merge], row: int, col: int) -> Optional[Merge]:
    """The merge covering (row, col), if any."""
    for merge in merges:
        if merge.contains(row, col):
            return merge
    return None


def merge_anchored_at(merges: Iterable[Merge], row: int, col: int) -> Optional[Merge]:
    """The merge whose top-left cell is (row, col), if any."""
    for merge in merges:
        if merge.is_anchor(row, col):
            return merge
    return None


def cell_span(merges: Iterable[Merge], row: int, col: int) -> Optional[Tuple[int, int]]:
    """How a cell renders under the current merges.

    Returns:
        (row_span, col_span) of the merge for an anchor cell, (1, 1) for a cell
        outside every merge, or None for a cell absorbed into another cell's
        merge (it is neither rendered nor editable on its own)
    """
    merge = merge_at(merges, row, col)
    if merge is None:
        return 1, 1
    if merge.is_anchor(row, col):
        return merge.row_span, merge.col_span
    return None


def is_editable(merges: Iterable[Merge], row: int, col: int) -> bool:
    return cell_span(merges, row, col) is not None


def merge_selection(grid: Grid, selection: Selection) -> Grid:
    """Merge the selected rectangle.

    Raises:
        InvalidOperationError: If nothing or a single cell is selected, or the
            rectangle touches an existing merge
    """
    bounds = selection.bounds()
    if bounds is None:
        raise InvalidOperationError("Select at least 2 cells to merge")
    new_grid = grid.add_merge(bounds)
    logger.debug("Merged %s", bounds.to_a1())
    return new_grid


def unmerge_selection(grid: Grid, selection: Selection) -> Grid:
    """Remove the merge containing the selection's top-left cell.

    Only the merge record is dropped; the cells keep their stored values and
    styles.

    Raises:
        InvalidOperationError: If that cell is not part of a merge
    """
    corner = selection.anchor_cell
    merge = merge_at(grid.merges, *corner) if corner is not None else None
    if merge is None:
        raise InvalidOperationError("No merged cells in the selection")
    logger.debug("Unmerged %s", merge.range.to_a1())
    return grid.remove_merge(merge.id)


@dataclass(frozen=True)
class CellLayout:
    """One rendered cell.

    Attributes:
        row: Row index
        col: Column index
        row_span: Rows covered (more than 1 only for a merge anchor)
        col_span: Columns covered
        display: Text to show (formula results evaluated)
        style: Effective style, header defaults included
    """
    row: int
    col: int
    row_span: int
    col_span: int
    display: str
    style: CellStyle


def layout(grid: Grid, engine: Optional[FormulaEngine] = None) -> List[List[CellLayout]]:
    """Build the render plan for a grid.

    Absorbed cells are left out. Merge spans are clamped to the grid, since
    merges are positional and can outlive the rows or columns they covered.

    Returns:
        One list per row with that row's visible cells, left to right
    """
    engine = engine or FormulaEngine()
    plan: List[List[CellLayout]] = []
    for r, row in enumerate(grid.rows):
        visible = []
        for c, column in enumerate(grid.columns):
            span = cell_span(grid.merges, r, c)
            if span is None:
                continue
            row_span = min(span[0], grid.row_count - r)
            col_span = min(span[1], grid.column_count - c)
            cell = row.cell(column.id)
            visible.append(
                CellLayout(
                    row=r,
                    col=c,
                    row_span=row_span,
                    col_span=col_span,
                    display=engine.evaluate(cell.value if cell else "", grid),
                    style=effective_style(row, cell),
                )
            )
        plan.append(visible)
    return plan
