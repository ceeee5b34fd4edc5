"""
Clipboard interchange in the tab/newline text format.

Copying writes the selected rectangle's raw values (formulas as typed, not
their results) as one line per row with tab-separated cells, the format other
spreadsheet applications read and write. Pasting parses the same format and
writes it at an anchor cell, growing the grid when the block does not fit.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import pyperclip

from gridsheet.config import get_settings
from gridsheet.exceptions import ClipboardError, InvalidOperationError
from gridsheet.selection import Selection
from gridsheet.spreadsheet.grid import Grid
from gridsheet.spreadsheet.model import Range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipboardData:
    """A rectangular block of raw values parsed from clipboard text.

    Attributes:
        cells: Rows of values, every row padded to col_count
        row_count: Number of rows
        col_count: Width of the widest row
    """
    cells: Tuple[Tuple[str, ...], ...]
    row_count: int
    col_count: int

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0 or self.col_count == 0


@dataclass(frozen=True)
class PasteResult:
    """Outcome of a paste.

    Attributes:
        grid: The grid with the block applied
        rows_added: Rows synthesized to fit the block
        cols_added: Columns synthesized to fit the block
        rows_pasted: Rows of the block that landed in the grid
        cols_pasted: Columns of the block that landed in the grid
        truncated: True when part of the block fell beyond the growth cap
    """
    grid: Grid
    rows_added: int
    cols_added: int
    rows_pasted: int
    cols_pasted: int
    truncated: bool


def encode(grid: Grid, bounds: Range) -> str:
    """Serialize the raw values inside ``bounds`` to clipboard text.

    Cells outside the grid encode as empty strings.
    """
    lines = []
    for r in range(bounds.row, bounds.row_end + 1):
        lines.append(
            "\t".join(grid.raw_value(r, c) for c in range(bounds.col, bounds.col_end + 1))
        )
    return "\n".join(lines)


def decode(text: Optional[str]) -> ClipboardData:
    """Parse clipboard text into a rectangular block.

    Windows and old Mac line endings are normalized, a single trailing line
    break is ignored, and short rows are padded with empty strings.
    """
    if not text:
        return ClipboardData(cells=(), row_count=0, col_count=0)
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    rows = [line.split("\t") for line in lines]
    width = max((len(row) for row in rows), default=0)
    cells = tuple(tuple(row + [""] * (width - len(row))) for row in rows)
    return ClipboardData(cells=cells, row_count=len(cells), col_count=width)


def paste(
    grid: Grid,
    anchor_row: int,
    anchor_col: int,
    data: ClipboardData,
    max_new_rows: Optional[int] = None,
    max_new_cols: Optional[int] = None,
) -> PasteResult:
    """Write a block at an anchor cell, growing the grid as needed.

    Missing rows and columns are appended (new columns continue the letter
    naming) up to ``max_new_rows``/``max_new_cols`` per paste; values that
    would land beyond the cap are dropped. Only raw values are overwritten;
    existing cell styles stay as they were.

    Args:
        grid: Grid to paste into
        anchor_row: Row index of the block's top-left cell
        anchor_col: Column index of the block's top-left cell
        data: Parsed block
        max_new_rows: Growth cap for rows (settings default when None)
        max_new_cols: Growth cap for columns (settings default when None)

    Raises:
        InvalidOperationError: If the anchor lies outside the grid
    """
    settings = get_settings()
    if max_new_rows is None:
        max_new_rows = settings.max_paste_new_rows
    if max_new_cols is None:
        max_new_cols = settings.max_paste_new_columns

    if not (0 <= anchor_row < grid.row_count and 0 <= anchor_col < grid.column_count):
        raise InvalidOperationError(f"Paste anchor out of range: ({anchor_row}, {anchor_col})")
    if data.is_empty:
        return PasteResult(grid, 0, 0, 0, 0, False)

    rows_needed = max(0, anchor_row + data.row_count - grid.row_count)
    cols_needed = max(0, anchor_col + data.col_count - grid.column_count)
    rows_added = min(rows_needed, max_new_rows)
    cols_added = min(cols_needed, max_new_cols)
    truncated = rows_added < rows_needed or cols_added < cols_needed

    grown = grid.append_rows(rows_added).append_columns(cols_added)
    if rows_added or cols_added:
        logger.info("Paste grew the grid by %d rows and %d columns", rows_added, cols_added)
    if truncated:
        logger.warning(
            "Paste block %dx%d exceeds the growth cap; extra cells dropped",
            data.row_count,
            data.col_count,
        )

    rows_pasted = min(data.row_count, grown.row_count - anchor_row)
    cols_pasted = min(data.col_count, grown.column_count - anchor_col)
    updates = []
    for i in range(rows_pasted):
        row_id = grown.rows[anchor_row + i].id
        source = data.cells[i]
        for j in range(cols_pasted):
            updates.append((row_id, grown.columns[anchor_col + j].id, source[j]))

    return PasteResult(
        grid=grown.set_values(updates),
        rows_added=rows_added,
        cols_added=cols_added,
        rows_pasted=rows_pasted,
        cols_pasted=cols_pasted,
        truncated=truncated,
    )


class ClipboardBackend(Protocol):
    """Protocol for a text clipboard."""

    def read_text(self) -> str:
        """Return the clipboard's text (empty string when there is none).

        Raises:
            ClipboardError: If the clipboard cannot be read
        """
        ...

    def write_text(self, text: str) -> None:
        """Replace the clipboard's text.

        Raises:
            ClipboardError: If the clipboard cannot be written
        """
        ...


class SystemClipboard:
    """The operating system clipboard, through pyperclip."""

    def read_text(self) -> str:
        try:
            return pyperclip.paste() or ""
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Failed to read the system clipboard: {e}") from e

    def write_text(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Failed to write the system clipboard: {e}") from e


class MemoryClipboard:
    """In-process clipboard for headless use and tests."""

    def __init__(self, text: str = "") -> None:
        self.text = text

    def read_text(self) -> str:
        return self.text

    def write_text(self, text: str) -> None:
        self.text = text


class ClipboardController:
    """Copy and paste between a grid and a clipboard backend.

    Every copy is also kept in an internal buffer, so paste keeps working
    inside the editor when the system clipboard is empty or unavailable.

    Attributes:
        backend: Clipboard the text goes to and comes from
        buffer: Text of the last copy
    """

    def __init__(self, backend: Optional[ClipboardBackend] = None) -> None:
        self.backend = backend if backend is not None else SystemClipboard()
        self.buffer = ""

    def copy(self, grid: Grid, selection: Selection) -> Optional[str]:
        """Copy the selected rectangle's raw values.

        Returns:
            The copied text, or None when nothing is selected
        """
        bounds = selection.bounds()
        if bounds is None:
            return None
        text = encode(grid, bounds)
        self.buffer = text
        try:
            self.backend.write_text(text)
        except ClipboardError as e:
            logger.warning("Copy kept in the internal buffer only: %s", e)
        return text

    def read_for_paste(self) -> ClipboardData:
        """Read the block to paste, falling back to the internal buffer."""
        try:
            text = self.backend.read_text()
        except ClipboardError as e:
            logger.warning("Pasting from the internal buffer: %s", e)
            text = ""
        return decode(text or self.buffer)

    def paste(self, grid: Grid, selection: Selection, **caps: int) -> Optional[PasteResult]:
        """Paste at the selection's top-left cell.

        Returns:
            The paste result, or None when nothing is selected
        """
        corner = selection.anchor_cell
        if corner is None:
            return None
        return paste(grid, corner[0], corner[1], self.read_for_paste(), **caps)
