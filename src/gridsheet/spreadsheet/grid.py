"""
Immutable grid snapshots.

A ``Grid`` holds one sheet's columns, rows (with their cells) and merges.
Every operation is a pure transform: it validates its input, then returns a
new ``Grid`` with ``version`` bumped by one. The snapshot an operation was
called on is never modified, so a caller can keep old snapshots around for
undo or hand the current one to the persistence scheduler without copying.

Invalid operations raise ``InvalidOperationError`` and produce no snapshot.
"""

import functools
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from gridsheet.exceptions import InvalidOperationError
from gridsheet.spreadsheet.model import (
    Cell,
    CellStyle,
    Column,
    ColumnType,
    Merge,
    Range,
    Row,
    column_letter,
    new_id,
)
from gridsheet.spreadsheet.numbers import parse_number


_T = TypeVar("_T", Column, Row)

TOGGLEABLE_STYLES = ("bold", "italic", "underline")


@dataclass(frozen=True)
class Geometry:
    """Default and minimum sizes applied by grid operations (pixels)."""
    default_column_width: int = 150
    default_row_height: int = 36
    min_column_width: int = 60
    min_row_height: int = 24

    @classmethod
    def from_settings(cls, settings: Any) -> "Geometry":
        return cls(
            default_column_width=settings.default_column_width,
            default_row_height=settings.default_row_height,
            min_column_width=settings.min_column_width,
            min_row_height=settings.min_row_height,
        )


def compare_cell_values(a: str, b: str) -> int:
    """Compare two raw values the way column sort does.

    Numeric comparison when both values parse as numbers, otherwise a
    case-insensitive lexicographic comparison (exact text breaks ties).
    The empty string is the lowest text value.
    """
    a_num = parse_number(a)
    b_num = parse_number(b)
    if a_num is not None and b_num is not None:
        return (a_num > b_num) - (a_num < b_num)
    a_key = (a.casefold(), a)
    b_key = (b.casefold(), b)
    return (a_key > b_key) - (a_key < b_key)


def _renumber(items: Iterable[_T]) -> Tuple[_T, ...]:
    return tuple(
        item if item.order_index == i else replace(item, order_index=i)
        for i, item in enumerate(items)
    )


@dataclass(frozen=True)
class Grid:
    """Snapshot of one sheet.

    Attributes:
        columns: Ordered columns
        rows: Ordered rows, each owning its cells
        merges: Non-overlapping merged regions in index space
        version: Incremented by every operation that returns a new snapshot
        geometry: Default and minimum sizes
    """
    columns: Tuple[Column, ...] = ()
    rows: Tuple[Row, ...] = ()
    merges: Tuple[Merge, ...] = ()
    version: int = 0
    geometry: Geometry = field(default_factory=Geometry)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def seed(
        cls,
        columns: int = 5,
        rows: int = 10,
        geometry: Optional[Geometry] = None,
    ) -> "Grid":
        """Build the default grid for an empty sheet: lettered columns, blank rows."""
        geometry = geometry or Geometry()
        return cls(
            columns=tuple(
                Column(
                    id=new_id(),
                    name=column_letter(i),
                    width=geometry.default_column_width,
                    order_index=i,
                )
                for i in range(columns)
            ),
            rows=tuple(
                Row(id=new_id(), order_index=i, height=geometry.default_row_height)
                for i in range(rows)
            ),
            geometry=geometry,
        )

    def _evolve(self, **changes: Any) -> "Grid":
        if "columns" in changes:
            changes["columns"] = _renumber(changes["columns"])
        if "rows" in changes:
            changes["rows"] = _renumber(changes["rows"])
        return replace(self, version=self.version + 1, **changes)

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_at(self, index: int) -> Column:
        return self.columns[index]

    def row_at(self, index: int) -> Row:
        return self.rows[index]

    def column_index(self, col_id: str) -> int:
        """Position of a column; raises InvalidOperationError for unknown ids."""
        for i, col in enumerate(self.columns):
            if col.id == col_id:
                return i
        raise InvalidOperationError(f"Unknown column: {col_id}")

    def row_index(self, row_id: str) -> int:
        """Position of a row; raises InvalidOperationError for unknown ids."""
        for i, row in enumerate(self.rows):
            if row.id == row_id:
                return i
        raise InvalidOperationError(f"Unknown row: {row_id}")

    def column(self, col_id: str) -> Column:
        return self.columns[self.column_index(col_id)]

    def row(self, row_id: str) -> Row:
        return self.rows[self.row_index(row_id)]

    def letter_of(self, col_id: str) -> str:
        """Letter address of a column (projection over current order)."""
        return column_letter(self.column_index(col_id))

    def cell(self, row_index: int, col_index: int) -> Optional[Cell]:
        """Cell at an index position, or None when empty or out of range."""
        if not (0 <= row_index < len(self.rows) and 0 <= col_index < len(self.columns)):
            return None
        return self.rows[row_index].cell(self.columns[col_index].id)

    def raw_value(self, row_index: int, col_index: int) -> str:
        cell = self.cell(row_index, col_index)
        return cell.value if cell is not None else ""

    @property
    def bounds(self) -> Optional[Range]:
        if not self.rows or not self.columns:
            return None
        return Range(0, 0, len(self.rows) - 1, len(self.columns) - 1)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def next_column_name(self) -> str:
        return column_letter(len(self.columns))

    def add_column(
        self,
        name: Optional[str] = None,
        index: Optional[int] = None,
        type: ColumnType = ColumnType.TEXT,
    ) -> "Grid":
        """Insert a column at ``index`` (append when None).

        The default name continues the letter sequence.
        """
        col = Column(
            id=new_id(),
            name=name or self.next_column_name(),
            type=type,
            width=self.geometry.default_column_width,
        )
        columns = list(self.columns)
        columns.insert(len(columns) if index is None else index, col)
        return self._evolve(columns=columns)

    def append_columns(self, count: int) -> "Grid":
        """Append ``count`` lettered columns in one step."""
        if count <= 0:
            return self
        columns = list(self.columns)
        for _ in range(count):
            columns.append(
                Column(
                    id=new_id(),
                    name=column_letter(len(columns)),
                    width=self.geometry.default_column_width,
                )
            )
        return self._evolve(columns=columns)

    def delete_column(self, col_id: str) -> "Grid":
        """Remove a column and strip its cells from every row.

        Raises:
            InvalidOperationError: If it is the only column or does not exist
        """
        index = self.column_index(col_id)
        if len(self.columns) <= 1:
            raise InvalidOperationError("A sheet needs at least 1 column")
        columns = self.columns[:index] + self.columns[index + 1:]
        rows = [
            replace(row, cells={k: v for k, v in row.cells.items() if k != col_id})
            if col_id in row.cells else row
            for row in self.rows
        ]
        return self._evolve(columns=columns, rows=rows)

    def rename_column(self, col_id: str, name: str) -> "Grid":
        """Rename a column; a blank name keeps the current one."""
        index = self.column_index(col_id)
        name = (name or "").strip()
        if not name:
            return self
        return self._replace_column(index, replace(self.columns[index], name=name))

    def set_column_type(self, col_id: str, type: Union[ColumnType, str]) -> "Grid":
        index = self.column_index(col_id)
        return self._replace_column(index, replace(self.columns[index], type=ColumnType(type)))

    def set_column_width(self, col_id: str, width: int) -> "Grid":
        index = self.column_index(col_id)
        width = max(self.geometry.min_column_width, int(width))
        if self.columns[index].width == width:
            return self
        return self._replace_column(index, replace(self.columns[index], width=width))

    def set_all_column_widths(self, width: int) -> "Grid":
        width = max(self.geometry.min_column_width, int(width))
        return self._evolve(columns=[replace(c, width=width) for c in self.columns])

    def _replace_column(self, index: int, col: Column) -> "Grid":
        columns = list(self.columns)
        columns[index] = col
        return self._evolve(columns=columns)

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def add_row(self, index: Optional[int] = None, position: str = "below") -> "Grid":
        """Insert a blank row above or below ``index`` (append when None).

        Raises:
            InvalidOperationError: If position is not "above"/"below" or the
                index is out of range
        """
        if position not in ("above", "below"):
            raise InvalidOperationError(f"Unknown row position: {position}")
        row = Row(id=new_id(), height=self.geometry.default_row_height)
        rows = list(self.rows)
        if index is None:
            rows.append(row)
        else:
            if not 0 <= index < len(rows):
                raise InvalidOperationError(f"Row index out of range: {index}")
            rows.insert(index if position == "above" else index + 1, row)
        return self._evolve(rows=rows)

    def append_rows(self, count: int) -> "Grid":
        """Append ``count`` blank rows in one step."""
        if count <= 0:
            return self
        new_rows = [
            Row(id=new_id(), height=self.geometry.default_row_height) for _ in range(count)
        ]
        return self._evolve(rows=list(self.rows) + new_rows)

    def delete_row(self, row_id: str) -> "Grid":
        """Remove a row.

        Raises:
            InvalidOperationError: If it is the only row or does not exist
        """
        index = self.row_index(row_id)
        if len(self.rows) <= 1:
            raise InvalidOperationError("A sheet needs at least 1 row")
        return self._evolve(rows=self.rows[:index] + self.rows[index + 1:])

    def duplicate_row(self, row_id: str) -> "Grid":
        """Insert a copy of a row directly below it.

        Values and styles are copied; every copied cell gets a fresh identity
        and belongs to the new row.
        """
        index = self.row_index(row_id)
        source = self.rows[index]
        copy = Row(
            id=new_id(),
            height=source.height,
            is_header=source.is_header,
            cells={
                col_id: Cell(value=cell.value, style=cell.style)
                for col_id, cell in source.cells.items()
            },
        )
        rows = list(self.rows)
        rows.insert(index + 1, copy)
        return self._evolve(rows=rows)

    def toggle_header(self, row_id: str) -> "Grid":
        index = self.row_index(row_id)
        row = self.rows[index]
        return self._replace_row(index, replace(row, is_header=not row.is_header))

    def set_row_height(self, row_id: str, height: int) -> "Grid":
        index = self.row_index(row_id)
        height = max(self.geometry.min_row_height, int(height))
        if self.rows[index].height == height:
            return self
        return self._replace_row(index, replace(self.rows[index], height=height))

    def set_all_row_heights(self, height: int) -> "Grid":
        height = max(self.geometry.min_row_height, int(height))
        return self._evolve(rows=[replace(r, height=height) for r in self.rows])

    def sort_by_column(self, col_id: str, descending: bool = False) -> "Grid":
        """Reorder all rows by a column's raw values.

        Uses a pairwise comparator (see ``compare_cell_values``); mixed
        numeric/text pairs compare as text, so no single global key exists.
        """
        self.column_index(col_id)
        sign = -1 if descending else 1

        def cmp(a: Row, b: Row) -> int:
            return sign * compare_cell_values(a.value(col_id), b.value(col_id))

        return self._evolve(rows=sorted(self.rows, key=functools.cmp_to_key(cmp)))

    def _replace_row(self, index: int, row: Row) -> "Grid":
        rows = list(self.rows)
        rows[index] = row
        return self._evolve(rows=rows)

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def set_cell_value(self, row_id: str, col_id: str, value: str) -> "Grid":
        """Set a cell's raw value, keeping its style."""
        return self.set_values([(row_id, col_id, value)])

    def set_values(self, updates: Iterable[Tuple[str, str, str]]) -> "Grid":
        """Set many raw values in one step; styles are preserved.

        Args:
            updates: (row id, column id, value) triples

        Raises:
            InvalidOperationError: If any row or column id is unknown
        """
        col_ids = {c.id for c in self.columns}
        row_pos = {r.id: i for i, r in enumerate(self.rows)}
        changed: Dict[int, Dict[str, Cell]] = {}
        for row_id, col_id, value in updates:
            if row_id not in row_pos:
                raise InvalidOperationError(f"Unknown row: {row_id}")
            if col_id not in col_ids:
                raise InvalidOperationError(f"Unknown column: {col_id}")
            index = row_pos[row_id]
            cells = changed.setdefault(index, dict(self.rows[index].cells))
            existing = cells.get(col_id)
            value = "" if value is None else str(value)
            cells[col_id] = existing.with_value(value) if existing else Cell(value=value)
        if not changed:
            return self
        rows = list(self.rows)
        for index, cells in changed.items():
            rows[index] = replace(rows[index], cells=cells)
        return self._evolve(rows=rows)

    def apply_style(
        self,
        row_id: str,
        col_id: str,
        update: Union[CellStyle, Mapping[str, Any]],
    ) -> "Grid":
        """Merge a partial style update into a cell's style."""
        index = self.row_index(row_id)
        self.column_index(col_id)
        row = self.rows[index]
        existing = row.cell(col_id) or Cell()
        cells = dict(row.cells)
        cells[col_id] = existing.with_style(existing.style.merged(update))
        return self._replace_row(index, replace(row, cells=cells))

    def toggle_style(self, row_id: str, col_id: str, attribute: str) -> "Grid":
        """Flip bold, italic or underline on a cell."""
        if attribute not in TOGGLEABLE_STYLES:
            raise InvalidOperationError(f"Style cannot be toggled: {attribute}")
        cell = self.row(row_id).cell(col_id)
        current = getattr(cell.style, attribute) if cell is not None else None
        return self.apply_style(row_id, col_id, {attribute: not current})

    # ------------------------------------------------------------------
    # Merges
    # ------------------------------------------------------------------

    def add_merge(self, rng: Range) -> "Grid":
        """Record a merge over ``rng``.

        Raises:
            InvalidOperationError: If the range is a single cell or overlaps
                an existing merge
        """
        validate_merge(self.merges, rng)
        return self._evolve(merges=self.merges + (Merge.from_range(rng),))

    def remove_merge(self, merge_id: str) -> "Grid":
        """Drop a merge record; cell data is untouched."""
        remaining = tuple(m for m in self.merges if m.id != merge_id)
        if len(remaining) == len(self.merges):
            raise InvalidOperationError(f"Unknown merge: {merge_id}")
        return self._evolve(merges=remaining)

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def with_structure(
        self,
        columns: Optional[Sequence[Column]] = None,
        rows: Optional[Sequence[Row]] = None,
        merges: Optional[Sequence[Merge]] = None,
    ) -> "Grid":
        """Replace whole axes at once (used when loading from a store)."""
        changes: Dict[str, Any] = {}
        if columns is not None:
            changes["columns"] = list(columns)
        if rows is not None:
            changes["rows"] = list(rows)
        if merges is not None:
            changes["merges"] = tuple(merges)
        return self._evolve(**changes)

    def non_empty_cells(self) -> List[Tuple[Row, str, Cell]]:
        """(row, column id, cell) for every cell with a value or a style."""
        return [
            (row, col_id, cell)
            for row in self.rows
            for col_id, cell in row.cells.items()
            if not cell.is_empty()
        ]


def validate_merge(merges: Iterable[Merge], rng: Range) -> None:
    """Check that a merge over ``rng`` may be created.

    Raises:
        InvalidOperationError: If the range is a single cell or any cell in
            it already belongs to a merge
    """
    if rng.is_single_cell():
        raise InvalidOperationError("Select at least 2 cells to merge")
    for merge in merges:
        if merge.overlaps(rng):
            raise InvalidOperationError("Remove the existing merge first")


