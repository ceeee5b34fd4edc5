"""
Grid model classes.

This module provides the building blocks of one sheet's grid:
- Range: A rectangular cell region in index space (e.g., A2:C10)
- CellStyle: Optional visual attributes of a cell (partial-update friendly)
- Cell: Raw value plus style, keyed by (row id, column id) inside a Row
- Column / Row: Ordered, identity-stable axes of the grid
- Merge: A rectangular region rendered and edited as one cell

Columns and rows are identified by stable ids; cells reference columns by id,
never by position. Merges and selections live in index space, which is the
current order of rows and columns.
"""

import re
import uuid
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union


_CELL_RE = re.compile(r"^([A-Z]+)(\d+)$")


def new_id() -> str:
    """Return a fresh identity for a column, row, cell, merge or sheet."""
    return str(uuid.uuid4())


def column_letter(index: int) -> str:
    """Convert a 0-indexed column position to its letter name.

    Args:
        index: Column position (0 = A, 25 = Z, 26 = AA, etc.)

    Returns:
        Column letter(s)
    """
    if index < 0:
        raise ValueError("Column index must be non-negative")
    n = index + 1
    result = ""
    while n > 0:
        n -= 1
        result = chr(65 + (n % 26)) + result
        n //= 26
    return result


def column_index(letters: str) -> int:
    """Convert column letter(s) to a 0-indexed column position.

    Args:
        letters: Column letter(s) (A, Z, AA, etc.), case-insensitive

    Returns:
        Column position (A = 0, Z = 25, AA = 26, etc.)
    """
    letters = letters.strip().upper()
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column letters: {letters!r}")
    n = 0
    for char in letters:
        n = n * 26 + (ord(char) - 64)
    return n - 1


class Range:
    """Represents a rectangular cell region in index space.

    IMPORTANT: Range uses 0-indexed coordinates internally, but converts to
    1-indexed A1 notation via to_a1() and from_a1().

    A Range can be:
    - A single cell: A1 corresponds to (row=0, col=0, row_end=0, col_end=0)
    - A cell range: A1:B10 corresponds to (row=0, col=0, row_end=9, col_end=1)

    Attributes:
        row: Starting row (0-indexed)
        col: Starting column (0-indexed)
        row_end: Ending row (0-indexed, inclusive)
        col_end: Ending column (0-indexed, inclusive)
    """

    def __init__(
        self,
        row: int,
        col: int,
        row_end: Optional[int] = None,
        col_end: Optional[int] = None
    ) -> None:
        """Initialize a Range with 0-indexed coordinates.

        Args:
            row: Starting row (0-indexed, non-negative)
            col: Starting column (0-indexed, non-negative)
            row_end: Ending row (0-indexed, defaults to row for single cell)
            col_end: Ending column (0-indexed, defaults to col for single cell)

        Raises:
            ValueError: If coordinates are invalid
        """
        if row < 0 or col < 0:
            raise ValueError("Row and column must be non-negative (0-indexed)")

        self.row = row
        self.col = col
        self.row_end = row_end if row_end is not None else row
        self.col_end = col_end if col_end is not None else col

        if self.row_end < self.row or self.col_end < self.col:
            raise ValueError("End coordinates must be >= start coordinates")

    @classmethod
    def normalized(cls, row_a: int, col_a: int, row_b: int, col_b: int) -> "Range":
        """Build the range spanned by two corners given in any order.

        Each axis is normalized independently: min(a, b) to max(a, b).
        """
        return cls(
            row=min(row_a, row_b),
            col=min(col_a, col_b),
            row_end=max(row_a, row_b),
            col_end=max(col_a, col_b),
        )

    @classmethod
    def from_a1(cls, notation: str) -> "Range":
        """Parse A1 notation string to create a Range with 0-indexed coordinates.

        Supports single cells (A1, ZZ100) and cell ranges (A1:B10). Corners
        given in reverse order are normalized.

        Raises:
            ValueError: If notation is invalid
        """
        notation = notation.strip()
        if not notation:
            raise ValueError("Empty range notation")

        parts = notation.split(":")
        if len(parts) > 2:
            raise ValueError(f"Invalid range notation: {notation}")

        corners = []
        for part in parts:
            match = _CELL_RE.match(part.strip().upper())
            if not match:
                raise ValueError(f"Invalid range notation: {notation}")
            letters, row_str = match.groups()
            row_1indexed = int(row_str)
            if row_1indexed < 1:
                raise ValueError(f"Row numbers start at 1: {notation}")
            corners.append((row_1indexed - 1, column_index(letters)))

        if len(corners) == 1:
            row, col = corners[0]
            return cls(row=row, col=col)
        (row_a, col_a), (row_b, col_b) = corners
        return cls.normalized(row_a, col_a, row_b, col_b)

    def to_a1(self) -> str:
        """Convert Range to A1 notation string (e.g., "A1" or "A1:B10")."""
        start_cell = f"{column_letter(self.col)}{self.row + 1}"
        if self.is_single_cell():
            return start_cell
        end_cell = f"{column_letter(self.col_end)}{self.row_end + 1}"
        return f"{start_cell}:{end_cell}"

    @property
    def row_count(self) -> int:
        return self.row_end - self.row + 1

    @property
    def col_count(self) -> int:
        return self.col_end - self.col + 1

    def is_single_cell(self) -> bool:
        return self.row == self.row_end and self.col == self.col_end

    def contains(self, row: int, col: int) -> bool:
        """Check whether (row, col) lies inside this range, inclusive."""
        return self.row <= row <= self.row_end and self.col <= col <= self.col_end

    def cells(self) -> Iterator[Tuple[int, int]]:
        """Iterate (row, col) pairs in row-major order."""
        for r in range(self.row, self.row_end + 1):
            for c in range(self.col, self.col_end + 1):
                yield r, c

    def intersect(self, other: "Range") -> Optional["Range"]:
        """Compute the intersection of two ranges.

        Returns:
            New Range representing the intersection, or None if no overlap
        """
        row_start = max(self.row, other.row)
        col_start = max(self.col, other.col)
        row_end = min(self.row_end, other.row_end)
        col_end = min(self.col_end, other.col_end)

        if row_start > row_end or col_start > col_end:
            return None

        return Range(row=row_start, col=col_start, row_end=row_end, col_end=col_end)

    def __repr__(self) -> str:
        return f"Range({self.to_a1()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Range):
            return NotImplemented
        return (
            self.row == other.row
            and self.col == other.col
            and self.row_end == other.row_end
            and self.col_end == other.col_end
        )

    def __hash__(self) -> int:
        return hash((self.row, self.col, self.row_end, self.col_end))


class ColumnType(str, Enum):
    """Advisory column type tag; the engine never enforces it."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


# Stored style keys, in the camelCase the editor has always persisted.
_STYLE_KEYS = {
    "bg_color": "bgColor",
    "text_color": "textColor",
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "align": "align",
}

HEADER_BG_COLOR = "#e0e7ff"
HEADER_TEXT_COLOR = "#1e40af"


@dataclass(frozen=True)
class CellStyle:
    """Visual attributes of a cell.

    Every field is optional. ``None`` means "not specified", so a style can be
    used as a partial update: only the fields set on the update change.
    An empty string color means "explicitly no color".
    """
    bg_color: Optional[str] = None
    text_color: Optional[str] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    align: Optional[Alignment] = None

    def __post_init__(self) -> None:
        if self.align is not None and not isinstance(self.align, Alignment):
            object.__setattr__(self, "align", Alignment(self.align))

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def merged(self, update: Union["CellStyle", Mapping[str, Any]]) -> "CellStyle":
        """Return a new style with the fields set on ``update`` applied."""
        if not isinstance(update, CellStyle):
            update = CellStyle(**dict(update))
        changes = {
            f.name: getattr(update, f.name)
            for f in fields(update)
            if getattr(update, f.name) is not None
        }
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (only the fields that are set)."""
        data: Dict[str, Any] = {}
        for attr, key in _STYLE_KEYS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            data[key] = value.value if isinstance(value, Alignment) else value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CellStyle":
        """Create from dictionary representation; unknown keys are ignored."""
        if not data:
            return cls()
        kwargs = {}
        for attr, key in _STYLE_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
            elif attr in data:
                kwargs[attr] = data[attr]
        return cls(**kwargs)


@dataclass(frozen=True)
class Cell:
    """A cell's raw value (possibly a formula starting with '=') and style.

    Attributes:
        id: Cell identity (fresh on duplication)
        value: Raw string value
        style: Visual attributes
    """
    id: str = field(default_factory=new_id)
    value: str = ""
    style: CellStyle = field(default_factory=CellStyle)

    def is_empty(self) -> bool:
        """True when the cell holds neither a value nor a style."""
        return self.value == "" and self.style.is_empty()

    def with_value(self, value: str) -> "Cell":
        return replace(self, value=value)

    def with_style(self, style: CellStyle) -> "Cell":
        return replace(self, style=style)


@dataclass(frozen=True)
class Column:
    """A grid column.

    Attributes:
        id: Stable identity, unchanged by renames and reorders
        name: Display name
        type: Advisory type tag
        width: Pixel width
        order_index: Position among the sheet's columns
    """
    id: str
    name: str
    type: ColumnType = ColumnType.TEXT
    width: int = 150
    order_index: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.type, ColumnType):
            object.__setattr__(self, "type", ColumnType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "width": self.width,
            "order_index": self.order_index,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Column":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            name=data["name"],
            type=data.get("type") or ColumnType.TEXT,
            width=int(data.get("width") or 150),
            order_index=int(data.get("order_index") or 0),
        )


@dataclass(frozen=True)
class Row:
    """A grid row and the cells it owns.

    Attributes:
        id: Stable identity
        order_index: Position among the sheet's rows
        height: Pixel height
        is_header: Only affects default visual styling
        cells: Column id -> Cell; a missing key is an empty, unstyled cell
    """
    id: str
    order_index: int = 0
    height: int = 36
    is_header: bool = False
    cells: Dict[str, Cell] = field(default_factory=dict)

    def cell(self, col_id: str) -> Optional[Cell]:
        return self.cells.get(col_id)

    def value(self, col_id: str) -> str:
        cell = self.cells.get(col_id)
        return cell.value if cell is not None else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (without cells)."""
        return {
            "id": self.id,
            "order_index": self.order_index,
            "height": self.height,
            "is_header": self.is_header,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], cells: Optional[Dict[str, Cell]] = None) -> "Row":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            order_index=int(data.get("order_index") or 0),
            height=int(data.get("height") or 36),
            is_header=bool(data.get("is_header") or False),
            cells=dict(cells or {}),
        )


@dataclass(frozen=True)
class Merge:
    """A merged rectangular region in index space.

    The top-left cell is the anchor: it renders with row/col spans covering
    the region, and every other cell inside is absorbed.
    """
    start_row: int
    start_col: int
    end_row: int
    end_col: int
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.start_row < 0 or self.start_col < 0:
            raise ValueError("Merge coordinates must be non-negative")
        if self.start_row > self.end_row or self.start_col > self.end_col:
            raise ValueError("Merge start must be <= end on both axes")

    @classmethod
    def from_range(cls, rng: Range, merge_id: Optional[str] = None) -> "Merge":
        kwargs = {"id": merge_id} if merge_id else {}
        return cls(rng.row, rng.col, rng.row_end, rng.col_end, **kwargs)

    @property
    def range(self) -> Range:
        return Range(self.start_row, self.start_col, self.end_row, self.end_col)

    @property
    def row_span(self) -> int:
        return self.end_row - self.start_row + 1

    @property
    def col_span(self) -> int:
        return self.end_col - self.start_col + 1

    def contains(self, row: int, col: int) -> bool:
        return self.start_row <= row <= self.end_row and self.start_col <= col <= self.end_col

    def is_anchor(self, row: int, col: int) -> bool:
        return row == self.start_row and col == self.start_col

    def overlaps(self, rng: Range) -> bool:
        return self.range.intersect(rng) is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "start_row": self.start_row,
            "start_col": self.start_col,
            "end_row": self.end_row,
            "end_col": self.end_col,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Merge":
        """Create from dictionary representation."""
        return cls(
            id=data.get("id") or new_id(),
            start_row=int(data["start_row"]),
            start_col=int(data["start_col"]),
            end_row=int(data["end_row"]),
            end_col=int(data["end_col"]),
        )


def effective_style(row: Row, cell: Optional[Cell]) -> CellStyle:
    """Style a cell renders with, including header-row defaults.

    Header rows render bold with a tinted background and text color unless
    the cell's own style sets those fields.
    """
    own = cell.style if cell is not None else CellStyle()
    if not row.is_header:
        return own
    header = CellStyle(
        bg_color=own.bg_color or HEADER_BG_COLOR,
        text_color=own.text_color or HEADER_TEXT_COLOR,
        bold=True,
    )
    return header.merged(own)
