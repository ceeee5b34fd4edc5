"""
Store record classes.

This module defines the records exchanged with a sheet store:
- SpreadsheetInfo: A named document owning one or more sheets
- SheetInfo: One tab of a spreadsheet, with its order among siblings
- CellRecord: A non-empty cell, flattened to (row id, column id, value, style)
- SheetData: Everything a fetch returns for the active sheet

Grid structure travels as model objects (Column, Row without cells, Merge);
cells travel separately as CellRecords, which is how the store keeps them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from gridsheet.spreadsheet.model import CellStyle, Column, Merge, Row, new_id


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SpreadsheetInfo:
    """A spreadsheet document.

    Attributes:
        id: Spreadsheet identity
        name: Display name
        description: Optional free text
        created_at: ISO-8601 creation timestamp
        updated_at: ISO-8601 timestamp of the last save
    """
    id: str
    name: str
    description: str = ""
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpreadsheetInfo":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
        )


@dataclass
class SheetInfo:
    """One sheet (tab) of a spreadsheet.

    Attributes:
        id: Sheet identity
        spreadsheet_id: Owning spreadsheet
        name: Tab name
        order_index: Position among sibling sheets
    """
    id: str
    spreadsheet_id: str
    name: str
    order_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "spreadsheet_id": self.spreadsheet_id,
            "name": self.name,
            "order_index": self.order_index,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SheetInfo":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            spreadsheet_id=data["spreadsheet_id"],
            name=data["name"],
            order_index=int(data.get("order_index") or 0),
        )


@dataclass
class CellRecord:
    """A stored cell.

    Attributes:
        row_id: Owning row
        column_id: Owning column
        value: Raw value
        style: Style record (empty when unstyled)
        id: Cell identity
    """
    row_id: str
    column_id: str
    value: str = ""
    style: CellStyle = field(default_factory=CellStyle)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "row_id": self.row_id,
            "column_id": self.column_id,
            "value": self.value,
            "style": self.style.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CellRecord":
        """Create from dictionary representation."""
        return cls(
            id=data.get("id") or new_id(),
            row_id=data["row_id"],
            column_id=data["column_id"],
            value=data.get("value") or "",
            style=CellStyle.from_dict(data.get("style")),
        )


@dataclass
class SheetData:
    """Result of fetching a spreadsheet's active sheet.

    Attributes:
        sheets: All sibling sheets, ordered by order_index
        active_sheet_id: The sheet whose grid is included (explicit or first)
        columns: Columns of the active sheet, ordered
        rows: Rows of the active sheet, ordered, without cells
        cells: Stored cells of the active sheet
        merges: Merges of the active sheet
    """
    sheets: List[SheetInfo] = field(default_factory=list)
    active_sheet_id: Optional[str] = None
    columns: List[Column] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    cells: List[CellRecord] = field(default_factory=list)
    merges: List[Merge] = field(default_factory=list)
