"""
Abstract store interface for sheet persistence backends.

The SheetStore protocol defines the contract every backend must satisfy: fetch
a sheet's full structure, overwrite it with a new snapshot, and manage the
sheets and spreadsheets that own the grids.
Concrete implementations include MemoryStore (in-process dictionaries) and
GSheetsStore (tables kept in a Google spreadsheet via gspread).

Saves are full-snapshot overwrites: the store replaces everything it holds
for the sheet with what it is given. There are no per-cell updates.
"""

from typing import List, Optional, Protocol, Sequence

from gridsheet.spreadsheet.model import Column, Merge, Row
from gridsheet.spreadsheet.records import CellRecord, SheetData, SheetInfo, SpreadsheetInfo


class SheetStore(Protocol):
    """Protocol for sheet persistence backends.

    All methods may raise StoreError when the backend fails; unknown ids
    raise StoreError as well.
    """

    def fetch_sheet_data(
        self, spreadsheet_id: str, sheet_id: Optional[str] = None
    ) -> SheetData:
        """Fetch the sibling sheets and one sheet's full structure.

        Args:
            spreadsheet_id: Spreadsheet to read
            sheet_id: Sheet to treat as active; the first sheet by order
                      when None or unknown

        Returns:
            SheetData whose columns/rows/cells/merges belong to the active
            sheet. Columns empty means the sheet has never been saved and the
            caller should seed it.
        """
        ...

    def save_sheet_data(
        self,
        spreadsheet_id: str,
        columns: Sequence[Column],
        rows: Sequence[Row],
        cells: Sequence[CellRecord],
        sheet_id: Optional[str] = None,
        merges: Optional[Sequence[Merge]] = None,
    ) -> None:
        """Replace a sheet's stored structure with a full snapshot.

        Args:
            spreadsheet_id: Owning spreadsheet (its updated_at is touched)
            columns: Every column, in order
            rows: Every row, in order (cells are taken from ``cells``)
            cells: A record for every cell holding a value or a style
            sheet_id: Sheet to overwrite; the first sheet when None
            merges: Merged regions; None stores no merges
        """
        ...

    def list_sheets(self, spreadsheet_id: str) -> List[SheetInfo]:
        """Sheets of a spreadsheet, ordered by order_index."""
        ...

    def add_sheet(self, spreadsheet_id: str, name: str, order_index: int) -> SheetInfo:
        """Create an empty sheet."""
        ...

    def rename_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        ...

    def delete_sheet(self, sheet_id: str) -> None:
        """Delete a sheet and everything stored for it."""
        ...

    def duplicate_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        """Copy a sheet's structure and cells into a new sheet placed last."""
        ...

    def create_spreadsheet(self, name: str, description: str = "") -> SpreadsheetInfo:
        """Create a spreadsheet together with its first sheet."""
        ...

    def get_spreadsheet(self, spreadsheet_id: str) -> SpreadsheetInfo:
        ...

    def list_spreadsheets(self) -> List[SpreadsheetInfo]:
        """Every spreadsheet, most recently created first."""
        ...

    def update_spreadsheet(
        self,
        spreadsheet_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SpreadsheetInfo:
        """Change a spreadsheet's name and/or description; fields left None are kept."""
        ...

    def delete_spreadsheet(self, spreadsheet_id: str) -> None:
        """Delete a spreadsheet and, with it, all of its sheets."""
        ...
