"""
In-process sheet store.

Keeps spreadsheets, sheets and per-sheet snapshots in dictionaries. A save
builds the sheet's complete new snapshot first and then swaps it in with a
single assignment, so a reader never sees a half-written sheet.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from gridsheet.exceptions import StoreError
from gridsheet.spreadsheet.model import Column, Merge, Row, new_id
from gridsheet.spreadsheet.records import (
    CellRecord,
    SheetData,
    SheetInfo,
    SpreadsheetInfo,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _StoredSheet:
    columns: Tuple[Column, ...] = ()
    rows: Tuple[Row, ...] = ()
    cells: Tuple[CellRecord, ...] = ()
    merges: Tuple[Merge, ...] = ()


class MemoryStore:
    """SheetStore kept in memory.

    Attributes:
        save_count: Number of save_sheet_data calls that succeeded
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._spreadsheets: Dict[str, SpreadsheetInfo] = {}
        self._sheets: Dict[str, SheetInfo] = {}
        self._data: Dict[str, _StoredSheet] = {}
        self.save_count = 0

    # ------------------------------------------------------------------
    # Spreadsheets
    # ------------------------------------------------------------------

    def create_spreadsheet(self, name: str, description: str = "") -> SpreadsheetInfo:
        info = SpreadsheetInfo(id=new_id(), name=name, description=description)
        with self._lock:
            self._spreadsheets[info.id] = info
        self.add_sheet(info.id, "Sheet 1", 0)
        return info

    def get_spreadsheet(self, spreadsheet_id: str) -> SpreadsheetInfo:
        try:
            return self._spreadsheets[spreadsheet_id]
        except KeyError:
            raise StoreError(f"Unknown spreadsheet: {spreadsheet_id}") from None

    def list_spreadsheets(self) -> List[SpreadsheetInfo]:
        return sorted(self._spreadsheets.values(), key=lambda s: s.created_at, reverse=True)

    def update_spreadsheet(
        self,
        spreadsheet_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SpreadsheetInfo:
        info = self.get_spreadsheet(spreadsheet_id)
        info = replace(
            info,
            name=info.name if name is None else name,
            description=info.description if description is None else description,
            updated_at=utc_now(),
        )
        with self._lock:
            self._spreadsheets[spreadsheet_id] = info
        return info

    def delete_spreadsheet(self, spreadsheet_id: str) -> None:
        with self._lock:
            if self._spreadsheets.pop(spreadsheet_id, None) is None:
                raise StoreError(f"Unknown spreadsheet: {spreadsheet_id}")
            for sheet_id in [s.id for s in self._sheets.values() if s.spreadsheet_id == spreadsheet_id]:
                del self._sheets[sheet_id]
                self._data.pop(sheet_id, None)

    # ------------------------------------------------------------------
    # Sheets
    # ------------------------------------------------------------------

    def list_sheets(self, spreadsheet_id: str) -> List[SheetInfo]:
        self.get_spreadsheet(spreadsheet_id)
        sheets = [s for s in self._sheets.values() if s.spreadsheet_id == spreadsheet_id]
        return sorted(sheets, key=lambda s: s.order_index)

    def add_sheet(self, spreadsheet_id: str, name: str, order_index: int) -> SheetInfo:
        self.get_spreadsheet(spreadsheet_id)
        info = SheetInfo(id=new_id(), spreadsheet_id=spreadsheet_id, name=name, order_index=order_index)
        with self._lock:
            self._sheets[info.id] = info
            self._data[info.id] = _StoredSheet()
        return info

    def rename_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        info = replace(self._sheet(sheet_id), name=name)
        with self._lock:
            self._sheets[sheet_id] = info
        return info

    def delete_sheet(self, sheet_id: str) -> None:
        self._sheet(sheet_id)
        with self._lock:
            del self._sheets[sheet_id]
            self._data.pop(sheet_id, None)

    def duplicate_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        source = self._sheet(sheet_id)
        siblings = self.list_sheets(source.spreadsheet_id)
        order_index = max(s.order_index for s in siblings) + 1
        copy = self.add_sheet(source.spreadsheet_id, name, order_index)

        stored = self._data.get(sheet_id, _StoredSheet())
        column_ids = {c.id: new_id() for c in stored.columns}
        row_ids = {r.id: new_id() for r in stored.rows}
        duplicated = _StoredSheet(
            columns=tuple(replace(c, id=column_ids[c.id]) for c in stored.columns),
            rows=tuple(replace(r, id=row_ids[r.id]) for r in stored.rows),
            cells=tuple(
                CellRecord(
                    row_id=row_ids[cell.row_id],
                    column_id=column_ids[cell.column_id],
                    value=cell.value,
                    style=cell.style,
                )
                for cell in stored.cells
                if cell.row_id in row_ids and cell.column_id in column_ids
            ),
            merges=tuple(replace(m, id=new_id()) for m in stored.merges),
        )
        with self._lock:
            self._data[copy.id] = duplicated
        return copy

    def _sheet(self, sheet_id: str) -> SheetInfo:
        try:
            return self._sheets[sheet_id]
        except KeyError:
            raise StoreError(f"Unknown sheet: {sheet_id}") from None

    def _resolve_sheet(self, spreadsheet_id: str, sheet_id: Optional[str]) -> Tuple[List[SheetInfo], SheetInfo]:
        sheets = self.list_sheets(spreadsheet_id)
        if not sheets:
            raise StoreError(f"Spreadsheet has no sheets: {spreadsheet_id}")
        active = next((s for s in sheets if s.id == sheet_id), sheets[0])
        return sheets, active

    # ------------------------------------------------------------------
    # Sheet data
    # ------------------------------------------------------------------

    def fetch_sheet_data(self, spreadsheet_id: str, sheet_id: Optional[str] = None) -> SheetData:
        sheets, active = self._resolve_sheet(spreadsheet_id, sheet_id)
        stored = self._data.get(active.id, _StoredSheet())
        return SheetData(
            sheets=sheets,
            active_sheet_id=active.id,
            columns=list(stored.columns),
            rows=list(stored.rows),
            cells=list(stored.cells),
            merges=list(stored.merges),
        )

    def save_sheet_data(
        self,
        spreadsheet_id: str,
        columns: Sequence[Column],
        rows: Sequence[Row],
        cells: Sequence[CellRecord],
        sheet_id: Optional[str] = None,
        merges: Optional[Sequence[Merge]] = None,
    ) -> None:
        _, active = self._resolve_sheet(spreadsheet_id, sheet_id)
        snapshot = _StoredSheet(
            columns=tuple(columns),
            rows=tuple(replace(r, cells={}) for r in rows),
            cells=tuple(cells),
            merges=tuple(merges or ()),
        )
        with self._lock:
            self._data[active.id] = snapshot
            self._spreadsheets[spreadsheet_id] = replace(
                self._spreadsheets[spreadsheet_id], updated_at=utc_now()
            )
            self.save_count += 1
        logger.debug(
            "Stored sheet %s: %d columns, %d rows, %d cells, %d merges",
            active.id,
            len(snapshot.columns),
            len(snapshot.rows),
            len(snapshot.cells),
            len(snapshot.merges),
        )
