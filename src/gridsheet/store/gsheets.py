"""
Google Sheets-backed sheet store.

This module provides GSheetsStore, which keeps every table of the store as one
worksheet of a single backing Google spreadsheet:

    spreadsheets | sheets | columns | rows | cells | merges

The first row of each worksheet is a header naming the fields. A save reads a
table, drops the sheet's old records, appends the new ones and writes the
whole table back with one ``update`` call (padding with blank rows so stale
rows are cleared in the same request). It handles:
- Error wrapping of gspread ``APIError`` and transport failures into ``StoreError``
- Retry logic with exponential backoff for transient failures
- Creating missing table worksheets on first use

All calls are blocking; the persistence scheduler runs them in a worker thread.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

import gspread
from google.auth.exceptions import TransportError
from gspread.exceptions import APIError, WorksheetNotFound

from gridsheet.config import get_settings
from gridsheet.exceptions import StoreError
from gridsheet.spreadsheet.model import CellStyle, Column, Merge, Row, new_id
from gridsheet.spreadsheet.records import (
    CellRecord,
    SheetData,
    SheetInfo,
    SpreadsheetInfo,
    utc_now,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

Record = Dict[str, str]

TABLES: Dict[str, Tuple[str, ...]] = {
    "spreadsheets": ("id", "name", "description", "created_at", "updated_at"),
    "sheets": ("id", "spreadsheet_id", "name", "order_index"),
    "columns": ("sheet_id", "id", "name", "type", "width", "order_index"),
    "rows": ("sheet_id", "id", "order_index", "height", "is_header"),
    "cells": ("sheet_id", "id", "row_id", "column_id", "value", "style"),
    "merges": ("sheet_id", "id", "start_row", "start_col", "end_row", "end_col"),
}

# Tables holding one sheet's grid, keyed by sheet_id.
SHEET_TABLES = ("columns", "rows", "cells", "merges")

# requests raises OSError subclasses for dropped connections and timeouts.
RETRYABLE_ERRORS = (APIError, TransportError, OSError)


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if value is None:
        return ""
    return str(value)


def _column_record(sheet_id: str, column: Column) -> Record:
    return {"sheet_id": sheet_id, **{k: _encode(v) for k, v in column.to_dict().items()}}


def _row_record(sheet_id: str, row: Row) -> Record:
    return {"sheet_id": sheet_id, **{k: _encode(v) for k, v in row.to_dict().items()}}


def _cell_record(sheet_id: str, cell: CellRecord) -> Record:
    return {
        "sheet_id": sheet_id,
        "id": cell.id,
        "row_id": cell.row_id,
        "column_id": cell.column_id,
        "value": cell.value,
        "style": json.dumps(cell.style.to_dict()) if not cell.style.is_empty() else "",
    }


def _merge_record(sheet_id: str, merge: Merge) -> Record:
    return {"sheet_id": sheet_id, **{k: _encode(v) for k, v in merge.to_dict().items()}}


def _row_from_record(record: Mapping[str, str]) -> Row:
    data = dict(record)
    data["is_header"] = record.get("is_header", "").upper() == "TRUE"
    return Row.from_dict(data)


def _cell_from_record(record: Mapping[str, str]) -> CellRecord:
    style = record.get("style") or ""
    return CellRecord(
        id=record.get("id") or new_id(),
        row_id=record["row_id"],
        column_id=record["column_id"],
        value=record.get("value") or "",
        style=CellStyle.from_dict(json.loads(style)) if style else CellStyle(),
    )


class GSheetsStore:
    """SheetStore backed by worksheets of one Google spreadsheet.

    Attributes:
        spreadsheet: The backing gspread Spreadsheet
        max_retries: Maximum number of retry attempts for transient failures
        base_delay: Base delay in seconds for exponential backoff
    """

    def __init__(
        self,
        spreadsheet: gspread.Spreadsheet,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> None:
        """Initialize the store.

        Args:
            spreadsheet: Backing spreadsheet, e.g. ``gc.open_by_key(key)``
            max_retries: Maximum retry attempts (settings default when None)
            base_delay: Base delay for exponential backoff in seconds
                        (settings default when None)
        """
        settings = get_settings()
        self.spreadsheet = spreadsheet
        self.max_retries = settings.store_max_retries if max_retries is None else max_retries
        self.base_delay = settings.store_base_delay if base_delay is None else base_delay
        self._worksheets: Dict[str, gspread.Worksheet] = {}

    @classmethod
    def open(cls, gc: gspread.Client, key: str, **kwargs: Any) -> "GSheetsStore":
        """Open the backing spreadsheet by key with an authenticated client.

        Raises:
            StoreError: If the spreadsheet cannot be opened
        """
        try:
            spreadsheet = gc.open_by_key(key)
        except RETRYABLE_ERRORS as e:
            raise StoreError(f"Failed to open backing spreadsheet '{key}': {e}") from e
        return cls(spreadsheet, **kwargs)

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    def _retry_operation(self, operation: Callable[[], _T], description: str) -> _T:
        """Execute an operation with retry logic and exponential backoff.

        Args:
            operation: Callable that performs the operation
            description: Human-readable description for error messages

        Returns:
            Result of the operation

        Raises:
            StoreError: If operation fails after all retries
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                return operation()
            except RETRYABLE_ERRORS as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        "Store call failed (%s), retrying in %.1fs: %s", description, delay, e
                    )
                    time.sleep(delay)

        raise StoreError(
            f"Failed to {description} after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error

    def _worksheet(self, table: str) -> gspread.Worksheet:
        if table in self._worksheets:
            return self._worksheets[table]

        def open_or_create() -> gspread.Worksheet:
            try:
                return self.spreadsheet.worksheet(table)
            except WorksheetNotFound:
                headers = TABLES[table]
                worksheet = self.spreadsheet.add_worksheet(title=table, rows=1000, cols=len(headers))
                worksheet.update([list(headers)], range_name="A1")
                logger.info("Created store table '%s'", table)
                return worksheet

        worksheet = self._retry_operation(open_or_create, f"open table '{table}'")
        self._worksheets[table] = worksheet
        return worksheet

    def _read(self, table: str) -> List[Record]:
        worksheet = self._worksheet(table)
        values = self._retry_operation(worksheet.get_all_values, f"read table '{table}'")
        if not values:
            return []
        header = values[0]
        records = []
        for raw in values[1:]:
            if not any(cell != "" for cell in raw):
                continue
            padded = list(raw) + [""] * (len(header) - len(raw))
            records.append(dict(zip(header, padded)))
        return records

    def _write(self, table: str, records: Sequence[Record], previous_count: int) -> None:
        """Rewrite a whole table in one update call.

        Args:
            table: Table name
            records: Every record the table should hold afterwards
            previous_count: Records the table held before, so that leftover
                            rows are blanked out in the same request
        """
        headers = TABLES[table]
        matrix = [list(headers)]
        matrix.extend([record.get(h, "") for h in headers] for record in records)
        blank = [""] * len(headers)
        matrix.extend(list(blank) for _ in range(previous_count - len(records)))

        worksheet = self._worksheet(table)

        def write() -> None:
            if len(matrix) > worksheet.row_count:
                worksheet.add_rows(len(matrix) - worksheet.row_count)
            worksheet.update(matrix, range_name="A1")

        self._retry_operation(write, f"write table '{table}'")

    def _replace_for_sheet(self, table: str, sheet_id: str, new_records: Sequence[Record]) -> None:
        existing = self._read(table)
        kept = [r for r in existing if r.get("sheet_id") != sheet_id]
        self._write(table, kept + list(new_records), len(existing))

    # ------------------------------------------------------------------
    # Spreadsheets
    # ------------------------------------------------------------------

    def create_spreadsheet(self, name: str, description: str = "") -> SpreadsheetInfo:
        info = SpreadsheetInfo(id=new_id(), name=name, description=description)
        existing = self._read("spreadsheets")
        self._write("spreadsheets", existing + [info.to_dict()], len(existing))
        self.add_sheet(info.id, "Sheet 1", 0)
        return info

    def get_spreadsheet(self, spreadsheet_id: str) -> SpreadsheetInfo:
        for record in self._read("spreadsheets"):
            if record["id"] == spreadsheet_id:
                return SpreadsheetInfo.from_dict(record)
        raise StoreError(f"Unknown spreadsheet: {spreadsheet_id}")

    def list_spreadsheets(self) -> List[SpreadsheetInfo]:
        infos = [SpreadsheetInfo.from_dict(r) for r in self._read("spreadsheets")]
        return sorted(infos, key=lambda s: s.created_at, reverse=True)

    def update_spreadsheet(
        self,
        spreadsheet_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SpreadsheetInfo:
        existing = self._read("spreadsheets")
        for record in existing:
            if record["id"] == spreadsheet_id:
                if name is not None:
                    record["name"] = name
                if description is not None:
                    record["description"] = description
                record["updated_at"] = utc_now()
                self._write("spreadsheets", existing, len(existing))
                return SpreadsheetInfo.from_dict(record)
        raise StoreError(f"Unknown spreadsheet: {spreadsheet_id}")

    def delete_spreadsheet(self, spreadsheet_id: str) -> None:
        existing = self._read("spreadsheets")
        kept = [r for r in existing if r["id"] != spreadsheet_id]
        if len(kept) == len(existing):
            raise StoreError(f"Unknown spreadsheet: {spreadsheet_id}")
        for sheet in self.list_sheets(spreadsheet_id):
            self.delete_sheet(sheet.id)
        self._write("spreadsheets", kept, len(existing))

    def _touch_spreadsheet(self, spreadsheet_id: str) -> None:
        existing = self._read("spreadsheets")
        for record in existing:
            if record["id"] == spreadsheet_id:
                record["updated_at"] = utc_now()
        self._write("spreadsheets", existing, len(existing))

    # ------------------------------------------------------------------
    # Sheets
    # ------------------------------------------------------------------

    def list_sheets(self, spreadsheet_id: str) -> List[SheetInfo]:
        sheets = [
            SheetInfo.from_dict(r)
            for r in self._read("sheets")
            if r["spreadsheet_id"] == spreadsheet_id
        ]
        return sorted(sheets, key=lambda s: s.order_index)

    def _sheet(self, sheet_id: str) -> Tuple[List[Record], SheetInfo]:
        records = self._read("sheets")
        for record in records:
            if record["id"] == sheet_id:
                return records, SheetInfo.from_dict(record)
        raise StoreError(f"Unknown sheet: {sheet_id}")

    def add_sheet(self, spreadsheet_id: str, name: str, order_index: int) -> SheetInfo:
        info = SheetInfo(id=new_id(), spreadsheet_id=spreadsheet_id, name=name, order_index=order_index)
        existing = self._read("sheets")
        self._write("sheets", existing + [{k: _encode(v) for k, v in info.to_dict().items()}], len(existing))
        return info

    def rename_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        records, info = self._sheet(sheet_id)
        for record in records:
            if record["id"] == sheet_id:
                record["name"] = name
        self._write("sheets", records, len(records))
        info.name = name
        return info

    def delete_sheet(self, sheet_id: str) -> None:
        records, _ = self._sheet(sheet_id)
        for table in SHEET_TABLES:
            self._replace_for_sheet(table, sheet_id, [])
        self._write("sheets", [r for r in records if r["id"] != sheet_id], len(records))

    def duplicate_sheet(self, sheet_id: str, name: str) -> SheetInfo:
        _, source = self._sheet(sheet_id)
        siblings = self.list_sheets(source.spreadsheet_id)
        copy = self.add_sheet(
            source.spreadsheet_id, name, max(s.order_index for s in siblings) + 1
        )

        data = self._load_grid(sheet_id)
        column_ids = {c.id: new_id() for c in data.columns}
        row_ids = {r.id: new_id() for r in data.rows}
        self._replace_for_sheet("columns", copy.id, [
            {**_column_record(copy.id, c), "id": column_ids[c.id]} for c in data.columns
        ])
        self._replace_for_sheet("rows", copy.id, [
            {**_row_record(copy.id, r), "id": row_ids[r.id]} for r in data.rows
        ])
        self._replace_for_sheet("cells", copy.id, [
            {**_cell_record(copy.id, cell), "id": new_id(),
             "row_id": row_ids[cell.row_id], "column_id": column_ids[cell.column_id]}
            for cell in data.cells
            if cell.row_id in row_ids and cell.column_id in column_ids
        ])
        self._replace_for_sheet("merges", copy.id, [
            {**_merge_record(copy.id, m), "id": new_id()} for m in data.merges
        ])
        return copy

    # ------------------------------------------------------------------
    # Sheet data
    # ------------------------------------------------------------------

    def _load_grid(self, sheet_id: str) -> SheetData:
        def of_sheet(table: str) -> List[Record]:
            return [r for r in self._read(table) if r.get("sheet_id") == sheet_id]

        columns = sorted(
            (Column.from_dict(r) for r in of_sheet("columns")), key=lambda c: c.order_index
        )
        rows = sorted(
            (_row_from_record(r) for r in of_sheet("rows")), key=lambda r: r.order_index
        )
        return SheetData(
            active_sheet_id=sheet_id,
            columns=columns,
            rows=rows,
            cells=[_cell_from_record(r) for r in of_sheet("cells")],
            merges=[Merge.from_dict(r) for r in of_sheet("merges")],
        )

    def _resolve_sheet(self, spreadsheet_id: str, sheet_id: Optional[str]) -> Tuple[List[SheetInfo], SheetInfo]:
        sheets = self.list_sheets(spreadsheet_id)
        if not sheets:
            raise StoreError(f"Spreadsheet has no sheets: {spreadsheet_id}")
        return sheets, next((s for s in sheets if s.id == sheet_id), sheets[0])

    def fetch_sheet_data(self, spreadsheet_id: str, sheet_id: Optional[str] = None) -> SheetData:
        sheets, active = self._resolve_sheet(spreadsheet_id, sheet_id)
        data = self._load_grid(active.id)
        data.sheets = sheets
        return data

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
        self._replace_for_sheet("columns", active.id, [_column_record(active.id, c) for c in columns])
        self._replace_for_sheet("rows", active.id, [_row_record(active.id, r) for r in rows])
        self._replace_for_sheet("cells", active.id, [_cell_record(active.id, c) for c in cells])
        self._replace_for_sheet("merges", active.id, [_merge_record(active.id, m) for m in merges or ()])
        self._touch_spreadsheet(spreadsheet_id)
        logger.debug(
            "Stored sheet %s: %d columns, %d rows, %d cells",
            active.id,
            len(columns),
            len(rows),
            len(cells),
        )
