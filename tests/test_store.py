"""
Unit tests for sheet stores.

Tests cover:
- MemoryStore: spreadsheet and sheet CRUD, cascades, duplicate, unknown ids
- GSheetsStore: table layout, save/fetch round trips, one write per table,
  stale row clearing, retry with backoff and error wrapping
- Live Google Sheets round trip (marked @pytest.mark.slow, skipped by default)

Usage:
    pytest tests/test_store.py -v                # fast tests only
    pytest tests/test_store.py -v --run-slow     # include the live test
"""

import os
from unittest.mock import Mock

import gspread
import pytest
from google.auth.exceptions import TransportError

from gridsheet.exceptions import StoreError
from gridsheet.persistence import build_snapshot, restore_grid
from gridsheet.spreadsheet.model import CellStyle, ColumnType, Range
from gridsheet.store.gsheets import TABLES, GSheetsStore
from tests.helpers.mock_gspread import make_api_error, make_backing_spreadsheet


def save_grid(store, spreadsheet_id, sheet_id, grid):
    snapshot = build_snapshot(grid, spreadsheet_id, sheet_id)
    store.save_sheet_data(
        spreadsheet_id,
        snapshot.columns,
        snapshot.rows,
        snapshot.cells,
        sheet_id,
        snapshot.merges,
    )


def decorated(grid):
    """The fixture grid with a header row, a style, a type, a width and a merge."""
    result = grid.toggle_header(grid.rows[0].id)
    result = result.apply_style(result.rows[1].id, result.columns[0].id, CellStyle(bold=True, bg_color="#ffeeaa"))
    result = result.set_column_type(result.columns[0].id, ColumnType.NUMBER)
    result = result.set_column_width(result.columns[1].id, 220)
    return result.add_merge(Range(1, 1, 2, 2))


def assert_same_grid(restored, grid):
    assert [c.id for c in restored.columns] == [c.id for c in grid.columns]
    assert [r.id for r in restored.rows] == [r.id for r in grid.rows]
    assert [c.type for c in restored.columns] == [c.type for c in grid.columns]
    assert [c.width for c in restored.columns] == [c.width for c in grid.columns]
    assert [r.is_header for r in restored.rows] == [r.is_header for r in grid.rows]
    for r in range(grid.row_count):
        for c in range(grid.column_count):
            assert restored.raw_value(r, c) == grid.raw_value(r, c)
            original = grid.cell(r, c)
            if original is not None:
                assert restored.cell(r, c).style == original.style
    assert [m.range for m in restored.merges] == [m.range for m in grid.merges]


class TestMemoryStore:
    """Test suite for the in-process store."""

    def test_create_spreadsheet_has_one_sheet(self, store, spreadsheet):
        sheets = store.list_sheets(spreadsheet.id)
        assert [s.name for s in sheets] == ["Sheet 1"]
        assert store.get_spreadsheet(spreadsheet.id).description == "Quarterly numbers"

    def test_fetch_empty_sheet(self, store, spreadsheet):
        data = store.fetch_sheet_data(spreadsheet.id)
        assert data.active_sheet_id == store.list_sheets(spreadsheet.id)[0].id
        assert data.columns == []
        assert data.cells == []

    def test_save_and_fetch(self, store, spreadsheet, grid):
        sheet_id = store.list_sheets(spreadsheet.id)[0].id
        original = decorated(grid)
        save_grid(store, spreadsheet.id, sheet_id, original)
        assert store.save_count == 1
        assert_same_grid(restore_grid(store.fetch_sheet_data(spreadsheet.id, sheet_id)), original)

    def test_save_replaces_whole_sheet(self, store, spreadsheet, grid):
        sheet_id = store.list_sheets(spreadsheet.id)[0].id
        save_grid(store, spreadsheet.id, sheet_id, grid)
        smaller = grid.delete_row(grid.rows[0].id)
        save_grid(store, spreadsheet.id, sheet_id, smaller)
        data = store.fetch_sheet_data(spreadsheet.id, sheet_id)
        assert len(data.rows) == 3
        assert {c.value for c in data.cells} == {"abc", "y", "10", "z", "=SUM(A1:A3)"}

    def test_save_updates_timestamp(self, store, spreadsheet, grid):
        sheet_id = store.list_sheets(spreadsheet.id)[0].id
        before = store.get_spreadsheet(spreadsheet.id).updated_at
        save_grid(store, spreadsheet.id, sheet_id, grid)
        assert store.get_spreadsheet(spreadsheet.id).updated_at >= before

    def test_unknown_sheet_falls_back_to_first(self, store, spreadsheet):
        data = store.fetch_sheet_data(spreadsheet.id, "missing")
        assert data.active_sheet_id == store.list_sheets(spreadsheet.id)[0].id

    def test_sheet_crud(self, store, spreadsheet):
        added = store.add_sheet(spreadsheet.id, "Sheet 2", 1)
        renamed = store.rename_sheet(added.id, "Totals")
        assert renamed.name == "Totals"
        assert [s.name for s in store.list_sheets(spreadsheet.id)] == ["Sheet 1", "Totals"]
        store.delete_sheet(added.id)
        assert [s.name for s in store.list_sheets(spreadsheet.id)] == ["Sheet 1"]

    def test_duplicate_sheet_copies_with_new_ids(self, store, spreadsheet, grid):
        sheet_id = store.list_sheets(spreadsheet.id)[0].id
        save_grid(store, spreadsheet.id, sheet_id, grid)
        copy = store.duplicate_sheet(sheet_id, "Sheet 1 (copy)")
        assert store.list_sheets(spreadsheet.id)[-1].id == copy.id
        data = store.fetch_sheet_data(spreadsheet.id, copy.id)
        assert {c.id for c in data.columns}.isdisjoint({c.id for c in grid.columns})
        restored = restore_grid(data)
        assert restored.raw_value(3, 2) == "=SUM(A1:A3)"

    def test_delete_spreadsheet_cascades(self, store, spreadsheet):
        store.add_sheet(spreadsheet.id, "Sheet 2", 1)
        store.delete_spreadsheet(spreadsheet.id)
        with pytest.raises(StoreError, match="Unknown spreadsheet"):
            store.list_sheets(spreadsheet.id)

    def test_list_and_update_spreadsheets(self, store, spreadsheet):
        other = store.create_spreadsheet("Forecast")
        listed = store.list_spreadsheets()
        assert {s.id for s in listed} == {spreadsheet.id, other.id}
        assert [s.created_at for s in listed] == sorted((s.created_at for s in listed), reverse=True)
        updated = store.update_spreadsheet(spreadsheet.id, name="Budget 2025")
        assert updated.name == "Budget 2025"
        assert updated.description == "Quarterly numbers"
        assert updated.updated_at >= spreadsheet.updated_at
        assert store.get_spreadsheet(spreadsheet.id) == updated
        with pytest.raises(StoreError, match="Unknown spreadsheet"):
            store.update_spreadsheet("nope", name="x")

    def test_unknown_ids(self, store):
        with pytest.raises(StoreError):
            store.get_spreadsheet("nope")
        with pytest.raises(StoreError, match="Unknown sheet"):
            store.rename_sheet("nope", "x")
        with pytest.raises(StoreError):
            store.fetch_sheet_data("nope")


class TestGSheetsStore:
    """Test suite for the Google Sheets store against mocked worksheets."""

    @pytest.fixture
    def backing(self):
        return make_backing_spreadsheet()

    @pytest.fixture
    def gstore(self, backing):
        return GSheetsStore(backing, max_retries=2, base_delay=0)

    def test_tables_created_with_headers(self, gstore, backing):
        gstore.create_spreadsheet("Budget")
        assert backing.tables["spreadsheets"].backing[0] == list(TABLES["spreadsheets"])
        assert backing.tables["sheets"].backing[0] == list(TABLES["sheets"])
        assert backing.tables["sheets"].backing[1][2] == "Sheet 1"

    def test_existing_tables_reused(self, gstore, backing):
        gstore.create_spreadsheet("Budget")
        gstore.create_spreadsheet("Other")
        assert backing.add_worksheet.call_count == 2

    def test_save_and_fetch_round_trip(self, gstore, grid):
        info = gstore.create_spreadsheet("Budget")
        sheet_id = gstore.list_sheets(info.id)[0].id
        original = decorated(grid)
        save_grid(gstore, info.id, sheet_id, original)
        data = gstore.fetch_sheet_data(info.id)
        assert data.active_sheet_id == sheet_id
        assert [s.name for s in data.sheets] == ["Sheet 1"]
        assert_same_grid(restore_grid(data), original)

    def test_booleans_and_styles_encoded(self, gstore, backing, grid):
        info = gstore.create_spreadsheet("Budget")
        sheet_id = gstore.list_sheets(info.id)[0].id
        save_grid(gstore, info.id, sheet_id, decorated(grid))
        rows = backing.tables["rows"].backing
        header = rows[0]
        flags = [r[header.index("is_header")] for r in rows[1:]]
        assert flags == ["TRUE", "FALSE", "FALSE", "FALSE"]
        cells = backing.tables["cells"].backing
        styles = [r[cells[0].index("style")] for r in cells[1:]]
        assert '{"bgColor": "#ffeeaa", "bold": true}' in styles

    def test_one_write_per_table_per_save(self, gstore, backing, grid):
        info = gstore.create_spreadsheet("Budget")
        sheet_id = gstore.list_sheets(info.id)[0].id
        save_grid(gstore, info.id, sheet_id, grid)
        before = {t: ws.update.call_count for t, ws in backing.tables.items()}
        save_grid(gstore, info.id, sheet_id, grid)
        after = {t: ws.update.call_count for t, ws in backing.tables.items()}
        for table in ("columns", "rows", "cells", "merges", "spreadsheets"):
            assert after[table] == before[table] + 1
        assert after["sheets"] == before["sheets"]

    def test_stale_rows_cleared(self, gstore, backing, grid):
        """A smaller save blanks the rows the previous save left behind."""
        info = gstore.create_spreadsheet("Budget")
        sheet_id = gstore.list_sheets(info.id)[0].id
        save_grid(gstore, info.id, sheet_id, grid)
        emptied = grid.set_values(
            (row.id, col_id, "") for row, col_id, _ in grid.non_empty_cells()
        ).set_cell_value(grid.rows[0].id, grid.columns[0].id, "only")
        save_grid(gstore, info.id, sheet_id, emptied)
        backing_cells = backing.tables["cells"].backing
        assert len(backing_cells) == 8
        assert all(cell == "" for row in backing_cells[2:] for cell in row)
        data = gstore.fetch_sheet_data(info.id, sheet_id)
        assert [c.value for c in data.cells] == ["only"]

    def test_sheets_are_isolated(self, gstore, grid):
        info = gstore.create_spreadsheet("Budget")
        first = gstore.list_sheets(info.id)[0]
        second = gstore.add_sheet(info.id, "Sheet 2", 1)
        save_grid(gstore, info.id, first.id, grid)
        save_grid(gstore, info.id, second.id, grid.set_cell_value(grid.rows[0].id, grid.columns[0].id, "other"))
        assert restore_grid(gstore.fetch_sheet_data(info.id, first.id)).raw_value(0, 0) == "5"
        assert restore_grid(gstore.fetch_sheet_data(info.id, second.id)).raw_value(0, 0) == "other"

    def test_sheet_crud(self, gstore, grid):
        info = gstore.create_spreadsheet("Budget")
        first = gstore.list_sheets(info.id)[0]
        save_grid(gstore, info.id, first.id, grid)
        assert gstore.rename_sheet(first.id, "Data").name == "Data"
        copy = gstore.duplicate_sheet(first.id, "Data (copy)")
        assert [s.name for s in gstore.list_sheets(info.id)] == ["Data", "Data (copy)"]
        restored = restore_grid(gstore.fetch_sheet_data(info.id, copy.id))
        assert restored.raw_value(1, 0) == "abc"
        assert {c.id for c in restored.columns}.isdisjoint({c.id for c in grid.columns})
        gstore.delete_sheet(first.id)
        assert [s.id for s in gstore.list_sheets(info.id)] == [copy.id]

    def test_delete_spreadsheet(self, gstore):
        info = gstore.create_spreadsheet("Budget")
        gstore.delete_spreadsheet(info.id)
        assert gstore.list_sheets(info.id) == []
        with pytest.raises(StoreError, match="Unknown spreadsheet"):
            gstore.get_spreadsheet(info.id)

    def test_list_and_update_spreadsheets(self, gstore):
        first = gstore.create_spreadsheet("Budget", "Quarterly numbers")
        second = gstore.create_spreadsheet("Forecast")
        assert {s.id for s in gstore.list_spreadsheets()} == {first.id, second.id}
        updated = gstore.update_spreadsheet(first.id, description="Yearly numbers")
        assert (updated.name, updated.description) == ("Budget", "Yearly numbers")
        assert gstore.get_spreadsheet(first.id).description == "Yearly numbers"
        assert gstore.get_spreadsheet(second.id).name == "Forecast"
        with pytest.raises(StoreError, match="Unknown spreadsheet"):
            gstore.update_spreadsheet("nope", name="x")

    def test_retry_then_success(self, gstore, backing):
        """Transient API errors are retried before giving up."""
        original = backing.worksheet.side_effect
        failures = [make_api_error(503), make_api_error(429, "Quota exceeded")]

        def flaky_worksheet(title):
            if failures:
                raise failures.pop(0)
            return original(title)

        backing.worksheet.side_effect = flaky_worksheet
        info = gstore.create_spreadsheet("Budget")
        assert gstore.get_spreadsheet(info.id).name == "Budget"

    def test_retry_exhaustion_raises_store_error(self, gstore, backing):
        backing.worksheet.side_effect = make_api_error(503, "Service unavailable")
        with pytest.raises(StoreError) as exc_info:
            gstore.list_sheets("any")
        assert "after 3 attempts" in str(exc_info.value)
        assert "open table 'sheets'" in str(exc_info.value)
        assert backing.worksheet.call_count == 3

    @pytest.mark.parametrize("error", [
        ConnectionError("Connection reset by peer"),
        TransportError("Token refresh failed"),
    ])
    def test_transport_errors_retried_and_wrapped(self, gstore, backing, error):
        backing.worksheet.side_effect = error
        with pytest.raises(StoreError, match="after 3 attempts") as exc_info:
            gstore.list_sheets("any")
        assert exc_info.value.__cause__ is error
        assert backing.worksheet.call_count == 3

    def test_open_wraps_api_error(self):
        gc = Mock(spec=gspread.Client)
        gc.open_by_key.side_effect = make_api_error(404, "Requested entity was not found")
        with pytest.raises(StoreError, match="Failed to open backing spreadsheet"):
            GSheetsStore.open(gc, "missing-key")


@pytest.mark.slow
class TestLiveGSheetsStore:
    """Round trip against a real backing spreadsheet.

    Set GRIDSHEET_TEST_BACKING_KEY to the key of a spreadsheet the
    authenticated account may edit.
    """

    @pytest.fixture(scope="class")
    def gc(self):
        try:
            return gspread.service_account()
        except Exception:
            pass
        try:
            return gspread.oauth()
        except Exception as exc:
            pytest.skip(f"No Google credentials available: {exc}")

    def test_round_trip(self, gc, grid):
        key = os.environ.get("GRIDSHEET_TEST_BACKING_KEY")
        if not key:
            pytest.skip("GRIDSHEET_TEST_BACKING_KEY is not set")
        gstore = GSheetsStore.open(gc, key)
        info = gstore.create_spreadsheet("gridsheet live test")
        try:
            sheet_id = gstore.list_sheets(info.id)[0].id
            original = decorated(grid)
            save_grid(gstore, info.id, sheet_id, original)
            assert_same_grid(restore_grid(gstore.fetch_sheet_data(info.id, sheet_id)), original)
        finally:
            gstore.delete_spreadsheet(info.id)
