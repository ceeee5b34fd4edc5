"""
Unit tests for the sheet editor.

Tests cover:
- Loading: seeding empty sheets, restoring saved ones, fetch failures
- Edits: commit, undo/redo, rejected edits becoming notices
- Merges, styles, sorting through the selection
- Paste and resize committing once
- Sheet management: add, switch, rename, delete, duplicate
- Saving: debounced coalescing, save_now, failure and retry

Every scenario runs inside ``asyncio.run`` because edits schedule saves on the
running event loop.
"""

import asyncio

import pytest

from gridsheet.clipboard import MemoryClipboard
from gridsheet.config import GridSettings
from gridsheet.editor import UNDO_LIMIT, NoticeLevel, SheetEditor
from gridsheet.persistence import SaveStatus
from tests.helpers.stores import FlakyStore

WAIT = 0.2


@pytest.fixture
def flaky():
    return FlakyStore()


@pytest.fixture
def sheet(flaky):
    return flaky.create_spreadsheet("Budget")


@pytest.fixture
def editor(flaky, sheet, fast_settings):
    return SheetEditor(flaky, sheet.id, clipboard=MemoryClipboard(), settings=fast_settings)


async def loaded(editor):
    """Load the first sheet and flush the seed save so tests start clean."""
    assert await editor.load()
    await editor.save_now()
    editor.store.saves.clear()
    return editor


def cells_of(store, spreadsheet_id, sheet_id):
    data = store.fetch_sheet_data(spreadsheet_id, sheet_id)
    return {c.value for c in data.cells}


class TestLoading:
    """Test suite for loading sheets."""

    def test_empty_sheet_is_seeded_and_saved(self, editor, flaky, sheet):
        async def scenario():
            assert await editor.load()
            assert editor.status is SaveStatus.IDLE
            await asyncio.sleep(WAIT)

        asyncio.run(scenario())
        assert editor.loaded
        assert [c.name for c in editor.grid.columns] == ["A", "B", "C", "D", "E"]
        assert editor.grid.row_count == 10
        assert len(flaky.saves) == 1
        assert len(flaky.fetch_sheet_data(sheet.id).columns) == 5

    def test_saved_sheet_is_restored(self, editor, flaky, sheet, fast_settings):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(0, 0, "kept")
            await editor.save_now()
            fresh = SheetEditor(flaky, sheet.id, clipboard=MemoryClipboard(), settings=fast_settings)
            assert await fresh.load()
            return fresh

        fresh = asyncio.run(scenario())
        assert fresh.grid.raw_value(0, 0) == "kept"
        assert [c.id for c in fresh.grid.columns] == [c.id for c in editor.grid.columns]

    def test_fetch_failure_becomes_notice(self, editor, flaky):
        flaky.fail_fetches = 1

        async def scenario():
            return await editor.load()

        assert asyncio.run(scenario()) is False
        assert not editor.loaded
        assert editor.notices[-1].level is NoticeLevel.ERROR
        assert "Failed to load sheet" in editor.notices[-1].message


class TestEditing:
    """Test suite for cell edits and history."""

    def test_edit_and_display(self, editor):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(0, 0, "2")
            editor.edit_cell(1, 0, "3")
            editor.edit_cell(2, 0, "=SUM(A1:A2)")
            editor.close()

        asyncio.run(scenario())
        assert editor.display_value(2, 0) == "5"
        assert editor.grid.raw_value(2, 0) == "=SUM(A1:A2)"
        assert editor.layout()[2][0].display == "5"

    def test_undo_redo(self, editor):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(0, 0, "a")
            editor.edit_cell(0, 0, "b")
            assert editor.undo()
            assert editor.grid.raw_value(0, 0) == "a"
            assert editor.redo()
            assert editor.grid.raw_value(0, 0) == "b"
            editor.undo()
            editor.edit_cell(0, 1, "c")
            assert not editor.can_redo
            editor.close()

        asyncio.run(scenario())

    def test_undo_limit(self, editor):
        async def scenario():
            await loaded(editor)
            for i in range(UNDO_LIMIT + 5):
                editor.edit_cell(0, 0, str(i))
            undone = 0
            while editor.undo():
                undone += 1
            editor.close()
            return undone

        assert asyncio.run(scenario()) == UNDO_LIMIT
        assert editor.grid.raw_value(0, 0) == "4"

    def test_rejected_edit_leaves_grid_and_adds_notice(self, editor):
        async def scenario():
            await loaded(editor)
            before = editor.grid
            assert editor.add_row(index=99) is False
            assert editor.grid is before
            assert not editor.scheduler.has_pending
            assert not editor.can_undo

        asyncio.run(scenario())
        assert editor.notices[-1].level is NoticeLevel.WARNING
        assert "out of range" in editor.notices[-1].message

    def test_edit_outside_grid(self, editor):
        async def scenario():
            await loaded(editor)
            return editor.edit_cell(50, 0, "x")

        assert asyncio.run(scenario()) is False
        assert editor.notices

    def test_structure_edits(self, editor):
        async def scenario():
            await loaded(editor)
            grid = editor.grid
            assert editor.add_column("Notes")
            assert editor.grid.columns[-1].name == "Notes"
            assert editor.rename_column(grid.columns[0].id, "Item")
            assert editor.set_column_type(grid.columns[1].id, "currency")
            assert editor.delete_column(grid.columns[4].id)
            assert editor.add_row(0, "above")
            assert editor.duplicate_row(grid.rows[0].id)
            assert editor.delete_row(grid.rows[9].id)
            assert editor.toggle_header(grid.rows[0].id)
            editor.close()

        asyncio.run(scenario())
        grid = editor.grid
        assert [c.name for c in grid.columns] == ["Item", "B", "C", "D", "Notes"]
        assert grid.columns[1].type.value == "currency"
        assert grid.row_count == 11
        assert grid.rows[1].is_header

    def test_sort(self, editor):
        async def scenario():
            await loaded(editor)
            for i, value in enumerate(["10", "2", "abc"]):
                editor.edit_cell(i, 0, value)
            assert editor.sort_by_column(editor.grid.columns[0].id, descending=True)
            editor.close()

        asyncio.run(scenario())
        assert [editor.grid.raw_value(i, 0) for i in range(4)] == ["abc", "10", "2", ""]

    def test_burst_of_edits_saves_once(self, editor, flaky, sheet):
        async def scenario():
            await loaded(editor)
            for i in range(10):
                editor.edit_cell(i, 0, f"v{i}")
            await asyncio.sleep(WAIT)

        asyncio.run(scenario())
        assert len(flaky.saves) == 1
        assert cells_of(flaky, sheet.id, editor.active_sheet_id) >= {"v0", "v9"}


class TestSelectionEdits:
    """Test suite for merges and styles driven by the selection."""

    def test_merge_and_absorbed_cell(self, editor):
        async def scenario():
            await loaded(editor)
            editor.select(0, 0, 1, 1)
            assert editor.merge_selection()
            assert editor.edit_cell(1, 1, "hidden") is False
            assert editor.edit_cell(0, 0, "anchor")
            editor.close()

        asyncio.run(scenario())
        assert len(editor.grid.merges) == 1
        assert editor.notices[-1].message == "Cell is part of a merge"
        assert editor.layout()[0][0].row_span == 2

    def test_merge_single_cell_rejected(self, editor):
        async def scenario():
            await loaded(editor)
            editor.pointer_down(2, 2)
            editor.pointer_up()
            return editor.merge_selection()

        assert asyncio.run(scenario()) is False
        assert "at least 2 cells" in editor.notices[-1].message

    def test_unmerge(self, editor):
        async def scenario():
            await loaded(editor)
            editor.pointer_down(0, 0)
            editor.pointer_enter(0, 2)
            editor.pointer_up()
            editor.merge_selection()
            editor.select(3, 3)
            assert editor.unmerge_selection() is False
            editor.select(0, 1)
            assert editor.unmerge_selection()
            editor.close()

        asyncio.run(scenario())
        assert editor.grid.merges == ()

    def test_style_selection_is_one_change(self, editor):
        async def scenario():
            await loaded(editor)
            editor.select(0, 0, 1, 1)
            assert editor.apply_style_to_selection({"bold": True})
            styled = [editor.grid.cell(r, c).style.bold for r in range(2) for c in range(2)]
            assert styled == [True] * 4
            editor.undo()
            editor.close()

        asyncio.run(scenario())
        assert editor.grid.cell(0, 0) is None

    def test_toggle_style(self, editor):
        async def scenario():
            await loaded(editor)
            row_id, col_id = editor.grid.rows[0].id, editor.grid.columns[0].id
            editor.toggle_style(row_id, col_id, "italic")
            assert editor.grid.cell(0, 0).style.italic is True
            editor.toggle_style(row_id, col_id, "italic")
            assert editor.toggle_style(row_id, col_id, "bg_color") is False
            editor.close()

        asyncio.run(scenario())
        assert editor.grid.cell(0, 0).style.italic is False


class TestClipboardAndResize:
    """Test suite for paste and drag-resize through the editor."""

    def test_paste_commits_once(self, editor, flaky):
        async def scenario():
            await loaded(editor)
            editor.clipboard.backend.text = "1\t2\n3\t4"
            editor.select(9, 4)
            result = editor.paste()
            assert (result.rows_added, result.cols_added) == (1, 1)
            await asyncio.sleep(WAIT)

        asyncio.run(scenario())
        assert editor.grid.raw_value(10, 5) == "4"
        assert len(flaky.saves) == 1
        assert editor.can_undo

    def test_paste_undo_is_one_step(self, editor):
        async def scenario():
            await loaded(editor)
            editor.clipboard.backend.text = "a\tb\nc\td"
            editor.select(9, 4)
            editor.paste()
            editor.undo()
            assert not editor.can_undo
            editor.close()

        asyncio.run(scenario())
        assert (editor.grid.row_count, editor.grid.column_count) == (10, 5)

    def test_truncated_paste_notice(self, flaky, sheet):
        settings = GridSettings(debounce_seconds=0.05, saved_display_seconds=0.05, max_paste_new_rows=1)
        editor = SheetEditor(flaky, sheet.id, clipboard=MemoryClipboard("1\n2\n3\n4"), settings=settings)

        async def scenario():
            await loaded(editor)
            editor.select(9, 0)
            result = editor.paste()
            editor.close()
            return result

        result = asyncio.run(scenario())
        assert result.truncated
        assert editor.grid.row_count == 11
        assert editor.notices[-1].level is NoticeLevel.WARNING

    def test_copy_then_paste(self, editor):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(0, 0, "=SUM(B1:B2)")
            editor.select(0, 0)
            assert editor.copy() == "=SUM(B1:B2)"
            editor.select(5, 3)
            editor.paste()
            editor.close()

        asyncio.run(scenario())
        assert editor.grid.raw_value(5, 3) == "=SUM(B1:B2)"

    def test_resize_commits_on_pointer_up(self, editor, flaky):
        async def scenario():
            await loaded(editor)
            col_id = editor.grid.columns[0].id
            editor.begin_column_resize(col_id, 100)
            for x in (110, 130, 160):
                editor.resize_move(x)
                assert not editor.scheduler.has_pending
            assert editor.grid.column(col_id).width == 210
            editor.end_resize()
            assert editor.scheduler.has_pending
            await asyncio.sleep(WAIT)
            assert editor.undo()
            assert editor.grid.column(col_id).width == 150
            editor.close()

        asyncio.run(scenario())
        assert len(flaky.saves) == 1

    def test_cancel_resize_restores(self, editor):
        async def scenario():
            await loaded(editor)
            row_id = editor.grid.rows[0].id
            editor.begin_row_resize(row_id, 0)
            editor.resize_move(40)
            editor.cancel_resize()
            return row_id

        row_id = asyncio.run(scenario())
        assert editor.grid.row(row_id).height == 36
        assert not editor.can_undo

    def test_presets(self, editor):
        async def scenario():
            await loaded(editor)
            assert editor.apply_column_preset("wide")
            assert editor.apply_row_preset("tall")
            assert editor.apply_row_preset("giant") is False
            editor.set_all_column_widths(10)
            editor.close()

        asyncio.run(scenario())
        assert {c.width for c in editor.grid.columns} == {60}
        assert {r.height for r in editor.grid.rows} == {60}


class TestSheets:
    """Test suite for sheet management."""

    def test_add_sheet_switches(self, editor, flaky, sheet):
        async def scenario():
            await loaded(editor)
            info = await editor.add_sheet()
            await editor.save_now()
            return info

        info = asyncio.run(scenario())
        assert info.name == "Sheet 2"
        assert editor.active_sheet_id == info.id
        assert [s.name for s in editor.sheets] == ["Sheet 1", "Sheet 2"]
        assert len(flaky.fetch_sheet_data(sheet.id, info.id).columns) == 5

    def test_switch_saves_pending_edits(self, editor, flaky, sheet):
        """Edits made just before a switch reach the sheet they were made on."""
        async def scenario():
            await loaded(editor)
            first = editor.active_sheet_id
            second = await editor.add_sheet()
            editor.edit_cell(0, 0, "on second")
            assert await editor.select_sheet(first)
            await asyncio.sleep(WAIT)
            return first, second.id

        first, second = asyncio.run(scenario())
        assert editor.active_sheet_id == first
        assert "on second" in cells_of(flaky, sheet.id, second)
        assert "on second" not in cells_of(flaky, sheet.id, first)
        assert editor.grid.raw_value(0, 0) == ""

    def test_failed_save_blocks_switch_until_retry(self, editor, flaky, sheet):
        """Edits whose save failed are neither dropped nor left behind by a switch."""
        async def scenario():
            await loaded(editor)
            first = editor.active_sheet_id
            second = await editor.add_sheet()
            assert await editor.select_sheet(first)
            editor.edit_cell(0, 0, "precious")
            flaky.fail_saves = 1
            assert await editor.select_sheet(second.id) is False
            assert editor.active_sheet_id == first
            assert editor.grid.raw_value(0, 0) == "precious"
            assert editor.notices[-1].level is NoticeLevel.WARNING
            assert await editor.retry_save()
            assert await editor.select_sheet(second.id)
            return first

        first = asyncio.run(scenario())
        assert "precious" in cells_of(flaky, sheet.id, first)

    def test_rename_sheet(self, editor):
        async def scenario():
            await loaded(editor)
            assert await editor.rename_sheet(editor.active_sheet_id, "  Totals ")
            assert await editor.rename_sheet(editor.active_sheet_id, "   ") is False

        asyncio.run(scenario())
        assert editor.active_sheet.name == "Totals"

    def test_last_sheet_cannot_be_deleted(self, editor):
        async def scenario():
            await loaded(editor)
            return await editor.delete_sheet(editor.active_sheet_id)

        assert asyncio.run(scenario()) is False
        assert editor.notices[-1].message == "A spreadsheet needs at least 1 sheet"

    def test_delete_active_sheet_switches(self, editor, flaky, sheet):
        async def scenario():
            await loaded(editor)
            first = editor.active_sheet_id
            second = await editor.add_sheet()
            editor.edit_cell(0, 0, "doomed")
            assert await editor.delete_sheet(second.id)
            await asyncio.sleep(WAIT)
            return first

        first = asyncio.run(scenario())
        assert editor.active_sheet_id == first
        assert [s.id for s in flaky.list_sheets(sheet.id)] == [first]

    def test_duplicate_sheet(self, editor, flaky, sheet):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(1, 1, "copied")
            return await editor.duplicate_sheet()

        info = asyncio.run(scenario())
        assert info.name == "Sheet 1 (copy)"
        assert "copied" in cells_of(flaky, sheet.id, info.id)
        assert editor.sheets[-1].id == info.id

    def test_store_failure_becomes_notice(self, editor, flaky):
        async def scenario():
            await loaded(editor)
            return await editor.rename_sheet("missing", "x")

        assert asyncio.run(scenario()) is False
        assert editor.notices[-1].level is NoticeLevel.ERROR


class TestSaving:
    """Test suite for explicit saves and recovery."""

    def test_failure_then_retry(self, editor, flaky, sheet):
        async def scenario():
            await loaded(editor)
            flaky.fail_saves = 1
            editor.edit_cell(0, 0, "eventually")
            assert await editor.save_now() is False
            assert editor.status is SaveStatus.ERROR
            assert await editor.retry_save()
            assert editor.status is SaveStatus.SAVED
            editor.close()

        asyncio.run(scenario())
        assert "eventually" in cells_of(flaky, sheet.id, editor.active_sheet_id)

    def test_close_drops_pending(self, editor, flaky):
        async def scenario():
            await loaded(editor)
            editor.edit_cell(0, 0, "unsaved")
            editor.close()
            await asyncio.sleep(WAIT)

        asyncio.run(scenario())
        assert flaky.saves == []
