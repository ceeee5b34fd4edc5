"""
Sheet editor controller.

SheetEditor owns the active sheet's grid and wires the pieces together: the
formula engine for display, the selection, the clipboard, the resize
controller and the persistence scheduler. It holds no UI; a front end calls
its methods from input handlers and reads ``grid``, ``selection``,
``status`` and ``notices`` back.

Edits are synchronous. Each one goes through ``_commit``, which swaps in the
new immutable grid, remembers the previous one for undo and schedules a
debounced save. Rejected edits leave the grid untouched and add a notice.
Loading, sheet management and explicit saves talk to the store and are
coroutines; they must run inside the event loop that drives the scheduler.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Union

from gridsheet.clipboard import ClipboardBackend, ClipboardController, PasteResult
from gridsheet.config import GridSettings, get_settings
from gridsheet.exceptions import InvalidOperationError, StoreError
from gridsheet.formula import FormulaEngine
from gridsheet.persistence import (
    PersistenceScheduler,
    SaveStatus,
    build_snapshot,
    restore_grid,
)
from gridsheet.resize import ResizeController
from gridsheet.selection import (
    CellLayout,
    Selection,
    is_editable,
    layout,
    merge_selection,
    unmerge_selection,
)
from gridsheet.spreadsheet.grid import Geometry, Grid
from gridsheet.spreadsheet.model import CellStyle, ColumnType
from gridsheet.spreadsheet.records import SheetInfo
from gridsheet.store.base import SheetStore

logger = logging.getLogger(__name__)

UNDO_LIMIT = 100


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A message for the user (rejected edit, load failure, truncated paste)."""
    level: NoticeLevel
    message: str


class SheetEditor:
    """Editing session for one spreadsheet, one active sheet at a time.

    Attributes:
        store: Backend sheets are fetched from and saved to
        spreadsheet_id: Spreadsheet being edited
        grid: Current snapshot of the active sheet
        sheets: Sibling sheets, ordered
        active_sheet_id: Sheet whose grid is loaded
        loaded: True once a sheet was fetched successfully
        selection: Active selection
        clipboard: Copy/paste controller
        resize: Drag-resize controller
        scheduler: Debounced save scheduler
        engine: Formula engine used for display
        notices: User-visible messages, oldest first
    """

    def __init__(
        self,
        store: SheetStore,
        spreadsheet_id: str,
        scheduler: Optional[PersistenceScheduler] = None,
        clipboard: Optional[ClipboardBackend] = None,
        settings: Optional[GridSettings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.spreadsheet_id = spreadsheet_id
        self.geometry = Geometry.from_settings(self.settings)
        self.scheduler = scheduler or PersistenceScheduler(
            store,
            debounce_seconds=self.settings.debounce_seconds,
            saved_display_seconds=self.settings.saved_display_seconds,
        )
        self.clipboard = ClipboardController(clipboard)
        self.resize = ResizeController(
            on_commit=self._commit_resize,
            min_column_width=self.settings.min_column_width,
            min_row_height=self.settings.min_row_height,
        )
        self.engine = FormulaEngine()
        self.selection = Selection()
        self.grid = Grid(geometry=self.geometry)
        self.sheets: List[SheetInfo] = []
        self.active_sheet_id: Optional[str] = None
        self.loaded = False
        self.notices: List[Notice] = []
        self._undo: List[Grid] = []
        self._redo: List[Grid] = []

    # ------------------------------------------------------------------
    # Notices and status
    # ------------------------------------------------------------------

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level, message))

    def clear_notices(self) -> None:
        self.notices.clear()

    @property
    def status(self) -> SaveStatus:
        return self.scheduler.status

    @property
    def active_sheet(self) -> Optional[SheetInfo]:
        return next((s for s in self.sheets if s.id == self.active_sheet_id), None)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, sheet_id: Optional[str] = None) -> bool:
        """Fetch a sheet (the first one when None) and make it active.

        A sheet with no columns has never been saved: it is seeded with
        lettered columns and blank rows, and the seed is scheduled for saving.

        Returns:
            False when the fetch failed; a notice says why and the previous
            state is kept
        """
        try:
            data = await asyncio.to_thread(
                self.store.fetch_sheet_data, self.spreadsheet_id, sheet_id
            )
        except StoreError as e:
            logger.error("Failed to load spreadsheet %s: %s", self.spreadsheet_id, e)
            self._notify(NoticeLevel.ERROR, f"Failed to load sheet: {e}")
            return False

        self.scheduler.cancel()
        self.sheets = list(data.sheets)
        self.active_sheet_id = data.active_sheet_id
        self.selection.clear()
        self.resize.cancel()
        self._undo.clear()
        self._redo.clear()
        if not data.columns:
            self.grid = Grid.seed(
                self.settings.seed_columns, self.settings.seed_rows, self.geometry
            )
            logger.info("Seeded empty sheet %s", self.active_sheet_id)
            self._schedule_save()
        else:
            self.grid = restore_grid(data, self.geometry)
            logger.info(
                "Loaded sheet %s: %d columns, %d rows",
                self.active_sheet_id,
                self.grid.column_count,
                self.grid.row_count,
            )
        self.loaded = True
        return True

    # ------------------------------------------------------------------
    # Commit, undo, redo
    # ------------------------------------------------------------------

    def _schedule_save(self) -> None:
        if self.active_sheet_id is None:
            return
        self.scheduler.schedule(
            build_snapshot(self.grid, self.spreadsheet_id, self.active_sheet_id)
        )

    def _commit(self, new_grid: Grid) -> bool:
        if new_grid is self.grid:
            return False
        self._push_undo(self.grid)
        self._redo.clear()
        self.grid = new_grid
        self._schedule_save()
        return True

    def _push_undo(self, grid: Grid) -> None:
        self._undo.append(grid)
        if len(self._undo) > UNDO_LIMIT:
            del self._undo[0]

    def _apply(self, operation: Callable[[Grid], Grid], description: str) -> bool:
        """Run a grid operation and commit it, or record why it was rejected."""
        try:
            new_grid = operation(self.grid)
        except InvalidOperationError as e:
            logger.warning("Rejected %s: %s", description, e)
            self._notify(NoticeLevel.WARNING, str(e))
            return False
        return self._commit(new_grid)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self.grid)
        self.grid = self._undo.pop()
        self._schedule_save()
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._push_undo(self.grid)
        self.grid = self._redo.pop()
        self._schedule_save()
        return True

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def display_value(self, row_index: int, col_index: int) -> str:
        return self.engine.display_value(self.grid, row_index, col_index)

    def layout(self) -> List[List[CellLayout]]:
        return layout(self.grid, self.engine)

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def set_cell_value(self, row_id: str, col_id: str, value: str) -> bool:
        """Set a cell's raw value; cells hidden inside a merge are not editable."""
        def edit(grid: Grid) -> Grid:
            if not is_editable(grid.merges, grid.row_index(row_id), grid.column_index(col_id)):
                raise InvalidOperationError("Cell is part of a merge")
            return grid.set_cell_value(row_id, col_id, value)

        return self._apply(edit, "cell edit")

    def edit_cell(self, row_index: int, col_index: int, value: str) -> bool:
        """Set a cell's raw value by index position."""
        if not (0 <= row_index < self.grid.row_count and 0 <= col_index < self.grid.column_count):
            self._notify(NoticeLevel.WARNING, f"No cell at ({row_index}, {col_index})")
            return False
        row_id = self.grid.row_at(row_index).id
        col_id = self.grid.column_at(col_index).id
        return self.set_cell_value(row_id, col_id, value)

    def apply_style(
        self, row_id: str, col_id: str, update: Union[CellStyle, Mapping[str, Any]]
    ) -> bool:
        return self._apply(lambda g: g.apply_style(row_id, col_id, update), "style change")

    def apply_style_to_selection(self, update: Union[CellStyle, Mapping[str, Any]]) -> bool:
        """Apply a partial style to every selected cell as one change."""
        bounds = self.selection.bounds()
        if bounds is None:
            return False

        def style_all(grid: Grid) -> Grid:
            for r, c in bounds.cells():
                if r < grid.row_count and c < grid.column_count:
                    grid = grid.apply_style(grid.rows[r].id, grid.columns[c].id, update)
            return grid

        return self._apply(style_all, "style change")

    def toggle_style(self, row_id: str, col_id: str, attribute: str) -> bool:
        return self._apply(lambda g: g.toggle_style(row_id, col_id, attribute), "style toggle")

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def add_column(
        self, name: Optional[str] = None, type: ColumnType = ColumnType.TEXT
    ) -> bool:
        return self._apply(lambda g: g.add_column(name=name, type=type), "add column")

    def delete_column(self, col_id: str) -> bool:
        return self._apply(lambda g: g.delete_column(col_id), "delete column")

    def rename_column(self, col_id: str, name: str) -> bool:
        return self._apply(lambda g: g.rename_column(col_id, name), "rename column")

    def set_column_type(self, col_id: str, type: Union[ColumnType, str]) -> bool:
        return self._apply(lambda g: g.set_column_type(col_id, type), "column type change")

    def add_row(self, index: Optional[int] = None, position: str = "below") -> bool:
        return self._apply(lambda g: g.add_row(index, position), "add row")

    def delete_row(self, row_id: str) -> bool:
        return self._apply(lambda g: g.delete_row(row_id), "delete row")

    def duplicate_row(self, row_id: str) -> bool:
        return self._apply(lambda g: g.duplicate_row(row_id), "duplicate row")

    def toggle_header(self, row_id: str) -> bool:
        return self._apply(lambda g: g.toggle_header(row_id), "header toggle")

    def sort_by_column(self, col_id: str, descending: bool = False) -> bool:
        return self._apply(lambda g: g.sort_by_column(col_id, descending), "sort")

    # ------------------------------------------------------------------
    # Selection and merges
    # ------------------------------------------------------------------

    def pointer_down(self, row: int, col: int) -> None:
        self.selection.pointer_down(row, col)

    def pointer_enter(self, row: int, col: int) -> None:
        self.selection.pointer_enter(row, col)

    def pointer_up(self) -> None:
        self.selection.pointer_up()

    def select(self, row: int, col: int, row_end: Optional[int] = None, col_end: Optional[int] = None) -> None:
        """Select a rectangle programmatically (a single cell by default)."""
        self.selection.move_to(row, col)
        if row_end is not None or col_end is not None:
            self.selection.extent = (
                row if row_end is None else row_end,
                col if col_end is None else col_end,
            )

    def merge_selection(self) -> bool:
        return self._apply(lambda g: merge_selection(g, self.selection), "merge")

    def unmerge_selection(self) -> bool:
        return self._apply(lambda g: unmerge_selection(g, self.selection), "unmerge")

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------

    def copy(self) -> Optional[str]:
        return self.clipboard.copy(self.grid, self.selection)

    def paste(self) -> Optional[PasteResult]:
        """Paste at the selection's top-left cell; schedules one save."""
        try:
            result = self.clipboard.paste(
                self.grid,
                self.selection,
                max_new_rows=self.settings.max_paste_new_rows,
                max_new_cols=self.settings.max_paste_new_columns,
            )
        except InvalidOperationError as e:
            self._notify(NoticeLevel.WARNING, str(e))
            return None
        if result is None or result.rows_pasted == 0:
            return result
        if result.truncated:
            self._notify(
                NoticeLevel.WARNING,
                "Pasted data was larger than the sheet can grow at once; extra cells were dropped",
            )
        self._commit(result.grid)
        return result

    # ------------------------------------------------------------------
    # Resizing
    # ------------------------------------------------------------------

    def _commit_resize(self, before: Grid, after: Grid) -> None:
        self._push_undo(before)
        self._redo.clear()
        self.grid = after
        self._schedule_save()

    def begin_column_resize(self, col_id: str, pointer_x: float) -> None:
        self.resize.begin_column(self.grid, col_id, pointer_x)

    def begin_row_resize(self, row_id: str, pointer_y: float) -> None:
        self.resize.begin_row(self.grid, row_id, pointer_y)

    def resize_move(self, pointer: float) -> None:
        """Live preview: updates the grid without committing or saving."""
        self.grid = self.resize.move(self.grid, pointer)

    def end_resize(self) -> None:
        self.resize.end(self.grid)

    def cancel_resize(self) -> None:
        origin = self.resize.cancel()
        if origin is not None:
            self.grid = origin

    def set_all_column_widths(self, width: int) -> None:
        self.resize.set_all_column_widths(self.grid, width)

    def set_all_row_heights(self, height: int) -> None:
        self.resize.set_all_row_heights(self.grid, height)

    def apply_column_preset(self, preset: str) -> bool:
        try:
            self.resize.apply_column_preset(self.grid, preset)
        except InvalidOperationError as e:
            self._notify(NoticeLevel.WARNING, str(e))
            return False
        return True

    def apply_row_preset(self, preset: str) -> bool:
        try:
            self.resize.apply_row_preset(self.grid, preset)
        except InvalidOperationError as e:
            self._notify(NoticeLevel.WARNING, str(e))
            return False
        return True

    # ------------------------------------------------------------------
    # Sheets
    # ------------------------------------------------------------------

    async def _store_call(self, description: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except StoreError as e:
            logger.error("Failed to %s: %s", description, e)
            self._notify(NoticeLevel.ERROR, f"Failed to {description}: {e}")
            return None

    async def select_sheet(self, sheet_id: str) -> bool:
        """Switch to another sheet.

        Pending edits of the current sheet are saved first; no timer of the
        old sheet survives the switch. When that save fails the switch is
        refused and the edits stay in memory until retry_save() succeeds.
        """
        if sheet_id == self.active_sheet_id:
            return True
        if not await self.scheduler.flush_now():
            message = "Unsaved changes could not be saved; retry before switching sheets"
            logger.warning("Rejected switch to sheet %s: %s", sheet_id, message)
            self._notify(NoticeLevel.WARNING, message)
            return False
        return await self.load(sheet_id)

    async def add_sheet(self) -> Optional[SheetInfo]:
        """Create "Sheet N", seed it and switch to it."""
        name = f"Sheet {len(self.sheets) + 1}"
        order_index = max((s.order_index for s in self.sheets), default=-1) + 1
        info = await self._store_call(
            "add sheet", self.store.add_sheet, self.spreadsheet_id, name, order_index
        )
        if info is None:
            return None
        self.sheets.append(info)
        await self.select_sheet(info.id)
        return info

    async def rename_sheet(self, sheet_id: str, name: str) -> bool:
        name = (name or "").strip()
        if not name:
            return False
        info = await self._store_call("rename sheet", self.store.rename_sheet, sheet_id, name)
        if info is None:
            return False
        self.sheets = [info if s.id == sheet_id else s for s in self.sheets]
        return True

    async def delete_sheet(self, sheet_id: str) -> bool:
        """Delete a sheet; the last remaining sheet cannot be deleted.

        Deleting the active sheet switches to the first remaining one.
        """
        if len(self.sheets) <= 1:
            message = "A spreadsheet needs at least 1 sheet"
            logger.warning("Rejected delete sheet: %s", message)
            self._notify(NoticeLevel.WARNING, message)
            return False
        was_active = sheet_id == self.active_sheet_id
        if was_active:
            self.scheduler.cancel()
            await self.scheduler.wait()
        try:
            await asyncio.to_thread(self.store.delete_sheet, sheet_id)
        except StoreError as e:
            logger.error("Failed to delete sheet: %s", e)
            self._notify(NoticeLevel.ERROR, f"Failed to delete sheet: {e}")
            return False
        self.sheets = [s for s in self.sheets if s.id != sheet_id]
        if was_active:
            self.active_sheet_id = None
            await self.load(self.sheets[0].id)
        return True

    async def duplicate_sheet(self, sheet_id: Optional[str] = None) -> Optional[SheetInfo]:
        """Copy a sheet (the active one by default) as "<name> (copy)"."""
        sheet_id = sheet_id or self.active_sheet_id
        source = next((s for s in self.sheets if s.id == sheet_id), None)
        if source is None:
            self._notify(NoticeLevel.WARNING, f"Unknown sheet: {sheet_id}")
            return None
        if sheet_id == self.active_sheet_id:
            await self.scheduler.flush_now()
        info = await self._store_call(
            "duplicate sheet", self.store.duplicate_sheet, sheet_id, f"{source.name} (copy)"
        )
        if info is not None:
            self.sheets.append(info)
        return info

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def save_now(self) -> bool:
        """Save the current grid immediately."""
        self._schedule_save()
        return await self.scheduler.flush_now()

    async def retry_save(self) -> bool:
        return await self.scheduler.retry()

    def close(self) -> None:
        """End the session: cancel the pending save and any drag."""
        self.scheduler.close()
        self.cancel_resize()
