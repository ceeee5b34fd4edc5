"""
Debounced persistence of grid snapshots.

Edits arrive far faster than a remote store should be written to. The
scheduler keeps only the latest snapshot and flushes it after a quiet period:

    schedule(s1) schedule(s2) schedule(s3) ... 1.5s of quiet ... save(s3)

Every save is a full-snapshot overwrite of one sheet. At most one save runs
at a time; a debounce timer that fires while a save is in flight re-arms
itself instead of starting a second request. Save health is exposed as a
status that listeners can follow:

    idle -> saving -> saved -> (after a short display window) idle
                   -> error  (until retry() or the next successful save)

Store failures never propagate out of the scheduler; they become the
``error`` status and the snapshot is kept so ``retry()`` can resend it.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from gridsheet.config import get_settings
from gridsheet.exceptions import StoreError
from gridsheet.spreadsheet.grid import Geometry, Grid
from gridsheet.spreadsheet.model import Cell, Column, Merge, Row
from gridsheet.spreadsheet.records import CellRecord, SheetData
from gridsheet.store.base import SheetStore

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


StatusListener = Callable[[SaveStatus], None]


@dataclass(frozen=True)
class SheetSnapshot:
    """Everything one save writes for one sheet.

    Attributes:
        spreadsheet_id: Owning spreadsheet
        sheet_id: Sheet being overwritten
        columns: Columns with order_index matching their position
        rows: Rows without cells, order_index matching their position
        cells: A record for every cell with a value or a style
        merges: Merged regions
        version: Grid version the snapshot was taken from
    """
    spreadsheet_id: str
    sheet_id: Optional[str]
    columns: Tuple[Column, ...]
    rows: Tuple[Row, ...]
    cells: Tuple[CellRecord, ...]
    merges: Tuple[Merge, ...]
    version: int = 0


def build_snapshot(grid: Grid, spreadsheet_id: str, sheet_id: Optional[str]) -> SheetSnapshot:
    """Flatten a grid into the records a save writes."""
    columns = tuple(replace(c, order_index=i) for i, c in enumerate(grid.columns))
    rows = tuple(replace(r, order_index=i, cells={}) for i, r in enumerate(grid.rows))
    cells = tuple(
        CellRecord(row_id=row.id, column_id=col_id, value=cell.value, style=cell.style, id=cell.id)
        for row, col_id, cell in grid.non_empty_cells()
    )
    return SheetSnapshot(
        spreadsheet_id=spreadsheet_id,
        sheet_id=sheet_id,
        columns=columns,
        rows=rows,
        cells=cells,
        merges=tuple(grid.merges),
        version=grid.version,
    )


def restore_grid(data: SheetData, geometry: Optional[Geometry] = None) -> Grid:
    """Rebuild a grid from fetched store records.

    Rows and columns are ordered by order_index. Cells pointing at a row or
    column that no longer exists are skipped; when a (row, column) pair has
    several records the last one wins.
    """
    columns = sorted(data.columns, key=lambda c: c.order_index)
    column_ids = {c.id for c in columns}
    cells_by_row: Dict[str, Dict[str, Cell]] = {}
    for record in data.cells:
        if record.column_id not in column_ids:
            continue
        cells_by_row.setdefault(record.row_id, {})[record.column_id] = Cell(
            id=record.id, value=record.value, style=record.style
        )
    rows = [
        replace(row, cells=cells_by_row.get(row.id, {}))
        for row in sorted(data.rows, key=lambda r: r.order_index)
    ]
    return Grid(geometry=geometry or Geometry()).with_structure(
        columns=columns, rows=rows, merges=data.merges
    )


class PersistenceScheduler:
    """Coalesces snapshots into debounced full-snapshot saves.

    Must be used from inside a running asyncio event loop. Store calls are
    blocking and run in a worker thread.

    Attributes:
        store: Backend the snapshots are saved to
        debounce_seconds: Quiet period before a scheduled save runs
        saved_display_seconds: How long ``saved`` shows before ``idle``
        status: Current save status
        flush_count: Number of successful saves
        last_error: The most recent store failure, cleared by a successful save
    """

    def __init__(
        self,
        store: SheetStore,
        debounce_seconds: Optional[float] = None,
        saved_display_seconds: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.debounce_seconds = (
            settings.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.saved_display_seconds = (
            settings.saved_display_seconds
            if saved_display_seconds is None
            else saved_display_seconds
        )
        self.status = SaveStatus.IDLE
        self.flush_count = 0
        self.last_error: Optional[StoreError] = None
        self._listeners: List[StatusListener] = []
        self._pending: Optional[SheetSnapshot] = None
        self._failed: Optional[SheetSnapshot] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._idle_timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional["asyncio.Task[bool]"] = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        self._listeners.remove(listener)

    def _set_status(self, status: SaveStatus) -> None:
        if status == self.status:
            return
        self.status = status
        for listener in list(self._listeners):
            listener(status)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, snapshot: SheetSnapshot) -> None:
        """Replace the pending snapshot and restart the debounce timer."""
        self._pending = snapshot
        self._failed = None
        self._arm()

    def _arm(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._pending is None:
            return
        if self.in_flight:
            logger.debug("Save in flight; deferring the next save")
            self._arm()
            return
        self._task = asyncio.get_running_loop().create_task(self._flush())

    def cancel(self) -> None:
        """Drop the pending timer and snapshot (sheet switch or close).

        A save that is already running is left to finish.
        """
        self._cancel_timer()
        if self._pending is not None:
            logger.debug("Dropped pending save for sheet %s", self._pending.sheet_id)
        self._pending = None
        self._failed = None

    def close(self) -> None:
        """Cancel every timer; pending edits are dropped."""
        self.cancel()
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    async def flush_now(self) -> bool:
        """Save the pending snapshot immediately, skipping the debounce.

        Waits for a save already in flight first, so requests never overlap.

        Returns:
            True when nothing failed (including when there was nothing to save)
        """
        self._cancel_timer()
        while self.in_flight:
            await self._task
        if self._pending is None:
            return self.status != SaveStatus.ERROR
        self._task = asyncio.get_running_loop().create_task(self._flush())
        return await self._task

    async def retry(self) -> bool:
        """Resend the snapshot of the last failed save."""
        if self._pending is None and self._failed is not None:
            self._pending = self._failed
        return await self.flush_now()

    async def wait(self) -> None:
        """Wait for a save that is in flight, if any."""
        while self.in_flight:
            await self._task

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    async def _flush(self) -> bool:
        snapshot = self._pending
        if snapshot is None:
            return True
        self._pending = None
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None
        self._set_status(SaveStatus.SAVING)
        logger.info(
            "Saving sheet %s: %d columns, %d rows, %d cells, %d merges",
            snapshot.sheet_id,
            len(snapshot.columns),
            len(snapshot.rows),
            len(snapshot.cells),
            len(snapshot.merges),
        )
        try:
            await asyncio.to_thread(
                self.store.save_sheet_data,
                snapshot.spreadsheet_id,
                list(snapshot.columns),
                list(snapshot.rows),
                list(snapshot.cells),
                snapshot.sheet_id,
                list(snapshot.merges),
            )
        except StoreError as e:
            logger.error("Save of sheet %s failed: %s", snapshot.sheet_id, e)
            return self._fail(snapshot, e)
        except Exception as e:
            logger.exception("Save of sheet %s failed unexpectedly", snapshot.sheet_id)
            return self._fail(snapshot, StoreError(f"Failed to save sheet: {e}"))

        self.flush_count += 1
        self.last_error = None
        self._failed = None
        logger.info("Saved sheet %s (version %d)", snapshot.sheet_id, snapshot.version)
        self._set_status(SaveStatus.SAVED)
        self._idle_timer = asyncio.get_running_loop().call_later(
            self.saved_display_seconds, self._saved_to_idle
        )
        return True

    def _fail(self, snapshot: SheetSnapshot, error: StoreError) -> bool:
        """Keep the snapshot for retry() unless newer edits superseded it."""
        self.last_error = error
        if self._pending is None:
            self._failed = snapshot
        self._set_status(SaveStatus.ERROR)
        return False

    def _saved_to_idle(self) -> None:
        self._idle_timer = None
        if self.status == SaveStatus.SAVED:
            self._set_status(SaveStatus.IDLE)
