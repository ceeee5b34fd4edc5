"""
Store doubles for scheduler and editor tests.

FlakyStore is a real MemoryStore that can be told to fail or to be slow, and
records every save it receives, so tests can assert how many saves reached
the backend, what they contained and whether any of them overlapped.
"""

import threading
import time
from typing import List, Optional, Sequence

from gridsheet.exceptions import StoreError
from gridsheet.spreadsheet.model import Column, Merge, Row
from gridsheet.spreadsheet.records import CellRecord
from gridsheet.store.memory import MemoryStore


class FlakyStore(MemoryStore):
    """MemoryStore with failure injection and save recording.

    Attributes:
        fail_saves: Number of upcoming saves that raise ``save_error``
        save_error: Exception type raised by failing saves
        fail_fetches: Number of upcoming fetches that raise StoreError
        save_delay: Seconds each save blocks before writing
        saves: (sheet_id, {(row_id, column_id): value}) per successful save
        max_concurrent: Highest number of saves running at the same time
    """

    def __init__(self, save_delay: float = 0.0) -> None:
        super().__init__()
        self.fail_saves = 0
        self.save_error: type = StoreError
        self.fail_fetches = 0
        self.save_delay = save_delay
        self.saves: List[tuple] = []
        self.max_concurrent = 0
        self._running = 0
        self._counter_lock = threading.Lock()

    def fetch_sheet_data(self, spreadsheet_id, sheet_id=None):
        if self.fail_fetches > 0:
            self.fail_fetches -= 1
            raise StoreError("backend unavailable")
        return super().fetch_sheet_data(spreadsheet_id, sheet_id)

    def save_sheet_data(
        self,
        spreadsheet_id: str,
        columns: Sequence[Column],
        rows: Sequence[Row],
        cells: Sequence[CellRecord],
        sheet_id: Optional[str] = None,
        merges: Optional[Sequence[Merge]] = None,
    ) -> None:
        with self._counter_lock:
            self._running += 1
            self.max_concurrent = max(self.max_concurrent, self._running)
        try:
            if self.save_delay:
                time.sleep(self.save_delay)
            if self.fail_saves > 0:
                self.fail_saves -= 1
                raise self.save_error("backend unavailable")
            super().save_sheet_data(spreadsheet_id, columns, rows, cells, sheet_id, merges)
            self.saves.append(
                (sheet_id, {(c.row_id, c.column_id): c.value for c in cells})
            )
        finally:
            with self._counter_lock:
                self._running -= 1
