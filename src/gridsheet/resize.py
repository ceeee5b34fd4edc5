"""
Drag-resizing of columns and rows.

A drag captures the pointer coordinate and the target's size on pointer-down.
Every move applies the pointer delta to that starting size (never below the
minimum) and returns a live grid for immediate feedback; pointer-up commits
the final size exactly once.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from gridsheet.config import get_settings
from gridsheet.exceptions import InvalidOperationError
from gridsheet.spreadsheet.grid import Grid

logger = logging.getLogger(__name__)

# Called with (grid before the change, grid after the change).
CommitCallback = Callable[[Grid, Grid], None]


class ResizeAxis(str, Enum):
    COLUMN = "column"
    ROW = "row"


COLUMN_WIDTH_PRESETS: Dict[str, int] = {"narrow": 80, "normal": 150, "wide": 250}
ROW_HEIGHT_PRESETS: Dict[str, int] = {"compact": 28, "normal": 36, "tall": 60}


class ResizeController:
    """Tracks one resize drag at a time.

    Attributes:
        on_commit: Receives (before, after) once per committed resize
        min_column_width: Column width floor in pixels
        min_row_height: Row height floor in pixels
        axis: Axis of the active drag, or None
        target_id: Column or row id being resized
        origin: Grid as it was on pointer-down
    """

    def __init__(
        self,
        on_commit: Optional[CommitCallback] = None,
        min_column_width: Optional[int] = None,
        min_row_height: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.on_commit = on_commit
        self.min_column_width = (
            min_column_width if min_column_width is not None else settings.min_column_width
        )
        self.min_row_height = (
            min_row_height if min_row_height is not None else settings.min_row_height
        )
        self.axis: Optional[ResizeAxis] = None
        self.target_id: Optional[str] = None
        self.origin: Optional[Grid] = None
        self._start_pointer = 0
        self._start_size = 0

    @property
    def active(self) -> bool:
        return self.axis is not None

    def begin_column(self, grid: Grid, col_id: str, pointer_x: float) -> None:
        self._begin(grid, ResizeAxis.COLUMN, col_id, pointer_x, grid.column(col_id).width)

    def begin_row(self, grid: Grid, row_id: str, pointer_y: float) -> None:
        self._begin(grid, ResizeAxis.ROW, row_id, pointer_y, grid.row(row_id).height)

    def _begin(
        self, grid: Grid, axis: ResizeAxis, target_id: str, pointer: float, size: int
    ) -> None:
        if self.active:
            raise InvalidOperationError("A resize is already in progress")
        self.axis = axis
        self.target_id = target_id
        self.origin = grid
        self._start_pointer = pointer
        self._start_size = size

    def size_for(self, pointer: float) -> int:
        """Size the target would have with the pointer at ``pointer``."""
        floor = self.min_column_width if self.axis == ResizeAxis.COLUMN else self.min_row_height
        return max(floor, int(round(self._start_size + pointer - self._start_pointer)))

    def move(self, grid: Grid, pointer: float) -> Grid:
        """Apply a pointer move; returns the live grid (uncommitted)."""
        if not self.active:
            return grid
        size = self.size_for(pointer)
        if self.axis == ResizeAxis.COLUMN:
            return grid.set_column_width(self.target_id, size)
        return grid.set_row_height(self.target_id, size)

    def end(self, grid: Grid) -> Grid:
        """Finish the drag and commit ``grid`` (the last live grid)."""
        if not self.active:
            return grid
        origin = self.origin
        logger.debug("Resized %s %s", self.axis.value, self.target_id)
        self._reset()
        if self.on_commit is not None:
            self.on_commit(origin, grid)
        return grid

    def cancel(self) -> Optional[Grid]:
        """Abandon the drag.

        Returns:
            The grid as it was on pointer-down, or None if nothing was active
        """
        origin = self.origin
        self._reset()
        return origin

    def _reset(self) -> None:
        self.axis = None
        self.target_id = None
        self.origin = None

    def set_all_column_widths(self, grid: Grid, width: int) -> Grid:
        """Give every column the same width, committed as one change."""
        new_grid = grid.set_all_column_widths(max(self.min_column_width, int(width)))
        if self.on_commit is not None:
            self.on_commit(grid, new_grid)
        return new_grid

    def set_all_row_heights(self, grid: Grid, height: int) -> Grid:
        """Give every row the same height, committed as one change."""
        new_grid = grid.set_all_row_heights(max(self.min_row_height, int(height)))
        if self.on_commit is not None:
            self.on_commit(grid, new_grid)
        return new_grid

    def apply_column_preset(self, grid: Grid, preset: str) -> Grid:
        if preset not in COLUMN_WIDTH_PRESETS:
            raise InvalidOperationError(f"Unknown column width preset: {preset}")
        return self.set_all_column_widths(grid, COLUMN_WIDTH_PRESETS[preset])

    def apply_row_preset(self, grid: Grid, preset: str) -> Grid:
        if preset not in ROW_HEIGHT_PRESETS:
            raise InvalidOperationError(f"Unknown row height preset: {preset}")
        return self.set_all_row_heights(grid, ROW_HEIGHT_PRESETS[preset])
