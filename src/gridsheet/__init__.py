"""
gridsheet - An embeddable spreadsheet grid engine.

This package provides the engine behind a multi-sheet grid editor: an
immutable grid model with styles and merged cells, a small aggregate formula
engine, range selection, clipboard interchange with other spreadsheet
applications, drag-resizing, and debounced full-snapshot persistence to a
store (in memory or in a Google spreadsheet via gspread).

Usage:
    >>> import asyncio
    >>> from gridsheet import MemoryStore, SheetEditor
    >>> store = MemoryStore()
    >>> doc = store.create_spreadsheet("Budget")
    >>> async def main():
    ...     editor = SheetEditor(store, doc.id)
    ...     await editor.load()
    ...     editor.edit_cell(0, 0, "5")
    ...     editor.edit_cell(1, 0, "=SUM(A1:A1)")
    ...     await editor.save_now()
    ...     return editor.display_value(1, 0)
    >>> asyncio.run(main())
    '5'

Key components:
- Grid: Immutable snapshot of one sheet; every edit returns a new one
- FormulaEngine: SUM/COUNT/AVG/MIN/MAX over rectangular ranges
- SheetEditor: Owns the active grid and wires selection, clipboard,
  resizing and persistence together
- PersistenceScheduler: Debounced, non-overlapping saves with a save status
- MemoryStore / GSheetsStore: Store backends
"""

from .clipboard import ClipboardController, MemoryClipboard, SystemClipboard, decode, encode, paste
from .config import GridSettings, get_settings
from .editor import Notice, NoticeLevel, SheetEditor
from .exceptions import *
from .formula import FormulaEngine, evaluate
from .persistence import PersistenceScheduler, SaveStatus, build_snapshot, restore_grid
from .resize import ResizeController
from .selection import Selection, layout
from .spreadsheet import CellStyle, Column, Grid, Merge, Range, Row
from .store import GSheetsStore, MemoryStore, SheetStore

# Version
__version__ = "0.1.0"

__all__ = [
    'Grid',
    'Range',
    'Column',
    'Row',
    'Merge',
    'CellStyle',
    'FormulaEngine',
    'evaluate',
    'Selection',
    'layout',
    'ClipboardController',
    'MemoryClipboard',
    'SystemClipboard',
    'encode',
    'decode',
    'paste',
    'ResizeController',
    'PersistenceScheduler',
    'SaveStatus',
    'build_snapshot',
    'restore_grid',
    'SheetStore',
    'MemoryStore',
    'GSheetsStore',
    'SheetEditor',
    'Notice',
    'NoticeLevel',
    'GridSettings',
    'get_settings',
    'GridError',
    'InvalidOperationError',
    'StoreError',
    'ClipboardError',
]
