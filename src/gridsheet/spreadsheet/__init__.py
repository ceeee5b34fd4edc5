"""
Spreadsheet model module.

This module provides the grid data model: ranges and column letters, cells
with styles, columns, rows and merges, the immutable Grid snapshot with its
operations, and the records exchanged with a store.
"""

from gridsheet.spreadsheet.model import (
    Alignment,
    Cell,
    CellStyle,
    Column,
    ColumnType,
    Merge,
    Range,
    Row,
    column_index,
    column_letter,
    effective_style,
)
from gridsheet.spreadsheet.grid import Geometry, Grid, compare_cell_values, validate_merge
from gridsheet.spreadsheet.numbers import format_number, parse_number
from gridsheet.spreadsheet.records import CellRecord, SheetData, SheetInfo, SpreadsheetInfo

__all__ = [
    "Alignment",
    "Cell",
    "CellStyle",
    "Column",
    "ColumnType",
    "Merge",
    "Range",
    "Row",
    "column_index",
    "column_letter",
    "effective_style",
    "Geometry",
    "Grid",
    "compare_cell_values",
    "validate_merge",
    "format_number",
    "parse_number",
    "CellRecord",
    "SheetData",
    "SheetInfo",
    "SpreadsheetInfo",
]
