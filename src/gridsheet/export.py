"""
One-way export of a grid to tabular data.

The projection is a header row of column names followed by one row of
display strings per grid row (formula results evaluated unless asked for the
raw values). It is stateless and never feeds back into the grid.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from openpyxl.utils import get_column_letter

from gridsheet.formula import FormulaEngine
from gridsheet.spreadsheet.grid import Grid

logger = logging.getLogger(__name__)

# Approximate pixels per character of an Excel column width.
PIXELS_PER_CHAR = 8


def _body(grid: Grid, evaluate: bool, engine: Optional[FormulaEngine]) -> List[List[str]]:
    engine = engine or FormulaEngine()
    body = []
    for r in range(grid.row_count):
        if evaluate:
            body.append([engine.display_value(grid, r, c) for c in range(grid.column_count)])
        else:
            body.append([grid.raw_value(r, c) for c in range(grid.column_count)])
    return body


def to_matrix(
    grid: Grid, evaluate: bool = True, engine: Optional[FormulaEngine] = None
) -> List[List[str]]:
    """Project a grid to a matrix of strings.

    Args:
        grid: Grid to export
        evaluate: Show formula results (True) or formulas as typed (False)
        engine: Formula engine to evaluate with

    Returns:
        Column names as the first row, then one row per grid row
    """
    header = [column.name for column in grid.columns]
    return [header] + _body(grid, evaluate, engine)


def to_dataframe(
    grid: Grid, evaluate: bool = True, engine: Optional[FormulaEngine] = None
) -> pd.DataFrame:
    """Project a grid to a DataFrame with the column names as columns."""
    return pd.DataFrame(
        _body(grid, evaluate, engine),
        columns=[column.name for column in grid.columns],
        dtype=object,
    )


def write_xlsx(
    grid: Grid,
    path: Union[str, Path],
    sheet_name: str = "Sheet1",
    engine: Optional[FormulaEngine] = None,
) -> Path:
    """Write a grid's display values to an .xlsx workbook.

    Column widths follow the grid (pixels / 8, in characters) and merged
    regions are merged in the workbook as well.

    Returns:
        The path written
    """
    path = Path(path)
    df = to_dataframe(grid, evaluate=True, engine=engine)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        worksheet = writer.sheets[sheet_name]
        for i, column in enumerate(grid.columns):
            worksheet.column_dimensions[get_column_letter(i + 1)].width = round(
                column.width / PIXELS_PER_CHAR
            )
        for merge in grid.merges:
            end_row = min(merge.end_row, grid.row_count - 1)
            end_col = min(merge.end_col, grid.column_count - 1)
            if merge.start_row > end_row or merge.start_col > end_col:
                continue
            if merge.start_row == end_row and merge.start_col == end_col:
                continue
            # Row 1 of the worksheet holds the header.
            worksheet.merge_cells(
                start_row=merge.start_row + 2,
                start_column=merge.start_col + 1,
                end_row=end_row + 2,
                end_column=end_col + 1,
            )
    logger.info("Exported %d rows to %s", grid.row_count, path)
    return path
