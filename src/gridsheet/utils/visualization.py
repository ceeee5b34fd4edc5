"""
Grid visualization utilities.

Provides a plain-text table rendering of a grid's display values, handy in
logs, debugging sessions and test failure messages. Formula cells show their
results; cells absorbed into a merge are left blank so the merge anchor reads
as one cell.
"""

from typing import List, Optional

from ..formula import FormulaEngine
from ..selection import cell_span
from ..spreadsheet.grid import Grid


def render_text(
    grid: Grid,
    max_width: int = 20,
    engine: Optional[FormulaEngine] = None,
) -> str:
    """Render a grid as a text table.

    Args:
        grid: The grid to render
        max_width: Cells longer than this are cut and end with '…'
        engine: Formula engine to evaluate with

    Returns:
        A string with a header line of column names, a rule, and one line
        per row prefixed with its 1-based row number

    Example:
        >>> grid = Grid.seed(columns=2, rows=1)
        >>> grid = grid.set_cell_value(grid.rows[0].id, grid.columns[0].id, "hi")
        >>> print(render_text(grid))
          | A  | B
        --+----+--
        1 | hi |
    """
    if not isinstance(grid, Grid):
        raise TypeError(f"Expected Grid, got {type(grid)}")

    engine = engine or FormulaEngine()
    header = [column.name for column in grid.columns]
    body: List[List[str]] = []
    for r in range(grid.row_count):
        line = []
        for c in range(grid.column_count):
            if cell_span(grid.merges, r, c) is None:
                line.append("")
            else:
                line.append(_clip(engine.display_value(grid, r, c), max_width))
        body.append(line)

    widths = [
        max([len(_clip(name, max_width))] + [len(line[c]) for line in body])
        for c, name in enumerate(header)
    ]
    gutter = len(str(grid.row_count))

    lines = [_join(" " * gutter, [_clip(n, max_width) for n in header], widths)]
    lines.append("-" * gutter + "-+-" + "-+-".join("-" * w for w in widths))
    for r, line in enumerate(body):
        lines.append(_join(str(r + 1).rjust(gutter), line, widths))
    return "\n".join(l.rstrip() for l in lines)


def _clip(text: str, max_width: int) -> str:
    text = text.replace("\n", " ").replace("\t", " ")
    if len(text) <= max_width:
        return text
    return text[: max_width - 1] + "…"


def _join(label: str, cells: List[str], widths: List[int]) -> str:
    return label + " | " + " | ".join(cell.ljust(w) for cell, w in zip(cells, widths))
