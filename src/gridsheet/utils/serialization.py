"""
Grid serialization utilities.

Provides JSON serialization and deserialization for grid snapshots, for
local backups and for handing a sheet between processes. The serialized
format includes versioning for forward compatibility.
"""

import json
from dataclasses import asdict
from typing import Any, Dict

from ..spreadsheet.grid import Geometry, Grid
from ..spreadsheet.model import Cell, CellStyle, Column, Merge, Row


# Current serialization format version
SERIALIZATION_VERSION = "1.0"


def _row_to_dict(row: Row) -> Dict[str, Any]:
    data = row.to_dict()
    data["cells"] = {
        col_id: {"id": cell.id, "value": cell.value, "style": cell.style.to_dict()}
        for col_id, cell in row.cells.items()
    }
    return data


def _row_from_dict(data: Dict[str, Any]) -> Row:
    cells = {
        col_id: Cell(
            id=cell["id"],
            value=cell.get("value", ""),
            style=CellStyle.from_dict(cell.get("style")),
        )
        for col_id, cell in (data.get("cells") or {}).items()
    }
    return Row.from_dict(data, cells)


def serialize(grid: Grid) -> Dict[str, Any]:
    """Serialize a grid snapshot to a JSON-serializable dictionary.

    The serialized format includes:
    - version: Format version string for forward compatibility
    - grid: Columns, rows with their cells, merges, the snapshot version
      and the geometry

    Args:
        grid: The grid to serialize

    Returns:
        Dictionary that can be serialized to JSON

    Raises:
        TypeError: If grid is not a Grid instance

    Example:
        >>> data = serialize(Grid.seed())
        >>> assert data["version"] == "1.0"
        >>> assert len(data["grid"]["columns"]) == 5
    """
    if not isinstance(grid, Grid):
        raise TypeError(f"Expected Grid, got {type(grid)}")

    return {
        "version": SERIALIZATION_VERSION,
        "grid": {
            "version": grid.version,
            "geometry": asdict(grid.geometry),
            "columns": [column.to_dict() for column in grid.columns],
            "rows": [_row_to_dict(row) for row in grid.rows],
            "merges": [merge.to_dict() for merge in grid.merges],
        },
    }


def deserialize(data: Dict[str, Any]) -> Grid:
    """Deserialize a grid snapshot from a dictionary.

    Args:
        data: Dictionary containing serialized grid data

    Returns:
        Reconstructed Grid with the same version it was serialized at

    Raises:
        ValueError: If data is missing required fields or has invalid structure
        TypeError: If data is not a dictionary
    """
    if not isinstance(data, dict):
        raise TypeError(f"Expected dict, got {type(data)}")

    if "version" not in data:
        raise ValueError("Serialized grid must have 'version' field")
    if "grid" not in data:
        raise ValueError("Serialized grid must have 'grid' field")

    version = data["version"]
    if version != SERIALIZATION_VERSION:
        raise ValueError(
            f"Unsupported serialization version: {version}. "
            f"Expected {SERIALIZATION_VERSION}"
        )

    body = data["grid"]
    try:
        return Grid(
            columns=tuple(Column.from_dict(c) for c in body.get("columns", [])),
            rows=tuple(_row_from_dict(r) for r in body.get("rows", [])),
            merges=tuple(Merge.from_dict(m) for m in body.get("merges", [])),
            version=int(body.get("version", 0)),
            geometry=Geometry(**body.get("geometry", {})),
        )
    except KeyError as e:
        raise ValueError(f"Missing required field in grid: {e}") from e


def to_json(grid: Grid, **kwargs) -> str:
    """Serialize a grid snapshot to a JSON string.

    Args:
        grid: The grid to serialize
        **kwargs: Additional arguments to pass to json.dumps (e.g., indent=2)
    """
    return json.dumps(serialize(grid), **kwargs)


def from_json(json_str: str) -> Grid:
    """Deserialize a grid snapshot from a JSON string.

    Raises:
        ValueError: If JSON is invalid or data structure is invalid
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    return deserialize(data)
