"""
Unit tests for utility modules.

Tests cover:
- Serialization: grid snapshots to and from JSON
- Visualization: plain-text rendering
- Logging: logger configuration
"""

import json
import logging

import pytest

from gridsheet.spreadsheet.grid import Grid
from gridsheet.spreadsheet.model import CellStyle, Range
from gridsheet.utils import (
    SERIALIZATION_VERSION,
    configure_logging,
    deserialize,
    from_json,
    render_text,
    serialize,
    to_json,
)


class TestSerialization:
    """Test suite for grid serialization."""

    def test_round_trip_preserves_everything(self, grid):
        styled = grid.apply_style(grid.rows[0].id, grid.columns[0].id, CellStyle(bold=True))
        styled = styled.toggle_header(styled.rows[1].id).add_merge(Range(2, 1, 3, 2))
        restored = from_json(to_json(styled, indent=2))
        assert restored == styled
        assert restored.version == styled.version

    def test_format(self, grid):
        data = serialize(grid)
        assert data["version"] == SERIALIZATION_VERSION
        assert len(data["grid"]["columns"]) == 3
        assert data["grid"]["rows"][3]["cells"]
        json.dumps(data)

    def test_serialize_rejects_non_grid(self):
        with pytest.raises(TypeError, match="Expected Grid"):
            serialize({"columns": []})

    def test_deserialize_validation(self):
        with pytest.raises(TypeError):
            deserialize([])
        with pytest.raises(ValueError, match="'version'"):
            deserialize({"grid": {}})
        with pytest.raises(ValueError, match="'grid'"):
            deserialize({"version": SERIALIZATION_VERSION})
        with pytest.raises(ValueError, match="Unsupported serialization version"):
            deserialize({"version": "0.1", "grid": {}})

    def test_missing_field(self):
        data = {"version": SERIALIZATION_VERSION, "grid": {"columns": [{"name": "A"}]}}
        with pytest.raises(ValueError, match="Missing required field"):
            deserialize(data)

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Invalid JSON"):
            from_json("{not json")


class TestRenderText:
    """Test suite for text rendering."""

    def test_basic(self):
        grid = Grid.seed(columns=2, rows=1)
        grid = grid.set_cell_value(grid.rows[0].id, grid.columns[0].id, "hi")
        assert render_text(grid) == "  | A  | B\n--+----+--\n1 | hi |"

    def test_formulas_show_results(self, grid):
        last_line = render_text(grid).splitlines()[-1]
        assert last_line.split("|")[-1].strip() == "15"

    def test_absorbed_cells_blank(self, grid):
        merged = grid.add_merge(Range(0, 0, 0, 1))
        first_row = render_text(merged).splitlines()[2]
        assert "x" not in first_row
        assert "5" in first_row

    def test_clipping(self):
        grid = Grid.seed(columns=1, rows=1)
        grid = grid.set_cell_value(grid.rows[0].id, grid.columns[0].id, "a" * 30)
        assert ("a" * 9 + "…") in render_text(grid, max_width=10)
        assert "a" * 11 not in render_text(grid, max_width=10)

    def test_rejects_non_grid(self):
        with pytest.raises(TypeError):
            render_text("grid")


class TestConfigureLogging:
    """Test suite for logging setup."""

    def test_level_and_single_handler(self):
        configure_logging("DEBUG")
        configure_logging(logging.WARNING)
        logger = logging.getLogger("gridsheet")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING

    def test_custom_format(self):
        configure_logging("INFO", format_string="%(levelname)s %(message)s")
        handler = logging.getLogger("gridsheet").handlers[0]
        assert handler.formatter._fmt == "%(levelname)s %(message)s"

    def test_default_level_from_settings(self):
        from gridsheet.config import get_settings

        configure_logging()
        assert logging.getLogger("gridsheet").level == getattr(logging, get_settings().log_level)
