"""Shared pytest configuration and fixtures for gridsheet tests."""

import pytest

from gridsheet.config import GridSettings
from gridsheet.spreadsheet.grid import Grid
from gridsheet.store.memory import MemoryStore


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Include tests marked @pytest.mark.slow (e.g. live Google Sheets)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow (skipped unless --run-slow)")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip = pytest.mark.skip(reason="slow test, pass --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def grid() -> Grid:
    """A 3-column, 4-row grid:

        A     B     C
        5     x
        abc   y
        10
              z     =SUM(A1:A3)
    """
    g = Grid.seed(columns=3, rows=4)
    a, b, c = (col.id for col in g.columns)
    r = [row.id for row in g.rows]
    return g.set_values([
        (r[0], a, "5"), (r[0], b, "x"),
        (r[1], a, "abc"), (r[1], b, "y"),
        (r[2], a, "10"),
        (r[3], b, "z"), (r[3], c, "=SUM(A1:A3)"),
    ])


@pytest.fixture
def fast_settings() -> GridSettings:
    """Settings with short timers so scheduler tests run quickly."""
    return GridSettings(debounce_seconds=0.05, saved_display_seconds=0.05)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def spreadsheet(store):
    return store.create_spreadsheet("Budget", "Quarterly numbers")
