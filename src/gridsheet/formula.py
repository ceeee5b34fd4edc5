"""
Formula evaluation for grid cells.

A raw value that does not start with '=' is displayed as-is. A value that
does is matched, case-insensitively, against a fixed set of call shapes:

    =SUM(A1:A10)   =COUNT(B2:C5)   =AVG(A1:A3)   =MIN(A1:A3)   =MAX(A1:A3)

Anything else is displayed unevaluated, exactly as typed. Aggregates read the
raw values of the referenced cells and never evaluate them, so a range may
include formula cells (even the formula's own cell) without recursion.
Nothing is cached: every call recomputes from the grid it is given.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from gridsheet.spreadsheet.grid import Grid
from gridsheet.spreadsheet.model import Range, column_letter
from gridsheet.spreadsheet.numbers import format_number, parse_number

logger = logging.getLogger(__name__)


_TOKEN_RE = re.compile(
    r"(?P<REF>[A-Z]+[0-9]+)"
    r"|(?P<NAME>[A-Z]+)"
    r"|(?P<LPAREN>\()"
    r"|(?P<RPAREN>\))"
    r"|(?P<COLON>:)"
    r"|(?P<WS>\s+)"
    r"|(?P<OTHER>.)"
)

# Shape of every supported formula after the leading '='.
_CALL_SHAPE = ("NAME", "LPAREN", "REF", "COLON", "REF", "RPAREN")


class AggregateFunction(str, Enum):
    SUM = "SUM"
    COUNT = "COUNT"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"


@dataclass(frozen=True)
class AggregateCall:
    """A recognized formula: one aggregate over one rectangular range."""
    function: AggregateFunction
    range: Range

    def to_formula(self) -> str:
        """Canonical text of this call (always two corners)."""
        return f"={self.function.value}({_corner(self.range, True)}:{_corner(self.range, False)})"


def _corner(rng: Range, start: bool) -> str:
    if start:
        return f"{column_letter(rng.col)}{rng.row + 1}"
    return f"{column_letter(rng.col_end)}{rng.row_end + 1}"


class UnsupportedFormula(ValueError):
    """Internal signal carrying the reason a formula did not match."""


def is_formula(raw: Optional[str]) -> bool:
    return bool(raw) and raw.startswith("=")


def _tokenize(body: str) -> List[Tuple[str, str]]:
    tokens = []
    for match in _TOKEN_RE.finditer(body):
        kind = match.lastgroup
        if kind == "WS":
            continue
        tokens.append((kind, match.group()))
    return tokens


def _match_call(raw: str) -> AggregateCall:
    tokens = _tokenize(raw[1:].upper())
    kinds = tuple(kind for kind, _ in tokens)
    if "OTHER" in kinds:
        bad = next(text for kind, text in tokens if kind == "OTHER")
        raise UnsupportedFormula(f"unexpected character {bad!r}")
    if kinds != _CALL_SHAPE:
        raise UnsupportedFormula("expected FUNCTION(<col><row>:<col><row>)")

    name = tokens[0][1]
    try:
        function = AggregateFunction(name)
    except ValueError:
        raise UnsupportedFormula(f"unknown function {name}") from None

    try:
        rng = Range.from_a1(f"{tokens[2][1]}:{tokens[4][1]}")
    except ValueError as e:
        raise UnsupportedFormula(str(e)) from None
    return AggregateCall(function, rng)


def parse_formula(raw: Optional[str]) -> Optional[AggregateCall]:
    """Recognize a supported formula.

    Returns:
        The aggregate call, or None when the value is not a formula or does
        not match a supported shape
    """
    if not is_formula(raw):
        return None
    try:
        return _match_call(raw)
    except UnsupportedFormula:
        return None


def diagnose(raw: Optional[str]) -> Optional[str]:
    """Explain why a formula is displayed unevaluated.

    Returns:
        A short reason, or None when the value is not a formula or is supported
    """
    if not is_formula(raw):
        return None
    try:
        _match_call(raw)
    except UnsupportedFormula as e:
        return str(e)
    return None


def _collect(grid: Grid, rng: Range) -> List[str]:
    """Raw values inside ``rng``, clamped to the grid's current size."""
    row_end = min(rng.row_end, grid.row_count - 1)
    col_end = min(rng.col_end, grid.column_count - 1)
    values = []
    for r in range(rng.row, row_end + 1):
        row = grid.rows[r]
        for c in range(rng.col, col_end + 1):
            values.append(row.value(grid.columns[c].id))
    return values


def _numbers(values: List[str]) -> List[float]:
    parsed = (parse_number(v) for v in values)
    return [n for n in parsed if n is not None]


def _sum(values: List[str]) -> str:
    return format_number(sum(_numbers(values)))


def _count(values: List[str]) -> str:
    return str(sum(1 for v in values if v != ""))


def _avg(values: List[str]) -> str:
    numbers = _numbers(values)
    if not numbers:
        return "0"
    mean = sum(numbers) / len(numbers)
    if not math.isfinite(mean):
        raise OverflowError(f"Result out of range: {mean}")
    return f"{mean:.2f}"


def _min(values: List[str]) -> str:
    numbers = _numbers(values)
    return format_number(min(numbers)) if numbers else "0"


def _max(values: List[str]) -> str:
    numbers = _numbers(values)
    return format_number(max(numbers)) if numbers else "0"


class FormulaEngine:
    """Evaluates cell formulas against a grid snapshot.

    Attributes:
        functions: Aggregate implementations keyed by function; each takes
                   the raw values of the range and returns display text
    """

    def __init__(self) -> None:
        self.functions: Dict[AggregateFunction, Callable[[List[str]], str]] = {
            AggregateFunction.SUM: _sum,
            AggregateFunction.COUNT: _count,
            AggregateFunction.AVG: _avg,
            AggregateFunction.MIN: _min,
            AggregateFunction.MAX: _max,
        }

    def evaluate(self, raw: Optional[str], grid: Grid) -> str:
        """Return the value to display for a raw cell value.

        Args:
            raw: The cell's raw value
            grid: Snapshot the formula's range is read from

        Returns:
            ``raw`` unchanged when it is not a supported formula, otherwise
            the aggregate result
            (also ``raw`` when the result overflows)
        """
        if raw is None:
            return ""
        if not is_formula(raw):
            return raw
        call = parse_formula(raw)
        if call is None:
            logger.debug("Unsupported formula shown verbatim: %s", raw)
            return raw
        try:
            return self.functions[call.function](_collect(grid, call.range))
        except OverflowError:
            logger.debug("Formula result out of range, shown verbatim: %s", raw)
            return raw

    def display_value(self, grid: Grid, row_index: int, col_index: int) -> str:
        """Display text of the cell at an index position."""
        return self.evaluate(grid.raw_value(row_index, col_index), grid)


_default_engine = FormulaEngine()


def evaluate(raw: Optional[str], grid: Grid) -> str:
    """Evaluate with the default engine (see ``FormulaEngine.evaluate``)."""
    return _default_engine.evaluate(raw, grid)
