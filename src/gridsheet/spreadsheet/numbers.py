"""
Numeric parsing and formatting shared by sorting and formulas.

Cell values are strings. A value "is numeric" when it starts with a decimal
number, the same leading-prefix rule spreadsheet front ends use: "10" and
"10abc" both read as 10, "abc" and "" do not read at all. Infinity and NaN
spellings never parse.
"""

import math
import re
from typing import Optional

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse the leading number of a raw cell value.

    Args:
        value: Raw cell value

    Returns:
        The parsed float, or None when the value does not start with a number
    """
    if not value:
        return None
    match = _NUMBER_PREFIX.match(value)
    if not match:
        return None
    number = float(match.group(1))
    if not math.isfinite(number):
        return None
    return number


def format_number(number: float) -> str:
    """Format an aggregate result for display.

    Integral values print without a decimal point ("15", not "15.0");
    everything else prints in shortest round-trip form ("2.5").

    Raises:
        OverflowError: If the result is infinite or NaN
    """
    if not math.isfinite(number):
        raise OverflowError(f"Result out of range: {number}")
    if number == 0:
        return "0"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)
