"""Value coercion and formatting shared by the formula engine and templates.

Field values are numbers, text, or date strings. Arithmetic accepts numbers,
booleans and numeric text; anything else is a #VALUE! error.
"""

import re
from typing import Any, Optional, Tuple, Union

Value = Union[int, float, str, bool]

_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


class CoercionError(ValueError):
    """Raised when a value cannot be used as a number."""
    pass


def is_number(value: Any) -> bool:
    """True for int/float values (booleans excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse numeric text ("1200", "1200.50", "12.5%"), None if not numeric."""
    cleaned = text.strip()
    if not cleaned:
        return None

    is_percent = cleaned.endswith("%")
    if is_percent:
        cleaned = cleaned[:-1].strip()

    if not _NUMERIC_RE.match(cleaned):
        return None

    if any(ch in cleaned for ch in ".eE"):
        number = float(cleaned)
    else:
        number = int(cleaned)

    return number / 100 if is_percent else number


def to_number(value: Any) -> Union[int, float]:
    """Coerce a value for arithmetic.

    None counts as 0 (an empty cell). Booleans become 0/1.

    Raises:
        CoercionError: For text that is not numeric
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if isinstance(value, str):
        number = parse_number(value)
        if number is not None:
            return number
    raise CoercionError(f"#VALUE!: cannot use {value!r} as a number")


def number_or_zero(value: Any) -> Union[int, float]:
    """Like to_number, but non-numeric values count as 0 (section totals)."""
    try:
        return to_number(value)
    except CoercionError:
        return 0


def to_text(value: Any) -> str:
    """Render a value for text concatenation. 10.0 -> "10", True -> "TRUE"."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def sort_key(value: Any) -> Tuple[int, Any]:
    """Ordering key for comparisons: numbers < text < booleans.

    Numeric text compares as a number; text compares case-insensitively.
    """
    if isinstance(value, bool):
        return (2, value)
    if value is None:
        return (0, 0)
    if is_number(value):
        return (0, value)
    text = str(value)
    number = parse_number(text)
    if number is not None:
        return (0, number)
    return (1, text.casefold())


def parse_percentage(value: Any) -> float:
    """Convert "12.5%" to 0.125; plain numbers pass through; junk -> 0."""
    if isinstance(value, str):
        number = parse_number(value)
        return float(number) if number is not None else 0.0
    if is_number(value):
        return float(value)
    return 0.0


def format_currency(value: float, symbol: str = "€") -> str:
    """Format an amount with two decimals and thousands separators."""
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
