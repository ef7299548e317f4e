"""A1-style cell address helpers.

Addresses are column letters followed by a 1-based row number ("B12").
Coordinates are 0-based (row, col) tuples.
"""

import re
from typing import List, Tuple

CELL_PATTERN = re.compile(r"^([A-Za-z]+)([0-9]+)$")


def is_cell_ref(text: str) -> bool:
    """True if text looks like an A1-style address (letters then digits)."""
    return bool(CELL_PATTERN.match(text))


def cell_to_coords(cell_ref: str) -> Tuple[int, int]:
    """Convert an address to 0-based (row, col).

    Example: "A1" -> (0, 0), "AB3" -> (2, 27)

    Raises:
        ValueError: If cell_ref is not an A1-style address
    """
    match = CELL_PATTERN.match(cell_ref.strip())
    if not match:
        raise ValueError(f"Invalid cell reference: {cell_ref}")

    col = 0
    for ch in match.group(1).upper():
        col = col * 26 + (ord(ch) - ord("A") + 1)

    row = int(match.group(2)) - 1
    if row < 0:
        raise ValueError(f"Invalid cell reference: {cell_ref}")

    return row, col - 1


def coords_to_cell(row: int, col: int) -> str:
    """Convert 0-based (row, col) back to an address. (0, 27) -> "AB1"."""
    letters = ""
    col_num = col + 1
    while col_num > 0:
        col_num, remainder = divmod(col_num - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return f"{letters}{row + 1}"


def expand_range(start: str, end: str) -> List[str]:
    """Expand a rectangular range into addresses, row-major.

    The corners may be given in any order; "B2:A1" covers the same cells
    as "A1:B2".
    """
    start_row, start_col = cell_to_coords(start)
    end_row, end_col = cell_to_coords(end)

    top, bottom = sorted((start_row, end_row))
    left, right = sorted((start_col, end_col))

    return [
        coords_to_cell(row, col)
        for row in range(top, bottom + 1)
        for col in range(left, right + 1)
    ]
