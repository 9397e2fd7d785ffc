"""Coordinate helpers and sheet/name validation rules for the workbook backend."""

from __future__ import annotations

import re

from payxl._errors import InvalidSheetNameError

# Grid bounds of the xlsx format, as 0-based indices.
MAX_ROW_INDEX = 1_048_575
MAX_COLUMN_INDEX = 16_383

MAX_SHEET_NAME_LENGTH = 31
_ILLEGAL_SHEET_CHARS = frozenset(":\\*?/[]")

_A1_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")
_R1C1_RE = re.compile(r"^[Rr](\d*)[Cc](\d*)$")


def column_letter(col: int) -> str:
    """Convert a 1-based column number to letters (1 -> A, 27 -> AA)."""
    if col < 1:
        raise ValueError(f"Invalid column number: {col}")
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Convert column letters to a 1-based column number (A -> 1, AA -> 27)."""
    result = 0
    for ch in letters.upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column letters: {letters!r}")
        result = result * 26 + (ord(ch) - 64)
    return result


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """``"B3"`` -> ``(3, 2)`` (1-based row, column)."""
    m = _A1_RE.match(ref.strip())
    if not m:
        raise ValueError(f"Invalid A1 reference: {ref!r}")
    return int(m.group(2)), column_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """``(3, 2)`` -> ``"B3"`` (1-based row, column)."""
    return f"{column_letter(col)}{row}"


def quote_sheet(sheet_name: str) -> str:
    return "'" + sheet_name.replace("'", "''") + "'"


def absolute_reference(sheet_name: str, row_index: int, column_index_: int) -> str:
    """Absolute reference for 0-based indices: ``('Pay', 1, 0)`` -> ``'Pay'!$A$2``."""
    return f"{quote_sheet(sheet_name)}!${column_letter(column_index_ + 1)}${row_index + 1}"


def is_cell_reference(text: str) -> bool:
    """True when *text* would be read as an A1 or R1C1 cell reference."""
    m = _A1_RE.match(text)
    if m:
        row = int(m.group(2))
        return 1 <= row <= MAX_ROW_INDEX + 1 and column_index(m.group(1)) <= MAX_COLUMN_INDEX + 1
    return _R1C1_RE.match(text) is not None


def validate_sheet_name(name: str | None, existing: list[str] | None = None) -> None:
    """Raise :class:`InvalidSheetNameError` if *name* cannot be used for a new sheet."""
    msg = "Illegal name for sheet. "
    if name is None or not name.strip():
        raise InvalidSheetNameError(msg + "Sheet name cannot be null/empty/blank")
    if len(name) > MAX_SHEET_NAME_LENGTH:
        raise InvalidSheetNameError(
            msg + f"Sheet name cannot be longer than {MAX_SHEET_NAME_LENGTH} chars"
        )
    if any(ch in _ILLEGAL_SHEET_CHARS or ord(ch) < 32 for ch in name):
        raise InvalidSheetNameError(msg + "Sheet name contains illegal characters")
    if name.startswith("'") or name.endswith("'"):
        raise InvalidSheetNameError(msg + "Sheet name cannot start or end with single quote")
    if existing is not None and name.lower() in (s.lower() for s in existing):
        raise InvalidSheetNameError(f"Cannot create sheet with name: {name} as it already exists")
