"""Worksheet grid: sheets own rows, rows own cells.

Rows and cells are allocated explicitly and never silently reused, so every
slot in a batch run maps to exactly one fresh cell.  Indices are 0-based;
``Cell.coordinate`` renders the usual 1-based A1 form.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from payxl._errors import SlotConflictError
from payxl._utils import MAX_COLUMN_INDEX, MAX_ROW_INDEX, absolute_reference, rowcol_to_a1
from payxl.calc._parser import check_syntax
from payxl.calc._protocol import CellType

if TYPE_CHECKING:
    from payxl._workbook import Workbook

logger = logging.getLogger(__name__)


class Cell:
    """A single grid cell holding either a number or a formula."""

    __slots__ = ("_row", "_column_index", "_cell_type", "_value", "_formula")

    def __init__(self, row: Row, column_index: int, cell_type: CellType | None = None) -> None:
        self._row = row
        self._column_index = column_index
        self._cell_type = cell_type or CellType.BLANK
        self._value: float | None = None
        self._formula: str | None = None

    @property
    def worksheet(self) -> Worksheet:
        return self._row.worksheet

    @property
    def row_index(self) -> int:
        return self._row.index

    @property
    def column_index(self) -> int:
        return self._column_index

    @property
    def cell_type(self) -> CellType:
        return self._cell_type

    @property
    def value(self) -> float | None:
        return self._value

    @property
    def formula(self) -> str | None:
        """Formula text without the leading ``=``, or None for value cells."""
        return self._formula

    @property
    def coordinate(self) -> str:
        return rowcol_to_a1(self.row_index + 1, self._column_index + 1)

    @property
    def reference(self) -> str:
        """Canonical ``Sheet!A1`` key used by the calc engine."""
        return f"{self.worksheet.title}!{self.coordinate}"

    @property
    def absolute_reference(self) -> str:
        return absolute_reference(self.worksheet.title, self.row_index, self._column_index)

    def set_numeric_value(self, value: float) -> None:
        self._cell_type = CellType.NUMERIC
        self._value = float(value)
        self._formula = None
        logger.debug("Set %s to value %r", self.reference, self._value)

    def set_formula(self, formula: str) -> None:
        """Store *formula* after a syntax check.

        Raises :class:`~payxl._errors.FormulaSyntaxError` and leaves the cell
        untouched when the text does not parse.
        """
        body = formula.strip()
        if body.startswith("="):
            body = body[1:].strip()
        check_syntax(body)
        self._cell_type = CellType.FORMULA
        self._formula = body
        self._value = None
        logger.debug("Set %s to formula %r", self.reference, body)

    def __repr__(self) -> str:
        content = f"={self._formula}" if self._formula is not None else self._value
        return f"<Cell {self.reference} {self._cell_type.name} {content!r}>"


class Row:
    """A worksheet row; cells are created one column at a time."""

    __slots__ = ("_worksheet", "_index", "_cells")

    def __init__(self, worksheet: Worksheet, index: int) -> None:
        self._worksheet = worksheet
        self._index = index
        self._cells: dict[int, Cell] = {}

    @property
    def worksheet(self) -> Worksheet:
        return self._worksheet

    @property
    def index(self) -> int:
        return self._index

    def get_cell(self, column_index: int) -> Cell | None:
        return self._cells.get(column_index)

    def create_cell(self, column_index: int, cell_type: CellType | None = None) -> Cell:
        """Allocate a new cell; fails if the column is out of bounds or occupied."""
        if column_index < 0 or column_index > MAX_COLUMN_INDEX:
            raise SlotConflictError(
                f"Cannot create cell due to invalid column number {column_index}"
            )
        if column_index in self._cells:
            raise SlotConflictError(
                f"Cannot create cell at columnNumber: {column_index} as it already exists"
            )
        cell = Cell(self, column_index, cell_type)
        self._cells[column_index] = cell
        logger.debug("Created cell at: %s with cellType: %s", cell.coordinate, cell.cell_type.name)
        return cell

    def __iter__(self) -> Iterator[Cell]:
        return iter(self._cells[c] for c in sorted(self._cells))


class Worksheet:
    """A named sheet in a :class:`~payxl._workbook.Workbook`."""

    __slots__ = ("_workbook", "_title", "_rows")

    def __init__(self, workbook: Workbook, title: str) -> None:
        self._workbook = workbook
        self._title = title
        self._rows: dict[int, Row] = {}

    @property
    def title(self) -> str:
        return self._title

    @property
    def workbook(self) -> Workbook:
        return self._workbook

    def get_row(self, index: int) -> Row | None:
        return self._rows.get(index)

    def create_row(self, index: int) -> Row:
        """Allocate a new row; fails if the index is out of bounds or taken."""
        if index < 0 or index > MAX_ROW_INDEX:
            raise SlotConflictError(f"Cannot create row due to invalid row number: {index}")
        if index in self._rows:
            raise SlotConflictError(
                f"Cannot create row at rowNumber: {index} as it already exists"
            )
        row = Row(self, index)
        self._rows[index] = row
        logger.debug("Created row: %d on sheet: %s", index + 1, self._title)
        return row

    def cell_at(self, row_index: int, column_index: int) -> Cell | None:
        row = self._rows.get(row_index)
        return row.get_cell(column_index) if row is not None else None

    def iter_rows(self) -> Iterator[Row]:
        return iter(self._rows[r] for r in sorted(self._rows))

    def iter_cells(self) -> Iterator[Cell]:
        for row in self.iter_rows():
            yield from row

    def __repr__(self) -> str:
        return f"<Worksheet {self._title!r} rows={len(self._rows)}>"
