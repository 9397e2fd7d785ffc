"""Binding registrar: places each definition in its own cell and names that cell."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from payxl._errors import FormulaEvaluationError, NonNumericResultError
from payxl.batch._classifier import parse_constant
from payxl.batch._protocol import (
    Classification,
    Constant,
    Definition,
    NamedBinding,
    Slot,
    StepOutcome,
)
from payxl.calc._protocol import CellType

if TYPE_CHECKING:
    from payxl._workbook import Workbook
    from payxl._worksheet import Cell
    from payxl.calc._evaluator import CellEvaluator

logger = logging.getLogger(__name__)


class SlotAllocator:
    """Hands out one fresh row per definition in a fixed column."""

    def __init__(self, sheet_name: str, column: int = 0, first_row: int = 0) -> None:
        self._sheet_name = sheet_name
        self._column = column
        self._next_row = first_row

    def allocate(self) -> Slot:
        slot = Slot(self._sheet_name, self._next_row, self._column)
        self._next_row += 1
        return slot


def _attempt(step: Callable[[], object]) -> StepOutcome:
    """Run *step*, turning per-definition backend failures into a tagged outcome.

    Errors without a :class:`~payxl._errors.FailureKind` (slot conflicts,
    closed workbooks, anything unexpected) propagate.
    """
    try:
        return StepOutcome.success(step())
    except FormulaEvaluationError as exc:
        if exc.kind is None:
            raise
        return StepOutcome.failed(exc)


class BindingRegistrar:
    """Registers definitions in a workbook and evaluates their cells.

    The registrar never owns the workbook; the caller opens and closes it.
    """

    def __init__(self, workbook: Workbook, evaluator: CellEvaluator) -> None:
        self._workbook = workbook
        self._evaluator = evaluator
        self._cells: dict[str, Cell] = {}

    def bind(self, slot: Slot, definition: Definition, classification: Classification) -> NamedBinding:
        """Create the slot's row and cell, write the content, then name the cell.

        Raises the backend's error on failure.
        """
        sheet = self._workbook.get_or_create_sheet(slot.sheet_name)
        row = sheet.create_row(slot.row)
        if isinstance(classification, Constant):
            value = parse_constant(definition.raw_text)
            cell = row.create_cell(slot.column, CellType.NUMERIC)
            cell.set_numeric_value(value)
        else:
            cell = row.create_cell(slot.column, CellType.FORMULA)
            cell.set_formula(definition.raw_text)
            self._evaluator.notify_set_formula(cell)
        self._workbook.create_name(definition.name, cell, comment=definition.raw_text)
        self._cells[definition.name] = cell
        return NamedBinding(
            name=definition.name,
            slot=slot,
            raw_text=definition.raw_text,
            classification=classification,
        )

    def register(self, slot: Slot, definition: Definition, classification: Classification) -> StepOutcome:
        """Tagged :meth:`bind`: the outcome's value is the :class:`NamedBinding`."""
        return _attempt(lambda: self.bind(slot, definition, classification))

    def compute(self, binding: NamedBinding) -> float:
        """Evaluate a bound definition's cell to a finite number.

        Raises :class:`NonNumericResultError` for text, boolean, blank, error
        and unresolved results.
        """
        cell = self._cells[binding.name]
        result = self._evaluator.evaluate(cell)
        number = result.as_number()
        if number is None:
            raise NonNumericResultError(
                f"Cannot parse output: {result.as_text() or result.value!r} "
                f"({result.cell_type.name}) of {binding.name} at {binding.slot} to double"
            )
        logger.debug("Evaluated %s at %s to %r", binding.name, binding.slot, number)
        return number

    def evaluate(self, binding: NamedBinding) -> StepOutcome:
        """Tagged :meth:`compute`: the outcome's value is the number."""
        return _attempt(lambda: self.compute(binding))
