"""CellEvaluator: computes formula cells of a payxl Workbook.

Formulas are tokenized and syntax-checked once, then walked by a small
recursive descent that follows the same grammar as
:func:`payxl.calc.check_syntax`.  Defined names resolve to the cell they
point at; formula cells reached that way are evaluated on demand and
cached until the next :meth:`CellEvaluator.notify_set_formula`.

Functions outside the builtin registry fall back to the ``formulas``
library's Excel function implementations when enabled.
"""

from __future__ import annotations

import logging
import operator
from typing import TYPE_CHECKING, Any

from payxl._errors import FormulaSyntaxError, UnsupportedOperationError
from payxl._utils import a1_to_rowcol
from payxl.calc._functions import (
    ERROR_CODES,
    ExcelError,
    FunctionRegistry,
    RangeValue,
    first_error,
    is_error,
    power,
)
from payxl.calc._parser import Token, checked_tokens, expand_range, range_shape
from payxl.calc._protocol import CellType, CellValue

if TYPE_CHECKING:
    from payxl._workbook import Workbook
    from payxl._worksheet import Cell

logger = logging.getLogger(__name__)

# Binary operator levels, loosest first
_LEVELS = (
    frozenset({"=", "<>", "<", ">", "<=", ">="}),
    frozenset({"&"}),
    frozenset({"+", "-"}),
    frozenset({"*", "/"}),
    frozenset({"^"}),
)
_SIGNS = frozenset({"+", "-"})

_COMPARISONS = {
    "=": operator.eq,
    "<>": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}
_ARITHMETIC = {"+": operator.add, "-": operator.sub, "*": operator.mul}

# Functions that inspect error arguments instead of propagating them
_ERROR_AWARE = frozenset({"IF", "IFERROR", "COUNT", "COUNTA"})


def _to_number(value: Any) -> Any:
    """Arithmetic operand coercion; anything unusable becomes ``#VALUE!``."""
    if value is None:
        return 0
    if isinstance(value, ExcelError):
        return value
    if isinstance(value, (bool, int, float)):
        return int(value) if isinstance(value, bool) else value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return ExcelError.VALUE
    return ExcelError.VALUE


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _number_literal(text: str) -> float:
    # cells hold doubles; overlong literals become inf
    return float(text)


def _apply(op: str, left: Any, right: Any) -> Any:
    err = first_error(left, right)
    if err is not None:
        return err
    if op == "&":
        return _to_text(left) + _to_text(right)
    if op in _COMPARISONS:
        return _compare(op, left, right)
    lnum, rnum = _to_number(left), _to_number(right)
    err = first_error(lnum, rnum)
    if err is not None:
        return err
    if op == "/":
        return ExcelError.DIV0 if rnum == 0 else lnum / rnum
    if op == "^":
        return power(lnum, rnum)
    return _ARITHMETIC[op](lnum, rnum)


def _compare(op: str, left: Any, right: Any) -> bool:
    """Numeric comparison when both sides are numbers, else case-insensitive text."""
    lnum, rnum = _to_number(left), _to_number(right)
    if not is_error(lnum) and not is_error(rnum):
        return _COMPARISONS[op](lnum, rnum)
    return _COMPARISONS[op](_to_text(left).lower(), _to_text(right).lower())


def _sheet_and_coordinate(ref: str, default_sheet: str) -> tuple[str, str]:
    """``"'My Sheet'!$A$1"`` -> ``("My Sheet", "A1")``."""
    sheet = default_sheet
    if "!" in ref:
        prefix, ref = ref.rsplit("!", 1)
        if prefix.startswith("'"):
            prefix = prefix[1:-1].replace("''", "'")
        sheet = prefix
    return sheet, ref.replace("$", "").replace(" ", "").upper()


class _FormulaWalk:
    """One pass over a checked token stream, producing the formula's value."""

    def __init__(self, evaluator: CellEvaluator, tokens: list[Token], sheet: str) -> None:
        self._evaluator = evaluator
        self._tokens = tokens
        self._sheet = sheet
        self._pos = 0

    def value(self) -> Any:
        return self._binary(0)

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _take(self, kind: str) -> bool:
        tok = self._peek()
        if tok is None or tok.kind != kind:
            return False
        self._pos += 1
        return True

    def _take_op(self, ops: frozenset[str]) -> str | None:
        tok = self._peek()
        if tok is None or tok.kind != "op" or tok.text not in ops:
            return None
        self._pos += 1
        return tok.text

    def _binary(self, level: int) -> Any:
        if level == len(_LEVELS):
            return self._unary()
        result = self._binary(level + 1)
        op = self._take_op(_LEVELS[level])
        while op is not None:
            result = _apply(op, result, self._binary(level + 1))
            op = self._take_op(_LEVELS[level])
        return result

    def _unary(self) -> Any:
        sign = self._take_op(_SIGNS)
        if sign is not None:
            operand = self._unary()
            if sign == "+":
                return operand
            number = _to_number(operand)
            return number if is_error(number) else -number
        result = self._primary()
        while self._take("percent"):
            number = _to_number(result)
            result = number if is_error(number) else number / 100
        return result

    def _primary(self) -> Any:
        tok = self._next()
        if tok.kind == "number":
            return _number_literal(tok.text)
        if tok.kind == "string":
            return tok.text[1:-1].replace('""', '"')
        if tok.kind == "error":
            return ExcelError.of(tok.text)
        if tok.kind == "ref":
            return self._evaluator._reference(tok.text, self._sheet)
        if tok.kind == "lparen":
            inner = self._binary(0)
            self._next()
            return inner
        if self._take("lparen"):
            return self._call(tok.text.upper())
        return self._evaluator._name(tok.text)

    def _call(self, name: str) -> Any:
        func = self._evaluator._functions.get(name)
        if func is None:
            raise UnsupportedOperationError(
                f"Function {name} is not implemented by the calc engine"
            )
        args = self._arguments()
        if name not in _ERROR_AWARE:
            err = first_error(*args)
            if err is not None:
                return err
        try:
            return func(args)
        except (ArithmeticError, TypeError, ValueError) as e:
            logger.debug("%s failed: %s", name, e)
            return ExcelError.VALUE

    def _arguments(self) -> list[Any]:
        args: list[Any] = []
        if self._take("rparen"):
            return args
        while True:
            tok = self._peek()
            args.append(None if tok is None or tok.kind in ("comma", "rparen") else self._binary(0))
            if self._take("rparen"):
                return args
            self._next()


class CellEvaluator:
    """Evaluates formula cells of a payxl Workbook.

    Usage::

        evaluator = CellEvaluator(workbook)
        cell.set_formula("ROUND(CTC*12%,0)")
        evaluator.notify_set_formula(cell)
        result = evaluator.evaluate(cell)   # CellValue(NUMERIC, 6000.0)
    """

    def __init__(
        self,
        workbook: Workbook,
        functions: FunctionRegistry | None = None,
        use_formulas: bool = True,
    ) -> None:
        self._workbook = workbook
        self._functions = functions or FunctionRegistry()
        self._use_formulas = use_formulas
        self._results: dict[str, Any] = {}  # "'Sheet'!$A$1" -> value
        self._pending: set[str] = set()
        self._tokens: dict[str, list[Token]] = {}
        self._compiled: dict[str, Any] = {}

    def notify_set_formula(self, cell: Cell) -> None:
        """Forget cached results after *cell* received a new formula.

        Any cached cell may depend on *cell*, so the whole cache goes.
        """
        self._results.clear()

    def evaluate(self, cell: Cell) -> CellValue:
        """Evaluate *cell* to a typed result.

        Raises :class:`~payxl._errors.UnsupportedOperationError` when the
        formula calls a function neither the builtins nor the ``formulas``
        fallback can evaluate.
        """
        if cell.cell_type is CellType.NUMERIC:
            return CellValue(CellType.NUMERIC, cell.value)
        if cell.cell_type is not CellType.FORMULA:
            return CellValue(CellType.BLANK)
        return CellValue.of(self._cell_result(cell))

    def evaluate_formula(self, formula: str, sheet: str) -> Any:
        """Evaluate a formula string that is not stored in any cell."""
        return self._run(formula, sheet)

    def _cell_result(self, cell: Cell) -> Any:
        if cell.cell_type is CellType.NUMERIC:
            return cell.value
        if cell.formula is None:
            return None
        key = cell.reference
        if key in self._results:
            return self._results[key]
        if key in self._pending:
            logger.debug("Circular reference at %s", key)
            return ExcelError.REF
        self._pending.add(key)
        try:
            result = self._run(cell.formula, cell.worksheet.title)
        finally:
            self._pending.discard(key)
        self._results[key] = result
        return result

    def _run(self, formula: str, sheet: str) -> Any:
        body = formula.strip()
        if body.startswith("="):
            body = body[1:].strip()
        tokens = self._tokens.get(body)
        if tokens is None:
            tokens = self._tokens[body] = checked_tokens(body)
        try:
            result = _FormulaWalk(self, tokens, sheet).value()
        except UnsupportedOperationError:
            if not self._use_formulas:
                raise
            result = self._formulas_fallback(body, sheet)
            if result is None:
                raise
            logger.debug("Evaluated %r with the formulas library", body)
        # a bare range has no single value
        if isinstance(result, RangeValue):
            return ExcelError.VALUE
        # a blank final result reads as zero
        return 0.0 if result is None else result

    # -- references -------------------------------------------------------

    def _name(self, text: str) -> Any:
        upper = text.upper()
        if upper in ("TRUE", "FALSE"):
            return upper == "TRUE"
        target = self._workbook.resolve_name(text)
        if target is not None:
            return self._cell_result(target)
        if self._workbook.get_name(text) is not None:
            return ExcelError.REF
        logger.debug("Unknown name %r", text)
        return ExcelError.NAME

    def _reference(self, text: str, sheet: str) -> Any:
        ref_sheet, coordinate = _sheet_and_coordinate(text, sheet)
        if ":" not in coordinate:
            return self._value_at(ref_sheet, coordinate)
        values = [self._value_at(ref_sheet, ref) for ref in expand_range(coordinate)]
        return RangeValue(values, *range_shape(coordinate))

    def _value_at(self, sheet: str, coordinate: str) -> Any:
        ws = self._workbook.get_sheet(sheet)
        if ws is None:
            return ExcelError.REF
        row, col = a1_to_rowcol(coordinate)
        cell = ws.cell_at(row - 1, col - 1)
        return None if cell is None else self._cell_result(cell)

    # -- formulas library fallback ---------------------------------------

    def _formulas_fallback(self, body: str, sheet: str) -> Any:
        """Evaluate *body* with the ``formulas`` library, or ``None`` if it can't."""
        import formulas
        import numpy as np

        compiled = self._compiled.get(body)
        if compiled is None:
            try:
                compiled = formulas.Parser().ast(f"={body}")[1].compile()
            except Exception as e:
                logger.debug("formulas cannot compile %r: %s", body, e)
                return None
            self._compiled[body] = compiled

        inputs: list[Any] = []
        for ref in compiled.inputs:
            try:
                value = _FormulaWalk(self, checked_tokens(ref), sheet).value()
            except FormulaSyntaxError:
                logger.debug("formulas input %r is not a reference", ref)
                return None
            if isinstance(value, ExcelError):
                return value
            if isinstance(value, RangeValue):
                grid = [0 if v is None else v for v in value.values]
                inputs.append(np.array(grid, dtype=object).reshape(value.n_rows, value.n_cols))
            elif value is None or (isinstance(value, (int, float)) and not isinstance(value, bool)):
                inputs.append(np.float64(value or 0))
            else:
                inputs.append(value)

        try:
            raw = compiled(*inputs)
        except Exception as e:
            logger.debug("formulas failed on %r: %s", body, e)
            return None
        return _from_formulas(raw)


def _from_formulas(raw: Any) -> Any:
    """Plain Python scalar from a ``formulas`` result; ``None`` for non-scalars."""
    import numpy as np

    if raw is None:
        return None
    flat = np.asarray(raw, dtype=object).ravel()
    if flat.size != 1:
        return None
    value = flat[0]
    # formulas' XlError is a str subclass holding the code
    if isinstance(value, str) and str(value) in ERROR_CODES:
        return ExcelError.of(str(value))
    if isinstance(value, np.generic):
        value = value.item()
    return value if isinstance(value, (bool, int, float, str)) else None
