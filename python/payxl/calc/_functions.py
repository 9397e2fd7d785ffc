"""Spreadsheet error values and the builtin function table.

Every builtin receives the list of already-resolved argument values
(numbers, strings, booleans, None for empty, :class:`RangeValue` for
ranges) and returns a plain value or an :class:`ExcelError`.  Raising
``ValueError`` signals a bad call; the evaluator turns it into ``#VALUE!``.
"""

from __future__ import annotations

import functools
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any, Callable

Builtin = Callable[[list[Any]], Any]


class ExcelError:
    """A spreadsheet error value such as ``#DIV/0!``.

    One instance exists per code, so ``is`` comparisons work, and an error
    also compares equal to its code string (case-insensitive).
    """

    __slots__ = ("code",)
    _interned: dict[str, ExcelError] = {}

    NA: ExcelError
    VALUE: ExcelError
    REF: ExcelError
    DIV0: ExcelError
    NUM: ExcelError
    NAME: ExcelError

    def __new__(cls, code: str) -> ExcelError:
        key = code.upper()
        found = cls._interned.get(key)
        if found is None:
            found = super().__new__(cls)
            found.code = key
            cls._interned[key] = found
        return found

    @classmethod
    def of(cls, code: str) -> ExcelError:
        return cls(code)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExcelError):
            return other.code == self.code
        if isinstance(other, str):
            return other.upper() == self.code
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        return self.code

    __repr__ = __str__


ERROR_CODES = frozenset({"#NULL!", "#DIV/0!", "#VALUE!", "#REF!", "#NAME?", "#NUM!", "#N/A"})

for _attr, _code in (
    ("NA", "#N/A"),
    ("VALUE", "#VALUE!"),
    ("REF", "#REF!"),
    ("DIV0", "#DIV/0!"),
    ("NUM", "#NUM!"),
    ("NAME", "#NAME?"),
):
    setattr(ExcelError, _attr, ExcelError(_code))
del _attr, _code


def is_error(val: Any) -> bool:
    return isinstance(val, ExcelError)


def first_error(*values: Any) -> ExcelError | None:
    """The leftmost error among *values*, if any."""
    return next((v for v in values if isinstance(v, ExcelError)), None)


@dataclass
class RangeValue:
    """Values of a rectangular range in row-major order, with its shape."""

    values: list[Any]
    n_rows: int
    n_cols: int

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


# ---------------------------------------------------------------------------
# Argument coercion
# ---------------------------------------------------------------------------


def _flatten(values: Iterable[Any]) -> Iterator[Any]:
    for v in values:
        if isinstance(v, (RangeValue, list, tuple)):
            yield from _flatten(v)
        else:
            yield v


def _numbers(values: Iterable[Any]) -> list[float]:
    """Numeric view of *values* for aggregates.

    Booleans count as 1/0; text, blanks and error values found inside
    ranges are ignored.  Scalar error arguments never reach a builtin.
    """
    return [float(v) for v in _flatten(values) if isinstance(v, (int, float))]


def _number(args: list[Any], idx: int, func: str, default: float | None = None) -> float:
    if idx >= len(args) or args[idx] is None:
        if default is None:
            raise ValueError(f"{func}: argument {idx + 1} is required")
        return default
    nums = _numbers([args[idx]])
    if not nums:
        raise ValueError(f"{func}: argument {idx + 1} is non-numeric")
    return nums[0]


def _text(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, bool):
        return str(val).upper()
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)


def _truthy(val: Any) -> bool:
    if isinstance(val, (int, float)):
        return val != 0
    return bool(val)


def _round_decimal(value: float, digits: int, rounding: str) -> float:
    # Decimal(repr(x)) rounds the shortest decimal form, so 1.005 -> 1.01
    return float(Decimal(repr(value)).quantize(Decimal(1).scaleb(-digits), rounding=rounding))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

BUILTINS: dict[str, Builtin] = {}


def _describe_arity(low: int, high: int | None) -> str:
    if high is None:
        return f"at least {low}"
    if low == high:
        return f"exactly {low}"
    if high == low + 1:
        return f"{low} or {high}"
    return f"{low} to {high}"


def builtin(name: str, low: int = 0, high: int | None = None) -> Callable[[Builtin], Builtin]:
    """Register the decorated function under *name* with an argument-count check."""

    def register(func: Builtin) -> Builtin:
        @functools.wraps(func)
        def checked(args: list[Any]) -> Any:
            if len(args) < low or (high is not None and len(args) > high):
                raise ValueError(
                    f"{name} takes {_describe_arity(low, high)} argument(s), got {len(args)}"
                )
            return func(args)

        BUILTINS[name] = checked
        return checked

    return register


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------


@builtin("SUM")
def _sum(args: list[Any]) -> float:
    return math.fsum(_numbers(args))


@builtin("ABS", 1, 1)
def _abs(args: list[Any]) -> float:
    return abs(_number(args, 0, "ABS"))


def _rounder(name: str, mode: str) -> Builtin:
    def rounded(args: list[Any]) -> float:
        digits = int(_number(args, 1, name, default=0.0))
        return _round_decimal(_number(args, 0, name), digits, mode)

    rounded.__name__ = f"_{name.lower()}"
    return builtin(name, 1, 2)(rounded)


# ROUND is half away from zero, unlike Python's round()
_rounder("ROUND", ROUND_HALF_UP)
_rounder("ROUNDUP", ROUND_UP)
_rounder("ROUNDDOWN", ROUND_DOWN)


@builtin("INT", 1, 1)
def _int(args: list[Any]) -> float:
    return float(math.floor(_number(args, 0, "INT")))


@builtin("MOD", 2, 2)
def _mod(args: list[Any]) -> float | ExcelError:
    number, divisor = _number(args, 0, "MOD"), _number(args, 1, "MOD")
    if divisor == 0:
        return ExcelError.DIV0
    # sign follows the divisor
    return number - divisor * math.floor(number / divisor)


def power(base: float, exponent: float) -> float | ExcelError:
    """``base ^ exponent`` with spreadsheet error results; shared with the ``^`` operator."""
    if base < 0 and not float(exponent).is_integer():
        return ExcelError.NUM
    if base == 0 and exponent < 0:
        return ExcelError.DIV0
    try:
        return float(base) ** exponent
    except OverflowError:
        return ExcelError.NUM


@builtin("POWER", 2, 2)
def _power(args: list[Any]) -> float | ExcelError:
    return power(_number(args, 0, "POWER"), _number(args, 1, "POWER"))


@builtin("SQRT", 1, 1)
def _sqrt(args: list[Any]) -> float | ExcelError:
    number = _number(args, 0, "SQRT")
    return ExcelError.NUM if number < 0 else math.sqrt(number)


@builtin("SIGN", 1, 1)
def _sign(args: list[Any]) -> float:
    number = _number(args, 0, "SIGN")
    return float((number > 0) - (number < 0))


@builtin("CEILING", 2, 2)
def _ceiling(args: list[Any]) -> float | ExcelError:
    """Round away from zero to a multiple of the significance."""
    number, significance = _number(args, 0, "CEILING"), _number(args, 1, "CEILING")
    if significance == 0:
        return 0.0
    if number > 0 > significance:
        return ExcelError.NUM
    return math.ceil(number / significance) * significance


@builtin("FLOOR", 2, 2)
def _floor(args: list[Any]) -> float | ExcelError:
    """Round toward zero to a multiple of the significance."""
    number, significance = _number(args, 0, "FLOOR"), _number(args, 1, "FLOOR")
    if significance == 0:
        return ExcelError.DIV0
    if number > 0 > significance:
        return ExcelError.NUM
    return math.floor(number / significance) * significance


@builtin("MROUND", 2, 2)
def _mround(args: list[Any]) -> float | ExcelError:
    number, multiple = _number(args, 0, "MROUND"), _number(args, 1, "MROUND")
    if multiple == 0:
        return 0.0
    if (number > 0 > multiple) or (number < 0 < multiple):
        return ExcelError.NUM
    return _round_decimal(number / multiple, 0, ROUND_HALF_UP) * multiple


# ---------------------------------------------------------------------------
# Logic
# ---------------------------------------------------------------------------


@builtin("IF", 2, 3)
def _if(args: list[Any]) -> Any:
    condition = args[0]
    if isinstance(condition, ExcelError):
        return condition
    if _truthy(condition):
        return args[1]
    return args[2] if len(args) == 3 else False


@builtin("IFERROR", 2, 2)
def _iferror(args: list[Any]) -> Any:
    return args[1] if isinstance(args[0], ExcelError) else args[0]


@builtin("AND", 1)
def _and(args: list[Any]) -> bool:
    return all(_truthy(v) for v in _flatten(args) if v is not None)


@builtin("OR", 1)
def _or(args: list[Any]) -> bool:
    return any(_truthy(v) for v in _flatten(args) if v is not None)


@builtin("NOT", 1, 1)
def _not(args: list[Any]) -> bool:
    return not _truthy(args[0])


# ---------------------------------------------------------------------------
# Statistical
# ---------------------------------------------------------------------------


@builtin("COUNT")
def _count(args: list[Any]) -> float:
    return float(len(_numbers(args)))


@builtin("COUNTA")
def _counta(args: list[Any]) -> float:
    return float(sum(1 for v in _flatten(args) if v is not None))


@builtin("MIN")
def _min(args: list[Any]) -> float:
    return min(_numbers(args), default=0.0)


@builtin("MAX")
def _max(args: list[Any]) -> float:
    return max(_numbers(args), default=0.0)


@builtin("AVERAGE")
def _average(args: list[Any]) -> float | ExcelError:
    nums = _numbers(args)
    return math.fsum(nums) / len(nums) if nums else ExcelError.DIV0


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


@builtin("LEFT", 1, 2)
def _left(args: list[Any]) -> str | ExcelError:
    count = int(_number(args, 1, "LEFT", default=1.0))
    return ExcelError.VALUE if count < 0 else _text(args[0])[:count]


@builtin("RIGHT", 1, 2)
def _right(args: list[Any]) -> str | ExcelError:
    count = int(_number(args, 1, "RIGHT", default=1.0))
    if count < 0:
        return ExcelError.VALUE
    text = _text(args[0])
    return text[-count:] if count else ""


@builtin("MID", 3, 3)
def _mid(args: list[Any]) -> str | ExcelError:
    start = int(_number(args, 1, "MID"))
    count = int(_number(args, 2, "MID"))
    if start < 1 or count < 0:
        return ExcelError.VALUE
    return _text(args[0])[start - 1:start - 1 + count]


@builtin("LEN", 1, 1)
def _len(args: list[Any]) -> float:
    return float(len(_text(args[0])))


@builtin("CONCATENATE", 1)
def _concatenate(args: list[Any]) -> str:
    return "".join(map(_text, args))


@builtin("UPPER", 1, 1)
def _upper(args: list[Any]) -> str:
    return _text(args[0]).upper()


@builtin("LOWER", 1, 1)
def _lower(args: list[Any]) -> str:
    return _text(args[0]).lower()


@builtin("TRIM", 1, 1)
def _trim(args: list[Any]) -> str:
    """Strip the ends and collapse inner runs of spaces."""
    return " ".join(_text(args[0]).split())


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def is_supported(func_name: str) -> bool:
    return func_name.upper() in BUILTINS


class FunctionRegistry:
    """Name -> implementation lookup used by the evaluator.

    Seeded from :data:`BUILTINS`; :meth:`register` adds or overrides
    functions for one evaluator without touching the module table.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Builtin] = dict(BUILTINS)

    def register(self, name: str, func: Builtin) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Builtin | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions)
