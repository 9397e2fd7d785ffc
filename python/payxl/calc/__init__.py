"""payxl.calc - Formula checking and evaluation engine for payxl workbooks."""

from __future__ import annotations

from collections.abc import Iterable

from payxl.calc._evaluator import CellEvaluator
from payxl.calc._functions import ExcelError, FunctionRegistry, is_supported
from payxl.calc._graph import DependencyGraph, contains_name
from payxl.calc._parser import check_syntax, expand_range, parse_functions, tokenize
from payxl.calc._protocol import CellType, CellValue

__all__ = [
    "CellEvaluator",
    "CellType",
    "CellValue",
    "DependencyGraph",
    "ExcelError",
    "FunctionRegistry",
    "check_syntax",
    "contains_name",
    "expand_range",
    "is_supported",
    "parse_functions",
    "supported_functions",
    "tokenize",
    "unsupported_functions",
]


def supported_functions() -> list[str]:
    """Sorted names of the functions the builtin engine evaluates."""
    return sorted(FunctionRegistry().supported_functions)


def unsupported_functions(formulae: Iterable[str]) -> list[str]:
    """Function names used in *formulae* that have no builtin implementation.

    Names are returned once each, in first-seen order.
    """
    missing: list[str] = []
    for formula in formulae:
        for name in parse_functions(formula):
            if not is_supported(name) and name not in missing:
                missing.append(name)
    return missing
