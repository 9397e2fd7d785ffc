"""Constant vs. formula classification of raw definition text."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from payxl._errors import InvalidInputError
from payxl.batch._protocol import Classification, Constant, Definition, Formula

# Plain decimal floats: no digit-group underscores, no nan/inf, no locale separators
_DECIMAL_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")


def parse_constant(raw_text: str) -> float:
    """Parse *raw_text* as a finite decimal number or raise :class:`InvalidInputError`."""
    if not isinstance(raw_text, str) or not _DECIMAL_RE.match(raw_text):
        raise InvalidInputError(f"Cannot parse {raw_text!r} to a number")
    value = float(raw_text)
    if not math.isfinite(value):
        raise InvalidInputError(f"Cannot parse {raw_text!r} to a finite number")
    return value


def classify(raw_text: str) -> Classification:
    try:
        return Constant(parse_constant(raw_text))
    except InvalidInputError:
        return Formula(raw_text)


def partition(
    definitions: Iterable[Definition],
) -> tuple[list[tuple[Definition, Constant]], list[Definition]]:
    """Split into constants (with their values) and formulas, keeping input order."""
    constants: list[tuple[Definition, Constant]] = []
    formulas: list[Definition] = []
    for definition in definitions:
        kind = classify(definition.raw_text)
        if isinstance(kind, Constant):
            constants.append((definition, kind))
        else:
            formulas.append(definition)
    return constants, formulas
