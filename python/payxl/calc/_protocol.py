"""Typed evaluation results returned by the calc engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from payxl.calc._functions import ExcelError


class CellType(Enum):
    """Category of a stored cell or of an evaluated result.

    ``FORMULA`` on a result means the engine could not reduce the formula to
    a value.
    """

    NUMERIC = "numeric"
    STRING = "string"
    BOOLEAN = "boolean"
    BLANK = "blank"
    ERROR = "error"
    FORMULA = "formula"


@dataclass(frozen=True)
class CellValue:
    """Result of evaluating a single cell."""

    cell_type: CellType
    value: float | str | bool | None = None

    @classmethod
    def of(cls, raw: Any) -> CellValue:
        """Classify a raw evaluator result."""
        if raw is None:
            return cls(CellType.FORMULA)
        if isinstance(raw, ExcelError):
            return cls(CellType.ERROR, raw.code)
        if isinstance(raw, bool):
            return cls(CellType.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            try:
                return cls(CellType.NUMERIC, float(raw))
            except OverflowError:
                return cls(CellType.NUMERIC, math.inf if raw > 0 else -math.inf)
        if isinstance(raw, str):
            if raw == "":
                return cls(CellType.BLANK)
            return cls(CellType.STRING, raw)
        return cls(CellType.FORMULA)

    def as_text(self) -> str:
        """Textual form of the value, empty when there is nothing usable."""
        if self.cell_type is CellType.BOOLEAN:
            return "true" if self.value else "false"
        if self.cell_type is CellType.NUMERIC:
            return repr(float(self.value))  # type: ignore[arg-type]
        if self.cell_type is CellType.STRING:
            return str(self.value)
        return ""

    def as_number(self) -> float | None:
        """The value as a finite float when the result is numeric, else None."""
        if self.cell_type is not CellType.NUMERIC:
            return None
        try:
            number = float(self.as_text())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
