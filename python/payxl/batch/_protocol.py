"""Batch data model: definitions, classifications, slots, bindings and step outcomes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from payxl._errors import FailureKind, FormulaEvaluationError
from payxl._utils import absolute_reference


@dataclass(frozen=True)
class Definition:
    """One named pay element and its raw text, as supplied by the caller."""

    name: str
    raw_text: str


@dataclass(frozen=True)
class Constant:
    value: float


@dataclass(frozen=True)
class Formula:
    text: str


Classification = Constant | Formula


@dataclass(frozen=True)
class Slot:
    """Grid location assigned to one definition (0-based row and column)."""

    sheet_name: str
    row: int
    column: int

    @property
    def reference(self) -> str:
        return absolute_reference(self.sheet_name, self.row, self.column)

    def __str__(self) -> str:
        return self.reference


@dataclass(frozen=True)
class NamedBinding:
    """A defined name created in the backend for one definition."""

    name: str
    slot: Slot
    raw_text: str
    classification: Classification


@dataclass(frozen=True)
class StepOutcome:
    """Tagged result of a registration or evaluation step.

    Either ``value`` is set, or ``failure`` names the category and ``error``
    holds the backend error that caused it.
    """

    value: Any = None
    failure: FailureKind | None = None
    error: FormulaEvaluationError | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Any) -> StepOutcome:
        return cls(value=value)

    @classmethod
    def failed(cls, error: FormulaEvaluationError) -> StepOutcome:
        if error.kind is None:
            raise ValueError(f"{type(error).__name__} is not a per-definition failure")
        return cls(failure=error.kind, error=error)


@runtime_checkable
class ReferenceResolver(Protocol):
    """Orders formula definitions so referenced names come first."""

    def order(self, formulas: Sequence[Definition]) -> list[Definition]:
        """Return every definition in *formulas* exactly once."""
        ...
