"""Exception hierarchy shared by the workbook backend and the batch layer."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payxl.batch._protocol import Slot


class FailureKind(Enum):
    """Per-definition failure categories that validate mode downgrades to ``False``."""

    INVALID_INPUT = "invalid_input"
    NAME_CONFLICT = "name_conflict"
    SYNTAX = "syntax"
    UNSUPPORTED = "unsupported"
    NON_NUMERIC = "non_numeric"


class FormulaEvaluationError(Exception):
    """Base exception for all payxl errors."""

    kind: FailureKind | None = None


class InvalidInputError(FormulaEvaluationError):
    """Text that was expected to be a constant could not be parsed as a number."""

    kind = FailureKind.INVALID_INPUT


class NameConflictError(FormulaEvaluationError):
    """A defined name is a duplicate, is not a legal identifier, or cannot be bound."""

    kind = FailureKind.NAME_CONFLICT


class FormulaSyntaxError(FormulaEvaluationError):
    """The backend rejected the formula text."""

    kind = FailureKind.SYNTAX

    def __init__(self, message: str, formula: str = "", position: int | None = None) -> None:
        super().__init__(message)
        self.formula = formula
        self.position = position


class UnsupportedOperationError(FormulaEvaluationError):
    """The formula parsed but uses a construct the calc engine cannot evaluate."""

    kind = FailureKind.UNSUPPORTED


class NonNumericResultError(FormulaEvaluationError):
    """The evaluated value is not convertible to a finite number."""

    kind = FailureKind.NON_NUMERIC


class SlotConflictError(FormulaEvaluationError):
    """A row or cell is already occupied, or its index is out of bounds."""


class InvalidSheetNameError(FormulaEvaluationError):
    """The target sheet name is illegal or already taken."""


class BackendUnavailableError(FormulaEvaluationError):
    """The workbook could not be opened or has already been closed."""


class CleanupError(FormulaEvaluationError):
    """Closing the workbook or deleting its transient file failed."""


class BatchEvaluationError(FormulaEvaluationError):
    """Fatal failure of one definition in evaluate mode.

    Carries the definition's ``name``, ``slot`` and ``raw_text``; the
    originating error is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str,
        raw_text: str,
        slot: Slot | None = None,
        kind: FailureKind | None = None,
    ) -> None:
        super().__init__(message)
        self.name = name
        self.raw_text = raw_text
        self.slot = slot
        self.kind = kind
