"""payxl - resolve batches of named pay-element formulas through a spreadsheet engine.

Usage::

    from payxl import process_formulae, validate_formulae

    batch = {
        "DA": "ROUND(CTC * 12%, 0)",
        "CTC": "50000",
        "BASIC": "ROUND(CTC * 40%, 0)",
    }

    validate_formulae(batch, "ValidationSheet")
    # {'CTC': True, 'DA': True, 'BASIC': True}

    process_formulae(batch, "EvaluationSheet")
    # {'CTC': 50000.0, 'DA': 6000.0, 'BASIC': 20000.0}
"""

from payxl._errors import (
    BackendUnavailableError,
    BatchEvaluationError,
    CleanupError,
    FailureKind,
    FormulaEvaluationError,
    FormulaSyntaxError,
    InvalidInputError,
    InvalidSheetNameError,
    NameConflictError,
    NonNumericResultError,
    SlotConflictError,
    UnsupportedOperationError,
)
from payxl._workbook import DefinedName, Workbook
from payxl.batch import BatchOptions, process_formulae, validate_formulae

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BackendUnavailableError",
    "BatchEvaluationError",
    "BatchOptions",
    "CleanupError",
    "DefinedName",
    "FailureKind",
    "FormulaEvaluationError",
    "FormulaSyntaxError",
    "InvalidInputError",
    "InvalidSheetNameError",
    "NameConflictError",
    "NonNumericResultError",
    "SlotConflictError",
    "UnsupportedOperationError",
    "Workbook",
    "process_formulae",
    "validate_formulae",
]
