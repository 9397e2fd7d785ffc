"""payxl.batch - Classify, order, bind and evaluate batches of named definitions."""

from __future__ import annotations

from payxl.batch._classifier import classify, parse_constant, partition
from payxl.batch._options import BatchOptions
from payxl.batch._orchestrator import (
    BatchRun,
    Mode,
    RunState,
    process_formulae,
    validate_formulae,
)
from payxl.batch._protocol import (
    Constant,
    Definition,
    Formula,
    NamedBinding,
    ReferenceResolver,
    Slot,
    StepOutcome,
)
from payxl.batch._registrar import BindingRegistrar, SlotAllocator
from payxl.batch._resolver import SubstringReferenceResolver
from payxl.batch._results import ResultAggregator

__all__ = [
    "BatchOptions",
    "BatchRun",
    "BindingRegistrar",
    "Constant",
    "Definition",
    "Formula",
    "Mode",
    "NamedBinding",
    "ReferenceResolver",
    "ResultAggregator",
    "RunState",
    "Slot",
    "SlotAllocator",
    "StepOutcome",
    "SubstringReferenceResolver",
    "classify",
    "parse_constant",
    "partition",
    "process_formulae",
    "validate_formulae",
]
