"""Dual-mode batch orchestrator: validate or evaluate a batch of named definitions.

Both modes walk the same states::

    START -> CLASSIFIED -> CONSTANTS_BOUND -> FORMULAS_ORDERED
          -> FORMULAS_BOUND -> COMPLETED -> CLOSED

and differ only in what they record per name and in how they treat a
failing definition: validate mode records ``False`` and moves on, evaluate
mode aborts the run.  Every run owns a fresh workbook that is closed on all
exit paths.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

from payxl._errors import BatchEvaluationError, FailureKind, FormulaEvaluationError
from payxl._utils import validate_sheet_name
from payxl._workbook import Workbook
from payxl.batch._classifier import partition
from payxl.batch._options import BatchOptions
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
from payxl.calc._evaluator import CellEvaluator

logger = logging.getLogger(__name__)


class Mode(Enum):
    VALIDATE = "validate"
    EVALUATE = "evaluate"


class RunState(Enum):
    START = "start"
    CLASSIFIED = "classified"
    CONSTANTS_BOUND = "constants_bound"
    FORMULAS_ORDERED = "formulas_ordered"
    FORMULAS_BOUND = "formulas_bound"
    COMPLETED = "completed"
    CLOSED = "closed"


class BatchRun:
    """A single orchestration run; create one per call.

    After :meth:`execute` returns (or raises), :attr:`state` is ``CLOSED``,
    :attr:`bindings` lists the names bound in processing order, and
    :attr:`workbook` is the closed backend the run used.
    """

    def __init__(
        self,
        mode: Mode,
        batch: Mapping[str, str],
        sheet_name: str,
        options: BatchOptions | None = None,
        resolver: ReferenceResolver | None = None,
    ) -> None:
        self.mode = mode
        self.batch = batch
        self.sheet_name = sheet_name
        self.options = options or BatchOptions()
        self.resolver = resolver or SubstringReferenceResolver()
        self.state = RunState.START
        self.bindings: list[NamedBinding] = []
        self.slots: list[Slot] = []
        self.workbook: Workbook | None = None
        self._results: ResultAggregator[Any] = ResultAggregator()

    def _enter(self, state: RunState) -> None:
        logger.debug("Batch run on %r: %s -> %s", self.sheet_name, self.state.name, state.name)
        self.state = state

    def execute(self) -> dict[str, Any]:
        validate_sheet_name(self.sheet_name)
        logger.info(
            "Starting %s run of %d pay elements on sheet %r",
            self.mode.value, len(self.batch), self.sheet_name,
        )
        definitions = [Definition(name, text) for name, text in self.batch.items()]
        constants, formulas = partition(definitions)
        self._enter(RunState.CLASSIFIED)

        try:
            with self._open_workbook() as workbook:
                evaluator = CellEvaluator(
                    workbook, use_formulas=self.options.use_formulas_fallback
                )
                registrar = BindingRegistrar(workbook, evaluator)
                slots = SlotAllocator(
                    self.sheet_name, self.options.column, self.options.first_row
                )
                workbook.get_or_create_sheet(self.sheet_name)

                for definition, constant in constants:
                    self._bind_constant(registrar, slots.allocate(), definition, constant)
                self._enter(RunState.CONSTANTS_BOUND)
                logger.info("Saved named formulae: %s", workbook.describe_names())

                ordered = self.resolver.order(formulas)
                self._enter(RunState.FORMULAS_ORDERED)

                for definition in ordered:
                    self._bind_formula(registrar, slots.allocate(), definition)
                self._enter(RunState.FORMULAS_BOUND)
                logger.info("Saved named formulae: %s", workbook.describe_names())

                self._enter(RunState.COMPLETED)
        finally:
            self._enter(RunState.CLOSED)

        logger.info("Finished %s run on sheet %r", self.mode.value, self.sheet_name)
        return self._results.results()

    def _open_workbook(self) -> Workbook:
        self.workbook = Workbook(
            persist=self.options.persist,
            temp_dir=self.options.temp_dir,
            file_prefix=self.options.file_prefix,
        )
        return self.workbook

    # ------------------------------------------------------------------
    # Per-definition steps
    # ------------------------------------------------------------------

    def _bind_constant(
        self, registrar: BindingRegistrar, slot: Slot, definition: Definition, constant: Constant
    ) -> None:
        self.slots.append(slot)
        outcome = self._step(
            definition, slot, lambda: registrar.register(slot, definition, constant)
        )
        if not outcome.ok:
            self._fail(definition, slot, outcome)
            return
        self.bindings.append(outcome.value)
        self._results.record(
            definition.name, True if self.mode is Mode.VALIDATE else constant.value
        )

    def _bind_formula(self, registrar: BindingRegistrar, slot: Slot, definition: Definition) -> None:
        self.slots.append(slot)
        outcome = self._step(
            definition, slot,
            lambda: registrar.register(slot, definition, Formula(definition.raw_text)),
        )
        if not outcome.ok:
            self._fail(definition, slot, outcome)
            return
        self.bindings.append(outcome.value)
        binding = outcome.value
        evaluated = self._step(definition, slot, lambda: registrar.evaluate(binding))
        if not evaluated.ok:
            self._fail(definition, slot, evaluated)
            return
        self._results.record(
            definition.name, True if self.mode is Mode.VALIDATE else evaluated.value
        )

    def _step(
        self, definition: Definition, slot: Slot, step: Callable[[], StepOutcome]
    ) -> StepOutcome:
        """Run a registrar step; evaluate mode wraps untagged errors with the definition."""
        try:
            return step()
        except FormulaEvaluationError as exc:
            if self.mode is Mode.VALIDATE or isinstance(exc, BatchEvaluationError):
                raise
            raise _evaluation_error(definition, slot, None, exc) from exc

    def _fail(self, definition: Definition, slot: Slot, outcome: StepOutcome) -> None:
        """Apply the mode's failure policy to a failed step."""
        if self.mode is Mode.VALIDATE:
            kind = outcome.failure.value if outcome.failure is not None else "unknown"
            logger.warning(
                "Pay element %r at %s is invalid (%s): %s",
                definition.name, slot, kind, outcome.error,
            )
            self._results.record(definition.name, False)
            return
        raise _evaluation_error(definition, slot, outcome.failure, outcome.error) from outcome.error


def _evaluation_error(
    definition: Definition,
    slot: Slot,
    kind: FailureKind | None,
    error: BaseException | None,
) -> BatchEvaluationError:
    label = kind.value if kind is not None else type(error).__name__
    return BatchEvaluationError(
        f"Exception encountered while calculating pay element {definition.name!r} "
        f"= {definition.raw_text!r} at {slot} ({label}): {error}",
        name=definition.name,
        raw_text=definition.raw_text,
        slot=slot,
        kind=kind,
    )


def validate_formulae(
    batch: Mapping[str, str],
    sheet_name: str,
    options: BatchOptions | None = None,
    resolver: ReferenceResolver | None = None,
) -> dict[str, bool]:
    """Check every definition in *batch*; map each name to whether it is valid.

    Per-name failures (bad names, syntax errors, unsupported functions,
    non-numeric results) yield ``False`` and processing continues.  Slot
    conflicts, illegal sheet names and unexpected errors still raise.
    """
    return BatchRun(Mode.VALIDATE, batch, sheet_name, options, resolver).execute()


def process_formulae(
    batch: Mapping[str, str],
    sheet_name: str,
    options: BatchOptions | None = None,
    resolver: ReferenceResolver | None = None,
) -> dict[str, float]:
    """Evaluate every definition in *batch*; map each name to its value.

    The first failing definition aborts the run with a
    :class:`~payxl._errors.BatchEvaluationError` naming it.
    """
    return BatchRun(Mode.EVALUATE, batch, sheet_name, options, resolver).execute()
