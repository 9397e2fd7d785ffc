"""Tests for constant/formula classification and batch configuration."""

from __future__ import annotations

import pytest

from payxl._errors import FailureKind, InvalidInputError
from payxl.batch import BatchOptions, Constant, Definition, Formula, classify, parse_constant, partition


class TestClassify:
    @pytest.mark.parametrize(
        ("text", "value"),
        [
            ("50000", 50000.0),
            (" 12.5 ", 12.5),
            ("-3", -3.0),
            ("+0.25", 0.25),
            (".5", 0.5),
            ("1e3", 1000.0),
        ],
    )
    def test_constants(self, text: str, value: float) -> None:
        assert classify(text) == Constant(value)

    @pytest.mark.parametrize(
        "text",
        [
            "ROUND(CTC*12%,0)",
            "CTC",
            "12%",
            "",
            "   ",
            "NaN",
            "inf",
            "1e400",
            "1_000",
            "1,000",
            "0x10",
        ],
    )
    def test_formulas(self, text: str) -> None:
        assert classify(text) == Formula(text)

    def test_parse_constant_rejects(self) -> None:
        with pytest.raises(InvalidInputError, match="Cannot parse") as exc_info:
            parse_constant("abc")
        assert exc_info.value.kind is FailureKind.INVALID_INPUT

    def test_parse_constant_rejects_overflow(self) -> None:
        with pytest.raises(InvalidInputError, match="finite"):
            parse_constant("1e400")


class TestPartition:
    def test_keeps_input_order_within_each_group(self) -> None:
        defs = [
            Definition("DA", "ROUND(CTC*12%,0)"),
            Definition("CTC", "50000"),
            Definition("BASIC", "ROUND(CTC*40%,0)"),
            Definition("BONUS", "1500"),
        ]
        constants, formulas = partition(defs)
        assert [(d.name, c.value) for d, c in constants] == [("CTC", 50000.0), ("BONUS", 1500.0)]
        assert [d.name for d in formulas] == ["DA", "BASIC"]

    def test_empty(self) -> None:
        assert partition([]) == ([], [])


class TestBatchOptions:
    def test_defaults(self) -> None:
        options = BatchOptions()
        assert options.column == 0
        assert options.first_row == 0
        assert options.persist is True
        assert options.file_prefix == "temp-"
        assert options.use_formulas_fallback is True

    @pytest.mark.parametrize(
        "kwargs",
        [{"column": -1}, {"column": 16384}, {"first_row": -1}, {"first_row": 1048576}],
    )
    def test_out_of_range(self, kwargs: dict[str, int]) -> None:
        with pytest.raises(ValueError):
            BatchOptions(**kwargs)
