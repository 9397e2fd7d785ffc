"""Tests for payxl.calc function registry and builtins."""

from __future__ import annotations

import pytest

from payxl.calc import supported_functions, unsupported_functions
from payxl.calc._functions import (
    BUILTINS,
    ExcelError,
    FunctionRegistry,
    RangeValue,
    first_error,
    is_error,
    is_supported,
    power,
)


class TestExcelError:
    def test_singletons(self) -> None:
        assert ExcelError.of("#div/0!") is ExcelError.DIV0
        assert ExcelError.of("#N/A") is ExcelError.NA

    def test_compares_to_code(self) -> None:
        assert ExcelError.VALUE == "#VALUE!"
        assert ExcelError.NAME == "#name?"
        assert ExcelError.REF != ExcelError.NUM

    def test_str(self) -> None:
        assert str(ExcelError.DIV0) == "#DIV/0!"

    def test_helpers(self) -> None:
        assert is_error(ExcelError.NA)
        assert not is_error("#N/A")
        assert first_error(1, None, ExcelError.REF, ExcelError.NUM) is ExcelError.REF
        assert first_error(1, 2) is None


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        assert reg.has("ROUND")
        assert reg.has("IF")
        assert reg.has("mround")

    def test_custom_registration(self) -> None:
        reg = FunctionRegistry()
        reg.register("bonus", lambda args: 42)
        assert reg.has("BONUS")
        assert reg.get("Bonus")([]) == 42
        assert not is_supported("BONUS")

    def test_unknown(self) -> None:
        assert FunctionRegistry().get("VLOOKUP") is None
        assert not is_supported("VLOOKUP")

    def test_supported_functions_listing(self) -> None:
        names = supported_functions()
        assert names == sorted(names)
        assert {"ROUND", "SUM", "IF", "TRIM"} <= set(names)

    def test_unsupported_functions_first_seen_order(self) -> None:
        formulae = ["VLOOKUP(A1,B1:C2,2)+ROUND(CTC,0)", "TODAY()", "vlookup(1)"]
        assert unsupported_functions(formulae) == ["VLOOKUP", "TODAY"]

    def test_unsupported_functions_none(self) -> None:
        assert unsupported_functions(["ROUND(CTC*12%,0)", "50000"]) == []


class TestRounding:
    def test_half_away_from_zero(self) -> None:
        assert BUILTINS["ROUND"]([2.5, 0]) == 3.0
        assert BUILTINS["ROUND"]([-2.5, 0]) == -3.0
        assert BUILTINS["ROUND"]([0.5]) == 1.0

    def test_decimal_representation(self) -> None:
        # binary 1.005 is slightly below, spreadsheets still round up
        assert BUILTINS["ROUND"]([1.005, 2]) == 1.01

    def test_negative_digits(self) -> None:
        assert BUILTINS["ROUND"]([1234.5, -2]) == 1200.0

    def test_pay_amount(self) -> None:
        assert BUILTINS["ROUND"]([6000.000000000001, 0]) == 6000.0

    def test_roundup_rounddown(self) -> None:
        assert BUILTINS["ROUNDUP"]([1.21, 1]) == 1.3
        assert BUILTINS["ROUNDUP"]([-1.21, 1]) == -1.3
        assert BUILTINS["ROUNDDOWN"]([-1.29, 1]) == -1.2
        assert BUILTINS["ROUNDDOWN"]([3.99]) == 3.0

    def test_wrong_arity(self) -> None:
        with pytest.raises(ValueError, match="1 or 2"):
            BUILTINS["ROUND"]([1, 2, 3])

    def test_non_numeric(self) -> None:
        with pytest.raises(ValueError, match="non-numeric"):
            BUILTINS["ROUND"](["abc", 0])

    def test_ceiling_floor_mround(self) -> None:
        assert BUILTINS["CEILING"]([2.1, 1]) == 3.0
        assert BUILTINS["FLOOR"]([2.9, 1]) == 2.0
        assert BUILTINS["FLOOR"]([1, 0]) is ExcelError.DIV0
        assert BUILTINS["CEILING"]([5, -1]) is ExcelError.NUM
        assert BUILTINS["MROUND"]([10, 3]) == 9.0
        assert BUILTINS["MROUND"]([7.5, 5]) == 10.0
        assert BUILTINS["MROUND"]([5, -2]) is ExcelError.NUM


class TestMath:
    def test_sum(self) -> None:
        assert BUILTINS["SUM"]([1, None, "text", True, [2, 3]]) == 7.0

    def test_sum_range_skips_errors(self) -> None:
        rng = RangeValue([1.0, ExcelError.NA, 2.0], 3, 1)
        assert BUILTINS["SUM"]([rng]) == 3.0

    def test_int_floors(self) -> None:
        assert BUILTINS["INT"]([-3.2]) == -4.0

    def test_mod_sign_of_divisor(self) -> None:
        assert BUILTINS["MOD"]([-3, 2]) == 1.0
        assert BUILTINS["MOD"]([3, -2]) == -1.0
        assert BUILTINS["MOD"]([1, 0]) is ExcelError.DIV0

    def test_power(self) -> None:
        assert BUILTINS["POWER"]([2, 10]) == 1024.0
        assert power(-8, 1 / 3) is ExcelError.NUM
        assert power(0, -1) is ExcelError.DIV0

    def test_sqrt_sign_abs(self) -> None:
        assert BUILTINS["SQRT"]([16]) == 4.0
        assert BUILTINS["SQRT"]([-1]) is ExcelError.NUM
        assert BUILTINS["SIGN"]([-0.5]) == -1.0
        assert BUILTINS["ABS"]([-5]) == 5.0


class TestLogic:
    def test_if(self) -> None:
        assert BUILTINS["IF"]([True, 1, 2]) == 1
        assert BUILTINS["IF"]([0, 1, 2]) == 2
        assert BUILTINS["IF"]([0, 1]) is False
        assert BUILTINS["IF"]([ExcelError.NA, 1, 2]) is ExcelError.NA

    def test_iferror(self) -> None:
        assert BUILTINS["IFERROR"]([ExcelError.DIV0, 0]) == 0
        assert BUILTINS["IFERROR"]([5, 0]) == 5

    def test_and_or_not(self) -> None:
        assert BUILTINS["AND"]([True, 1]) is True
        assert BUILTINS["AND"]([True, 0]) is False
        assert BUILTINS["OR"]([0, False, 1]) is True
        assert BUILTINS["NOT"]([0]) is True


class TestStatistical:
    def test_count_counta(self) -> None:
        assert BUILTINS["COUNT"]([1, "a", None, 2.5]) == 2.0
        assert BUILTINS["COUNTA"]([1, "a", None]) == 2.0

    def test_min_max_average(self) -> None:
        assert BUILTINS["MIN"]([3, 1, 2]) == 1.0
        assert BUILTINS["MAX"]([3, [7, 1]]) == 7.0
        assert BUILTINS["MAX"]([]) == 0.0
        assert BUILTINS["AVERAGE"]([2, 4]) == 3.0
        assert BUILTINS["AVERAGE"]([]) is ExcelError.DIV0


class TestText:
    def test_slicing(self) -> None:
        assert BUILTINS["LEFT"](["abc", 2]) == "ab"
        assert BUILTINS["RIGHT"](["abc"]) == "c"
        assert BUILTINS["MID"](["abcdef", 2, 3]) == "bcd"
        assert BUILTINS["MID"](["abc", 0, 1]) is ExcelError.VALUE

    def test_len_of_whole_number(self) -> None:
        assert BUILTINS["LEN"]([1234.0]) == 4.0

    def test_concatenate_and_case(self) -> None:
        assert BUILTINS["CONCATENATE"](["a", 1.0, True]) == "a1TRUE"
        assert BUILTINS["UPPER"](["pay"]) == "PAY"
        assert BUILTINS["LOWER"](["PAY"]) == "pay"
        assert BUILTINS["TRIM"](["  basic   pay "]) == "basic pay"
