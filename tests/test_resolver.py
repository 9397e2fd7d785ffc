"""Tests for the substring-based formula ordering."""

from __future__ import annotations

from payxl.batch import Definition, ReferenceResolver, SubstringReferenceResolver


def _names(definitions: list[Definition]) -> list[str]:
    return [d.name for d in definitions]


class TestSubstringReferenceResolver:
    def test_is_a_reference_resolver(self) -> None:
        assert isinstance(SubstringReferenceResolver(), ReferenceResolver)

    def test_pay_formulas(self) -> None:
        formulas = [
            Definition("DA", "ROUND(CTC * 12%, 0)"),
            Definition("HRA", "ROUND(BASIC * 30%, 0)"),
            Definition("PB", "ROUND((BASIC + DA) * 12%, 0)"),
            Definition("BASIC", "ROUND(CTC * 40%, 0)"),
        ]
        assert _names(SubstringReferenceResolver().order(formulas)) == [
            "DA", "BASIC", "HRA", "PB",
        ]

    def test_independent_formulas_keep_input_order(self) -> None:
        formulas = [Definition("B", "1+1"), Definition("A", "2+2")]
        assert _names(SubstringReferenceResolver().order(formulas)) == ["B", "A"]

    def test_cycle_released_in_input_order(self) -> None:
        resolver = SubstringReferenceResolver()
        formulas = [Definition("X", "Y+1"), Definition("Y", "X+1")]
        assert _names(resolver.order(formulas)) == ["X", "Y"]
        assert resolver.released == ["X"]

    def test_substring_false_positive(self) -> None:
        # "DA" occurs inside "DATA", so DATA's reader is ordered after DA
        formulas = [Definition("OUT", "DATA*2"), Definition("DA", "5")]
        assert _names(SubstringReferenceResolver().order(formulas)) == ["DA", "OUT"]

    def test_empty(self) -> None:
        assert SubstringReferenceResolver().order([]) == []
