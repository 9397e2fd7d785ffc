"""Tests for the payxl Workbook backend: grid, defined names, transient file."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import openpyxl
import pytest

from payxl import Workbook
from payxl._errors import (
    BackendUnavailableError,
    FormulaSyntaxError,
    InvalidSheetNameError,
    NameConflictError,
    SlotConflictError,
)
from payxl._utils import (
    MAX_COLUMN_INDEX,
    absolute_reference,
    column_index,
    column_letter,
    is_cell_reference,
    validate_sheet_name,
)
from payxl._workbook import parse_absolute_reference, validate_name
from payxl._worksheet import Cell
from payxl.calc import CellType


class TestCoordinates:
    def test_column_letters(self) -> None:
        assert column_letter(1) == "A"
        assert column_letter(27) == "AA"
        assert column_letter(MAX_COLUMN_INDEX + 1) == "XFD"
        assert column_index("xfd") == MAX_COLUMN_INDEX + 1

    def test_absolute_reference(self) -> None:
        assert absolute_reference("Pay", 1, 0) == "'Pay'!$A$2"
        assert absolute_reference("Bob's", 0, 2) == "'Bob''s'!$C$1"

    def test_parse_absolute_reference(self) -> None:
        assert parse_absolute_reference("'Bob''s'!$C$1") == ("Bob's", 0, 2)
        with pytest.raises(ValueError):
            parse_absolute_reference("Pay!A1")

    def test_is_cell_reference(self) -> None:
        assert is_cell_reference("A1")
        assert is_cell_reference("XFD1048576")
        assert is_cell_reference("R1C1")
        assert not is_cell_reference("XFE1")
        assert not is_cell_reference("BASIC")


class TestSheetNames:
    @pytest.mark.parametrize(
        ("name", "message"),
        [
            ("", "null/empty/blank"),
            ("   ", "null/empty/blank"),
            ("x" * 32, "longer than 31"),
            ("Pay/Slip", "illegal characters"),
            ("Pay[1]", "illegal characters"),
            ("'Pay", "single quote"),
        ],
    )
    def test_illegal(self, name: str, message: str) -> None:
        with pytest.raises(InvalidSheetNameError, match=message):
            validate_sheet_name(name)

    def test_existing_case_insensitive(self) -> None:
        with pytest.raises(InvalidSheetNameError, match="already exists"):
            validate_sheet_name("pay", ["Pay"])

    def test_create_sheet_validates(self) -> None:
        wb = Workbook()
        wb.create_sheet("Pay")
        with pytest.raises(InvalidSheetNameError):
            wb.create_sheet("PAY")
        assert wb.sheetnames == ["Pay"]

    def test_get_or_create(self) -> None:
        wb = Workbook()
        ws = wb.get_or_create_sheet("Pay")
        assert wb.get_or_create_sheet("Pay") is ws
        assert "Pay" in wb
        assert wb["Pay"] is ws


class TestGrid:
    def test_row_and_cell_allocation(self) -> None:
        ws = Workbook().create_sheet("Pay")
        cell = ws.create_row(4).create_cell(1, CellType.NUMERIC)
        assert cell.coordinate == "B5"
        assert cell.reference == "Pay!B5"
        assert cell.absolute_reference == "'Pay'!$B$5"
        assert ws.cell_at(4, 1) is cell

    def test_row_reuse_rejected(self) -> None:
        ws = Workbook().create_sheet("Pay")
        ws.create_row(0)
        with pytest.raises(SlotConflictError, match="already exists"):
            ws.create_row(0)

    def test_cell_reuse_rejected(self) -> None:
        row = Workbook().create_sheet("Pay").create_row(0)
        row.create_cell(0)
        with pytest.raises(SlotConflictError, match="already exists"):
            row.create_cell(0)

    def test_column_out_of_bounds(self) -> None:
        row = Workbook().create_sheet("Pay").create_row(0)
        with pytest.raises(SlotConflictError, match="invalid column"):
            row.create_cell(MAX_COLUMN_INDEX + 1)
        row.create_cell(MAX_COLUMN_INDEX)

    def test_negative_row(self) -> None:
        with pytest.raises(SlotConflictError, match="invalid row"):
            Workbook().create_sheet("Pay").create_row(-1)

    def test_set_formula_checks_syntax(self) -> None:
        cell = Workbook().create_sheet("Pay").create_row(0).create_cell(0)
        with pytest.raises(FormulaSyntaxError):
            cell.set_formula("ROUND(CTC*12%,0")
        assert cell.formula is None
        cell.set_formula("=ROUND(CTC*12%,0)")
        assert cell.formula == "ROUND(CTC*12%,0)"
        assert cell.cell_type is CellType.FORMULA

    def test_iter_cells_in_row_order(self) -> None:
        ws = Workbook().create_sheet("Pay")
        for r in (2, 0, 1):
            ws.create_row(r).create_cell(0).set_numeric_value(r)
        assert [c.value for c in ws.iter_cells()] == [0.0, 1.0, 2.0]


class TestDefinedNames:
    def _cell(self, wb: Workbook, row: int = 0) -> Cell:
        ws = wb.get_or_create_sheet("Pay")
        return ws.create_row(row).create_cell(0)

    def test_create_and_resolve(self) -> None:
        wb = Workbook()
        cell = self._cell(wb)
        dn = wb.create_name("CTC", cell, comment="50000")
        assert dn.refers_to == "'Pay'!$A$1"
        assert wb.defined_names == {"CTC": "'Pay'!$A$1"}
        assert wb.resolve_name("ctc") is cell
        assert wb.resolve_name("BASIC") is None

    def test_duplicate_case_insensitive(self) -> None:
        wb = Workbook()
        wb.create_name("CTC", self._cell(wb, 0))
        with pytest.raises(NameConflictError, match="already contains"):
            wb.create_name("ctc", self._cell(wb, 1))
        assert wb.resolve_name("CTC") is wb["Pay"].cell_at(0, 0)

    @pytest.mark.parametrize(
        "name",
        ["", "1DA", "DA-1", "PAY ELEMENT", "A1", "R1C1", "R", "TRUE", "x" * 256],
    )
    def test_illegal_names(self, name: str) -> None:
        with pytest.raises(NameConflictError):
            validate_name(name)

    @pytest.mark.parametrize("name", ["DA", "_tax", "Basic.Pay", "HRA_2", "PB"])
    def test_legal_names(self, name: str) -> None:
        validate_name(name)

    def test_describe_names(self) -> None:
        wb = Workbook()
        wb.create_name("CTC", self._cell(wb, 0), comment="50000")
        wb.create_name("DA", self._cell(wb, 1), comment="ROUND(CTC*12%,0)")
        assert wb.describe_names() == (
            "{name: CTC, cellAddress: 'Pay'!$A$1, formula: 50000},\n"
            "{name: DA, cellAddress: 'Pay'!$A$2, formula: ROUND(CTC*12%,0)}"
        )


class TestTransientFile:
    def test_in_memory_has_no_file(self) -> None:
        with Workbook() as wb:
            assert wb.path is None
        assert wb.closed

    def test_created_and_deleted(self, tmp_path: Path) -> None:
        wb = Workbook(persist=True, temp_dir=tmp_path, file_prefix="pay-")
        assert wb.path is not None
        name = os.path.basename(wb.path)
        assert name.startswith("pay-")
        assert name.endswith(".xlsx")
        assert os.path.exists(wb.path)
        wb.close()
        assert list(tmp_path.iterdir()) == []
        assert wb.cleanup_errors == []

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        wb = Workbook(persist=True, temp_dir=tmp_path)
        wb.close()
        wb.close()
        assert wb.closed

    def test_closed_workbook_rejects_writes(self) -> None:
        wb = Workbook()
        wb.close()
        with pytest.raises(BackendUnavailableError):
            wb.create_sheet("Pay")

    def test_missing_temp_dir(self, tmp_path: Path) -> None:
        with pytest.raises(BackendUnavailableError):
            Workbook(persist=True, temp_dir=tmp_path / "missing")

    def test_cleanup_failure_logged_not_raised(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        wb = Workbook(persist=True, temp_dir=tmp_path)
        os.remove(wb.path)
        os.mkdir(wb.path)  # a directory cannot be written as a workbook
        with caplog.at_level(logging.WARNING, logger="payxl._workbook"):
            wb.close()
        assert wb.closed
        assert wb.cleanup_errors
        assert "Clean up completed with errors" in caplog.text
        os.rmdir(wb.path)

    def test_save_round_trips_through_openpyxl(self, tmp_path: Path) -> None:
        wb = Workbook()
        ws = wb.create_sheet("Pay")
        ctc = ws.create_row(0).create_cell(0)
        ctc.set_numeric_value(50000)
        wb.create_name("CTC", ctc, comment="50000")
        da = ws.create_row(1).create_cell(0)
        da.set_formula("ROUND(CTC*12%,0)")
        wb.create_name("DA", da, comment="ROUND(CTC*12%,0)")

        path = tmp_path / "pay.xlsx"
        wb.save(path)

        book = openpyxl.load_workbook(path)
        assert book.sheetnames == ["Pay"]
        assert book["Pay"]["A1"].value == 50000
        assert book["Pay"]["A2"].value == "=ROUND(CTC*12%,0)"
        assert book.defined_names["DA"].attr_text == "'Pay'!$A$2"
