"""Workbook: sheets plus a defined-name table, with optional transient storage.

``Workbook()`` is purely in memory.  ``Workbook(persist=True)`` also
materializes a temporary ``.xlsx`` file (written through openpyxl) that is
flushed and deleted again by :meth:`Workbook.close`; the file is working
storage only and never outlives the workbook.
"""

from __future__ import annotations

import datetime
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from typing import TYPE_CHECKING

import openpyxl
from openpyxl.workbook.defined_name import DefinedName as XlsxDefinedName

from payxl._errors import (
    BackendUnavailableError,
    CleanupError,
    NameConflictError,
)
from payxl._utils import a1_to_rowcol, is_cell_reference, validate_sheet_name
from payxl._worksheet import Worksheet

if TYPE_CHECKING:
    from payxl._worksheet import Cell

logger = logging.getLogger(__name__)

FILE_NAME_SUFFIX = ".xlsx"
MAX_NAME_LENGTH = 255

_NAME_RE = re.compile(r"^[A-Za-z_\\][A-Za-z0-9_.\\]*$")
_RESERVED_NAMES = frozenset({"R", "C", "TRUE", "FALSE"})
_ABSOLUTE_REF_RE = re.compile(r"^'((?:[^']|'')+)'!(\$[A-Z]{1,3}\$\d+)$")


@dataclass(frozen=True)
class DefinedName:
    """A workbook-level name bound to a single cell."""

    name: str
    refers_to: str  # absolute reference, e.g. 'Pay'!$A$1
    sheet_title: str
    row_index: int
    column_index: int
    comment: str | None = None

    def __str__(self) -> str:
        return f"{{name: {self.name}, cellAddress: {self.refers_to}, formula: {self.comment}}}"


def parse_absolute_reference(refers_to: str) -> tuple[str, int, int]:
    """``'Pay'!$A$2`` -> ``("Pay", 1, 0)`` (sheet title, 0-based row, column).

    Raises ValueError if *refers_to* is not a quoted single-cell reference.
    """
    m = _ABSOLUTE_REF_RE.match(refers_to)
    if not m:
        raise ValueError(f"Not an absolute cell reference: {refers_to!r}")
    row, col = a1_to_rowcol(m.group(2))
    return m.group(1).replace("''", "'"), row - 1, col - 1


def validate_name(name: str) -> None:
    """Raise :class:`NameConflictError` unless *name* is a legal defined name."""
    if not name:
        raise NameConflictError("Name cannot be blank")
    if len(name) > MAX_NAME_LENGTH:
        raise NameConflictError(
            f"Invalid name: '{name}': cannot exceed {MAX_NAME_LENGTH} characters"
        )
    if not _NAME_RE.match(name):
        raise NameConflictError(
            f"Invalid name: '{name}': first character must be a letter, an underscore "
            "or a backslash; remaining characters must be letters, digits, underscores, "
            "periods or backslashes"
        )
    if name.upper() in _RESERVED_NAMES:
        raise NameConflictError(f"Invalid name: '{name}': reserved word")
    if is_cell_reference(name):
        raise NameConflictError(f"Invalid name: '{name}': name cannot be a cell reference")


class Workbook:
    """Grid and name table consumed by the calc engine and the batch layer."""

    def __init__(
        self,
        persist: bool = False,
        temp_dir: str | os.PathLike[str] | None = None,
        file_prefix: str = "temp-",
    ) -> None:
        self._sheet_names: list[str] = []
        self._sheets: dict[str, Worksheet] = {}
        # NAME (upper-cased) -> DefinedName; lookups are case-insensitive
        self._names: dict[str, DefinedName] = {}
        self._closed = False
        self._path: str | None = None
        self.cleanup_errors: list[CleanupError] = []
        if persist:
            self._path = self._create_temp_file(temp_dir, file_prefix)

    def _create_temp_file(
        self, temp_dir: str | os.PathLike[str] | None, file_prefix: str
    ) -> str:
        prefix = f"{file_prefix}{datetime.date.today().isoformat()}-"
        try:
            fd, path = tempfile.mkstemp(prefix=prefix, suffix=FILE_NAME_SUFFIX, dir=temp_dir)
            os.close(fd)
            self.save(path)
        except OSError as exc:
            raise BackendUnavailableError(
                f"Could not create transient workbook file: {exc}"
            ) from exc
        logger.info("Temp file created at: %s", os.path.abspath(path))
        return path

    # ------------------------------------------------------------------
    # Sheet access
    # ------------------------------------------------------------------

    @property
    def path(self) -> str | None:
        """Location of the transient file, or None for in-memory workbooks."""
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sheetnames(self) -> list[str]:
        return list(self._sheet_names)

    def __getitem__(self, name: str) -> Worksheet:
        if name not in self._sheets:
            raise KeyError(f"Worksheet '{name}' does not exist")
        return self._sheets[name]

    def __contains__(self, name: str) -> bool:
        return name in self._sheets

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._sheet_names)

    def get_sheet(self, title: str) -> Worksheet | None:
        return self._sheets.get(title)

    def create_sheet(self, title: str) -> Worksheet:
        """Add a new sheet after validating its name."""
        self._check_open()
        validate_sheet_name(title, self._sheet_names)
        ws = Worksheet(self, title)
        self._sheet_names.append(title)
        self._sheets[title] = ws
        logger.debug("Created sheet with name: %s", title)
        return ws

    def get_or_create_sheet(self, title: str) -> Worksheet:
        existing = self._sheets.get(title)
        if existing is not None:
            return existing
        return self.create_sheet(title)

    # ------------------------------------------------------------------
    # Defined names
    # ------------------------------------------------------------------

    @property
    def defined_names(self) -> dict[str, str]:
        """Name -> absolute reference, in creation order."""
        return {dn.name: dn.refers_to for dn in self._names.values()}

    def get_name(self, name: str) -> DefinedName | None:
        return self._names.get(name.upper())

    def create_name(self, name: str, cell: Cell, comment: str | None = None) -> DefinedName:
        """Bind *name* to *cell*.

        Raises :class:`NameConflictError` for duplicates (case-insensitive),
        illegal identifiers, or a cell reference that cannot be parsed back.
        """
        self._check_open()
        validate_name(name)
        if name.upper() in self._names:
            raise NameConflictError(
                f"The workbook already contains this name: {name}"
            )
        refers_to = cell.absolute_reference
        try:
            sheet_title, row_index, column_index = parse_absolute_reference(refers_to)
        except ValueError as exc:
            raise NameConflictError(
                "Cannot create name, as the formula text cannot be parsed"
            ) from exc
        defined = DefinedName(
            name=name,
            refers_to=refers_to,
            sheet_title=sheet_title,
            row_index=row_index,
            column_index=column_index,
            comment=comment,
        )
        self._names[name.upper()] = defined
        logger.debug("Name created : %s", defined)
        return defined

    def resolve_name(self, name: str) -> Cell | None:
        """The cell a defined name points at, or None if unknown."""
        defined = self._names.get(name.upper())
        if defined is None:
            return None
        sheet = self._sheets.get(defined.sheet_title)
        if sheet is None:
            return None
        return sheet.cell_at(defined.row_index, defined.column_index)

    def describe_names(self) -> str:
        return ",\n".join(str(dn) for dn in self._names.values())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, filename: str | os.PathLike[str]) -> None:
        """Write sheets, cells and defined names to an .xlsx file."""
        book = openpyxl.Workbook()
        if self._sheet_names:
            # openpyxl refuses to save a workbook without sheets, so the
            # default one only goes when there is something to replace it
            book.remove(book.active)
        for title in self._sheet_names:
            target = book.create_sheet(title)
            for cell in self._sheets[title].iter_cells():
                out = target.cell(row=cell.row_index + 1, column=cell.column_index + 1)
                if cell.formula is not None:
                    out.value = f"={cell.formula}"
                elif cell.value is not None:
                    out.value = cell.value
        for dn in self._names.values():
            book.defined_names.add(
                XlsxDefinedName(dn.name, comment=dn.comment, attr_text=dn.refers_to)
            )
        book.save(str(filename))

    # ------------------------------------------------------------------
    # Context manager + cleanup
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise BackendUnavailableError("Workbook has already been closed")

    def close(self) -> None:
        """Flush and delete the transient file, then release the workbook.

        Failures are collected in :attr:`cleanup_errors` and logged; they are
        never raised so they cannot mask the caller's own outcome.
        """
        if self._closed:
            return
        self._closed = True
        path = self._path
        if path is not None:
            try:
                self.save(path)
            except Exception as exc:
                self.cleanup_errors.append(CleanupError(f"Could not flush workbook: {exc}"))
            try:
                os.remove(path)
                logger.info("performing cleanup: deleted temp excel file: %s",
                            os.path.basename(path))
            except FileNotFoundError:
                pass
            except OSError as exc:
                self.cleanup_errors.append(CleanupError(f"Could not delete temp file: {exc}"))
        if self.cleanup_errors:
            logger.warning(
                "Clean up completed with errors: %s",
                "; ".join(str(e) for e in self.cleanup_errors),
            )
        logger.debug("performing cleanup: completed")

    def __enter__(self) -> Workbook:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        mode = "closed" if self._closed else ("transient" if self._path else "memory")
        return f"<Workbook [{mode}] sheets={self._sheet_names}>"
