"""Configuration for a batch run."""

from __future__ import annotations

import os
from dataclasses import dataclass

from payxl._utils import MAX_COLUMN_INDEX, MAX_ROW_INDEX


@dataclass(frozen=True)
class BatchOptions:
    """Knobs for one :func:`~payxl.validate_formulae` / :func:`~payxl.process_formulae` call.

    ``column`` and ``first_row`` are 0-based.  With ``persist`` the backend
    keeps a transient ``.xlsx`` copy of the workbook in ``temp_dir`` (the
    system default when None) named ``<file_prefix><date>-<random>.xlsx``;
    it is deleted when the run ends.
    """

    column: int = 0
    first_row: int = 0
    persist: bool = True
    temp_dir: str | os.PathLike[str] | None = None
    file_prefix: str = "temp-"
    use_formulas_fallback: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.column <= MAX_COLUMN_INDEX:
            raise ValueError(f"column must be between 0 and {MAX_COLUMN_INDEX}, got {self.column}")
        if not 0 <= self.first_row <= MAX_ROW_INDEX:
            raise ValueError(f"first_row must be between 0 and {MAX_ROW_INDEX}, got {self.first_row}")
