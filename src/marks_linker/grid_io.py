# marks_linker/grid_io.py
"""
Workbook transport: an .xlsx/.xlsm sheet seen as a Grid.

Grid coordinates are 0-based offsets into the sheet's used range; writes are
buffered and reach the file only on flush().
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import load_workbook

from .errors import CellWriteError
from .models import CellValue

logger = logging.getLogger(__name__)


def _cell_value(value: Any) -> CellValue:
    if value is None or isinstance(value, (str, int, float)):
        return value
    # dates, times, decimals: keep their display text
    return str(value)


class WorkbookGrid:
    def __init__(self, path: str | Path, sheet: Optional[str] = None, out_path: Optional[str | Path] = None):
        self.path = Path(path)
        self.out_path = Path(out_path) if out_path else None
        keep_vba = self.path.suffix.lower() == ".xlsm"

        # formulas are kept in the workbook we save; cached values feed detection
        self._book = load_workbook(self.path, keep_vba=keep_vba)
        values_book = load_workbook(self.path, data_only=True)

        if sheet is not None and sheet not in self._book.sheetnames:
            raise ValueError(f"Sheet {sheet!r} not found; available: {', '.join(self._book.sheetnames)}")
        self.sheet_name = sheet or self._book.active.title
        self._sheet = self._book[self.sheet_name]
        values_sheet = values_book[self.sheet_name]

        self.min_row = self._sheet.min_row
        self.min_col = self._sheet.min_column
        max_row = self._sheet.max_row
        max_col = self._sheet.max_column

        self.rows: List[List[CellValue]] = [
            [_cell_value(v) for v in row]
            for row in values_sheet.iter_rows(
                min_row=self.min_row, max_row=max_row,
                min_col=self.min_col, max_col=max_col,
                values_only=True,
            )
        ]
        self._pending: Dict[Tuple[int, int], CellValue] = {}
        logger.debug("opened %s [%s]: %d x %d used range at (%d, %d)",
                     self.path, self.sheet_name, len(self.rows), max_col - self.min_col + 1,
                     self.min_row, self.min_col)

    @property
    def sheet_names(self) -> List[str]:
        return list(self._book.sheetnames)

    @property
    def grid(self) -> List[List[CellValue]]:
        return self.rows

    def sheet_coordinates(self, row: int, column: int) -> Tuple[int, int]:
        """1-based (row, column) of a grid cell in the worksheet."""
        return self.min_row + row, self.min_col + column

    def write_cell(self, row: int, column: int, value: CellValue) -> None:
        if row < 0 or column < 0:
            raise CellWriteError(f"cell ({row}, {column}) is outside the sheet", row=row, column=column)
        self._pending[(row, column)] = value
        # keep the in-memory grid in step with the buffered writes
        while row >= len(self.rows):
            self.rows.append([])
        cells = self.rows[row]
        if column >= len(cells):
            cells.extend([None] * (column + 1 - len(cells)))
        cells[column] = value

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def flush(self, out_path: Optional[str | Path] = None) -> Path:
        """Apply buffered writes and save the workbook once. Returns the saved path."""
        target = Path(out_path) if out_path else (self.out_path or self.path)
        for (row, column), value in sorted(self._pending.items()):
            r, c = self.sheet_coordinates(row, column)
            self._sheet.cell(row=r, column=c, value=value)
        try:
            self._book.save(target)
        except OSError as e:
            raise CellWriteError(f"could not save workbook to {target}: {e}") from e
        logger.info("saved %d cell(s) to %s", len(self._pending), target)
        self._pending.clear()
        return target
