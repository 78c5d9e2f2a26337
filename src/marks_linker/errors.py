# marks_linker/errors.py
from __future__ import annotations

from typing import Optional


class GradesheetError(Exception):
    """Base class for sheet-level failures raised by marks_linker."""


class NotAGradesheet(GradesheetError):
    """
    Structure detection found no usable name column (or the grid is too small).

    Not retryable: the caller has to supply a different sheet.
    """

    def __init__(self, reason: str):
        super().__init__(f"This does not look like a gradesheet: {reason}")
        self.reason = reason


class StructureNotInitialized(GradesheetError):
    """Preview or commit was called without a detected WorksheetStructure."""

    def __init__(self, message: str = "Worksheet structure not initialized; run detect_structure() first"):
        super().__init__(message)


class CellWriteError(GradesheetError):
    """A spreadsheet transport failed to write a cell or to flush pending writes."""

    def __init__(self, message: str, row: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.row = row
        self.column = column
