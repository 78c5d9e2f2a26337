# marks_linker/insert_core.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import CellWriteError, StructureNotInitialized
from .match_core import NameMatcher
from .models import (
    ALL_CATEGORIES,
    ExtractedRecord,
    Grid,
    InsertionOutcome,
    MarkCategory,
    MarkMapping,
    PreviewEntry,
    PreviewResult,
    PreviewSummary,
    SkipReason,
    WorksheetStructure,
    WriteFailure,
)
from .scoring_defaults import DEFAULTS, ScoringDefaults
from .tools.arabic_text import parse_number

logger = logging.getLogger(__name__)


def format_mark(value: float) -> str:
    """Marks are written as fixed two-decimal strings ("12.50")."""
    return f"{float(value):.2f}"


class GridWriter:
    """
    Default transport: writes straight into the caller's list-of-lists grid.

    Any object with write_cell(row, column, value) and flush() can stand in
    (see grid_io.WorkbookGrid). write_cell raises CellWriteError on failure.
    """

    def __init__(self, grid: Grid):
        self.grid = grid

    def write_cell(self, row: int, column: int, value: str) -> None:
        try:
            cells = self.grid[row]
            if column >= len(cells):
                cells.extend([None] * (column + 1 - len(cells)))
            cells[column] = value
        except (IndexError, TypeError, AttributeError) as e:
            raise CellWriteError(f"cannot write cell ({row}, {column}): {e}", row=row, column=column) from e

    def flush(self) -> None:
        pass

# ------------------------------------------------------------------------------
# Planning (shared by preview and commit)
# ------------------------------------------------------------------------------

def _require_structure(structure: Optional[WorksheetStructure]) -> WorksheetStructure:
    if not isinstance(structure, WorksheetStructure):
        raise StructureNotInitialized()
    return structure


def _categories(categories: Optional[Iterable[MarkCategory]]) -> Tuple[MarkCategory, ...]:
    if categories is None:
        return ALL_CATEGORIES
    wanted = {MarkCategory(c) for c in categories}
    return tuple(c for c in ALL_CATEGORIES if c in wanted)


def _mapping(
    record: ExtractedRecord,
    category: MarkCategory,
    found: bool,
    structure: WorksheetStructure,
    defaults: ScoringDefaults,
) -> MarkMapping:
    column = structure.column_for(category)
    raw = record.mark(category)
    value = parse_number(raw)

    reason: Optional[SkipReason] = None
    if not found:
        reason = SkipReason.RECORD_UNRESOLVED
    elif column is None:
        reason = SkipReason.COLUMN_UNAVAILABLE
    elif value is None:
        reason = SkipReason.VALUE_ABSENT
    elif not defaults.mark_min <= value <= defaults.mark_max:
        reason = SkipReason.VALUE_OUT_OF_RANGE

    return MarkMapping(
        category=category,
        value=value,
        column=column,
        header=structure.header_label(column),
        will_insert=reason is None,
        skip_reason=reason,
    )


def plan_insertion(
    records: Sequence[ExtractedRecord],
    structure: Optional[WorksheetStructure],
    grid: Grid,
    categories: Optional[Iterable[MarkCategory]] = None,
    defaults: ScoringDefaults = DEFAULTS,
) -> PreviewResult:
    """
    Resolve every record to a row and every category to a column.

    Behavior:
      - A record whose name matches no row is kept, with found=False.
      - A category with no column is skipped for every record.
      - Values that are missing, non-numeric or outside [mark_min, mark_max] are absent.
    """
    structure = _require_structure(structure)
    wanted = _categories(categories)

    matcher = NameMatcher(
        grid, structure.name_column, structure.data_start_row, defaults, extra_columns=structure.name_parts,
    )
    matches = matcher.match_batch([r.name for r in records])

    entries: List[PreviewEntry] = []
    for record, match in zip(records, matches):
        mappings = tuple(_mapping(record, cat, match.found, structure, defaults) for cat in wanted)
        entries.append(PreviewEntry(
            student_name=record.name,
            found=match.found,
            row=match.row,
            score=match.score,
            mappings=mappings,
        ))

    found = sum(1 for e in entries if e.found)
    summary = PreviewSummary(
        total_students=len(entries),
        students_found=found,
        students_not_found=len(entries) - found,
        total_marks_to_insert=sum(1 for e in entries for m in e.mappings if m.will_insert),
    )
    return PreviewResult(entries=tuple(entries), summary=summary)

# ------------------------------------------------------------------------------
# Caller-facing operations
# ------------------------------------------------------------------------------

def preview_insertion(
    records: Sequence[ExtractedRecord],
    structure: Optional[WorksheetStructure],
    grid: Grid,
    categories: Optional[Iterable[MarkCategory]] = None,
    defaults: ScoringDefaults = DEFAULTS,
) -> PreviewResult:
    """Dry run: what commit_insertion() would write, without touching the grid."""
    return plan_insertion(records, structure, grid, categories, defaults)


def commit_insertion(
    records: Sequence[ExtractedRecord],
    structure: Optional[WorksheetStructure],
    grid: Grid,
    writer=None,
    categories: Optional[Iterable[MarkCategory]] = None,
    defaults: ScoringDefaults = DEFAULTS,
) -> InsertionOutcome:
    """
    Write every planned mark, then flush the writer once.

    Best effort, no rollback: an unmatched record is counted and skipped, a
    rejected cell write is counted in `failed` and the batch goes on. A failing
    flush() propagates, since nothing reached the sheet.
    """
    plan = plan_insertion(records, structure, grid, categories, defaults)
    writer = writer if writer is not None else GridWriter(grid)
    outcome = InsertionOutcome()

    for entry in plan.entries:
        if not entry.found:
            outcome.not_found += 1
            outcome.not_found_students.append(entry.student_name)
            continue
        outcome.students_updated += 1

        for m in entry.mappings:
            if not m.will_insert:
                continue
            try:
                writer.write_cell(entry.row, m.column, format_mark(m.value))
                outcome.success += 1
            except CellWriteError as e:
                outcome.failed += 1
                outcome.failures.append(WriteFailure(
                    student_name=entry.student_name,
                    category=m.category,
                    row=entry.row,
                    column=m.column,
                    message=str(e),
                ))
                logger.warning("write failed for %s / %s at (%d, %d): %s",
                               entry.student_name, m.category.value, entry.row, m.column, e)

    writer.flush()
    logger.info("commit: %d mark(s) written for %d student(s), %d not found, %d failed write(s)",
                outcome.success, outcome.students_updated, outcome.not_found, outcome.failed)
    return outcome
