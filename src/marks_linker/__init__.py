# marks_linker/__init__.py
from .detect_core import detect_structure
from .errors import CellWriteError, GradesheetError, NotAGradesheet, StructureNotInitialized
from .insert_core import GridWriter, commit_insertion, format_mark, preview_insertion
from .match_core import NameMatcher, find_row
from .models import (
    ExtractedRecord,
    InsertionOutcome,
    MarkCategory,
    MatchResult,
    PreviewResult,
    WorksheetStructure,
)
from .scoring_defaults import DEFAULTS, ScoringDefaults, apply_overrides

__version__ = "0.1.0"

__all__ = [
    "detect_structure",
    "preview_insertion",
    "commit_insertion",
    "find_row",
    "format_mark",
    "NameMatcher",
    "GridWriter",
    "ExtractedRecord",
    "InsertionOutcome",
    "MarkCategory",
    "MatchResult",
    "PreviewResult",
    "WorksheetStructure",
    "DEFAULTS",
    "ScoringDefaults",
    "apply_overrides",
    "GradesheetError",
    "NotAGradesheet",
    "StructureNotInitialized",
    "CellWriteError",
]
