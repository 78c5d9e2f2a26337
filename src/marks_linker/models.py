# marks_linker/models.py
"""
Value types shared by detection, matching and insertion.

Grid coordinates are 0-based (row, column) into the used range handed in by
the caller. Every type here is either frozen or only built by this package,
so a WorksheetStructure can be threaded through preview and commit without
anyone mutating it in between.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

CellValue = Union[str, int, float, None]
Grid = Sequence[Sequence[CellValue]]


class MarkCategory(str, Enum):
    FARD1 = "fard1"
    FARD2 = "fard2"
    FARD3 = "fard3"
    FARD4 = "fard4"
    ACTIVITIES = "activities"

    @property
    def display_name(self) -> str:
        return MARK_CATEGORY_NAMES[self]


ALL_CATEGORIES: Tuple[MarkCategory, ...] = tuple(MarkCategory)

MARK_CATEGORY_NAMES: Dict[MarkCategory, str] = {
    MarkCategory.FARD1: "الفرض الأول",
    MarkCategory.FARD2: "الفرض الثاني",
    MarkCategory.FARD3: "الفرض الثالث",
    MarkCategory.FARD4: "الفرض الرابع",
    MarkCategory.ACTIVITIES: "الأنشطة",
}

# Shown in previews for a category with no target column
UNAVAILABLE_LABEL = "غير متوفر"


class MatchTier(str, Enum):
    EXACT = "exact"
    REORDERED = "reordered"
    PARTIAL = "partial"
    FUZZY = "fuzzy"


class SkipReason(str, Enum):
    RECORD_UNRESOLVED = "record_unresolved"
    COLUMN_UNAVAILABLE = "column_unavailable"
    VALUE_ABSENT = "value_absent"
    VALUE_OUT_OF_RANGE = "value_out_of_range"


@dataclass(frozen=True)
class AdditionalColumn:
    index: int
    header: str


@dataclass(frozen=True)
class WorksheetStructure:
    headers: Tuple[str, ...]
    name_column: int
    id_column: Optional[int] = None
    mark_columns: Mapping[MarkCategory, Optional[int]] = field(default_factory=dict)
    confidence: Mapping[MarkCategory, float] = field(default_factory=dict)
    additional_columns: Tuple[AdditionalColumn, ...] = ()
    layout: str = "generic"              # "massar" | "generic"
    header_row: Optional[int] = None
    data_start_row: int = 0
    total_rows: int = 0
    name_parts: Tuple[int, ...] = ()     # neighbour columns joined to the name (surname, first name)

    def __post_init__(self) -> None:
        width = len(self.headers)
        # fill the five categories so lookups never KeyError
        cols = {c: self.mark_columns.get(c) for c in ALL_CATEGORIES}
        conf = {c: float(self.confidence.get(c, 0.0)) for c in ALL_CATEGORIES}
        object.__setattr__(self, "mark_columns", cols)
        object.__setattr__(self, "confidence", conf)
        object.__setattr__(self, "name_parts", tuple(self.name_parts))

        assigned = [self.name_column, self.id_column] + list(cols.values()) + list(self.name_parts)
        used = [i for i in assigned if i is not None]
        for idx in used:
            if not 0 <= idx < width:
                raise ValueError(f"column index {idx} outside 0..{width - 1}")
        if len(used) != len(set(used)):
            raise ValueError(f"column indices must be unique, got {used}")
        for value in conf.values():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"confidence {value} outside [0, 1]")

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column_for(self, category: MarkCategory) -> Optional[int]:
        return self.mark_columns.get(MarkCategory(category))

    def header_label(self, column: Optional[int]) -> str:
        if column is None:
            return UNAVAILABLE_LABEL
        text = self.headers[column] if 0 <= column < len(self.headers) else ""
        return text or f"Column {column + 1}"


@dataclass(frozen=True)
class ExtractedRecord:
    """One student as handed over by the OCR step; a missing mark means absent."""
    name: str
    marks: Mapping[MarkCategory, Optional[float]] = field(default_factory=dict)

    def mark(self, category: MarkCategory) -> Optional[float]:
        return self.marks.get(MarkCategory(category))


@dataclass(frozen=True)
class MatchResult:
    row: Optional[int]
    score: float = 0.0
    tier: Optional[MatchTier] = None

    @property
    def found(self) -> bool:
        return self.row is not None


NOT_FOUND = MatchResult(row=None)


@dataclass(frozen=True)
class MarkMapping:
    category: MarkCategory
    value: Optional[float]
    column: Optional[int]
    header: str
    will_insert: bool
    skip_reason: Optional[SkipReason] = None


@dataclass(frozen=True)
class PreviewEntry:
    student_name: str
    found: bool
    row: Optional[int]
    score: float
    mappings: Tuple[MarkMapping, ...]


@dataclass(frozen=True)
class PreviewSummary:
    total_students: int
    students_found: int
    students_not_found: int
    total_marks_to_insert: int


@dataclass(frozen=True)
class PreviewResult:
    entries: Tuple[PreviewEntry, ...]
    summary: PreviewSummary

    @property
    def not_found_students(self) -> List[str]:
        return [e.student_name for e in self.entries if not e.found]


@dataclass(frozen=True)
class WriteFailure:
    student_name: str
    category: MarkCategory
    row: int
    column: int
    message: str


@dataclass
class InsertionOutcome:
    """Aggregate result of one commit pass. Built incrementally by the inserter."""
    success: int = 0                      # mark values written
    students_updated: int = 0             # records resolved to a row
    not_found: int = 0
    not_found_students: List[str] = field(default_factory=list)
    failed: int = 0                       # writes rejected by the transport
    failures: List[WriteFailure] = field(default_factory=list)
