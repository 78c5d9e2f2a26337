# marks_linker/detect_core.py
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .errors import NotAGradesheet
from .models import (
    ALL_CATEGORIES,
    AdditionalColumn,
    CellValue,
    Grid,
    MarkCategory,
    WorksheetStructure,
)
from .scoring_defaults import DEFAULTS, ScoringDefaults
from .tools.arabic_text import arabic_letter_count, cell_text, has_arabic, normalize, parse_number
from . import vocabulary as vocab

logger = logging.getLogger(__name__)

Rows = List[List[CellValue]]

_FARD_SLOTS = (MarkCategory.FARD1, MarkCategory.FARD2, MarkCategory.FARD3, MarkCategory.FARD4)
_POSITIONAL_CONFIDENCE = (0.8, 0.7, 0.6, 0.5, 0.4)
_DEMOTED_CONFIDENCE = 0.3
_ACTIVITIES_CONFIDENCE = 0.9

# name-column fallback inside a header layout (adjacent to the identifier column)
_ADJACENT_NAME_MIN = 0.6

_LATIN = re.compile(r"[a-zA-Z]")
_DIGITS_ONLY = re.compile(r"^\d+$")
_DATE = re.compile(r"\d{2}[-/]\d{2}[-/]\d{4}")

# ------------------------------------------------------------------------------
# Grid helpers
# ------------------------------------------------------------------------------

def _as_rows(grid: Grid) -> Rows:
    """Copy the grid into rectangular lists (short rows padded with None)."""
    rows = [list(r) if r is not None else [] for r in grid]
    width = max((len(r) for r in rows), default=0)
    for r in rows:
        r.extend([None] * (width - len(r)))
    return rows


def _is_blank(value: CellValue) -> bool:
    return cell_text(value) == ""


def _non_empty(row: Sequence[CellValue]) -> int:
    return sum(1 for v in row if not _is_blank(v))


def _looks_like_header(row: Sequence[CellValue]) -> bool:
    """Some cell names a header term by whole tokens, and most filled cells are not numbers."""
    filled = [v for v in row if not _is_blank(v)]
    numeric = sum(1 for v in filled if parse_number(v) is not None)
    if numeric * 2 > len(filled):
        return False
    return any(vocab.is_vocabulary_hit(normalize(v)) for v in filled if isinstance(v, str))


def is_massar_layout(rows: Rows, defaults: ScoringDefaults = DEFAULTS) -> bool:
    """Massar exports name at least two of the indicator terms in their first rows."""
    found = 0
    for row in rows[:defaults.massar_scan_rows]:
        for cell in row:
            if not isinstance(cell, str):
                continue
            text = normalize(cell)
            for indicator in vocab.MASSAR_INDICATORS:
                if indicator in text:
                    found += 1
                    if found >= defaults.massar_min_indicators:
                        return True
    return False


def find_header_row(rows: Rows, defaults: ScoringDefaults = DEFAULTS) -> Optional[int]:
    for i, row in enumerate(rows[:defaults.header_scan_rows]):
        if _non_empty(row) >= defaults.min_header_cells and _looks_like_header(row):
            return i
    return None

# ------------------------------------------------------------------------------
# Header matching (first match wins, scanning left to right)
# ------------------------------------------------------------------------------

def _first_header_match(
    norm_headers: Sequence[str],
    terms: Tuple[str, ...],
    taken: Set[int],
) -> Optional[int]:
    for i, h in enumerate(norm_headers):
        if i not in taken and vocab.exact_match(h, terms):
            return i
    for i, h in enumerate(norm_headers):
        if i not in taken and vocab.contains_match(h, terms):
            return i
    return None


def find_id_column(norm_headers: Sequence[str]) -> Optional[int]:
    return _first_header_match(norm_headers, vocab.ID_HEADERS, set())


def find_name_column(norm_headers: Sequence[str], exclude: Set[int]) -> Optional[int]:
    return _first_header_match(norm_headers, vocab.NAME_HEADERS, exclude)


def find_mark_columns(
    norm_headers: Sequence[str],
    taken: Set[int],
    preset: Optional[Dict[MarkCategory, int]] = None,
) -> Dict[MarkCategory, int]:
    """
    Exact vocabulary match first, then substring, then the numbered-test regex.
    `taken` columns (identifier, name, preset marks) are never reassigned.
    """
    columns: Dict[MarkCategory, int] = dict(preset or {})
    used = set(taken) | set(columns.values())

    def claim(cat: MarkCategory, match) -> None:
        if cat in columns:
            return
        for i, h in enumerate(norm_headers):
            if i not in used and match(h, cat):
                columns[cat] = i
                used.add(i)
                return

    for cat in ALL_CATEGORIES:
        claim(cat, lambda h, c: vocab.exact_match(h, vocab.MARK_HEADERS[c]))
    for cat in ALL_CATEGORIES:
        claim(cat, lambda h, c: vocab.contains_match(h, vocab.MARK_HEADERS[c]))
    for cat in _FARD_SLOTS:
        claim(cat, lambda h, c: vocab.numbered_test_category(h) is c)
    return columns


def _score_subcolumn(rows: Rows, header_row: int, header_col: int) -> Optional[int]:
    """Column holding "النقطة" under (or beside) a Massar test header."""
    width = len(rows[header_row])
    if header_row + 1 < len(rows):
        below = rows[header_row + 1]
        for offset in range(0, 3):
            col = header_col + offset
            if col < width and vocab.SCORE_SUBHEADER in normalize(below[col]):
                return col
    same = rows[header_row]
    for offset in range(1, 4):
        col = header_col + offset
        if col < width and vocab.SCORE_SUBHEADER in normalize(same[col]):
            return col
    if header_row + 1 < len(rows):
        return header_col
    return None


def find_massar_mark_columns(
    rows: Rows,
    header_row: int,
    taken: Set[int],
) -> Tuple[Dict[MarkCategory, int], Dict[MarkCategory, Tuple[int, int]]]:
    """
    Returns (columns, parents): the score column per category and the (row,
    column) of the test header cell it was found under.
    """
    columns: Dict[MarkCategory, int] = {}
    parents: Dict[MarkCategory, Tuple[int, int]] = {}
    used = set(taken)
    scan = max(5, header_row + 1)
    for r, row in enumerate(rows[:scan]):
        for cat in ALL_CATEGORIES:
            if cat in columns:
                continue
            for c, cell in enumerate(row):
                if not isinstance(cell, str):
                    continue
                text = normalize(cell)
                if not vocab.contains_match(text, vocab.MARK_HEADERS[cat]):
                    continue
                col = _score_subcolumn(rows, r, c)
                if col is not None and col not in used:
                    columns[cat] = col
                    parents[cat] = (r, c)
                    used.add(col)
                    break
    return columns, parents


def find_additional_columns(
    headers: Sequence[str],
    norm_headers: Sequence[str],
    assigned: Set[int],
) -> List[AdditionalColumn]:
    return [
        AdditionalColumn(index=i, header=headers[i])
        for i, h in enumerate(norm_headers)
        if i not in assigned and vocab.is_test_header(h)
    ]

# ------------------------------------------------------------------------------
# Content scoring
# ------------------------------------------------------------------------------

def name_column_score(rows: Rows, col: int, sample: Sequence[int]) -> float:
    """
    (Arabic string cells + 2 x cells with >= 3 Arabic letters + cells longer
    than 3 chars) / (4 x sampled rows)
    """
    if not sample:
        return 0.0
    arabic = rich = long_ = 0
    for r in sample:
        value = rows[r][col]
        if not isinstance(value, str) or not value.strip():
            continue
        text = value.strip()
        if has_arabic(text):
            arabic += 1
        if arabic_letter_count(text) >= 3:
            rich += 1
        if len(text) > 3:
            long_ += 1
    return (arabic + 2 * rich + long_) / (4.0 * len(sample))


def id_column_score(rows: Rows, col: int, sample: Sequence[int]) -> float:
    """(numeric cells + 2 x sequential increments) / (3 x sampled rows)"""
    if not sample:
        return 0.0
    numeric = sequential = 0
    last: Optional[float] = None
    for k, r in enumerate(sample):
        value = parse_number(rows[r][col])
        if value is None:
            continue
        numeric += 1
        if k > 0 and last is not None and value == last + 1:
            sequential += 1
        last = value
    return (numeric + 2 * sequential) / (3.0 * len(sample))


def adjacent_name_score(rows: Rows, col: int, sample: Sequence[int]) -> float:
    """Looser name score used next to a known identifier column (capped at 1)."""
    if col < 0 or not rows or col >= len(rows[0]):
        return 0.0
    total = 0
    score = 0.0
    for r in sample:
        value = rows[r][col]
        if not isinstance(value, str) or not value.strip():
            continue
        text = value.strip()
        total += 1
        if (has_arabic(text) or _LATIN.search(text)) and len(text) >= 2:
            score += 1.5
        if len(text.split()) >= 2:
            score += 1.0
        if not _DIGITS_ONLY.match(text):
            score += 0.5
        if not _DATE.search(text):
            score += 0.3
    return min(1.0, score / (total * 3.3)) if total else 0.0


def _best_column(
    rows: Rows,
    sample: Sequence[int],
    scorer,
    threshold: float,
    exclude: Set[int],
) -> Optional[int]:
    best: Optional[int] = None
    best_score = 0.0
    for col in range(len(rows[0]) if rows else 0):
        if col in exclude:
            continue
        score = scorer(rows, col, sample)
        if score > best_score:
            best, best_score = col, score
    if best is not None and best_score > threshold:
        return best
    return None


def find_name_parts(
    rows: Rows,
    name_col: int,
    sample: Sequence[int],
    exclude: Set[int],
    defaults: ScoringDefaults,
    norm_headers: Optional[Sequence[str]] = None,
) -> Tuple[int, ...]:
    """
    Neighbours of the name column that hold the rest of each name (surname
    and first name in separate columns). Under a header row the neighbour's
    header must be blank or a name term.
    """
    parts: List[int] = []
    for col in (name_col - 1, name_col + 1):
        if col < 0 or col >= len(rows[0]) or col in exclude:
            continue
        if norm_headers is not None:
            header = norm_headers[col]
            if header and not vocab.token_match(header, vocab.NAME_HEADERS + vocab.NAME_PART_HEADERS):
                continue
        if name_column_score(rows, col, sample) > defaults.name_column_threshold:
            parts.append(col)
    return tuple(sorted(parts))


def _sample_rows(rows: Rows, start: int, defaults: ScoringDefaults) -> List[int]:
    """Data rows to sample: skip blank and header-like rows."""
    picked: List[int] = []
    for i in range(start, len(rows)):
        row = rows[i]
        if _non_empty(row) == 0 or _looks_like_header(row):
            continue
        picked.append(i)
        if len(picked) >= defaults.sample_rows:
            break
    return picked


def _mark_candidate_values(rows: Rows, col: int, sample: Sequence[int], defaults: ScoringDefaults) -> Optional[np.ndarray]:
    """In-range numeric values of a column if it looks like a mark column, else None."""
    filled = [rows[r][col] for r in sample if not _is_blank(rows[r][col])]
    if len(filled) < 2:
        return None
    numbers = np.array([v for v in (parse_number(x) for x in filled) if v is not None], dtype=float)
    if numbers.size / len(filled) < defaults.numeric_ratio:
        return None
    in_range = numbers[(numbers >= defaults.mark_min) & (numbers <= defaults.mark_max)]
    if in_range.size / len(filled) < defaults.mark_range_ratio:
        return None
    return in_range

# ------------------------------------------------------------------------------
# Layout paths
# ------------------------------------------------------------------------------

def _detect_with_headers(
    rows: Rows,
    header_row: int,
    massar: bool,
    defaults: ScoringDefaults,
) -> WorksheetStructure:
    width = len(rows[0])
    headers = [cell_text(v) for v in rows[header_row]]
    norm_headers = [normalize(h) for h in headers]

    data_start = header_row + 1
    if massar and data_start < len(rows):
        if any(vocab.SCORE_SUBHEADER in normalize(v) for v in rows[data_start] if isinstance(v, str)):
            data_start += 1
    sample = _sample_rows(rows, data_start, defaults)

    id_col = find_id_column(norm_headers)
    taken = {id_col} if id_col is not None else set()

    name_col = find_name_column(norm_headers, taken)
    if name_col is None and id_col is not None:
        neighbours = [c for c in (id_col + 1, id_col - 1) if 0 <= c < width]
        scored = sorted(
            ((adjacent_name_score(rows, c, sample), c) for c in neighbours),
            key=lambda sc: -sc[0],
        )
        if scored and scored[0][0] >= _ADJACENT_NAME_MIN:
            name_col = scored[0][1]
    if name_col is None:
        name_col = _best_column(rows, sample, name_column_score, defaults.name_column_threshold, taken)
    if name_col is None:
        raise NotAGradesheet("no student name column found under the header row")
    taken.add(name_col)

    parents: Dict[MarkCategory, Tuple[int, int]] = {}
    preset: Dict[MarkCategory, int] = {}
    if massar:
        preset, parents = find_massar_mark_columns(rows, header_row, taken)
    mark_cols = find_mark_columns(norm_headers, taken, preset)

    def header_text(cat: MarkCategory, col: int) -> str:
        if cat in parents:
            r, c = parents[cat]
            return normalize(rows[r][c])
        return norm_headers[col]

    confidence = {cat: vocab.mark_confidence(cat, header_text(cat, col)) for cat, col in mark_cols.items()}
    assigned = taken | set(mark_cols.values())
    assigned |= {c for r, c in parents.values() if r == header_row}
    name_parts = find_name_parts(rows, name_col, sample, assigned, defaults, norm_headers)
    assigned |= set(name_parts)
    additional = find_additional_columns(headers, norm_headers, assigned)

    return WorksheetStructure(
        headers=tuple(headers),
        name_column=name_col,
        id_column=id_col,
        mark_columns=mark_cols,
        confidence=confidence,
        additional_columns=tuple(additional),
        layout="massar" if massar else "generic",
        header_row=header_row,
        data_start_row=data_start,
        total_rows=len(rows),
        name_parts=name_parts,
    )


def _rank_activities(
    candidates: List[int],
    means: Dict[int, float],
    defaults: ScoringDefaults,
) -> Optional[int]:
    """
    The candidate whose mean is markedly above the others' (tunable heuristic:
    activities marks tend to run higher than timed tests).
    """
    if len(candidates) < 2:
        return None
    best: Optional[int] = None
    for col in candidates:
        others = np.array([means[c] for c in candidates if c != col], dtype=float)
        gap = means[col] - float(np.mean(others))
        if gap > defaults.activities_mean_gap and means[col] > defaults.activities_min_mean:
            if best is None or means[col] > means[best]:
                best = col
    return best


def _detect_generic(rows: Rows, defaults: ScoringDefaults) -> WorksheetStructure:
    width = len(rows[0])
    sample = _sample_rows(rows, 0, defaults)

    name_col = _best_column(rows, sample, name_column_score, defaults.name_column_threshold, set())
    if name_col is None:
        raise NotAGradesheet("no column scores as student names")
    id_col = _best_column(rows, sample, id_column_score, defaults.id_column_threshold, {name_col})

    taken = {name_col} | ({id_col} if id_col is not None else set())
    means: Dict[int, float] = {}
    candidates: List[int] = []
    for col in range(width):
        if col in taken:
            continue
        values = _mark_candidate_values(rows, col, sample, defaults)
        if values is not None:
            candidates.append(col)
            means[col] = float(np.mean(values)) if values.size else 0.0

    mark_cols: Dict[MarkCategory, int] = {}
    confidence: Dict[MarkCategory, float] = {}
    activities = _rank_activities(candidates, means, defaults)
    if activities is None:
        slots = list(zip(ALL_CATEGORIES, _POSITIONAL_CONFIDENCE))
        remaining = candidates
    else:
        mark_cols[MarkCategory.ACTIVITIES] = activities
        confidence[MarkCategory.ACTIVITIES] = _ACTIVITIES_CONFIDENCE
        slots = [(cat, _DEMOTED_CONFIDENCE) for cat in _FARD_SLOTS]
        remaining = [c for c in candidates if c != activities]

    for (cat, conf), col in zip(slots, remaining):
        mark_cols[cat] = col
        confidence[cat] = conf
    extra = remaining[len(slots):]

    return WorksheetStructure(
        headers=tuple("" for _ in range(width)),
        name_column=name_col,
        id_column=id_col,
        mark_columns=mark_cols,
        confidence=confidence,
        additional_columns=tuple(AdditionalColumn(index=c, header="") for c in extra),
        layout="generic",
        header_row=None,
        data_start_row=sample[0] if sample else 0,
        total_rows=len(rows),
        name_parts=find_name_parts(rows, name_col, sample, taken | set(candidates), defaults),
    )

# ------------------------------------------------------------------------------
# Public entry point
# ------------------------------------------------------------------------------

def detect_structure(grid: Grid, defaults: ScoringDefaults = DEFAULTS) -> WorksheetStructure:
    """
    Infer identifier, name and mark columns of a gradesheet grid.

    Raises NotAGradesheet when the grid has fewer than `defaults.min_rows`
    rows or no usable name column can be found. Never retried here: the
    caller has to supply a different sheet.
    """
    rows = _as_rows(grid)
    if len(rows) < defaults.min_rows:
        raise NotAGradesheet(f"only {len(rows)} row(s), need at least {defaults.min_rows}")
    if not rows[0]:
        raise NotAGradesheet("the sheet has no columns")

    massar = is_massar_layout(rows, defaults)
    header_row = find_header_row(rows, defaults)

    if header_row is not None:
        structure = _detect_with_headers(rows, header_row, massar, defaults)
    else:
        structure = _detect_generic(rows, defaults)

    logger.debug(
        "layout=%s header_row=%s name=%s id=%s marks=%s confidence=%s additional=%s",
        structure.layout, structure.header_row, structure.name_column, structure.id_column,
        {c.value: i for c, i in structure.mark_columns.items() if i is not None},
        {c.value: round(v, 2) for c, v in structure.confidence.items() if v},
        [a.index for a in structure.additional_columns],
    )
    return structure
