# marks_linker/match_core.py
"""
Resolve OCR'd student names to gradesheet rows.

Tiers, stopping at the first that yields a row:
  exact      normalized cell == normalized target
  reordered  same tokens in another order (names of >= 2 tokens)
  partial    first tokens equal, or last tokens equal when both names have >= 2 tokens
  fuzzy      similarity() above defaults.fuzzy_threshold

Within a tier the first row in sheet order wins. match_batch() resolves a
whole ordered batch: it adds a small positional bonus to fuzzy scores and
prefers rows not already claimed by an earlier record of the same batch.
Large batches go through first/last-token indexes instead of full scans.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import NOT_FOUND, Grid, MatchResult, MatchTier
from .scoring_defaults import DEFAULTS, ScoringDefaults
from .tools.arabic_text import normalize, tokens
from .tools.name_similarity import length_agreement, similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Candidate:
    row: int          # grid row index
    position: int     # 0-based order among the sheet's name cells
    text: str         # normalized name
    parts: Tuple[str, ...]

    @property
    def first(self) -> str:
        return self.parts[0]

    @property
    def last(self) -> Optional[str]:
        return self.parts[-1] if len(self.parts) >= 2 else None

    @property
    def sorted_key(self) -> Optional[str]:
        return _token_key(self.parts)


@dataclass(frozen=True)
class _Target:
    text: str
    parts: Tuple[str, ...]
    index: int = 0       # position in the batch
    batch_size: int = 1

    @property
    def last(self) -> Optional[str]:
        return self.parts[-1] if len(self.parts) >= 2 else None

    @property
    def sorted_key(self) -> Optional[str]:
        return _token_key(self.parts)


def _token_key(parts: Sequence[str]) -> Optional[str]:
    """Order-free key of a name, None below two tokens."""
    return " ".join(sorted(parts)) if len(parts) >= 2 else None


def _partial_hit(target: _Target, cand: _Candidate) -> bool:
    if target.parts[0] == cand.first:
        return True
    return target.last is not None and cand.last is not None and target.last == cand.last


class NameMatcher:
    """
    Name-column view of one grid. Cells are normalized once; the matcher
    never writes to the grid and keeps no reference to it after __init__.

    `extra_columns` are neighbour columns holding the rest of the name (a
    surname next to a first name); their text is joined to the name cell in
    column order.
    """

    def __init__(
        self,
        grid: Grid,
        name_column: int,
        start_row: int = 0,
        defaults: ScoringDefaults = DEFAULTS,
        extra_columns: Sequence[int] = (),
    ):
        self.defaults = defaults
        self.name_column = name_column
        self.columns = sorted({name_column, *extra_columns})
        self.total_rows = len(grid)
        self._candidates: List[_Candidate] = []
        for r in range(max(0, start_row), len(grid)):
            row = grid[r]
            if row is None or name_column >= len(row):
                continue
            text = self._joined_name(row)
            if not text:
                continue
            self._candidates.append(_Candidate(r, len(self._candidates), text, tuple(tokens(text))))

        # indexes for the batch variant, built on first use
        self._by_text: Optional[Dict[str, List[_Candidate]]] = None
        self._by_sorted: Optional[Dict[str, List[_Candidate]]] = None
        self._by_first: Optional[Dict[str, List[_Candidate]]] = None
        self._by_last: Optional[Dict[str, List[_Candidate]]] = None

    @property
    def candidate_count(self) -> int:
        return len(self._candidates)

    def _joined_name(self, row: Sequence) -> str:
        """Normalized name cell plus the name parts beside it, in column order."""
        name = normalize(row[self.name_column])
        if not name:
            return ""
        pieces: List[str] = []
        for col in self.columns:
            if col == self.name_column:
                pieces.append(name)
                continue
            part = normalize(row[col]) if col < len(row) else ""
            # numbers, dates and text already in the name cell stay out
            if any(ch.isalpha() for ch in part) and part not in name:
                pieces.append(part)
        return " ".join(pieces)

    # ---- indexes ----

    def _build_indexes(self) -> None:
        if self._by_text is not None:
            return
        by_text: Dict[str, List[_Candidate]] = {}
        by_sorted: Dict[str, List[_Candidate]] = {}
        by_first: Dict[str, List[_Candidate]] = {}
        by_last: Dict[str, List[_Candidate]] = {}
        for cand in self._candidates:
            by_text.setdefault(cand.text, []).append(cand)
            if cand.sorted_key is not None:
                by_sorted.setdefault(cand.sorted_key, []).append(cand)
            by_first.setdefault(cand.first, []).append(cand)
            if cand.last is not None:
                by_last.setdefault(cand.last, []).append(cand)
        self._by_text, self._by_sorted = by_text, by_sorted
        self._by_first, self._by_last = by_first, by_last

    def _prefiltered(self, target: _Target) -> List[_Candidate]:
        """
        Small candidate set for fuzzy search when no first-token bucket exists:
        length-similar names or names sharing a token. Names sharing a token
        rank first, then closer lengths; the best `fallback_candidates` are
        returned in sheet order.
        """
        d = self.defaults
        scored: List[Tuple[bool, float, _Candidate]] = []
        for cand in self._candidates:
            length_sim = length_agreement(cand.text, target.text)
            shares = any(p in target.text or target.parts[0] in p for p in cand.parts)
            if length_sim > d.prefilter_length_ratio or shares:
                scored.append((shares, length_sim, cand))
        scored.sort(key=lambda s: (not s[0], -s[1]))  # stable: ties keep sheet order
        top = [cand for _, _, cand in scored[:d.fallback_candidates]]
        return sorted(top, key=lambda c: c.row)

    # ---- tier candidate sources ----

    def _exact_pool(self, target: _Target, indexed: bool) -> Iterable[_Candidate]:
        if indexed:
            return self._by_text.get(target.text, [])
        return (c for c in self._candidates if c.text == target.text)

    def _reordered_pool(self, target: _Target, indexed: bool) -> Iterable[_Candidate]:
        key = target.sorted_key
        if key is None:
            return []
        if indexed:
            return self._by_sorted.get(key, [])
        return (c for c in self._candidates if c.sorted_key == key)

    def _partial_pool(self, target: _Target, indexed: bool) -> Iterable[_Candidate]:
        if not indexed:
            return (c for c in self._candidates if _partial_hit(target, c))
        pool = {c.row: c for c in self._by_first.get(target.parts[0], [])}
        if target.last is not None:
            for c in self._by_last.get(target.last, []):
                pool.setdefault(c.row, c)
        return [pool[r] for r in sorted(pool)]

    def _fuzzy_pool(self, target: _Target, indexed: bool) -> Iterable[_Candidate]:
        if not indexed:
            return self._candidates
        bucket = self._by_first.get(target.parts[0])
        return bucket if bucket else self._prefiltered(target)

    # ---- scoring ----

    def _position_bonus(self, target: _Target, cand: _Candidate) -> float:
        """Up to `context_bonus` when the record's batch position tracks the row's sheet position."""
        if target.batch_size <= 1 or len(self._candidates) <= 1:
            return 0.0
        record_ratio = target.index / (target.batch_size - 1)
        row_ratio = cand.position / (len(self._candidates) - 1)
        closeness = max(0.0, 1.0 - abs(record_ratio - row_ratio) * 2.0)
        return closeness * self.defaults.context_bonus

    def _fuzzy_score(self, target: _Target, cand: _Candidate, contextual: bool) -> Optional[float]:
        """Accepted score, or None when the candidate does not clear the fuzzy tier."""
        d = self.defaults
        base = similarity(target.text, cand.text, d)
        if not contextual:
            return base if base > d.fuzzy_threshold else None
        # the bonus never lifts a candidate that is below the floor on its own
        if base < d.candidate_floor:
            return None
        adjusted = min(1.0, base + self._position_bonus(target, cand))
        return adjusted if adjusted > d.fuzzy_threshold else None

    # ---- resolution ----

    def _resolve(
        self,
        target: _Target,
        indexed: bool,
        contextual: bool,
        claimed: Optional[Set[int]] = None,
    ) -> MatchResult:
        if not target.text:
            return NOT_FOUND
        claimed = claimed or set()

        tiers: List[Tuple[MatchTier, Iterable[_Candidate], Callable[[_Candidate], Optional[float]]]] = [
            (MatchTier.EXACT, self._exact_pool(target, indexed), lambda c: 1.0),
            (MatchTier.REORDERED, self._reordered_pool(target, indexed), lambda c: 1.0),
            (MatchTier.PARTIAL, self._partial_pool(target, indexed),
             lambda c: similarity(target.text, c.text, self.defaults)),
            (MatchTier.FUZZY, self._fuzzy_pool(target, indexed),
             lambda c: self._fuzzy_score(target, c, contextual)),
        ]
        for tier, pool, score_of in tiers:
            fallback: Optional[MatchResult] = None
            for cand in pool:
                score = score_of(cand)
                if score is None:
                    continue
                hit = MatchResult(row=cand.row, score=score, tier=tier)
                if cand.row not in claimed:
                    return hit
                if fallback is None:
                    fallback = hit
            if fallback is not None:
                return fallback
        return NOT_FOUND

    def _target(self, name: Optional[str], index: int = 0, batch_size: int = 1) -> _Target:
        text = normalize(name)
        return _Target(text, tuple(tokens(text)), index, batch_size)

    def find_row(self, target_name: Optional[str]) -> MatchResult:
        """Single lookup: exact -> reordered -> partial -> fuzzy, first row in sheet order wins."""
        result = self._resolve(self._target(target_name), indexed=False, contextual=False)
        logger.debug("find_row %r -> row=%s tier=%s score=%.3f",
                     target_name, result.row, result.tier and result.tier.value, result.score)
        return result

    def use_indexed(self, batch_size: int) -> bool:
        d = self.defaults
        return batch_size >= d.batch_min_records or self.total_rows >= d.batch_min_rows

    def match_batch(self, names: Sequence[Optional[str]]) -> List[MatchResult]:
        """
        Resolve an ordered batch of names. Results are parallel to `names`;
        unresolved names give a MatchResult with row None.
        """
        indexed = self.use_indexed(len(names))
        if indexed:
            self._build_indexes()

        claimed: Set[int] = set()
        results: List[MatchResult] = []
        for i, name in enumerate(names):
            target = self._target(name, i, len(names))
            result = self._resolve(target, indexed=indexed, contextual=True, claimed=claimed)
            if result.found:
                claimed.add(result.row)
                logger.debug("record %d %r -> row %d (%s, %.3f)",
                             i, name, result.row, result.tier.value, result.score)
            else:
                logger.debug("record %d %r -> not found", i, name)
            results.append(result)
        return results


def find_row(
    target_name: Optional[str],
    grid: Grid,
    name_column: int,
    start_row: int = 0,
    defaults: ScoringDefaults = DEFAULTS,
    extra_columns: Sequence[int] = (),
) -> MatchResult:
    """Row of `target_name` in `grid`'s name column, or a result with row None."""
    return NameMatcher(grid, name_column, start_row, defaults, extra_columns).find_row(target_name)
