# marks_linker/scoring_defaults.py
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SimilarityWeights:
    # Blend weights for name similarity; exact_token must stay the largest
    exact_token: float = 0.40
    partial: float = 0.25
    edit_distance: float = 0.15
    substring: float = 0.10
    phonetic: float = 0.05
    structural: float = 0.05


@dataclass(frozen=True)
class ScoringDefaults:
    # Single source of truth for detection and matching thresholds

    # name matching
    fuzzy_threshold: float = 0.80        # fuzzy tier accepts similarity strictly above this
    candidate_floor: float = 0.30        # base similarity a candidate needs before any contextual bonus
    context_bonus: float = 0.10          # max positional bonus for ordered batches
    partial_token_min: float = 0.70      # first/last token similarity needed to count in the partial metric
    batch_min_records: int = 50          # indexed batch variant kicks in at this many records ...
    batch_min_rows: int = 100            # ... or this many sheet rows
    fallback_candidates: int = 10        # cap on pre-filtered candidates when no first-token bucket matches
    prefilter_length_ratio: float = 0.30 # min length similarity for the pre-filter

    # similarity blend
    weights: SimilarityWeights = SimilarityWeights()
    length_penalty_ratio: float = 0.50   # length mismatch above this ratio scales the score down
    length_penalty_min: float = 0.30     # ... but never below this factor
    pattern_bonus_step: float = 0.10     # per shared compound-name family
    pattern_bonus_cap: float = 0.20

    # structure detection
    min_rows: int = 5
    header_scan_rows: int = 10
    massar_scan_rows: int = 20
    massar_min_indicators: int = 2
    min_header_cells: int = 3
    sample_rows: int = 10
    name_column_threshold: float = 0.50
    id_column_threshold: float = 0.40
    numeric_ratio: float = 0.70          # share of sampled values that must be numeric
    mark_range_ratio: float = 0.50       # share of sampled values that must fall in [mark_min, mark_max]
    mark_min: float = 0.0
    mark_max: float = 20.0

    # activities re-rank in generic sheets (tunable heuristic, not validated against real data)
    activities_mean_gap: float = 3.0
    activities_min_mean: float = 10.0

    def __post_init__(self) -> None:
        w = self.weights
        others = (w.partial, w.edit_distance, w.substring, w.phonetic, w.structural)
        if any(w.exact_token < o for o in others):
            raise ValueError("weights.exact_token must be the largest similarity weight")
        if not 0.0 <= self.candidate_floor <= self.fuzzy_threshold <= 1.0:
            raise ValueError("expected 0 <= candidate_floor <= fuzzy_threshold <= 1")
        if self.mark_min > self.mark_max:
            raise ValueError("mark_min must not exceed mark_max")


DEFAULTS = ScoringDefaults()

_FIELD_NAMES = {f.name for f in fields(ScoringDefaults)}
_WEIGHT_NAMES = {f.name for f in fields(SimilarityWeights)}


def apply_overrides(
    base: Optional[ScoringDefaults] = None,
    weights: Optional[Dict[str, Any]] = None,
    **overrides: Any,
) -> ScoringDefaults:
    # produce an overridden immutable config without mutating DEFAULTS
    base = DEFAULTS if base is None else base

    unknown = set(overrides) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown scoring setting(s): {', '.join(sorted(unknown))}")

    changes = {k: v for k, v in overrides.items() if v is not None}
    if weights:
        bad = set(weights) - _WEIGHT_NAMES
        if bad:
            raise ValueError(f"Unknown similarity weight(s): {', '.join(sorted(bad))}")
        changes["weights"] = replace(base.weights, **{k: float(v) for k, v in weights.items()})

    return replace(base, **changes)
