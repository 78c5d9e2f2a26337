#!/usr/bin/env python3
"""
name_similarity.py
------------------
Blended 0..1 similarity between two (normalized) student names.

Component metrics, each symmetric and in [0, 1]:
  exact_token   share of whitespace tokens the two names have in common
  partial       first/last-token emphasis (first name weighs most)
  edit_distance (max_len - levenshtein) / max_len
  substring     containment ratio, else longest common substring ratio
  phonetic      edit-distance ratio over phonetic signatures
  structural    token-count and first/last token length agreement

similarity() = min(1, blend * length_penalty + pattern_bonus), with the blend
weights taken from ScoringDefaults.weights.
"""

from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from ..scoring_defaults import DEFAULTS, ScoringDefaults
from .arabic_text import normalize, phonetic_signature, tokens

# Compound-name families, compared in normalized form
_PATTERN_PREFIXES = tuple(normalize(p) for p in ("عبد", "أبو", "أم", "بن", "بنت"))
_PATTERN_SUFFIXES = tuple(normalize(s) for s in ("الدين", "الله", "الرحمن"))

# Common substrings shorter than this do not count
_MIN_COMMON_SUBSTRING = 3

# ------------------------------------------------------------------------------
# Component metrics
# ------------------------------------------------------------------------------

def levenshtein_ratio(a: str, b: str) -> float:
    """(max_len - distance) / max_len; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


def exact_token_overlap(parts1: Sequence[str], parts2: Sequence[str]) -> float:
    if not parts1 or not parts2:
        return 0.0
    shared = sum((Counter(parts1) & Counter(parts2)).values())
    return shared / max(len(parts1), len(parts2))


def _partial_one_way(parts1: Sequence[str], parts2: Sequence[str], token_min: float) -> float:
    score = 0.0
    total = 0.0

    first = levenshtein_ratio(parts1[0], parts2[0])
    if first > token_min:
        score += first * 0.6
    total += 0.6

    if len(parts1) > 1 and len(parts2) > 1:
        last = levenshtein_ratio(parts1[-1], parts2[-1])
        if last > token_min:
            score += last * 0.4
        total += 0.4

    # middle tokens only count when they find a close partner
    if len(parts1) > 2 and len(parts2) > 2:
        for p1 in parts1[1:-1]:
            for p2 in parts2[1:-1]:
                sim = levenshtein_ratio(p1, p2)
                if sim > 0.6:
                    score += sim * 0.2
                    total += 0.2
                    break

    return score / total if total > 0 else 0.0


def partial_token_similarity(
    parts1: Sequence[str],
    parts2: Sequence[str],
    token_min: float = DEFAULTS.partial_token_min,
) -> float:
    """
    First-name / last-name weighted agreement. Averaged over both directions
    so the middle-token pass does not depend on argument order.
    """
    if not parts1 or not parts2:
        return 0.0
    forward = _partial_one_way(parts1, parts2, token_min)
    backward = _partial_one_way(parts2, parts1, token_min)
    return (forward + backward) / 2.0


def longest_common_substring(a: str, b: str) -> int:
    if not a or not b:
        return 0
    best = 0
    prev = [0] * (len(b) + 1)
    for ca in a:
        cur = [0] * (len(b) + 1)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1] + 1
                if cur[j] > best:
                    best = cur[j]
        prev = cur
    return best


def substring_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if shorter in longer:
        return len(shorter) / len(longer)
    common = longest_common_substring(a, b)
    if common < _MIN_COMMON_SUBSTRING:
        return 0.0
    return common / len(longer)


def phonetic_similarity(a: str, b: str) -> float:
    return levenshtein_ratio(phonetic_signature(a), phonetic_signature(b))


def length_agreement(x: str, y: str) -> float:
    """1 for equal lengths, falling linearly to 0 as one string shrinks to nothing."""
    longest = max(len(x), len(y))
    if longest == 0:
        return 1.0
    return 1.0 - abs(len(x) - len(y)) / longest


def structural_similarity(parts1: Sequence[str], parts2: Sequence[str]) -> float:
    if not parts1 or not parts2:
        return 0.0
    count_sim = 1.0 - abs(len(parts1) - len(parts2)) / max(len(parts1), len(parts2))

    shape = length_agreement(parts1[0], parts2[0]) * 0.6
    if len(parts1) > 1 and len(parts2) > 1:
        shape += length_agreement(parts1[-1], parts2[-1]) * 0.4

    return count_sim * 0.5 + shape * 0.5


def length_penalty(a: str, b: str, defaults: ScoringDefaults = DEFAULTS) -> float:
    """Multiplier in [length_penalty_min, 1]; 1 unless lengths differ by more than the ratio."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    ratio = abs(len(a) - len(b)) / longest
    if ratio > defaults.length_penalty_ratio:
        return max(defaults.length_penalty_min, 1.0 - ratio)
    return 1.0


def pattern_bonus(parts1: Sequence[str], parts2: Sequence[str], defaults: ScoringDefaults = DEFAULTS) -> float:
    bonus = 0.0
    for prefix in _PATTERN_PREFIXES:
        if any(p.startswith(prefix) for p in parts1) and any(p.startswith(prefix) for p in parts2):
            bonus += defaults.pattern_bonus_step
    for suffix in _PATTERN_SUFFIXES:
        if any(p.endswith(suffix) for p in parts1) and any(p.endswith(suffix) for p in parts2):
            bonus += defaults.pattern_bonus_step
    return min(defaults.pattern_bonus_cap, bonus)

# ------------------------------------------------------------------------------
# Blend
# ------------------------------------------------------------------------------

def similarity(a: str, b: str, defaults: ScoringDefaults = DEFAULTS) -> float:
    """
    Similarity of two already-normalized names.

    Returns 1.0 for identical strings (including two empty ones) and 0.0 when
    exactly one side is empty.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    parts1: List[str] = tokens(a)
    parts2: List[str] = tokens(b)
    w = defaults.weights

    base = (
        exact_token_overlap(parts1, parts2) * w.exact_token
        + partial_token_similarity(parts1, parts2, defaults.partial_token_min) * w.partial
        + levenshtein_ratio(a, b) * w.edit_distance
        + substring_similarity(a, b) * w.substring
        + phonetic_similarity(a, b) * w.phonetic
        + structural_similarity(parts1, parts2) * w.structural
    )
    score = base * length_penalty(a, b, defaults) + pattern_bonus(parts1, parts2, defaults)
    return max(0.0, min(1.0, score))


def name_similarity(a: Optional[str], b: Optional[str], defaults: ScoringDefaults = DEFAULTS) -> float:
    """similarity() on raw text: both sides are normalized first."""
    return similarity(normalize(a), normalize(b), defaults)
